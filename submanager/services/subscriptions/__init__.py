"""Subscription collection package."""

from submanager.services.subscriptions.store import (
    OperationFamily,
    SubscriptionStore,
    SubscriptionStoreError,
)

__all__ = [
    "OperationFamily",
    "SubscriptionStore",
    "SubscriptionStoreError",
]
