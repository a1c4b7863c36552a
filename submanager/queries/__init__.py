"""Derived views over the subscription collection."""

from submanager.queries.aggregates import (
    active_subscriptions,
    monthly_cost_by_category,
    normalize_monthly,
    subscriptions_by_category,
    total_monthly_cost,
    total_yearly_cost,
    upcoming_payments,
)

__all__ = [
    "active_subscriptions",
    "monthly_cost_by_category",
    "normalize_monthly",
    "subscriptions_by_category",
    "total_monthly_cost",
    "total_yearly_cost",
    "upcoming_payments",
]
