"""
Subscription Aggregates

DESIGN DECISION: Derived views are pure functions of the collection.
Nothing is cached; the store recomputes them on every read, so they can
never drift from the subscriptions they summarize.

Inactive (soft-deleted) subscriptions never contribute to a cost, a
grouping or the upcoming-payments list.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal

from submanager.models.subscription import (
    BillingCycle,
    Subscription,
    SubscriptionCategory,
    ensure_utc,
)


DEFAULT_UPCOMING_WINDOW = timedelta(days=7)
MONTHS_PER_YEAR = 12


def normalize_monthly(price: Decimal, billing_cycle: BillingCycle) -> Decimal:
    """
    Convert a per-cycle price to a monthly amount.

    monthly x1, yearly /12, quarterly /3, weekly x4.33
    """
    return billing_cycle.to_monthly(price)


def active_subscriptions(subscriptions: Iterable[Subscription]) -> list[Subscription]:
    return [sub for sub in subscriptions if sub.is_active]


def total_monthly_cost(subscriptions: Iterable[Subscription]) -> Decimal:
    """Sum of normalized monthly prices over active subscriptions."""
    return sum(
        (sub.monthly_cost for sub in active_subscriptions(subscriptions)),
        Decimal("0"),
    )


def total_yearly_cost(subscriptions: Iterable[Subscription]) -> Decimal:
    return total_monthly_cost(subscriptions) * MONTHS_PER_YEAR


def subscriptions_by_category(
    subscriptions: Iterable[Subscription],
) -> dict[SubscriptionCategory, list[Subscription]]:
    """
    Group active subscriptions by category.

    Categories appear in the order they are first encountered, and
    subscriptions keep their collection order within a group.
    """
    grouped: dict[SubscriptionCategory, list[Subscription]] = {}
    for sub in active_subscriptions(subscriptions):
        grouped.setdefault(sub.category, []).append(sub)
    return grouped


def monthly_cost_by_category(
    subscriptions: Iterable[Subscription],
) -> dict[SubscriptionCategory, Decimal]:
    """Normalized monthly spend per category, active subscriptions only."""
    return {
        category: total_monthly_cost(subs)
        for category, subs in subscriptions_by_category(subscriptions).items()
    }


def upcoming_payments(
    subscriptions: Iterable[Subscription],
    now: datetime,
    window: timedelta = DEFAULT_UPCOMING_WINDOW,
    include_overdue: bool = True,
) -> list[Subscription]:
    """
    Active subscriptions renewing on or before `now + window`, soonest first.

    With include_overdue (the default) there is no lower bound, so a
    renewal date already in the past is still listed. Pass False to only
    keep renewals at or after `now`.
    """
    now = ensure_utc(now)
    horizon = now + window

    upcoming = [
        sub for sub in active_subscriptions(subscriptions)
        if sub.renewal_date <= horizon
        and (include_overdue or sub.renewal_date >= now)
    ]
    # sorted() is stable, so equal dates keep collection order
    return sorted(upcoming, key=lambda sub: sub.renewal_date)
