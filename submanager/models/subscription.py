"""
Core Data Models for Subscription Manager

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce invariants at runtime (non-negative price, bounded notes)
2. Match the backend wire format exactly (aliases, ISO-8601 dates)
3. Be serializable for transport and logging

DESIGN DECISION: Python attribute names are snake_case; the wire names
(a mix of snake_case and camelCase, as the backend emits them) live in
field aliases. Always dump with by_alias=True when talking to the server.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
)


# =============================================================================
# SHARED FIELD TYPES
# =============================================================================

def utc_now() -> datetime:
    """Current time, timezone-aware, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_wire_datetime(value: datetime) -> datetime:
    """UTC, whole seconds: exactly what the wire format can carry."""
    return ensure_utc(value).replace(microsecond=0)


def format_iso8601(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


UtcDateTime = Annotated[
    datetime,
    AfterValidator(to_wire_datetime),
    PlainSerializer(format_iso8601, return_type=str, when_used="json"),
]


CENT = Decimal("0.01")

# Below 1e13 a cent-precision amount has at most 15 significant digits,
# which a JSON float (IEEE double) carries exactly
MAX_PRICE = Decimal("1e13")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# Prices travel as JSON numbers but are kept as Decimal in memory
Price = Annotated[
    Decimal,
    Field(ge=0, lt=MAX_PRICE),
    AfterValidator(to_cents),
    PlainSerializer(float, return_type=float, when_used="json"),
]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class _DisplayEnum(str, Enum):
    """Enum whose wire value is its display name; lookup is case-insensitive."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered or member.name.lower() == lowered:
                    return member
        return None

    @property
    def display_name(self) -> str:
        return self.value


class SubscriptionCategory(_DisplayEnum):
    """Supported subscription categories."""
    STREAMING = "Streaming"
    MUSIC = "Music"
    GAMING = "Gaming"
    PRODUCTIVITY = "Productivity"
    SOFTWARE = "Software"
    EDUCATION = "Education"
    HEALTH = "Health"
    OTHER = "Other"


class BillingCycle(_DisplayEnum):
    """
    Recurrence period of a subscription charge.

    The cycle determines how a price is normalized to a monthly amount.
    Weekly uses 4.33 weeks per month, an average rather than a
    calendar-exact figure.
    """
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"
    WEEKLY = "Weekly"

    @property
    def abbreviation(self) -> str:
        return {
            BillingCycle.MONTHLY: "/Month",
            BillingCycle.QUARTERLY: "/Quarter",
            BillingCycle.YEARLY: "/Year",
            BillingCycle.WEEKLY: "/Week",
        }[self]

    def to_monthly(self, price: Decimal) -> Decimal:
        """Convert a price charged once per this cycle to a monthly amount."""
        if self is BillingCycle.MONTHLY:
            return price
        if self is BillingCycle.YEARLY:
            return price / 12
        if self is BillingCycle.QUARTERLY:
            return price / 3
        return price * WEEKS_PER_MONTH


WEEKS_PER_MONTH = Decimal("4.33")


# =============================================================================
# USER
# =============================================================================

class User(BaseModel):
    """
    An authenticated user as returned by the backend.

    Immutable: the only way a user changes is the server sending a new one.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    email: str = ""
    phone_number: str = ""
    full_name: str = Field(default="", alias="fullName")
    created_at: UtcDateTime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: UtcDateTime = Field(default_factory=utc_now, alias="updatedAt")


# =============================================================================
# SUBSCRIPTION
# =============================================================================

class Subscription(BaseModel):
    """
    A tracked recurring subscription.

    Identity is the `id` alone: two instances with the same id are equal
    even if every other field differs. `user_id` is informational and is
    never used to decide ownership.

    Inactive subscriptions are soft-deleted: they stay in the collection
    but are excluded from every cost and grouping view.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Unique subscription ID (server- or client-assigned)"
    )
    user_id: str = Field(
        default="",
        description="Owner reference, used for filtering only"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name of the service"
    )
    category: SubscriptionCategory = Field(
        default=SubscriptionCategory.OTHER,
    )
    price: Price = Field(
        ...,
        description="Price charged once per billing cycle"
    )
    billing_cycle: BillingCycle = Field(
        default=BillingCycle.MONTHLY,
    )
    renewal_date: UtcDateTime = Field(
        ...,
        description="Next renewal; may be in the past"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    logo_url: Optional[str] = Field(
        default=None,
    )
    is_active: bool = Field(
        default=True,
        alias="isActive",
        description="False means soft-deleted"
    )
    created_at: UtcDateTime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: UtcDateTime = Field(default_factory=utc_now, alias="updatedAt")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Subscription):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def monthly_cost(self) -> Decimal:
        """Price normalized to one month."""
        return self.billing_cycle.to_monthly(self.price)

    def to_wire(self) -> dict:
        """Serialize to the backend JSON shape."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls, payload: dict) -> "Subscription":
        return cls.model_validate(payload)


# =============================================================================
# RESPONSE ENVELOPES
# =============================================================================

class SubscriptionEnvelope(BaseModel):
    """`{data: Subscription}` as returned by POST/PUT /subscriptions."""

    data: Subscription


class SubscriptionListEnvelope(BaseModel):
    """`{data: Subscription[]}` as returned by GET /subscriptions."""

    data: list[Subscription] = Field(default_factory=list)


# =============================================================================
# STORE SNAPSHOT
# =============================================================================

class StoreSnapshot(BaseModel):
    """Immutable view of the subscription store published to subscribers."""
    model_config = ConfigDict(frozen=True)

    subscriptions: tuple[Subscription, ...] = ()
    is_loading: bool = False
    error_message: Optional[str] = None
