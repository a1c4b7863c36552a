"""
Tests for Subscription Manager

Test strategy:
1. Unit tests for individual components (models, validators, aggregates)
2. Integration tests for the session and store (with a mocked backend)
3. No real API calls in tests (httpx.MockTransport)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import ValidationError

from submanager.models import (
    Anonymous,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    AuthSnapshot,
    Authenticated,
    BillingCycle,
    OtpPending,
    IdentifierType,
    Subscription,
    SubscriptionCategory,
    SubscriptionListEnvelope,
    User,
    ValidationIssue,
    ValidationResult,
)
from submanager.models.audit import mask_identifier

from conftest import subscription_payload, user_payload


class TestSubscriptionModel:
    """Tests for the Subscription model and its wire format."""

    def test_decode_backend_payload(self):
        """Test decoding the backend's mixed snake/camel case keys."""
        sub = Subscription.from_wire(subscription_payload(price=12.5))

        assert sub.id == "sub-1"
        assert sub.user_id == "user-1"
        assert sub.price == Decimal("12.5")
        assert sub.billing_cycle == BillingCycle.MONTHLY
        assert sub.category == SubscriptionCategory.STREAMING
        assert sub.renewal_date == datetime(2024, 1, 20, tzinfo=timezone.utc)
        assert sub.is_active is True

    def test_wire_round_trip(self):
        """Test that encoding a decoded payload gives the same payload back."""
        payload = subscription_payload(price=12.5)
        sub = Subscription.from_wire(payload)

        assert sub.to_wire() == payload

    def test_encode_then_decode_keeps_fields(self):
        """Test a subscription built in Python survives a trip to the wire and back."""
        sub = Subscription(
            id="x",
            name="Netflix",
            price=Decimal("12345678901.23456789"),
            renewal_date=datetime(2024, 5, 1, 10, 30, 15, 123456, tzinfo=timezone.utc),
        )

        decoded = Subscription.from_wire(sub.to_wire())

        assert decoded.renewal_date == sub.renewal_date
        assert decoded.created_at == sub.created_at
        assert decoded.price == sub.price
        assert decoded.model_dump() == sub.model_dump()

    def test_dates_truncated_to_seconds(self):
        """Test sub-second precision is dropped, as the wire format has none."""
        sub = Subscription(
            name="A",
            price="1",
            renewal_date=datetime(2024, 5, 1, 10, 30, 15, 999999, tzinfo=timezone.utc),
        )
        assert sub.renewal_date == datetime(2024, 5, 1, 10, 30, 15, tzinfo=timezone.utc)

    def test_price_rounded_to_cents(self):
        """Test prices are kept at cent precision, half up."""
        assert Subscription(name="A", price="9.995", renewal_date=datetime(2024, 1, 1)).price \
            == Decimal("10.00")
        assert Subscription(name="A", price="9.994", renewal_date=datetime(2024, 1, 1)).price \
            == Decimal("9.99")

    def test_price_too_large_for_wire_rejected(self):
        """Test a price the JSON float can't carry exactly is refused."""
        with pytest.raises(ValidationError):
            Subscription(
                name="A",
                price=Decimal("12345678901234.12"),
                renewal_date=datetime(2024, 1, 1),
            )

    def test_wire_keys(self):
        """Test the exact keys sent to the backend."""
        wire = Subscription(
            name="Spotify",
            price=Decimal("9.5"),
            renewal_date=datetime(2024, 2, 1, 8, 30, tzinfo=timezone.utc),
        ).to_wire()

        assert wire["billing_cycle"] == "Monthly"
        assert wire["renewal_date"] == "2024-02-01T08:30:00Z"
        assert wire["isActive"] is True
        assert wire["price"] == 9.5
        assert "createdAt" in wire
        assert "updatedAt" in wire
        assert "logo_url" in wire

    def test_default_id_is_generated(self):
        """Test that a client-side subscription gets a unique id."""
        a = Subscription(name="A", price="1", renewal_date=datetime.now(timezone.utc))
        b = Subscription(name="B", price="1", renewal_date=datetime.now(timezone.utc))
        assert a.id
        assert a.id != b.id

    def test_rejects_negative_price(self):
        """Test that negative prices are rejected."""
        with pytest.raises(ValidationError):
            Subscription(
                name="Bad",
                price=Decimal("-1"),
                renewal_date=datetime.now(timezone.utc),
            )

    def test_zero_price_allowed(self):
        """Test that a free subscription is a valid model."""
        sub = Subscription(name="Free tier", price="0", renewal_date=datetime.now(timezone.utc))
        assert sub.price == Decimal("0")

    def test_rejects_blank_name(self):
        """Test that whitespace-only names are rejected after stripping."""
        with pytest.raises(ValidationError):
            Subscription(name="   ", price="1", renewal_date=datetime.now(timezone.utc))

    def test_rejects_long_name_and_notes(self):
        """Test the name and notes length limits."""
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationError):
            Subscription(name="x" * 101, price="1", renewal_date=now)
        with pytest.raises(ValidationError):
            Subscription(name="ok", price="1", renewal_date=now, notes="n" * 501)

    def test_naive_datetime_is_utc(self):
        """Test that naive datetimes are taken as UTC."""
        sub = Subscription(name="A", price="1", renewal_date=datetime(2024, 3, 1))
        assert sub.renewal_date.tzinfo == timezone.utc

    def test_equality_by_id_only(self):
        """Test that identity is the id alone."""
        now = datetime.now(timezone.utc)
        a = Subscription(id="same", name="Netflix", price="10", renewal_date=now)
        b = Subscription(id="same", name="Renamed", price="99", renewal_date=now)
        c = Subscription(id="other", name="Netflix", price="10", renewal_date=now)

        assert a == b
        assert a != c
        assert hash(a) == hash(b)
        assert len({a, b, c}) == 2

    def test_monthly_cost(self):
        """Test the per-subscription normalized cost."""
        sub = Subscription(
            name="Annual",
            price="120",
            billing_cycle=BillingCycle.YEARLY,
            renewal_date=datetime.now(timezone.utc),
        )
        assert sub.monthly_cost == Decimal("10")

    def test_list_envelope(self):
        """Test decoding GET /subscriptions."""
        envelope = SubscriptionListEnvelope.model_validate(
            {"data": [subscription_payload(id="a"), subscription_payload(id="b")]}
        )
        assert [s.id for s in envelope.data] == ["a", "b"]


class TestEnums:
    """Tests for category and billing-cycle enums."""

    def test_wire_values_are_display_names(self):
        """Test that enum values are the capitalised display names."""
        assert SubscriptionCategory.STREAMING.value == "Streaming"
        assert BillingCycle.QUARTERLY.value == "Quarterly"
        assert BillingCycle.WEEKLY.display_name == "Weekly"

    def test_case_insensitive_lookup(self):
        """Test that lowercase wire values are accepted."""
        assert BillingCycle("monthly") is BillingCycle.MONTHLY
        assert SubscriptionCategory("gaming") is SubscriptionCategory.GAMING

    def test_unknown_value_rejected(self):
        """Test that unknown values still fail."""
        with pytest.raises(ValueError):
            BillingCycle("fortnightly")

    def test_abbreviations(self):
        """Test the price suffixes."""
        assert BillingCycle.WEEKLY.abbreviation == "/Week"
        assert BillingCycle.MONTHLY.abbreviation == "/Month"
        assert BillingCycle.QUARTERLY.abbreviation == "/Quarter"
        assert BillingCycle.YEARLY.abbreviation == "/Year"

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "Streaming", "Music", "Gaming", "Productivity",
            "Software", "Education", "Health", "Other",
        ]
        for cat in expected:
            assert SubscriptionCategory(cat) is not None


class TestUserAndAuthModels:
    """Tests for User and the session state models."""

    def test_user_from_wire(self):
        """Test decoding a backend user."""
        user = User.model_validate(user_payload())
        assert user.full_name == "Jane Doe"
        assert user.phone_number == "081234567890"

    def test_user_is_frozen(self):
        """Test that users can't be mutated."""
        user = User.model_validate(user_payload())
        with pytest.raises(ValidationError):
            user.full_name = "Changed"

    def test_snapshot_defaults_to_anonymous(self):
        """Test the initial session snapshot."""
        snapshot = AuthSnapshot()
        assert isinstance(snapshot.state, Anonymous)
        assert snapshot.is_authenticated is False

    def test_authenticated_without_user(self):
        """Test a restored session with no user."""
        snapshot = AuthSnapshot(state=Authenticated(token="abc"))
        assert snapshot.is_authenticated is True
        assert snapshot.state.user is None

    def test_authenticated_requires_token(self):
        """Test that an empty token is not a session."""
        with pytest.raises(ValidationError):
            Authenticated(token="")

    def test_otp_pending(self):
        """Test the pending state carries the identifier."""
        state = OtpPending(identifier="a@b.com", identifier_type=IdentifierType.EMAIL)
        assert state.identifier_type == IdentifierType.EMAIL


class TestAuditModels:
    """Tests for audit models."""

    def test_mask_email(self):
        """Test that emails are masked to first letter and domain."""
        assert mask_identifier("jane.doe@example.com") == "j***@example.com"

    def test_mask_phone(self):
        """Test that phone numbers keep only the last 4 digits."""
        assert mask_identifier("0812345678") == "******5678"

    def test_otp_requested_event(self):
        """Test that the identifier is masked in the event."""
        event = AuditEventBuilder.otp_requested("jane@example.com", "email")
        assert event.event_type == AuditEventType.OTP_REQUESTED
        assert event.details["identifier"] == "j***@example.com"

    def test_otp_resent_event(self):
        """Test the resend flag picks the resend event type."""
        event = AuditEventBuilder.otp_requested("jane@example.com", "email", is_resend=True)
        assert event.event_type == AuditEventType.OTP_RESENT

    def test_external_service_error_event(self):
        """Test external service error audit event."""
        event = AuditEventBuilder.external_service_error(
            service="subscriptions_api",
            operation="fetch",
            error_message="HTTP Error: 500",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.details["operation"] == "fetch"

    def test_to_log_dict(self):
        """Test conversion for structured logging."""
        event = AuditEventBuilder.subscription_added("sub-1", "Netflix")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "subscription_added"
        assert log_dict["entity_id"] == "sub-1"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_valid_result(self):
        """Test a result with no issues."""
        result = ValidationResult()
        assert result.is_valid is True
        assert result.first_error is None

    def test_warnings_dont_count_as_errors(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(issues=[
            ValidationIssue(
                field="notes",
                issue_type="long",
                message="Notes are long",
                severity="warning",
            ),
        ])
        assert result.has_errors is False
        assert result.error_count == 0

    def test_first_error(self):
        """Test that the first error-level message is reported."""
        result = ValidationResult(issues=[
            ValidationIssue(field="name", issue_type="missing", message="Name missing"),
            ValidationIssue(field="price", issue_type="missing", message="Price missing"),
        ])
        assert result.is_valid is False
        assert result.error_count == 2
        assert result.first_error == "Name missing"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
