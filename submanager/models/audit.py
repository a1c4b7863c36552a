"""
Audit Models for Subscription Manager

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of sign-in and subscription changes
2. Debugging information when the backend misbehaves
3. Product analytics (sign-ups, additions, deletions)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Identifiers such as email addresses and phone numbers are masked before
they reach an event.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from submanager.models.subscription import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session lifecycle
    OTP_REQUESTED = "otp_requested"
    OTP_REQUEST_FAILED = "otp_request_failed"
    OTP_RESENT = "otp_resent"
    OTP_VERIFIED = "otp_verified"
    OTP_REJECTED = "otp_rejected"
    SIGNUP_COMPLETED = "signup_completed"
    SIGNUP_FAILED = "signup_failed"
    LOGGED_OUT = "logged_out"

    # Local validation
    VALIDATION_FAILED = "validation_failed"

    # Subscription lifecycle
    SUBSCRIPTIONS_FETCHED = "subscriptions_fetched"
    SUBSCRIPTION_ADDED = "subscription_added"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    STALE_RESPONSE_DISCARDED = "stale_response_discarded"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'session', 'subscription')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


def mask_identifier(identifier: str) -> str:
    """
    Mask an email or phone number for logging.

    "jane.doe@example.com" -> "j***@example.com", "0812345678" -> "******5678"
    """
    if "@" in identifier:
        local, _, domain = identifier.partition("@")
        return f"{local[:1]}***@{domain}"
    if len(identifier) <= 4:
        return "*" * len(identifier)
    return "*" * (len(identifier) - 4) + identifier[-4:]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.otp_requested("a@b.com", "email")
        event = AuditEventBuilder.subscription_added(sub_id, "Netflix")
    """

    @staticmethod
    def otp_requested(identifier: str, identifier_type: str, is_resend: bool = False) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_RESENT if is_resend else AuditEventType.OTP_REQUESTED,
            entity_type="session",
            description=f"OTP {'resent' if is_resend else 'sent'} via {identifier_type}",
            details={
                "identifier": mask_identifier(identifier),
                "identifier_type": identifier_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def otp_request_failed(identifier: str, identifier_type: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_REQUEST_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            description=f"OTP request via {identifier_type} failed",
            details={
                "identifier": mask_identifier(identifier),
                "identifier_type": identifier_type,
            },
            error_message=error_message,
        )

    @staticmethod
    def otp_verified(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_VERIFIED,
            entity_type="user",
            entity_id=user_id,
            description="OTP verified, session authenticated",
            is_user_action=True,
        )

    @staticmethod
    def otp_rejected(identifier: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            description="OTP verification rejected",
            details={"identifier": mask_identifier(identifier)},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def signup_completed(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNUP_COMPLETED,
            entity_type="user",
            description="Signup completed",
            details={"email": mask_identifier(email)},
            is_user_action=True,
        )

    @staticmethod
    def signup_failed(email: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNUP_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="user",
            description="Signup failed",
            details={"email": mask_identifier(email)},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def logged_out() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGGED_OUT,
            entity_type="session",
            description="User logged out",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(operation: str, message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.DEBUG,
            description=f"Local validation failed for {operation}",
            details={"operation": operation},
            error_message=message,
        )

    @staticmethod
    def subscriptions_fetched(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTIONS_FETCHED,
            entity_type="subscription",
            description=f"Fetched {count} subscriptions",
            details={"count": count},
        )

    @staticmethod
    def subscription_added(subscription_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ADDED,
            entity_type="subscription",
            entity_id=subscription_id,
            description=f"Subscription added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def subscription_updated(subscription_id: str, applied_locally: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_UPDATED,
            entity_type="subscription",
            entity_id=subscription_id,
            description="Subscription updated",
            details={"applied_locally": applied_locally},
            is_user_action=True,
        )

    @staticmethod
    def subscription_deleted(subscription_id: str, removed: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_DELETED,
            entity_type="subscription",
            entity_id=subscription_id,
            description="Subscription deleted",
            details={"removed_locally": removed},
            is_user_action=True,
        )

    @staticmethod
    def stale_response_discarded(operation: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RESPONSE_DISCARDED,
            severity=AuditSeverity.DEBUG,
            entity_type="subscription",
            description=f"Discarded {operation} response from a previous session",
            details={"operation": operation},
        )

    @staticmethod
    def external_service_error(service: str, operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
                "operation": operation,
            },
        )
