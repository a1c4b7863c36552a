"""
Data Models Package

This package contains all Pydantic models used in the Subscription Manager.
All data flowing through the system must conform to these schemas.
"""

from submanager.models.subscription import (
    BillingCycle,
    StoreSnapshot,
    Subscription,
    SubscriptionCategory,
    SubscriptionEnvelope,
    SubscriptionListEnvelope,
    User,
)
from submanager.models.auth import (
    Anonymous,
    AuthData,
    AuthSnapshot,
    AuthState,
    CooldownSnapshot,
    Authenticated,
    IdentifierType,
    MessageResponse,
    OtpPending,
    OtpResponse,
    SendOtpRequest,
    SessionStatus,
    SignupRequest,
    VerifyOtpRequest,
)
from submanager.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from submanager.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Subscription models
    "BillingCycle",
    "StoreSnapshot",
    "Subscription",
    "SubscriptionCategory",
    "SubscriptionEnvelope",
    "SubscriptionListEnvelope",
    "User",
    # Auth models
    "Anonymous",
    "AuthData",
    "AuthSnapshot",
    "AuthState",
    "CooldownSnapshot",
    "Authenticated",
    "IdentifierType",
    "MessageResponse",
    "OtpPending",
    "OtpResponse",
    "SendOtpRequest",
    "SessionStatus",
    "SignupRequest",
    "VerifyOtpRequest",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
