"""OTP authentication package."""

from submanager.services.auth.cooldown import ResendCooldown
from submanager.services.auth.session import (
    AuthError,
    AuthRejectedError,
    AuthSession,
    InvalidInputError,
    InvalidStateError,
    NoSessionError,
    TransportError,
)

__all__ = [
    "AuthError",
    "AuthRejectedError",
    "AuthSession",
    "InvalidInputError",
    "InvalidStateError",
    "NoSessionError",
    "ResendCooldown",
    "TransportError",
]
