"""
Authentication Models

Wire requests/responses for the OTP endpoints, and the session state
machine's states.

The session is always in exactly one of three states:

    Anonymous --send_otp--> OtpPending --verify_otp--> Authenticated
        ^                      |  ^                         |
        |                      +--+ (resend / re-send)      |
        +------------------------- logout ------------------+

States are frozen models: a transition replaces the state object,
it never mutates one.
"""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from submanager.models.subscription import User


class IdentifierType(str, Enum):
    """Channel an OTP is delivered over."""
    EMAIL = "email"
    PHONE = "phone"


# =============================================================================
# REQUESTS
# =============================================================================

class SendOtpRequest(BaseModel):
    """Body of POST /auth/send-otp. Exactly one of email/phone is set."""

    email: Optional[str] = None
    phone_number: Optional[str] = None
    country_code: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    """Body of POST /auth/verify-otp."""

    identifier: str
    otp: str
    identifier_type: IdentifierType


class SignupRequest(BaseModel):
    """Body of POST /auth/signup."""

    full_name: str
    email: str
    phone_number: str
    password: str


# =============================================================================
# RESPONSES
# =============================================================================

class MessageResponse(BaseModel):
    """`{success, message}` returned by send-otp and signup."""

    success: bool
    message: str = ""


class AuthData(BaseModel):
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    user: Optional[User] = None


class OtpResponse(BaseModel):
    """`{success, message, data?}` returned by verify-otp."""

    success: bool
    message: str = ""
    data: Optional[AuthData] = None


# =============================================================================
# SESSION STATES
# =============================================================================

class SessionStatus(str, Enum):
    ANONYMOUS = "anonymous"
    OTP_PENDING = "otp_pending"
    AUTHENTICATED = "authenticated"


class Anonymous(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal[SessionStatus.ANONYMOUS] = SessionStatus.ANONYMOUS


class OtpPending(BaseModel):
    """An OTP was sent to `identifier`; waiting for the user to enter it."""
    model_config = ConfigDict(frozen=True)

    status: Literal[SessionStatus.OTP_PENDING] = SessionStatus.OTP_PENDING
    identifier: str
    identifier_type: IdentifierType
    country_code: Optional[str] = None


class Authenticated(BaseModel):
    """
    A session holding a bearer token.

    `user` is None when the session was restored from a persisted token:
    the token is trusted optimistically and not revalidated.
    """
    model_config = ConfigDict(frozen=True)

    status: Literal[SessionStatus.AUTHENTICATED] = SessionStatus.AUTHENTICATED
    user: Optional[User] = None
    token: str = Field(..., min_length=1)


AuthState = Union[Anonymous, OtpPending, Authenticated]


class AuthSnapshot(BaseModel):
    """Immutable view of the auth session published to subscribers."""
    model_config = ConfigDict(frozen=True)

    state: AuthState = Field(default_factory=Anonymous, discriminator="status")
    is_loading: bool = False
    error_message: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self.state, Authenticated)


class CooldownSnapshot(BaseModel):
    """Immutable view of the OTP resend countdown."""
    model_config = ConfigDict(frozen=True)

    remaining_seconds: int = 0
    can_resend: bool = True
    is_running: bool = False
