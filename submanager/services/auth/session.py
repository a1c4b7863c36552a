"""
Authentication Session

The OTP sign-in state machine.

    Anonymous --send_otp--> OtpPending --verify_otp--> Authenticated
                                                             |
    Anonymous <------------------ logout --------------------+

DESIGN DECISION: Everything that can be checked locally is checked
before a request is sent. A bad email, phone number or code never
reaches the network.

Every failure:
1. Sets `error_message` (what a UI would show)
2. Is audited
3. Is raised to the caller as an AuthError subclass

Only one OTP request is in flight at a time. A second send_otp while one
is loading is ignored (returns False). A deliberate resend_otp bypasses
this, but is itself gated by the resend cooldown.

Completions that arrive after logout() are discarded: logout bumps an
epoch counter and each request checks it before touching state. A late
failure is still raised, but sets no error message and is not audited.
"""

from typing import Optional

import structlog

from submanager.audit import AuditLogger
from submanager.config import AuthSettings, get_settings
from submanager.events import EventHub
from submanager.models.audit import AuditEvent, AuditEventBuilder
from submanager.models.auth import (
    Anonymous,
    AuthSnapshot,
    AuthState,
    Authenticated,
    IdentifierType,
    MessageResponse,
    OtpPending,
    OtpResponse,
    SendOtpRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from submanager.models.subscription import User
from submanager.services.api import APIClient, ApiError, HTTPMethod
from submanager.services.auth.cooldown import ResendCooldown
from submanager.services.storage import StorageError, TokenStorageInterface
from submanager.validation import (
    FormValidator,
    is_valid_email,
    is_valid_otp,
    is_valid_phone_number,
)


logger = structlog.get_logger(__name__)

SEND_OTP_ENDPOINT = "/auth/send-otp"
VERIFY_OTP_ENDPOINT = "/auth/verify-otp"
SIGNUP_ENDPOINT = "/auth/signup"

INVALID_EMAIL = "Please enter a valid email"
INVALID_PHONE = "Please enter a valid phone number"
INVALID_OTP = "Please enter a valid {length}-digit code"
MISSING_IDENTIFIER = "Please enter either an email or a phone number"
NO_USER_DATA = "No user data returned"


# =============================================================================
# ERRORS
# =============================================================================

class AuthError(Exception):
    """Base exception for authentication errors."""

    @property
    def message(self) -> str:
        return str(self)


class InvalidInputError(AuthError):
    """Local validation failed; nothing was sent."""
    pass


class AuthRejectedError(AuthError):
    """The server answered but refused (`success == false`)."""
    pass


class TransportError(AuthError):
    """The request itself failed. Wraps the ApiError."""

    def __init__(self, api_error: ApiError):
        self.api_error = api_error
        super().__init__(api_error.message)


class NoSessionError(AuthError):
    """An operation needs a bearer token and there is none."""
    pass


class InvalidStateError(AuthError):
    """The operation isn't valid in the session's current state."""
    pass


# =============================================================================
# SESSION
# =============================================================================

class AuthSession:
    """
    Owns the authentication state and the persisted session token.

    On construction the persisted token, if any, is loaded and the session
    starts Authenticated with no user. The token is trusted as-is; the
    first request that uses it is what finds out whether it still works.
    """

    def __init__(
        self,
        api_client: APIClient,
        token_storage: TokenStorageInterface,
        cooldown: Optional[ResendCooldown] = None,
        validator: Optional[FormValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AuthSettings] = None,
    ):
        self._api = api_client
        self._token_storage = token_storage
        self._settings = settings or get_settings().auth
        self._cooldown = cooldown or ResendCooldown(self._settings.resend_cooldown_seconds)
        self._validator = validator or FormValidator()
        self._audit_logger = audit_logger

        self._state: AuthState = Anonymous()
        self._error_message: Optional[str] = None
        self._in_flight = 0
        self._otp_in_flight = 0
        self._epoch = 0

        self.changes: EventHub[AuthSnapshot] = EventHub("auth_session")

        self._restore()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def token(self) -> Optional[str]:
        if isinstance(self._state, Authenticated):
            return self._state.token
        return None

    @property
    def user(self) -> Optional[User]:
        if isinstance(self._state, Authenticated):
            return self._state.user
        return None

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self._state, Authenticated)

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def cooldown(self) -> ResendCooldown:
        return self._cooldown

    def snapshot(self) -> AuthSnapshot:
        return AuthSnapshot(
            state=self._state,
            is_loading=self.is_loading,
            error_message=self._error_message,
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def send_otp(
        self,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        country_code: Optional[str] = None,
    ) -> bool:
        """
        Ask the server to send a code to an email or phone number.

        Exactly one of `email` / `phone_number` must be given. A phone
        number is sent with `country_code` (default from settings, "+62").

        Returns:
            True when the code was sent and the session is OtpPending.
            False when ignored because another request is in flight.

        Raises:
            InvalidInputError: Identifier missing or malformed (no request sent)
            AuthRejectedError: Server answered success == false
            TransportError: The request failed
            InvalidStateError: Already authenticated
        """
        return await self._send_otp(email, phone_number, country_code, is_resend=False)

    async def resend_otp(self) -> bool:
        """
        Send a new code to the pending identifier.

        Ignored (returns False, no request) while the cooldown is running.
        Otherwise the cooldown is restarted first and stays armed whatever
        the outcome of the request.
        """
        pending = self._state
        if not isinstance(pending, OtpPending):
            raise self._invalid_state("No verification code has been requested")

        if not self._cooldown.can_resend:
            logger.debug(
                "otp_resend_ignored",
                remaining_seconds=self._cooldown.remaining_seconds,
            )
            return False

        self._cooldown.start(self._settings.resend_cooldown_seconds)

        if pending.identifier_type == IdentifierType.EMAIL:
            return await self._send_otp(pending.identifier, None, None, is_resend=True)
        return await self._send_otp(
            None, pending.identifier, pending.country_code, is_resend=True
        )

    async def verify_otp(self, code: str) -> User:
        """
        Exchange a code for a session token.

        On rejection the session stays OtpPending so the user can retry.

        Returns:
            The authenticated user

        Raises:
            InvalidStateError: No OTP pending
            InvalidInputError: Code isn't exactly otp_length digits
            AuthRejectedError: Server refused, or returned no token/user
            TransportError: The request failed
        """
        pending = self._state
        if not isinstance(pending, OtpPending):
            raise self._invalid_state("No verification code has been requested")

        if not is_valid_otp(code, self._settings.otp_length):
            raise await self._reject_input(
                "verify_otp", INVALID_OTP.format(length=self._settings.otp_length)
            )

        request = VerifyOtpRequest(
            identifier=pending.identifier,
            otp=code,
            identifier_type=pending.identifier_type,
        )

        epoch = self._epoch
        self._begin()
        try:
            try:
                response = await self._api.request(
                    VERIFY_OTP_ENDPOINT,
                    method=HTTPMethod.POST,
                    body=request,
                    response_model=OtpResponse,
                )
            except ApiError as e:
                error = TransportError(e)
                if epoch != self._epoch:
                    raise error from e
                await self._record_failure(
                    error, AuditEventBuilder.otp_rejected(pending.identifier, error.message)
                )
                raise error from e

            if epoch != self._epoch:
                raise self._invalid_state("Signed out while the code was being verified")

            if not response.success:
                error = AuthRejectedError(response.message or "Invalid verification code")
                await self._record_failure(
                    error, AuditEventBuilder.otp_rejected(pending.identifier, error.message)
                )
                raise error

            data = response.data
            if data is None or not data.token or data.user is None:
                error = AuthRejectedError(NO_USER_DATA)
                await self._record_failure(
                    error, AuditEventBuilder.otp_rejected(pending.identifier, error.message)
                )
                raise error

            self._state = Authenticated(user=data.user, token=data.token)
            self._persist_token(data.token)
            self._cooldown.stop()

            await self._audit(AuditEventBuilder.otp_verified(data.user.id))
            logger.info("session_authenticated", user_id=data.user.id)
            return data.user
        finally:
            self._end()

    async def signup(
        self,
        full_name: str,
        email: str,
        phone_number: str,
        password: str,
        confirm_password: str,
    ) -> str:
        """
        Register a new account.

        Independent of the session state; a successful signup does not sign
        the user in.

        Returns:
            The server's message

        Raises:
            InvalidInputError: Form failed local validation (no request sent)
            AuthRejectedError: Server answered success == false
            TransportError: The request failed
        """
        message = self._validator.validate_signup(
            full_name, email, phone_number, password, confirm_password
        )
        if message:
            raise await self._reject_input("signup", message)

        request = SignupRequest(
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            password=password,
        )

        self._begin()
        try:
            try:
                response = await self._api.request(
                    SIGNUP_ENDPOINT,
                    method=HTTPMethod.POST,
                    body=request,
                    response_model=MessageResponse,
                )
            except ApiError as e:
                error = TransportError(e)
                await self._record_failure(
                    error, AuditEventBuilder.signup_failed(email, error.message)
                )
                raise error from e

            if not response.success:
                error = AuthRejectedError(response.message or "Signup failed")
                await self._record_failure(
                    error, AuditEventBuilder.signup_failed(email, error.message)
                )
                raise error

            await self._audit(AuditEventBuilder.signup_completed(email))
            return response.message
        finally:
            self._end()

    async def logout(self) -> None:
        """
        Return to Anonymous and erase the persisted token.

        Safe to call in any state, any number of times.
        """
        was_anonymous = isinstance(self._state, Anonymous)

        self._epoch += 1
        self._state = Anonymous()
        self._error_message = None
        self._cooldown.stop()

        try:
            self._token_storage.clear_token()
        except StorageError as e:
            logger.error("token_clear_failed", error=str(e))

        self._publish()

        if not was_anonymous:
            await self._audit(AuditEventBuilder.logged_out())

    def close(self) -> None:
        """Stop background work owned by the session."""
        self._cooldown.stop()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _send_otp(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        country_code: Optional[str],
        is_resend: bool,
    ) -> bool:
        if isinstance(self._state, Authenticated):
            raise self._invalid_state("Already signed in")

        if self._otp_in_flight and not is_resend:
            logger.debug("otp_request_ignored", reason="request_in_flight")
            return False

        if (email is None) == (phone_number is None):
            raise await self._reject_input("send_otp", MISSING_IDENTIFIER)

        if email is not None:
            identifier = email.strip()
            identifier_type = IdentifierType.EMAIL
            if not is_valid_email(identifier):
                raise await self._reject_input("send_otp", INVALID_EMAIL)
            country_code = None
            request = SendOtpRequest(email=identifier)
        else:
            identifier = phone_number.strip()
            identifier_type = IdentifierType.PHONE
            if not is_valid_phone_number(identifier):
                raise await self._reject_input("send_otp", INVALID_PHONE)
            country_code = country_code or self._settings.default_country_code
            request = SendOtpRequest(phone_number=identifier, country_code=country_code)

        epoch = self._epoch
        self._otp_in_flight += 1
        self._begin()
        try:
            try:
                response = await self._api.request(
                    SEND_OTP_ENDPOINT,
                    method=HTTPMethod.POST,
                    body=request,
                    response_model=MessageResponse,
                )
            except ApiError as e:
                error = TransportError(e)
                if epoch != self._epoch:
                    logger.info("otp_failure_discarded", reason="signed_out")
                    raise error from e
                await self._record_failure(
                    error,
                    AuditEventBuilder.otp_request_failed(
                        identifier, identifier_type.value, error.message
                    ),
                )
                raise error from e

            if epoch != self._epoch:
                logger.info("otp_response_discarded", reason="signed_out")
                return False

            if not response.success:
                error = AuthRejectedError(response.message or "Failed to send verification code")
                await self._record_failure(
                    error,
                    AuditEventBuilder.otp_request_failed(
                        identifier, identifier_type.value, error.message
                    ),
                )
                raise error

            self._state = OtpPending(
                identifier=identifier,
                identifier_type=identifier_type,
                country_code=country_code,
            )
            await self._audit(
                AuditEventBuilder.otp_requested(
                    identifier, identifier_type.value, is_resend=is_resend
                )
            )
            return True
        finally:
            self._otp_in_flight -= 1
            self._end()

    def _restore(self) -> None:
        try:
            token = self._token_storage.load_token()
        except StorageError as e:
            logger.warning("session_restore_failed", error=str(e))
            return

        if token:
            self._state = Authenticated(token=token)
            logger.info("session_restored")

    def _persist_token(self, token: str) -> None:
        # The in-memory session stays valid even if it can't be persisted
        try:
            self._token_storage.save_token(token)
        except StorageError as e:
            logger.error("token_persist_failed", error=str(e))

    def _begin(self) -> None:
        self._in_flight += 1
        self._error_message = None
        self._publish()

    def _end(self) -> None:
        self._in_flight -= 1
        self._publish()

    def _publish(self) -> None:
        self.changes.publish(self.snapshot())

    def _invalid_state(self, message: str) -> InvalidStateError:
        self._error_message = message
        self._publish()
        return InvalidStateError(message)

    async def _reject_input(self, operation: str, message: str) -> InvalidInputError:
        self._error_message = message
        await self._audit(AuditEventBuilder.validation_failed(operation, message))
        self._publish()
        return InvalidInputError(message)

    async def _record_failure(self, error: AuthError, event: AuditEvent) -> None:
        self._error_message = error.message
        await self._audit(event)

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
