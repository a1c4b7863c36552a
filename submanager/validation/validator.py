"""
Local Input Validation

DESIGN DECISION: Everything that can be checked without the server is
checked here, BEFORE any network call. A request that fails local
validation never leaves the process.

The shape predicates (email, phone, password, OTP) are total functions:
they never raise, whatever they are given, and only answer True/False.

The form validators report the single most specific problem so the
caller can show one clear message.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from submanager.config import AppSettings, get_settings
from submanager.models.validation import ValidationIssue, ValidationResult


EMAIL_PATTERN = re.compile(r"[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_PATTERN = re.compile(r"[0-9]{9,15}")

DEFAULT_MIN_PASSWORD_LENGTH = 8
DEFAULT_OTP_LENGTH = 6

PASSWORDS_DO_NOT_MATCH = "Passwords do not match"
PASSWORD_TOO_SHORT = "Password must be at least {min_length} characters"
SIGNUP_FORM_INVALID = "Please fill in all fields correctly"


def is_valid_email(value: object) -> bool:
    """local-part@domain.tld with a TLD of at least two letters."""
    if not isinstance(value, str):
        return False
    return EMAIL_PATTERN.fullmatch(value) is not None


def is_valid_phone_number(value: object) -> bool:
    """9 to 15 ASCII digits, nothing else (no '+', spaces or dashes)."""
    if not isinstance(value, str):
        return False
    return PHONE_PATTERN.fullmatch(value) is not None


def is_valid_password(value: object, min_length: int = DEFAULT_MIN_PASSWORD_LENGTH) -> bool:
    if not isinstance(value, str):
        return False
    return len(value) >= min_length


def is_valid_otp(value: object, length: int = DEFAULT_OTP_LENGTH) -> bool:
    """Exactly `length` ASCII digits."""
    if not isinstance(value, str):
        return False
    return re.fullmatch(rf"[0-9]{{{length}}}", value) is not None


def parse_price(value: Union[str, Decimal, int, float, None]) -> Optional[Decimal]:
    """Parse user-entered price text. Returns None if it isn't a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price


class FormValidator:
    """
    Validates sign-up and subscription forms before submission.

    Limits (password length, name and notes length) come from AppSettings.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def min_password_length(self) -> int:
        return self._settings.min_password_length

    def validate_signup(
        self,
        full_name: str,
        email: str,
        phone_number: str,
        password: str,
        confirm_password: str,
    ) -> Optional[str]:
        """
        Check a sign-up form.

        Returns None when the form is valid, otherwise the most specific
        message: a password mismatch wins over a short password, which wins
        over the generic message.
        """
        is_form_valid = (
            bool(full_name)
            and bool(email)
            and bool(phone_number)
            and bool(password)
            and password == confirm_password
            and is_valid_email(email)
            and is_valid_phone_number(phone_number)
            and is_valid_password(password, self.min_password_length)
        )
        if is_form_valid:
            return None

        if password != confirm_password:
            return PASSWORDS_DO_NOT_MATCH
        if not is_valid_password(password, self.min_password_length):
            return PASSWORD_TOO_SHORT.format(min_length=self.min_password_length)
        return SIGNUP_FORM_INVALID

    def validate_subscription_draft(
        self,
        name: str,
        price: Union[str, Decimal, int, float, None],
        notes: Optional[str] = None,
    ) -> ValidationResult:
        """Check the fields a user types when adding or editing a subscription."""
        issues = []
        name = (name or "").strip()

        if not name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Subscription name is required",
            ))
        elif len(name) > self._settings.max_name_length:
            issues.append(ValidationIssue(
                field="name",
                issue_type="too_long",
                message=f"Name must be at most {self._settings.max_name_length} characters",
            ))

        if price is None or (isinstance(price, str) and not price.strip()):
            issues.append(ValidationIssue(
                field="price",
                issue_type="missing",
                message="Price is required",
            ))
        else:
            parsed = parse_price(price)
            if parsed is None:
                issues.append(ValidationIssue(
                    field="price",
                    issue_type="invalid_format",
                    message="Please enter a valid price",
                ))
            elif parsed <= 0:
                issues.append(ValidationIssue(
                    field="price",
                    issue_type="invalid_value",
                    message="Price must be greater than zero",
                ))

        if notes and len(notes) > self._settings.max_notes_length:
            issues.append(ValidationIssue(
                field="notes",
                issue_type="too_long",
                message=f"Notes must be at most {self._settings.max_notes_length} characters",
            ))

        return ValidationResult(issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One line per problem, for display next to the form."""
        if result.is_valid:
            return "All fields look good."
        return "\n".join(f"• {issue.message}" for issue in result.issues)
