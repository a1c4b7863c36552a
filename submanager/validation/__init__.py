"""Local input validation package."""

from submanager.validation.validator import (
    FormValidator,
    is_valid_email,
    is_valid_otp,
    is_valid_password,
    is_valid_phone_number,
    parse_price,
)

__all__ = [
    "FormValidator",
    "is_valid_email",
    "is_valid_otp",
    "is_valid_password",
    "is_valid_phone_number",
    "parse_price",
]
