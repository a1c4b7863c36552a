"""
Configuration Management for Subscription Manager

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Nothing in the services reads the environment directly; every component
receives its settings from here (or from an explicitly passed instance),
which keeps the core testable without process-wide state.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Remote REST backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUBMANAGER_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://api.subscriptionmanager.com",
        description="Base URL of the subscription backend"
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for a single request phase"
    )
    resource_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Overall timeout in seconds for a request including the body"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints start with '/', so the base must not end with one."""
        return v.rstrip("/")


class AuthSettings(BaseSettings):
    """OTP authentication configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUBMANAGER_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_country_code: str = Field(
        default="+62",
        description="Country code sent with phone-number OTP requests"
    )
    otp_length: int = Field(
        default=6,
        ge=4,
        le=10,
        description="Number of digits in a one-time passcode"
    )
    resend_cooldown_seconds: int = Field(
        default=30,
        ge=1,
        description="Seconds before an OTP may be resent"
    )

    # Persisted session token
    token_key: str = Field(
        default="authToken",
        description="Fixed key the session token is stored under"
    )
    token_store_path: Optional[str] = Field(
        default=None,
        description="JSON file holding the session token (None = memory only)"
    )

    @property
    def token_store_file(self) -> Optional[Path]:
        """Get the token store path as a Path."""
        if not self.token_store_path:
            return None
        return Path(self.token_store_path).expanduser()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="SUBMANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency used when displaying costs"
    )

    # Form limits
    min_password_length: int = Field(
        default=8,
        ge=1,
        description="Minimum password length for signup"
    )
    max_name_length: int = Field(
        default=100,
        ge=1,
        description="Maximum length of a subscription name"
    )
    max_notes_length: int = Field(
        default=500,
        ge=0,
        description="Maximum length of subscription notes"
    )

    # Dashboard views
    upcoming_window_days: int = Field(
        default=7,
        ge=0,
        description="How many days ahead a renewal counts as upcoming"
    )
    include_overdue_in_upcoming: bool = Field(
        default=True,
        description="Whether past-due active renewals count as upcoming"
    )

    # Analytics
    enable_analytics: bool = Field(
        default=True,
        description="Record audit/analytics events"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def api(self) -> ApiSettings:
        return ApiSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    "<name>_error" entry describing each failure.
    """
    results = {}

    settings = get_settings()

    for name in ("api", "auth", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
