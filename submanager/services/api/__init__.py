"""Backend API client package."""

from submanager.services.api.client import (
    APIClient,
    ApiError,
    DecodingError,
    EncodingError,
    HTTPMethod,
    HTTPStatusError,
    InvalidURLError,
    NetworkError,
    RequestTimeoutError,
)

__all__ = [
    "APIClient",
    "ApiError",
    "DecodingError",
    "EncodingError",
    "HTTPMethod",
    "HTTPStatusError",
    "InvalidURLError",
    "NetworkError",
    "RequestTimeoutError",
]
