"""
REST API Client

A single generic request executor used by every service that talks to the
subscription backend.

DESIGN DECISION: The client does exactly one thing - send one request and
either return the decoded body or raise a classified ApiError. It never
retries and never inspects an error body. Retry/backoff, if wanted, is the
caller's decision.

Failure classification:
- InvalidURLError     endpoint didn't compose into an absolute http(s) URL
                      (raised before any network activity)
- EncodingError       request body could not be serialized
- NetworkError        connection refused, DNS failure, protocol error...
- RequestTimeoutError request or overall resource timeout elapsed
- HTTPStatusError     status outside 200-299
- DecodingError       2xx body didn't match the expected model
"""

import asyncio
import json
from enum import Enum
from typing import Any, Optional, TypeVar

import httpx
import pydantic_core
import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from submanager.config import ApiSettings, get_settings


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


# =============================================================================
# ERRORS
# =============================================================================

class ApiError(Exception):
    """Base exception for API client errors."""

    description = "Unknown error occurred"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.description)

    @property
    def message(self) -> str:
        return str(self)


class InvalidURLError(ApiError):
    description = "Invalid URL"


class EncodingError(ApiError):
    description = "Failed to encode request"


class NetworkError(ApiError):
    description = "Network error"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Network error: {reason}")


class RequestTimeoutError(ApiError):
    description = "Request timeout"


class HTTPStatusError(ApiError):
    description = "HTTP Error"

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP Error: {status_code}")


class DecodingError(ApiError):
    description = "Failed to decode response"


# =============================================================================
# CLIENT
# =============================================================================

class APIClient:
    """
    Async JSON client for the subscription backend.

    Pass `http_client` to control the transport (tests use
    httpx.MockTransport); otherwise one is created lazily and owned,
    so `aclose()` closes it.
    """

    def __init__(
        self,
        settings: Optional[ApiSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings().api
        self._base_url = self._settings.base_url.rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._settings.request_timeout),
            )
        return self._client

    def build_url(self, endpoint: str) -> str:
        """
        Compose base URL and endpoint.

        Raises:
            InvalidURLError: If the result isn't an absolute http(s) URL
        """
        if not isinstance(endpoint, str) or not endpoint.startswith("/"):
            raise InvalidURLError(f"Invalid URL: endpoint {endpoint!r} must start with '/'")

        url = self._base_url + endpoint
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError, ValueError):
            raise InvalidURLError(f"Invalid URL: {url}")

        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise InvalidURLError(f"Invalid URL: {url}")
        return url

    def _encode_body(self, body: Any) -> Optional[bytes]:
        """Serialize a request body to JSON; dates become ISO-8601 strings."""
        if body is None:
            return None
        try:
            if isinstance(body, BaseModel):
                payload = body.model_dump(mode="json", by_alias=True, exclude_none=True)
            else:
                payload = pydantic_core.to_jsonable_python(body)
            return json.dumps(payload).encode("utf-8")
        except (pydantic_core.PydanticSerializationError, TypeError, ValueError) as e:
            raise EncodingError(f"Failed to encode request: {e}")

    async def request(
        self,
        endpoint: str,
        method: HTTPMethod = HTTPMethod.GET,
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
        token: Optional[str] = None,
        response_model: Optional[type[T]] = None,
    ) -> Optional[T]:
        """
        Send one request and decode the response.

        Args:
            endpoint: Path starting with '/', appended to the base URL
            method: HTTP method
            body: Pydantic model or JSON-compatible value
            headers: Extra headers, applied after the defaults
            token: Bearer token for the Authorization header
            response_model: Type to decode a 2xx body into. If None the
                body is ignored and None is returned.

        Raises:
            ApiError: One of the subclasses listed in the module docstring
        """
        url = self.build_url(endpoint)

        request_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)

        content = self._encode_body(body)

        client = self._get_client()
        http_request = client.build_request(
            method.value,
            url,
            content=content,
            headers=request_headers,
        )

        try:
            response = await asyncio.wait_for(
                client.send(http_request),
                timeout=self._settings.resource_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("api_request_timeout", method=method.value, endpoint=endpoint)
            raise RequestTimeoutError()
        except httpx.TransportError as e:
            logger.warning(
                "api_request_failed",
                method=method.value,
                endpoint=endpoint,
                error=str(e),
            )
            raise NetworkError(str(e) or e.__class__.__name__)

        logger.debug(
            "api_response",
            method=method.value,
            endpoint=endpoint,
            status_code=response.status_code,
        )

        if not 200 <= response.status_code <= 299:
            raise HTTPStatusError(response.status_code)

        if response_model is None:
            return None

        try:
            return TypeAdapter(response_model).validate_json(response.content)
        except ValidationError as e:
            logger.warning(
                "api_decoding_failed",
                endpoint=endpoint,
                error_count=e.error_count(),
            )
            raise DecodingError()

    async def aclose(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
