"""
Pytest Configuration and Shared Fixtures

No test talks to a real server: every HTTP call goes through FakeBackend,
an httpx.MockTransport handler that routes by method and path and records
each request.
"""

import asyncio
import inspect
import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx
import pytest

from submanager.audit import AuditLogger
from submanager.config import ApiSettings, AppSettings, AuthSettings
from submanager.models import BillingCycle, Subscription, SubscriptionCategory
from submanager.services.api import APIClient
from submanager.services.auth import AuthSession, ResendCooldown
from submanager.services.storage import InMemoryAuditStorage, InMemoryTokenStorage
from submanager.services.subscriptions import SubscriptionStore
from submanager.validation import FormValidator


# ============================================================================
# ASYNCIO CONFIGURATION
# ============================================================================
# pytest-asyncio runs with asyncio_mode = "auto" (see pyproject.toml), so
# async tests need no marker.

BASE_URL = "https://api.test"
TOKEN = "token-123"
FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# FAKE BACKEND
# ============================================================================

class FakeBackend:
    """Routes requests to per-endpoint handlers and records them."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Callable] = {}
        self.requests: list[httpx.Request] = []

    def route(
        self,
        method: str,
        path: str,
        handler: Optional[Callable] = None,
        json: object = None,
        status_code: int = 200,
    ) -> None:
        """Register a handler, or a canned JSON response."""
        if handler is None:
            payload = json

            def handler(request: httpx.Request) -> httpx.Response:
                return httpx.Response(status_code, json=payload)

        self.routes[(method, path)] = handler

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "no route"})
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path == path
        ]


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


async def wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until `predicate()` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


# ============================================================================
# PAYLOADS
# ============================================================================

def subscription_payload(
    id: str = "sub-1",
    name: str = "Netflix",
    price: float = 12.5,
    billing_cycle: str = "Monthly",
    category: str = "Streaming",
    renewal_date: str = "2024-01-20T00:00:00Z",
    is_active: bool = True,
) -> dict:
    """A subscription as the backend sends it."""
    return {
        "id": id,
        "user_id": "user-1",
        "name": name,
        "category": category,
        "price": price,
        "billing_cycle": billing_cycle,
        "renewal_date": renewal_date,
        "notes": None,
        "logo_url": None,
        "isActive": is_active,
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-01-01T00:00:00Z",
    }


def user_payload(id: str = "user-1") -> dict:
    return {
        "id": id,
        "email": "jane@example.com",
        "phone_number": "081234567890",
        "fullName": "Jane Doe",
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": "2024-01-01T00:00:00Z",
    }


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
async def http_client(backend):
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    yield client
    await client.aclose()


@pytest.fixture
def api_settings():
    return ApiSettings(base_url=BASE_URL)


@pytest.fixture
def auth_settings():
    return AuthSettings(
        default_country_code="+62",
        otp_length=6,
        resend_cooldown_seconds=30,
        token_store_path=None,
    )


@pytest.fixture
def app_settings():
    return AppSettings(
        min_password_length=8,
        upcoming_window_days=7,
        include_overdue_in_upcoming=True,
        enable_analytics=True,
    )


@pytest.fixture
def api_client(api_settings, http_client):
    return APIClient(api_settings, http_client=http_client)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def token_storage():
    return InMemoryTokenStorage()


@pytest.fixture
def cooldown(auth_settings):
    # Driven by explicit tick() calls
    return ResendCooldown(auth_settings.resend_cooldown_seconds, auto_tick=False)


@pytest.fixture
def make_session(api_client, cooldown, audit_logger, auth_settings, app_settings):
    """Build an AuthSession around a given token storage."""

    def _make(token_storage) -> AuthSession:
        return AuthSession(
            api_client,
            token_storage,
            cooldown=cooldown,
            validator=FormValidator(app_settings),
            audit_logger=audit_logger,
            settings=auth_settings,
        )

    return _make


@pytest.fixture
def session(make_session, token_storage):
    """An anonymous session."""
    return make_session(token_storage)


@pytest.fixture
def authed_session(make_session):
    """A session restored from a persisted token."""
    return make_session(InMemoryTokenStorage(TOKEN))


@pytest.fixture
def store(api_client, authed_session, audit_logger, app_settings):
    return SubscriptionStore(
        api_client,
        authed_session,
        audit_logger=audit_logger,
        settings=app_settings,
    )


@pytest.fixture
def make_subscription():
    """Build a Subscription with sensible defaults."""

    def _make(
        id: str = "sub-1",
        name: str = "Netflix",
        price: str = "10",
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        category: SubscriptionCategory = SubscriptionCategory.STREAMING,
        renewal_date: Optional[datetime] = None,
        is_active: bool = True,
    ) -> Subscription:
        return Subscription(
            id=id,
            name=name,
            price=price,
            billing_cycle=billing_cycle,
            category=category,
            renewal_date=renewal_date or FIXED_NOW + timedelta(days=3),
            is_active=is_active,
        )

    return _make
