"""
Main Orchestrator for Subscription Manager

This module wires the components together:

    settings -> APIClient -> AuthSession -> SubscriptionStore
                    token storage --^            ^
                    audit logger ---+------------+

DESIGN DECISION: There are no process-wide singletons. Everything the
session and the store need is created here (or passed in) and handed to
them explicitly, so tests can build a complete app around a mocked
transport and in-memory storage.
"""

from typing import Optional

import httpx
import structlog

from submanager.audit import AuditLogger
from submanager.config import Settings, get_settings
from submanager.services.api import APIClient
from submanager.services.auth import AuthSession, ResendCooldown
from submanager.services.storage import (
    AuditStorageInterface,
    FileTokenStorage,
    InMemoryTokenStorage,
    TokenStorageInterface,
)
from submanager.services.subscriptions import SubscriptionStore
from submanager.validation import FormValidator


logger = structlog.get_logger(__name__)


class AppComponents:
    """Everything a front end needs, already wired together."""

    def __init__(
        self,
        api_client: APIClient,
        session: AuthSession,
        store: SubscriptionStore,
        validator: FormValidator,
        audit_logger: AuditLogger,
    ):
        self.api_client = api_client
        self.session = session
        self.store = store
        self.validator = validator
        self.audit_logger = audit_logger

    async def aclose(self) -> None:
        """Tear down in reverse order of construction."""
        self.store.close()
        self.session.close()
        await self.api_client.aclose()


def create_app_components(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    token_storage: Optional[TokenStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    auto_tick: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use. Defaults to get_settings().
        http_client: Transport for the API client (e.g. one built on
                    httpx.MockTransport). Created lazily if None.
        token_storage: Where the session token lives. Defaults to a
                    FileTokenStorage when SUBMANAGER_AUTH_TOKEN_STORE_PATH
                    is set, otherwise memory.
        audit_storage: Optional persistence for audit events.
        auto_tick: Let the resend cooldown tick on its own. Tests pass
                    False and drive it manually.

    Returns:
        AppComponents with the session already restored from storage
    """
    settings = settings or get_settings()
    api_settings = settings.api
    auth_settings = settings.auth
    app_settings = settings.app

    if token_storage is None:
        token_file = auth_settings.token_store_file
        if token_file is not None:
            token_storage = FileTokenStorage(token_file, auth_settings.token_key)
        else:
            logger.info("token_storage_in_memory")
            token_storage = InMemoryTokenStorage()

    audit_logger = AuditLogger(audit_storage, enabled=app_settings.enable_analytics)
    validator = FormValidator(app_settings)

    api_client = APIClient(api_settings, http_client=http_client)
    cooldown = ResendCooldown(
        auth_settings.resend_cooldown_seconds,
        auto_tick=auto_tick,
    )

    session = AuthSession(
        api_client,
        token_storage,
        cooldown=cooldown,
        validator=validator,
        audit_logger=audit_logger,
        settings=auth_settings,
    )
    store = SubscriptionStore(
        api_client,
        session,
        audit_logger=audit_logger,
        settings=app_settings,
    )

    logger.info(
        "app_components_created",
        environment=app_settings.app_environment,
        base_url=api_client.base_url,
        session_restored=session.is_authenticated,
    )

    return AppComponents(
        api_client=api_client,
        session=session,
        store=store,
        validator=validator,
        audit_logger=audit_logger,
    )
