"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for local persistence.
This allows us to:
1. Keep the token on disk in production and in memory in tests
2. Swap in an OS keychain later without touching the auth session
3. Keep business logic decoupled from storage implementation

The only thing the client persists is a single opaque session token
stored under a fixed key; subscriptions live on the server.
"""

from abc import ABC, abstractmethod
from typing import Optional

from submanager.models.audit import AuditEvent


class TokenStorageInterface(ABC):
    """
    Abstract interface for the persisted session token.

    Methods are synchronous: the token is read once at startup, before any
    event loop work, and written on sign-in/sign-out.
    """

    @abstractmethod
    def load_token(self) -> Optional[str]:
        """
        Read the persisted token.

        Returns:
            The token, or None if nothing is stored

        Raises:
            StorageError: If the backing store exists but cannot be read
        """
        pass

    @abstractmethod
    def save_token(self, token: str) -> None:
        """
        Persist the token, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def clear_token(self) -> None:
        """Erase the persisted token. Clearing an empty store is a no-op."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass
