"""
Storage Services Package

Provides abstract interfaces and local implementations for the little the
client persists itself: the session token and the audit trail.
"""

from submanager.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
    TokenStorageInterface,
)
from submanager.services.storage.local import (
    FileTokenStorage,
    InMemoryAuditStorage,
    InMemoryTokenStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TokenStorageInterface",
    # Exceptions
    "StorageError",
    # Implementations
    "FileTokenStorage",
    "InMemoryAuditStorage",
    "InMemoryTokenStorage",
]
