"""
Services package.

Only the leaf services are re-exported here. The auth and subscription
services depend on the audit logger, which itself depends on storage, so
import them from their own packages.
"""

from submanager.services.api import (
    APIClient,
    ApiError,
    HTTPMethod,
)
from submanager.services.storage import (
    AuditStorageInterface,
    FileTokenStorage,
    InMemoryAuditStorage,
    InMemoryTokenStorage,
    StorageError,
    TokenStorageInterface,
)

__all__ = [
    # API client
    "APIClient",
    "ApiError",
    "HTTPMethod",
    # Storage services
    "AuditStorageInterface",
    "FileTokenStorage",
    "InMemoryAuditStorage",
    "InMemoryTokenStorage",
    "StorageError",
    "TokenStorageInterface",
]
