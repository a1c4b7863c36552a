"""
Local Storage Implementations

FileTokenStorage keeps the session token in a small JSON document on disk,
under a fixed key, so a restarted process picks the session back up.
Other keys in the same file are preserved.

The in-memory variants back the tests and any run configured without a
token file.
"""

import json
from pathlib import Path
from typing import Optional, Union

import structlog

from submanager.models.audit import AuditEvent
from submanager.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
    TokenStorageInterface,
)


logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_KEY = "authToken"


class FileTokenStorage(TokenStorageInterface):
    """Session token persisted in a JSON file under `token_key`."""

    def __init__(self, path: Union[str, Path], token_key: str = DEFAULT_TOKEN_KEY):
        self._path = Path(path)
        self._token_key = token_key

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read token store {self._path}: {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Token store {self._path} is not a JSON object")
        return data

    def _write(self, data: dict) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as e:
            raise StorageError(f"Failed to write token store {self._path}: {e}")

    def load_token(self) -> Optional[str]:
        token = self._read().get(self._token_key)
        if isinstance(token, str) and token:
            return token
        return None

    def save_token(self, token: str) -> None:
        data = self._read()
        data[self._token_key] = token
        self._write(data)
        logger.debug("token_saved", path=str(self._path))

    def clear_token(self) -> None:
        data = self._read()
        if self._token_key not in data:
            return
        del data[self._token_key]
        self._write(data)
        logger.debug("token_cleared", path=str(self._path))


class InMemoryTokenStorage(TokenStorageInterface):
    """Token kept for the lifetime of the process only."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def load_token(self) -> Optional[str]:
        return self._token

    def save_token(self, token: str) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        # Appended in order, so reversing gives newest first
        return list(reversed(self._events))[:limit]
