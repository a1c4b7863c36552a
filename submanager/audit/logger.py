"""
Audit Logger

Every sign-in step and subscription change produces an AuditEvent
(see models/audit.py). AuditLogger writes it to the structlog stream
and, when an AuditStorageInterface is configured, keeps it for lookup
by entity, e.g. the history of one subscription id.

A failing audit store never fails the operation being audited: the
write is reported through the return value and an error log line.
SUBMANAGER_ENABLE_ANALYTICS=false turns the whole thing off.
"""

from typing import Optional

import structlog

from submanager.models.audit import AuditEvent, AuditSeverity
from submanager.services.storage import AuditStorageInterface


# JSON lines on the stdlib logging tree; the level is whatever the host app sets
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(sort_keys=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Records sign-in and subscription events.

    Each event goes to the structlog stream at a level matching its
    severity, then to the audit store if one was given. Rejected codes
    and failed OTP or sign-up requests are warnings. Discarded form
    input and stale store responses only show up at debug level.
    """

    _LEVELS = {
        AuditSeverity.DEBUG: "debug",
        AuditSeverity.INFO: "info",
        AuditSeverity.WARNING: "warning",
        AuditSeverity.ERROR: "error",
    }

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        enabled: bool = True,
    ):
        """
        Args:
            storage: Where events are kept for later lookup by entity.
                    Without one, events only reach the log stream.
            enabled: Mirrors SUBMANAGER_ENABLE_ANALYTICS. When False,
                    nothing is logged or stored.
        """
        self._storage = storage
        self._enabled = enabled
        self._logger = structlog.get_logger(__name__)

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when the audit store rejected the write; the
        session or store operation that produced the event carries on
        either way.
        """
        if not self._enabled:
            return True

        emit = getattr(self._logger, self._LEVELS.get(event.severity, "info"))
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True

        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_type=event.event_type.value,
                event_id=str(event.event_id),
            )
            return False
