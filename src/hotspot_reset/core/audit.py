"""Security event logging for audit trails.

Events are written as one JSON line on the ``hotspot_reset.audit`` logger,
prefixed with ``[SECURITY]``. :func:`start_audit_listener` moves that logger
onto a queue so a slow handler never blocks the operation being audited.
"""

from __future__ import annotations

import json
import logging
import queue
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Mapping

AUDIT_LOGGER_NAME = "hotspot_reset.audit"
AUDIT_PREFIX = "[SECURITY]"

logger = logging.getLogger(__name__)


class SecurityEventType(str, Enum):
    """Closed set of audited events."""

    ROUTER_CREATED = "ROUTER_CREATED"
    ROUTER_UPDATED = "ROUTER_UPDATED"
    ROUTER_DELETED = "ROUTER_DELETED"
    ROUTER_PASSWORD_ACCESSED = "ROUTER_PASSWORD_ACCESSED"

    USER_RESET_SUCCESS = "USER_RESET_SUCCESS"
    USER_RESET_FAILURE = "USER_RESET_FAILURE"

    INVALID_ROUTER_ACCESS_ATTEMPT = "INVALID_ROUTER_ACCESS_ATTEMPT"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.CRITICAL: logging.CRITICAL,
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True, frozen=True)
class SecurityEvent:
    """A single audited action. Immutable once built."""

    event: SecurityEventType
    severity: Severity = Severity.INFO
    user_id: str | None = None
    ip_address: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_timestamp)

    def to_dict(self) -> dict[str, object]:
        entry: dict[str, object] = {
            "timestamp": self.timestamp,
            "event": self.event.value,
            "severity": self.severity.value,
        }
        if self.user_id is not None:
            entry["userId"] = self.user_id
        if self.ip_address is not None:
            entry["ipAddress"] = self.ip_address
        entry["details"] = dict(self.details)
        return entry


class AuditTrail:
    """Fire-and-forget emitter of security events."""

    def __init__(self, sink: logging.Logger | None = None) -> None:
        self.sink = sink or logging.getLogger(AUDIT_LOGGER_NAME)

    def emit(self, event: SecurityEvent) -> None:
        """Write ``event`` to the sink. Never raises."""

        try:
            line = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
            device = event.details.get("routerName") or "-"
            self.sink.log(_LEVELS[event.severity], "%s %s", AUDIT_PREFIX, line, extra={"device": device})
        except Exception as exc:  # noqa: BLE001 - the audited operation must not fail
            logger.debug("audit emit failed event=%s reason=\"%s\"", event.event, exc)

    def record(
        self,
        event: SecurityEventType,
        *,
        severity: Severity = Severity.INFO,
        user_id: str | None = None,
        ip_address: str | None = None,
        **details: Any,
    ) -> SecurityEvent:
        """Build and emit an event in one call."""

        built = SecurityEvent(
            event=event, severity=severity, user_id=user_id, ip_address=ip_address, details=details
        )
        self.emit(built)
        return built


class DroppingQueueHandler(QueueHandler):
    """Queue handler that discards records once its bounded queue is full."""

    def __init__(self, event_queue: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(event_queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1


def start_audit_listener(
    handlers: list[logging.Handler] | None = None, maxsize: int = 10000
) -> QueueListener:
    """Route the audit logger through a bounded queue drained by a background thread.

    ``handlers`` default to the root logger's handlers at call time. A full
    queue drops the event rather than blocking the caller. Call ``stop()`` on
    the returned listener at shutdown to flush pending events.
    """

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    targets = list(handlers if handlers is not None else logging.getLogger().handlers)

    event_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=maxsize)
    queue_handler = DroppingQueueHandler(event_queue)

    audit_logger.handlers.clear()
    audit_logger.addHandler(queue_handler)
    audit_logger.propagate = False

    listener = QueueListener(event_queue, *targets, respect_handler_level=True)
    listener.start()
    return listener
