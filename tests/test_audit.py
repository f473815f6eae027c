import json
import logging
import queue
import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hotspot_reset.core.audit import (
    AUDIT_LOGGER_NAME,
    AuditTrail,
    DroppingQueueHandler,
    SecurityEvent,
    SecurityEventType,
    Severity,
    start_audit_listener,
)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class _BrokenSink(logging.Logger):
    def log(self, *args, **kwargs) -> None:
        raise OSError("sink unavailable")


class AuditTrailTests(unittest.TestCase):
    def test_emit_writes_json_line(self) -> None:
        audit = AuditTrail(logging.getLogger("tests.audit.json"))

        with self.assertLogs("tests.audit.json", level="WARNING") as captured:
            audit.record(
                SecurityEventType.USER_RESET_FAILURE,
                severity=Severity.WARNING,
                user_id="operator-1",
                ip_address="203.0.113.7",
                routerId="r1",
                routerName="Lobby",
                username="guest42",
                error="timed out",
            )

        message = captured.records[0].getMessage()
        self.assertTrue(message.startswith("[SECURITY] "))
        entry = json.loads(message[len("[SECURITY] "):])
        self.assertEqual("USER_RESET_FAILURE", entry["event"])
        self.assertEqual("warning", entry["severity"])
        self.assertEqual("operator-1", entry["userId"])
        self.assertEqual("203.0.113.7", entry["ipAddress"])
        self.assertEqual("guest42", entry["details"]["username"])
        self.assertIn("timestamp", entry)
        self.assertEqual("Lobby", captured.records[0].device)

    def test_optional_fields_are_omitted(self) -> None:
        entry = SecurityEvent(SecurityEventType.ROUTER_DELETED).to_dict()

        self.assertNotIn("userId", entry)
        self.assertNotIn("ipAddress", entry)
        self.assertEqual({}, entry["details"])
        self.assertEqual("info", entry["severity"])

    def test_events_are_immutable(self) -> None:
        event = SecurityEvent(SecurityEventType.ROUTER_CREATED)
        with self.assertRaises(AttributeError):
            event.severity = Severity.CRITICAL  # type: ignore[misc]

    def test_sink_failure_does_not_reach_caller(self) -> None:
        audit = AuditTrail(_BrokenSink("tests.audit.broken"))

        event = audit.record(SecurityEventType.ROUTER_PASSWORD_ACCESSED, routerId="r1")

        self.assertEqual(SecurityEventType.ROUTER_PASSWORD_ACCESSED, event.event)

    def test_listener_delivers_events_off_thread(self) -> None:
        handler = _ListHandler()
        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        saved = (list(audit_logger.handlers), audit_logger.propagate, audit_logger.level)
        audit_logger.setLevel(logging.INFO)

        listener = start_audit_listener([handler])
        try:
            AuditTrail().record(SecurityEventType.ROUTER_CREATED, routerId="r1", routerName="Lobby")
        finally:
            listener.stop()
            audit_logger.handlers[:] = saved[0]
            audit_logger.propagate = saved[1]
            audit_logger.setLevel(saved[2])

        self.assertEqual(1, len(handler.records))
        self.assertIn("ROUTER_CREATED", handler.records[0].getMessage())

    def test_full_queue_drops_events(self) -> None:
        event_queue = queue.Queue(maxsize=1)
        sink = logging.getLogger("tests.audit.bounded")
        sink.propagate = False
        sink.setLevel(logging.INFO)
        handler = DroppingQueueHandler(event_queue)
        sink.addHandler(handler)
        self.addCleanup(sink.removeHandler, handler)

        audit = AuditTrail(sink)
        audit.record(SecurityEventType.ROUTER_CREATED, routerId="r1")
        audit.record(SecurityEventType.ROUTER_DELETED, routerId="r1")

        self.assertEqual(1, event_queue.qsize())
        self.assertEqual(1, handler.dropped)
        self.assertIn("ROUTER_CREATED", event_queue.get_nowait().getMessage())


if __name__ == "__main__":
    unittest.main()
