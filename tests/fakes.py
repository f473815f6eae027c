"""In-memory stand-ins for a MikroTik session, shared by the test modules."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Mapping

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from hotspot_reset.core.audit import AuditTrail, SecurityEvent  # noqa: E402
from hotspot_reset.mikrotik.client import (  # noqa: E402
    MikroTikConnectionError,
    MikroTikQueryError,
    MikroTikWriteError,
    Record,
    RecordHandle,
)

TEST_KEY = "0123456789abcdef0123456789abcdef"


class FakeSession:
    """Device tables keyed by menu path; records failures and calls."""

    def __init__(
        self,
        tables: Mapping[str, list[dict[str, str]]] | None = None,
        *,
        fail_connect: bool = False,
        fail_list: set[str] | None = None,
        fail_remove: set[str] | None = None,
        fail_mutate: set[str] | None = None,
        fail_close: bool = False,
    ) -> None:
        self.tables: dict[str, list[Record]] = {}
        for path, rows in (tables or {}).items():
            self.tables[path] = [Record(RecordHandle(path, row[".id"]), dict(row)) for row in rows]
        self.fail_connect = fail_connect
        self.fail_list = fail_list or set()
        self.fail_remove = fail_remove or set()
        self.fail_mutate = fail_mutate or set()
        self.fail_close = fail_close
        self.connected = False
        self.close_calls = 0
        self.calls: list[tuple[str, ...]] = []

    def connect(self) -> "FakeSession":
        self.calls.append(("connect",))
        if self.fail_connect:
            raise MikroTikConnectionError("Failed to connect to router: timed out")
        self.connected = True
        return self

    def list(self, path: str, filters: Mapping[str, str] | None = None) -> list[Record]:
        self.calls.append(("list", path))
        if path in self.fail_list:
            raise MikroTikQueryError(f"{path} print failed: no such command")
        return [
            record
            for record in self.tables.get(path, [])
            if all(record.fields.get(key) == value for key, value in (filters or {}).items())
        ]

    def remove(self, handle: RecordHandle) -> None:
        self.calls.append(("remove", handle.path, handle.record_id))
        if handle.record_id in self.fail_remove:
            raise MikroTikWriteError(f"{handle.path} remove {handle.record_id} failed: no such item")
        self.tables[handle.path] = [r for r in self.tables[handle.path] if r.handle != handle]

    def mutate(self, handle: RecordHandle, changes: Mapping[str, str | None]) -> None:
        self.calls.append(("mutate", handle.path, handle.record_id))
        if handle.record_id in self.fail_mutate:
            raise MikroTikWriteError(f"{handle.path} unset {handle.record_id} failed: no such item")
        for record in self.tables[handle.path]:
            if record.handle == handle:
                for key, value in changes.items():
                    if value is None:
                        record.fields.pop(key, None)
                    else:
                        record.fields[key] = value

    def close(self) -> None:
        self.close_calls += 1
        self.connected = False
        if self.fail_close:
            raise RuntimeError("socket already closed")

    def remaining(self, path: str) -> list[str]:
        return [record.handle.record_id for record in self.tables.get(path, [])]


class RecordingAudit(AuditTrail):
    """Audit trail that also keeps emitted events in memory."""

    def __init__(self) -> None:
        super().__init__(logging.getLogger("tests.audit"))
        self.events: list[SecurityEvent] = []

    def emit(self, event: SecurityEvent) -> None:
        self.events.append(event)
        super().emit(event)

    def kinds(self) -> list[str]:
        return [event.event.value for event in self.events]
