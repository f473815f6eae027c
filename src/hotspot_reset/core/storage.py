"""Persistence of router records.

Routers are stored as a YAML document with a top-level ``routers`` list. The
whole file is rewritten on every change (last write wins) through a temporary
file that replaces the previous one, so readers never see a partial document.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Protocol

import yaml

from hotspot_reset.core.models import RouterRecord


class StoreError(RuntimeError):
    """Raised when the router store cannot be read or written."""


class RouterStore(Protocol):
    """Document store holding router records."""

    def load_all(self) -> list[RouterRecord]:
        ...

    def save_all(self, records: list[RouterRecord]) -> None:
        ...


class MemoryRouterStore:
    """Volatile store, used when no file should be touched."""

    def __init__(self, records: list[RouterRecord] | None = None) -> None:
        self._documents = [record.to_document() for record in records or []]

    def load_all(self) -> list[RouterRecord]:
        return [RouterRecord.from_document(document) for document in self._documents]

    def save_all(self, records: list[RouterRecord]) -> None:
        self._documents = [record.to_document() for record in records]


class YamlRouterStore:
    """Router records kept in a YAML file."""

    def __init__(self, path: Path, logger: logging.Logger | None = None) -> None:
        self.path = Path(path)
        self.logger = logger or logging.getLogger(__name__)

    def load_all(self) -> list[RouterRecord]:
        if not self.path.exists():
            self.logger.debug("router store not found path=%s", self.path)
            return []

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw_data = yaml.safe_load(handle) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise StoreError(f"Unable to read router store: {self.path}") from exc

        if not isinstance(raw_data, Mapping):
            raise StoreError("Top-level routers.yml structure must be a mapping.")

        raw_routers = raw_data.get("routers") or []
        if not isinstance(raw_routers, list):
            raise StoreError("The 'routers' field must be a list of router entries.")

        records: list[RouterRecord] = []
        for index, raw_router in enumerate(raw_routers, start=1):
            if not isinstance(raw_router, Mapping):
                raise StoreError(f"router #{index}: each router must be a mapping.")
            try:
                records.append(RouterRecord.from_document(raw_router))
            except (KeyError, TypeError, ValueError) as exc:
                raise StoreError(f"router #{index}: invalid entry ({exc})") from exc

        self.logger.debug("router store loaded path=%s entries=%d", self.path, len(records))
        return records

    def save_all(self, records: list[RouterRecord]) -> None:
        payload: dict[str, Any] = {"routers": [record.to_document() for record in records]}
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=".routers-", suffix=".yml", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                yaml.safe_dump(payload, handle, sort_keys=False, allow_unicode=True)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreError(f"Unable to write router store: {self.path}") from exc

        self.logger.debug("router store saved path=%s entries=%d", self.path, len(records))
