"""Data models for the router inventory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

DEFAULT_PORT = 22


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class RouterInfo:
    """Router attributes safe to display. Has no secret field."""

    id: str
    name: str
    ip_address: str
    username: str
    port: int
    created_at: datetime

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "ip_address": self.ip_address,
            "username": self.username,
            "port": self.port,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(slots=True)
class RouterRecord:
    """A managed router as persisted in the store.

    ``password`` always holds the encrypted token, never the plain secret.
    """

    id: str
    name: str
    ip_address: str
    username: str
    password: str
    port: int = DEFAULT_PORT
    created_at: datetime = field(default_factory=utcnow)

    def __repr__(self) -> str:
        return (
            f"RouterRecord(id={self.id!r}, name={self.name!r}, ip_address={self.ip_address!r}, "
            f"username={self.username!r}, port={self.port})"
        )

    def public(self) -> "RouterInfo":
        """Display form without the secret."""

        return RouterInfo(
            id=self.id,
            name=self.name,
            ip_address=self.ip_address,
            username=self.username,
            port=self.port,
            created_at=self.created_at,
        )

    def to_document(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "ip_address": self.ip_address,
            "username": self.username,
            "port": self.port,
            "created_at": self.created_at.isoformat(),
            "password": self.password,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "RouterRecord":
        created_at = document.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if not isinstance(created_at, datetime):
            created_at = utcnow()
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        return cls(
            id=str(document["id"]),
            name=str(document["name"]),
            ip_address=str(document["ip_address"]),
            username=str(document["username"]),
            password=str(document["password"]),
            port=int(document.get("port", DEFAULT_PORT)),
            created_at=created_at,
        )


@dataclass(slots=True, frozen=True)
class RouterConnection:
    """Decrypted connection parameters for a single connection attempt."""

    ip_address: str
    username: str
    password: str
    port: int = DEFAULT_PORT
    name: str = "-"

    def __repr__(self) -> str:
        return (
            f"RouterConnection(name={self.name!r}, ip_address={self.ip_address!r}, "
            f"username={self.username!r}, password='***', port={self.port})"
        )
