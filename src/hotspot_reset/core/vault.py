"""Router inventory with encrypted credentials.

The vault is the only component that sees both the stored token and the
cipher. Plain passwords enter through :meth:`RouterVault.create` and
:meth:`RouterVault.update` and leave only through
:meth:`RouterVault.get_connection`, for a single connection attempt.
"""

from __future__ import annotations

import ipaddress
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Mapping

from hotspot_reset.core.audit import AuditTrail, SecurityEventType
from hotspot_reset.core.crypto import CredentialCipher
from hotspot_reset.core.models import DEFAULT_PORT, RouterConnection, RouterInfo, RouterRecord
from hotspot_reset.core.storage import RouterStore

NAME_MAX_LENGTH = 100
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8


class RouterNotFoundError(KeyError):
    """Raised when a router id does not resolve to a stored router."""

    def __init__(self, router_id: str) -> None:
        super().__init__(router_id)
        self.router_id = router_id

    def __str__(self) -> str:
        return f"Router not found: {self.router_id}"


class RouterValidationError(ValueError):
    """Raised when router parameters fail validation."""

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(f"Validation failed: {summary}")


@dataclass(slots=True)
class RouterParams:
    """Administrative input for creating or updating a router."""

    name: str
    ip_address: str
    username: str
    password: str | None = None
    port: int = DEFAULT_PORT

    def __repr__(self) -> str:
        return (
            f"RouterParams(name={self.name!r}, ip_address={self.ip_address!r}, "
            f"username={self.username!r}, password='***', port={self.port})"
        )


def _is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def validate_params(params: RouterParams, *, password_required: bool) -> RouterParams:
    """Return trimmed params or raise ``RouterValidationError``."""

    errors: dict[str, str] = {}

    name = params.name.strip() if isinstance(params.name, str) else ""
    if not name:
        errors["name"] = "Name is required"
    elif len(name) > NAME_MAX_LENGTH:
        errors["name"] = f"Name must be less than {NAME_MAX_LENGTH} characters"

    ip_address = params.ip_address.strip() if isinstance(params.ip_address, str) else ""
    if not _is_ipv4(ip_address):
        errors["ip_address"] = "Invalid IP address format"

    username = params.username.strip() if isinstance(params.username, str) else ""
    if not username:
        errors["username"] = "Username is required"
    elif len(username) > USERNAME_MAX_LENGTH:
        errors["username"] = f"Username must be less than {USERNAME_MAX_LENGTH} characters"

    password = params.password
    if isinstance(password, str) and password.strip() == "":
        password = None
    if password is None:
        if password_required:
            errors["password"] = "Password is required"
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors["password"] = f"Password must be at least {PASSWORD_MIN_LENGTH} characters"

    port = params.port
    if isinstance(port, bool) or not isinstance(port, int):
        errors["port"] = "Port must be an integer"
    elif port < 1 or port > 65535:
        errors["port"] = "Port must be between 1 and 65535"

    if errors:
        raise RouterValidationError(errors)

    return RouterParams(name=name, ip_address=ip_address, username=username, password=password, port=port)


def _new_router_id() -> str:
    return secrets.token_hex(12)


class RouterVault:
    """CRUD over router records plus decrypt-on-read connection parameters."""

    def __init__(
        self,
        store: RouterStore,
        cipher: CredentialCipher,
        audit: AuditTrail | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.cipher = cipher
        self.audit = audit
        self.logger = logger or logging.getLogger(__name__)

    def _find(self, records: list[RouterRecord], router_id: str) -> int:
        for index, record in enumerate(records):
            if record.id == router_id:
                return index
        raise RouterNotFoundError(router_id)

    def _audit(self, event: SecurityEventType, actor: str | None, **details: Any) -> None:
        if self.audit is not None:
            self.audit.record(event, user_id=actor, **details)

    def create(self, params: RouterParams, actor: str | None = None) -> RouterInfo:
        clean = validate_params(params, password_required=True)

        records = self.store.load_all()
        record = RouterRecord(
            id=_new_router_id(),
            name=clean.name,
            ip_address=clean.ip_address,
            username=clean.username,
            password=self.cipher.encrypt(clean.password or ""),
            port=clean.port,
        )
        records.append(record)
        self.store.save_all(records)

        self.logger.info("router created id=%s host=%s", record.id, record.ip_address, extra={"device": record.name})
        self._audit(SecurityEventType.ROUTER_CREATED, actor, routerId=record.id, routerName=record.name)
        return record.public()

    def update(self, router_id: str, params: RouterParams, actor: str | None = None) -> RouterInfo:
        """Update a router. The stored token changes only when a new password is given."""

        clean = validate_params(params, password_required=False)

        records = self.store.load_all()
        index = self._find(records, router_id)
        record = records[index]

        record.name = clean.name
        record.ip_address = clean.ip_address
        record.username = clean.username
        record.port = clean.port
        password_changed = clean.password is not None
        if password_changed:
            record.password = self.cipher.encrypt(clean.password)

        self.store.save_all(records)

        self.logger.info(
            "router updated id=%s password_changed=%s", record.id, password_changed, extra={"device": record.name}
        )
        self._audit(
            SecurityEventType.ROUTER_UPDATED,
            actor,
            routerId=record.id,
            routerName=record.name,
            passwordChanged=password_changed,
        )
        return record.public()

    def _load(self, router_id: str) -> RouterRecord:
        records = self.store.load_all()
        return records[self._find(records, router_id)]

    def get(self, router_id: str) -> RouterInfo:
        return self._load(router_id).public()

    def get_connection(self, router_id: str) -> RouterConnection:
        """Decrypt the router's password for one connection attempt."""

        record = self._load(router_id)
        self.logger.debug("decrypting credentials id=%s", record.id, extra={"device": record.name})
        return RouterConnection(
            ip_address=record.ip_address,
            username=record.username,
            password=self.cipher.decrypt(record.password),
            port=record.port,
            name=record.name,
        )

    def list(self) -> list[RouterInfo]:
        """All routers, newest first, without secrets."""

        records = sorted(self.store.load_all(), key=lambda record: record.created_at, reverse=True)
        return [record.public() for record in records]

    def delete(self, router_id: str, actor: str | None = None) -> None:
        records = self.store.load_all()
        record = records.pop(self._find(records, router_id))
        self.store.save_all(records)

        self.logger.info("router deleted id=%s", record.id, extra={"device": record.name})
        self._audit(SecurityEventType.ROUTER_DELETED, actor, routerId=record.id, routerName=record.name)
