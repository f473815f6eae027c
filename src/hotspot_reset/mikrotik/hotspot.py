"""Hotspot user reset for MikroTik devices.

A reset opens one connection, runs the selected cleanup steps in order and
closes the connection. A connection failure ends the reset with
``success=False``. A failing cleanup step is recorded in ``details`` and the
remaining steps still run; ``success`` stays true because the reset itself
ran. Callers need ``details`` to know whether every cleanup took effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping, Protocol

from hotspot_reset.core.models import RouterConnection
from hotspot_reset.mikrotik.client import DEFAULT_TIMEOUT, MikroTikClient, Record, RecordHandle

ACTIVE_PATH = "/ip hotspot active"
COOKIE_PATH = "/ip hotspot cookie"
IP_BINDING_PATH = "/ip hotspot ip-binding"
USER_PATH = "/ip hotspot user"
MAC_FIELD = "mac-address"

CONNECTED_LINE = "✓ Connected to router successfully"
CLOSED_LINE = "✓ Connection closed"


class MacStrategy(str, Enum):
    """Where MAC residue for a user lives on the device."""

    IP_BINDING = "ip-binding"
    USER_PROFILE = "user-profile"


class HotspotSession(Protocol):
    def connect(self) -> object:
        ...

    def list(self, path: str, filters: Mapping[str, str] | None = None) -> list[Record]:
        ...

    def remove(self, handle: RecordHandle) -> None:
        ...

    def mutate(self, handle: RecordHandle, changes: Mapping[str, str | None]) -> None:
        ...

    def close(self) -> None:
        ...


ClientFactory = Callable[[RouterConnection], HotspotSession]


@dataclass(slots=True)
class ResetOptions:
    """Which cleanup steps to run."""

    remove_active: bool = True
    remove_cookies: bool = True
    remove_mac_info: bool = True
    mac_strategy: MacStrategy = MacStrategy.IP_BINDING

    def to_dict(self) -> dict[str, object]:
        return {
            "remove_active": self.remove_active,
            "remove_cookies": self.remove_cookies,
            "remove_mac_info": self.remove_mac_info,
            "mac_strategy": self.mac_strategy.value,
        }


def _default_operations() -> dict[str, bool]:
    return {"active_removed": False, "cookies_removed": False, "mac_info_removed": False}


@dataclass(slots=True)
class ResetResult:
    """Outcome of one reset.

    ``operations`` flags mean "this step ran to completion", not "something
    was removed". ``details`` is the ordered narrative of the reset.
    """

    success: bool = False
    operations: dict[str, bool] = field(default_factory=_default_operations)
    details: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "success": self.success,
            "operations": dict(self.operations),
            "details": list(self.details),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def _remove_matching(session: HotspotSession, path: str, filters: Mapping[str, str]) -> bool:
    records = session.list(path, filters)
    if not records:
        return False
    for record in records:
        session.remove(record.handle)
    return True


def remove_active_user(session: HotspotSession, username: str) -> bool:
    """Drop every active session of ``username``. False when none exist."""

    return _remove_matching(session, ACTIVE_PATH, {"user": username})


def remove_hotspot_cookies(session: HotspotSession, username: str) -> bool:
    return _remove_matching(session, COOKIE_PATH, {"user": username})


def remove_ip_bindings(session: HotspotSession, username: str) -> bool:
    return _remove_matching(session, IP_BINDING_PATH, {"user": username})


def clear_profile_mac(session: HotspotSession, username: str) -> bool:
    """Unset ``mac-address`` on the user's profile where it is set."""

    records = [record for record in session.list(USER_PATH, {"name": username}) if record.get(MAC_FIELD)]
    if not records:
        return False
    for record in records:
        session.mutate(record.handle, {MAC_FIELD: None})
    return True


@dataclass(slots=True, frozen=True)
class _Step:
    operation: str
    action: Callable[[HotspotSession, str], bool]
    removed: str
    missing: str
    failed: str


ACTIVE_STEP = _Step(
    "active_removed",
    remove_active_user,
    "✓ Removed user from active connections",
    "ℹ User not found in active connections",
    "✗ Failed to remove from active",
)
COOKIES_STEP = _Step(
    "cookies_removed",
    remove_hotspot_cookies,
    "✓ Removed hotspot cookies",
    "ℹ No cookies found for user",
    "✗ Failed to remove cookies",
)
MAC_STEPS = {
    MacStrategy.IP_BINDING: _Step(
        "mac_info_removed",
        remove_ip_bindings,
        "✓ Removed MAC address bindings",
        "ℹ No MAC bindings found for user",
        "✗ Failed to remove MAC bindings",
    ),
    MacStrategy.USER_PROFILE: _Step(
        "mac_info_removed",
        clear_profile_mac,
        "✓ Cleared MAC address from user profile",
        "ℹ No MAC address on user profile",
        "✗ Failed to clear MAC address",
    ),
}


def _selected_steps(options: ResetOptions) -> Iterable[_Step]:
    if options.remove_active:
        yield ACTIVE_STEP
    if options.remove_cookies:
        yield COOKIES_STEP
    if options.remove_mac_info:
        yield MAC_STEPS[MacStrategy(options.mac_strategy)]


def _run_step(
    step: _Step,
    session: HotspotSession,
    username: str,
    result: ResetResult,
    logger: logging.Logger,
    log_extra: dict[str, str],
) -> None:
    try:
        removed = step.action(session, username)
    except Exception as exc:  # noqa: BLE001 - one failed step must not stop the others
        logger.warning("reset step failed step=%s error=%s", step.operation, exc, extra=log_extra)
        result.details.append(f"{step.failed}: {exc}")
        return

    result.operations[step.operation] = True
    result.details.append(step.removed if removed else step.missing)
    logger.info("reset step done step=%s found=%s", step.operation, removed, extra=log_extra)


def default_client_factory(timeout: float = DEFAULT_TIMEOUT, logger: logging.Logger | None = None) -> ClientFactory:
    """Factory opening :class:`MikroTikClient` sessions over SSH."""

    def factory(connection: RouterConnection) -> MikroTikClient:
        client_logger = logger or logging.getLogger("hotspot_reset.mikrotik.client")
        return MikroTikClient(
            host=connection.ip_address,
            username=connection.username,
            password=connection.password,
            port=connection.port,
            timeout=timeout,
            logger=client_logger,
            log_extra={"device": connection.name},
        )

    return factory


def reset_hotspot_user(
    connection: RouterConnection,
    username: str,
    options: ResetOptions | None = None,
    client_factory: ClientFactory | None = None,
    logger: logging.Logger | None = None,
) -> ResetResult:
    """Reset ``username`` on the router described by ``connection``.

    Always returns a :class:`ResetResult`; errors are reported in it.
    """

    options = options or ResetOptions()
    client_factory = client_factory or default_client_factory()
    logger = logger or logging.getLogger(__name__)
    log_extra = {"device": connection.name}

    result = ResetResult()
    session: HotspotSession | None = None
    connected = False

    logger.info("reset start options=%s", options.to_dict(), extra=log_extra)
    try:
        session = client_factory(connection)
        session.connect()
        connected = True
        result.details.append(CONNECTED_LINE)

        for step in _selected_steps(options):
            _run_step(step, session, username, result, logger, log_extra)

        result.success = True
    except Exception as exc:  # noqa: BLE001 - reported through the result
        logger.error("reset failed error=%s", exc, extra=log_extra)
        result.error = str(exc)
        result.details.append(f"✗ Error: {exc}")
    finally:
        if session is not None:
            try:
                session.close()
            except Exception as exc:  # noqa: BLE001 - teardown is best effort
                logger.debug("close failed error=%s", exc, extra=log_extra)
            else:
                if connected:
                    result.details.append(CLOSED_LINE)

    logger.info("reset finished success=%s", result.success, extra=log_extra)
    return result


def active_usernames(records: Iterable[Record], search: str = "", limit: int = 10) -> list[str]:
    """Unique usernames from active-session records, filtered case-insensitively."""

    seen: dict[str, None] = {}
    for record in records:
        name = record.get("user") or record.get("name")
        if name:
            seen.setdefault(name, None)

    needle = search.lower()
    names = [name for name in seen if needle in name.lower()] if needle else list(seen)
    return names[: max(limit, 0)]
