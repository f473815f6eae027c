"""Operations exposed to the web layer and the CLI.

:class:`ResetService` resolves a router through the vault, records the audit
trail for credential access and reset outcomes, and runs the reset.
"""

from __future__ import annotations

import logging

from hotspot_reset.core.audit import AuditTrail, SecurityEventType, Severity
from hotspot_reset.core.crypto import CredentialCipherError
from hotspot_reset.core.models import RouterConnection, RouterInfo
from hotspot_reset.core.vault import RouterNotFoundError, RouterVault
from hotspot_reset.mikrotik.client import DEFAULT_TIMEOUT
from hotspot_reset.mikrotik.hotspot import (
    ACTIVE_PATH,
    ClientFactory,
    ResetOptions,
    ResetResult,
    active_usernames,
    default_client_factory,
    reset_hotspot_user,
)

RESET_USERNAME_MAX_LENGTH = 100


class ResetValidationError(ValueError):
    """Raised when reset input is invalid."""


def validate_username(username: object) -> str:
    if not isinstance(username, str):
        raise ResetValidationError("Username is required")
    cleaned = username.strip()
    if not cleaned:
        raise ResetValidationError("Username is required")
    if len(cleaned) > RESET_USERNAME_MAX_LENGTH:
        raise ResetValidationError(f"Username must be less than {RESET_USERNAME_MAX_LENGTH} characters")
    return cleaned


class ResetService:
    def __init__(
        self,
        vault: RouterVault,
        audit: AuditTrail,
        client_factory: ClientFactory | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.vault = vault
        self.audit = audit
        self.logger = logger or logging.getLogger(__name__)
        self.client_factory = client_factory or default_client_factory(timeout)

    def _resolve(self, router_id: str, actor: str | None, origin_ip: str | None) -> RouterInfo:
        try:
            return self.vault.get(router_id)
        except RouterNotFoundError:
            self.audit.record(
                SecurityEventType.INVALID_ROUTER_ACCESS_ATTEMPT,
                severity=Severity.WARNING,
                user_id=actor,
                ip_address=origin_ip,
                routerId=router_id,
            )
            raise

    def _connection(
        self, router: RouterInfo, username: str | None, actor: str | None, origin_ip: str | None
    ) -> RouterConnection:
        details: dict[str, object] = {"routerId": router.id, "routerName": router.name}
        if username is not None:
            details["username"] = username
        self.audit.record(
            SecurityEventType.ROUTER_PASSWORD_ACCESSED, user_id=actor, ip_address=origin_ip, **details
        )
        return self.vault.get_connection(router.id)

    def reset_user(
        self,
        router_id: str,
        username: str,
        options: ResetOptions | None = None,
        actor: str | None = None,
        origin_ip: str | None = None,
    ) -> ResetResult:
        """Reset a hotspot user on a stored router.

        Raises ``ResetValidationError`` for a bad username and
        ``RouterNotFoundError`` for an unknown router. Every other failure is
        returned inside the result.
        """

        options = options or ResetOptions()
        try:
            username = validate_username(username)
        except ResetValidationError as exc:
            self.audit.record(
                SecurityEventType.VALIDATION_ERROR,
                severity=Severity.WARNING,
                user_id=actor,
                ip_address=origin_ip,
                field="username",
                message=str(exc),
            )
            raise

        router = self._resolve(router_id, actor, origin_ip)
        log_extra = {"device": router.name}

        try:
            connection = self._connection(router, username, actor, origin_ip)
        except (CredentialCipherError, RouterNotFoundError) as exc:
            self.logger.error("unable to load credentials error=%s", exc, extra=log_extra)
            result = ResetResult(error=str(exc), details=[f"✗ Error: {exc}"])
        else:
            result = reset_hotspot_user(connection, username, options, self.client_factory, self.logger)

        details = {
            "routerId": router.id,
            "routerName": router.name,
            "username": username,
            "options": options.to_dict(),
        }
        if result.success:
            self.audit.record(
                SecurityEventType.USER_RESET_SUCCESS, user_id=actor, ip_address=origin_ip, **details
            )
        else:
            self.audit.record(
                SecurityEventType.USER_RESET_FAILURE,
                severity=Severity.WARNING,
                user_id=actor,
                ip_address=origin_ip,
                error=result.error,
                **details,
            )
        return result

    def list_users(
        self,
        router_id: str,
        search: str = "",
        limit: int = 10,
        actor: str | None = None,
        origin_ip: str | None = None,
    ) -> list[str]:
        """Usernames with an active hotspot session on the router."""

        router = self._resolve(router_id, actor, origin_ip)
        connection = self._connection(router, None, actor, origin_ip)
        session = self.client_factory(connection)
        try:
            session.connect()
            records = session.list(ACTIVE_PATH)
        finally:
            session.close()

        users = active_usernames(records, search=search, limit=limit)
        self.logger.info("active users listed count=%d", len(users), extra={"device": router.name})
        return users
