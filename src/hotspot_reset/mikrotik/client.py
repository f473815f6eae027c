"""MikroTik SSH client implementation.

One :class:`MikroTikClient` wraps one SSH session. Menu paths use the CLI
form (``/ip hotspot active``). Listing prints every matching item as a
``key=value;key=value`` line, which is parsed into :class:`Record` objects
carrying a typed :class:`RecordHandle` for later ``remove``/``set`` calls.
"""

from __future__ import annotations

import logging
import re
import socket
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping

import paramiko

from hotspot_reset.core.models import DEFAULT_PORT

DEFAULT_TIMEOUT = 10.0

_PATH_PATTERN = re.compile(r"^/[a-z0-9-]+( [a-z0-9-]+)*$")
_FIELD_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]*$")
_RECORD_ID_PATTERN = re.compile(r"^\*[0-9A-Fa-f]+$")
_KEY_PATTERN = re.compile(r"^\.?[a-z0-9][a-z0-9.-]*$")
_ERROR_PATTERN = re.compile(
    r"^(failure:|syntax error|expected |bad command name|no such item|input does not match|"
    r"invalid value|ambiguous value|value of .* (must|out of range))",
    re.IGNORECASE | re.MULTILINE,
)


class MikroTikClientError(RuntimeError):
    """Base exception for MikroTik client errors."""


class MikroTikConnectionError(MikroTikClientError):
    """Raised when the SSH session cannot be opened."""


class MikroTikAuthenticationError(MikroTikConnectionError):
    """Raised when SSH authentication fails."""


class MikroTikCommandError(MikroTikClientError):
    """Raised when a command cannot be executed successfully."""


class MikroTikQueryError(MikroTikCommandError):
    """Raised when a list command fails."""


class MikroTikWriteError(MikroTikCommandError):
    """Raised when a remove or set command fails."""


@dataclass(slots=True, frozen=True)
class RecordHandle:
    """Identifies one item on the device: menu path plus internal ``.id``."""

    path: str
    record_id: str


@dataclass(slots=True)
class Record:
    """An item returned by :meth:`MikroTikClient.list`."""

    handle: RecordHandle
    fields: dict[str, str] = field(default_factory=dict)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.fields.get(name, default)


def quote_value(value: str) -> str:
    """Return ``value`` as a RouterOS string literal."""

    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("$", "\\$")
        .replace("?", "\\?")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _check_path(path: str) -> str:
    if not _PATH_PATTERN.match(path):
        raise ValueError(f"Invalid menu path: {path!r}")
    return path


def _check_field(name: str) -> str:
    if not _FIELD_PATTERN.match(name):
        raise ValueError(f"Invalid field name: {name!r}")
    return name


def build_list_command(path: str, filters: Mapping[str, str] | None = None) -> str:
    """Command printing every item under ``path`` that matches ``filters``."""

    _check_path(path)
    conditions = " ".join(f"{_check_field(name)}={quote_value(value)}" for name, value in (filters or {}).items())
    find = f"[{path} find where {conditions}]" if conditions else f"[{path} find]"
    return f":foreach i in={find} do={{:put [{path} get $i]}}"


def parse_record_line(path: str, line: str) -> Record | None:
    """Parse one ``.id=*1;user=alice;...`` line. Returns None for blank lines."""

    line = line.strip()
    if not line:
        return None

    fields: dict[str, str] = {}
    last_key: str | None = None
    for chunk in line.split(";"):
        key, sep, value = chunk.partition("=")
        if sep and _KEY_PATTERN.match(key):
            fields[key] = value
            last_key = key
        elif last_key is not None:
            # value contained a ';'
            fields[last_key] = f"{fields[last_key]};{chunk}"

    record_id = fields.get(".id")
    if not record_id or not _RECORD_ID_PATTERN.match(record_id):
        raise MikroTikQueryError(f"Unexpected output from {path}: missing item id")
    return Record(handle=RecordHandle(path=path, record_id=record_id), fields=fields)


@dataclass(slots=True)
class MikroTikClient:
    """SSH session to a MikroTik device.

    Commands run one at a time. :meth:`close` is safe to call at any point,
    any number of times.
    """

    host: str
    username: str
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__), repr=False)
    log_extra: dict[str, Any] = field(default_factory=dict, repr=False)
    _ssh: paramiko.SSHClient | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __enter__(self) -> "MikroTikClient":
        return self.connect()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def connected(self) -> bool:
        return self._ssh is not None

    def connect(self) -> "MikroTikClient":
        ssh = paramiko.SSHClient()
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            self.logger.debug("opening ssh session host=%s port=%s", self.host, self.port, extra=self.log_extra)
            ssh.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                look_for_keys=False,
                allow_agent=False,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
            )
        except paramiko.AuthenticationException as exc:
            ssh.close()
            raise MikroTikAuthenticationError(f"Failed to connect to router: {exc}") from exc
        except (paramiko.SSHException, socket.error, TimeoutError) as exc:
            ssh.close()
            raise MikroTikConnectionError(f"Failed to connect to router: {exc}") from exc

        self.logger.info("ssh ok host=%s port=%s", self.host, self.port, extra=self.log_extra)
        self._ssh = ssh
        return self

    def _run_command(self, command: str) -> str:
        if self._ssh is None:
            raise MikroTikCommandError("Not connected")

        with self._lock:
            self.logger.debug("executing mikrotik command='%s'", command, extra=self.log_extra)
            try:
                _, stdout, stderr = self._ssh.exec_command(command, timeout=self.timeout)
                output = stdout.read().decode("utf-8", errors="replace")
                error_output = stderr.read().decode("utf-8", errors="replace")
                exit_status = stdout.channel.recv_exit_status()
            except (paramiko.SSHException, socket.error, TimeoutError) as exc:
                raise MikroTikCommandError(f"Unable to execute command: {exc}") from exc

        match = _ERROR_PATTERN.search(output)
        if error_output.strip():
            raise MikroTikCommandError(error_output.strip())
        if match:
            raise MikroTikCommandError(output[match.start():].splitlines()[0])
        if exit_status != 0:
            raise MikroTikCommandError(f"exit_status={exit_status}")
        return output

    def list(self, path: str, filters: Mapping[str, str] | None = None) -> list[Record]:
        """Items under ``path`` whose fields equal ``filters``."""

        command = build_list_command(path, filters)
        try:
            output = self._run_command(command)
        except MikroTikCommandError as exc:
            raise MikroTikQueryError(f"{path} print failed: {exc}") from exc

        records = [record for record in (parse_record_line(path, line) for line in output.splitlines()) if record]
        self.logger.debug("%s matched=%d", path, len(records), extra=self.log_extra)
        return records

    def remove(self, handle: RecordHandle) -> None:
        if not _RECORD_ID_PATTERN.match(handle.record_id):
            raise MikroTikWriteError(f"Invalid item id: {handle.record_id!r}")
        command = f"{_check_path(handle.path)} remove numbers={handle.record_id}"
        try:
            self._run_command(command)
        except MikroTikCommandError as exc:
            raise MikroTikWriteError(f"{handle.path} remove {handle.record_id} failed: {exc}") from exc

    def mutate(self, handle: RecordHandle, changes: Mapping[str, str | None]) -> None:
        """Apply field changes. A ``None`` value unsets the field."""

        if not _RECORD_ID_PATTERN.match(handle.record_id):
            raise MikroTikWriteError(f"Invalid item id: {handle.record_id!r}")
        _check_path(handle.path)

        to_set = {name: value for name, value in changes.items() if value is not None}
        to_unset = [name for name, value in changes.items() if value is None]

        commands: list[str] = []
        if to_set:
            assignments = " ".join(f"{_check_field(name)}={quote_value(value)}" for name, value in to_set.items())
            commands.append(f"{handle.path} set numbers={handle.record_id} {assignments}")
        for name in to_unset:
            commands.append(f"{handle.path} unset numbers={handle.record_id} value-name={_check_field(name)}")

        for command in commands:
            try:
                self._run_command(command)
            except MikroTikCommandError as exc:
                raise MikroTikWriteError(f"{handle.path} set {handle.record_id} failed: {exc}") from exc

    def close(self) -> None:
        ssh, self._ssh = self._ssh, None
        if ssh is None:
            return
        try:
            ssh.close()
        except Exception as exc:  # noqa: BLE001 - teardown is best effort
            self.logger.debug("ssh close failed reason=\"%s\"", exc, extra=self.log_extra)
        else:
            self.logger.debug("ssh session closed host=%s", self.host, extra=self.log_extra)
