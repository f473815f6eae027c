"""Central logging configuration for HotspotReset.

The optional ``logging`` section of ``config/local.yml`` selects the log
directory, file name and level. When the configured directory is not
writable, ``./logs`` is used instead and a warning is recorded. Every record
carries a ``device`` field, and obvious secrets are masked before any handler
writes them.
"""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from hotspot_reset.core.config import DEFAULT_CONFIG_PATH, ConfigError, load_local_config

DEFAULT_DIRECTORY = Path("/var/log/hotspot-reset")
DEFAULT_FILENAME = "hotspot-reset.log"
DEFAULT_LEVEL = logging.INFO
FALLBACK_DIRECTORY = Path("./logs")

LOG_FORMAT = "%(asctime)s | %(levelname)s | device=%(device)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(slots=True)
class LoggingConfig:
    """Configuration values loaded from local.yml or defaults."""

    directory: Path
    filename: str
    level: int


class DeviceContextFilter(logging.Filter):
    """Ensure every record contains a device name."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "device", None):
            record.device = "-"
        return True


class SecretScrubberFilter(logging.Filter):
    """Mask ``password=``, ``secret=``, ``token=`` and ``encryption_key=`` values."""

    SECRET_PATTERN = re.compile(r"(password|secret|token|encryption_key)=([^\s]+)", re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover - malformed record, let the handler report it
            return True

        cleaned = self.SECRET_PATTERN.sub(r"\1=***", message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


def _level_from_value(raw_level: Any) -> int:
    if isinstance(raw_level, str):
        level = logging.getLevelName(raw_level.upper())
        if isinstance(level, int):
            return level
    if isinstance(raw_level, int) and not isinstance(raw_level, bool):
        return raw_level
    return DEFAULT_LEVEL


def _logging_section(config_path: str | Path | None) -> Mapping[str, Any]:
    try:
        data = load_local_config(config_path)
    except ConfigError:
        return {}
    section = data.get("logging", {})
    return section if isinstance(section, Mapping) else {}


def _parse_logging_config(section: Mapping[str, Any]) -> LoggingConfig:
    directory_value = section.get("directory")
    filename_value = section.get("filename")

    directory = Path(directory_value).expanduser() if directory_value else DEFAULT_DIRECTORY
    filename = str(filename_value) if filename_value else DEFAULT_FILENAME
    return LoggingConfig(directory=directory, filename=filename, level=_level_from_value(section.get("level")))


def _ensure_writable_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    probe = path / ".write-test"
    with probe.open("a", encoding="utf-8"):
        pass
    probe.unlink(missing_ok=True)


def _determine_log_directory(target: Path, fallback: Path) -> tuple[Path | None, bool]:
    for index, candidate in enumerate((target, fallback)):
        try:
            _ensure_writable_directory(candidate)
            return candidate, index == 1
        except OSError:
            continue
    return None, True


def _build_handlers(log_path: Path | None) -> list[logging.Handler]:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    filters: list[logging.Filter] = [DeviceContextFilter(), SecretScrubberFilter()]

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_path is not None:
        handlers.insert(0, logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        for filter_ in filters:
            handler.addFilter(filter_)

    return handlers


def setup_logging(config_path: str | Path | None = None, cli_level: int | None = None) -> logging.Logger:
    """Configure application-wide logging.

    Parameters
    ----------
    config_path:
        Optional path to ``local.yml``. Defaults to ``config/local.yml``
        relative to the project root.
    cli_level:
        Level forced from the command line (``--debug``); wins over local.yml.
    """

    config_file = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    section = _logging_section(config_file)
    config = _parse_logging_config(section)
    if cli_level is not None:
        config.level = cli_level

    log_directory, used_fallback = _determine_log_directory(config.directory, FALLBACK_DIRECTORY)
    log_path = log_directory / config.filename if log_directory is not None else None

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(config.level)
    for handler in _build_handlers(log_path):
        root_logger.addHandler(handler)

    # paramiko logs every transport negotiation at DEBUG
    logging.getLogger("paramiko").setLevel(max(config.level, logging.WARNING))

    logger = logging.getLogger("hotspot_reset")
    logger.setLevel(config.level)
    logger.propagate = True

    if not section:
        logger.debug(
            "Logging configuration not found in '%s'. Using defaults (directory=%s, level=%s).",
            config_file,
            config.directory,
            logging.getLevelName(config.level),
        )

    if log_path is None:
        logger.warning("No writable logging directory. Logging to stderr only.")
    elif used_fallback:
        logger.warning(
            "Logging directory '%s' is not writable. Falling back to '%s'.",
            config.directory,
            log_directory,
        )

    logger.debug("Logging initialized at %s", log_path or "stderr")
    return logger
