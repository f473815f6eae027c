"""Configuration helpers for HotspotReset.

Settings are read from the optional ``config/local.yml`` file. The cipher key
may be overridden with the ``HOTSPOT_RESET_ENCRYPTION_KEY`` environment
variable, which takes priority over the file. A missing or malformed key is a
startup failure.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "local.yml"
DEFAULT_STORE_PATH = PROJECT_ROOT / "config" / "routers.yml"
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAC_STRATEGY = "ip-binding"
MAC_STRATEGIES = ("ip-binding", "user-profile")

ENCRYPTION_KEY_ENV = "HOTSPOT_RESET_ENCRYPTION_KEY"


class ConfigError(ValueError):
    """Raised when configuration is missing or invalid."""


@dataclass(slots=True)
class Settings:
    """Values loaded from local.yml, the environment, or defaults."""

    encryption_key: str
    store_path: Path = DEFAULT_STORE_PATH
    timeout: float = DEFAULT_TIMEOUT
    mac_strategy: str = DEFAULT_MAC_STRATEGY

    def __repr__(self) -> str:
        return (
            f"Settings(encryption_key='***', store_path={self.store_path!s}, "
            f"timeout={self.timeout}, mac_strategy={self.mac_strategy})"
        )


def _resolve_path(value: str | Path) -> Path:
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def load_local_config(config_path: str | Path | None = None) -> Mapping[str, Any]:
    """Load local.yml if it exists and return the mapping."""

    config_file = _resolve_path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not config_file.exists():
        return {}

    try:
        with config_file.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read configuration file: {config_file}") from exc

    if not isinstance(data, Mapping):
        raise ConfigError("Top-level local.yml structure must be a mapping.")
    return data


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"Section '{name}' in local.yml must be a mapping.")
    return section


def _validate_timeout(value: Any) -> float:
    if value is None:
        return DEFAULT_TIMEOUT
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError("mikrotik.timeout must be a number.")
    if value <= 0:
        raise ConfigError("mikrotik.timeout must be greater than zero.")
    return float(value)


def _validate_mac_strategy(value: Any) -> str:
    if value is None:
        return DEFAULT_MAC_STRATEGY
    if value not in MAC_STRATEGIES:
        raise ConfigError(
            f"invalid mikrotik.mac_strategy '{value}'. Allowed values: {', '.join(MAC_STRATEGIES)}."
        )
    return value


def resolve_encryption_key(data: Mapping[str, Any]) -> str:
    """Return the cipher key, preferring the environment over local.yml."""

    env_value = os.getenv(ENCRYPTION_KEY_ENV)
    if env_value:
        return env_value

    value = _section(data, "crypto").get("encryption_key")
    if value is None or value == "":
        raise ConfigError(
            f"Encryption key is not set. Export {ENCRYPTION_KEY_ENV} or set crypto.encryption_key "
            "in config/local.yml. Generate one with: hotspot-reset generate-key"
        )
    if not isinstance(value, str):
        raise ConfigError("crypto.encryption_key must be a string.")
    return value


def load_settings(
    config_path: str | Path | None = None,
    store_path: str | Path | None = None,
    logger: logging.Logger | None = None,
) -> Settings:
    """Load and validate settings. Raises ``ConfigError`` on any problem."""

    logger = logger or logging.getLogger(__name__)
    data = load_local_config(config_path)

    mikrotik_section = _section(data, "mikrotik")
    store_section = _section(data, "store")

    if store_path:
        resolved_store = _resolve_path(store_path)
        source = "cli"
    elif store_section.get("path"):
        resolved_store = _resolve_path(store_section["path"])
        source = "local_yml"
    else:
        resolved_store = DEFAULT_STORE_PATH
        source = "default"

    settings = Settings(
        encryption_key=resolve_encryption_key(data),
        store_path=resolved_store,
        timeout=_validate_timeout(mikrotik_section.get("timeout")),
        mac_strategy=_validate_mac_strategy(mikrotik_section.get("mac_strategy")),
    )
    logger.debug(
        "settings loaded store=%s source=%s timeout=%s mac_strategy=%s",
        settings.store_path,
        source,
        settings.timeout,
        settings.mac_strategy,
    )
    return settings
