"""
Runtime configuration for the Key Vault master key backend.

Values come from the process environment, optionally seeded from a ``.env``
file. Real environment variables always win over the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import dotenv_values

from .errors import ConfigError

# Six months of 30 days
DEFAULT_ROTATION_THRESHOLD: timedelta = timedelta(days=30 * 6)

ROTATION_THRESHOLD_ENV = "AZKV_ROTATION_THRESHOLD_HOURS"
LOG_LEVEL_ENV = "AZKV_LOG_LEVEL"
LOG_JSON_ENV = "AZKV_LOG_JSON"
TENANT_ID_ENV = "AZURE_TENANT_ID"
CLIENT_ID_ENV = "AZURE_CLIENT_ID"
CLIENT_SECRET_ENV = "AZURE_CLIENT_SECRET"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class KeySourceConfig:
    """Settings shared by every master key in the process."""

    rotation_threshold: timedelta = DEFAULT_ROTATION_THRESHOLD
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    log_level: str = "info"
    log_json: bool = False

    @property
    def has_client_secret(self) -> bool:
        """True when a service principal secret is fully configured."""
        return bool(self.tenant_id and self.client_id and self.client_secret)

    def __repr__(self) -> str:
        secret = "[REDACTED]" if self.client_secret else None
        return (
            f"KeySourceConfig(rotation_threshold={self.rotation_threshold!r}, "
            f"tenant_id={self.tenant_id!r}, client_id={self.client_id!r}, "
            f"client_secret={secret!r}, log_level={self.log_level!r}, "
            f"log_json={self.log_json!r})"
        )


def _parse_threshold(raw: Optional[str]) -> timedelta:
    if raw is None or raw == "":
        return DEFAULT_ROTATION_THRESHOLD
    try:
        hours = float(raw)
    except ValueError:
        raise ConfigError(f"{ROTATION_THRESHOLD_ENV} must be a number of hours, got {raw!r}")
    if hours <= 0:
        raise ConfigError(f"{ROTATION_THRESHOLD_ENV} must be positive, got {raw!r}")
    return timedelta(hours=hours)


def _parse_bool(name: str, raw: Optional[str]) -> bool:
    value = (raw or "").strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def load_config(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> KeySourceConfig:
    """
    Build a KeySourceConfig from the environment.

    Args:
        env_file: Optional ``.env`` file whose values fill in anything the
            environment does not set
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        KeySourceConfig instance

    Raises:
        ConfigError: If a value cannot be parsed
    """
    values = {}
    if env_file is not None:
        path = Path(env_file)
        if not path.is_file():
            raise ConfigError(f"env file not found: {path}")
        values.update({k: v for k, v in dotenv_values(path).items() if v is not None})
    values.update(os.environ if environ is None else environ)

    level = (values.get(LOG_LEVEL_ENV) or "info").lower()
    if level not in {"critical", "error", "warning", "info", "debug"}:
        raise ConfigError(f"{LOG_LEVEL_ENV} has unknown level {level!r}")

    return KeySourceConfig(
        rotation_threshold=_parse_threshold(values.get(ROTATION_THRESHOLD_ENV)),
        tenant_id=values.get(TENANT_ID_ENV) or None,
        client_id=values.get(CLIENT_ID_ENV) or None,
        client_secret=values.get(CLIENT_SECRET_ENV) or None,
        log_level=level,
        log_json=_parse_bool(LOG_JSON_ENV, values.get(LOG_JSON_ENV)),
    )


CONFIG = KeySourceConfig()

__all__ = [
    "CONFIG",
    "DEFAULT_ROTATION_THRESHOLD",
    "KeySourceConfig",
    "load_config",
]
