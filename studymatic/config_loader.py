"""
YAML configuration loader for *studymatic*.

Lookup order (later layers override earlier ones):

1. **Package defaults** – ``config/config.yaml`` shipped inside the package.
2. **User file** – an explicit ``--config`` path, otherwise
   ``$STUDYMATIC_CONFIG``, otherwise ``./studymatic.yaml`` when present.
   The file is *deep-merged* onto the defaults so only changed keys need to
   appear in it.
3. **Environment variables** (``STUDYMATIC_*``) – see :data:`ENV_MAP`.
4. **CLI flags** – passed as *overrides*; ``None`` values are ignored.

The merged mapping is validated into a :class:`Settings` instance. All YAML
parsing uses :func:`yaml.safe_load`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from studymatic.errors import ConfigurationError

logger = logging.getLogger(__name__)

_DEFAULTS_PATH = Path(__file__).with_name("config") / "config.yaml"
_LOCAL_FILENAME = "studymatic.yaml"

# Settings key → environment variable
ENV_MAP: Dict[str, str] = {
    "server": "STUDYMATIC_SERVER",
    "username": "STUDYMATIC_USERNAME",
    "password": "STUDYMATIC_PASSWORD",
    "output_dir": "STUDYMATIC_OUTPUT",
    "study": "STUDYMATIC_STUDY",
    "timeout": "STUDYMATIC_TIMEOUT",
    "backoff_seconds": "STUDYMATIC_BACKOFF",
}


class Settings(BaseModel):
    """Validated run configuration.

    Attributes:
        server: Root URL of the remote catalog API. Required to sync.
        username: Optional login; the session is anonymous unless both
            *username* and *password* are set.
        password: Optional password.
        output_dir: Mirror root directory.
        study: When set, only this study is synced (always re-fetched).
        timeout: Per-request HTTP timeout in seconds.
        backoff_seconds: Pause after a study fails for transport reasons.
    """

    server: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    output_dir: Path = Path("data")
    study: Optional[str] = None
    timeout: float = 60.0
    backoff_seconds: float = 10.0

    @field_validator("server", "username", "password", "study", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("timeout", "backoff_seconds")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    def require_server(self) -> str:
        """Return the configured endpoint.

        Raises:
            ConfigurationError: When no server URI is configured.
        """
        if not self.server:
            raise ConfigurationError(
                "No catalog server configured; pass --server, set "
                "STUDYMATIC_SERVER or add 'server:' to the config file"
            )
        return self.server


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------
def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read *path*; an empty file yields an empty mapping."""
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def _deep_update(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge *override* into *base* (in place) and return *base*."""
    for key, val in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(val, Mapping):
            _deep_update(base[key], val)
        else:
            base[key] = val
    return base


def _user_config_path(config_path: Optional[str | Path]) -> Optional[Path]:
    """Resolve the user file according to the documented precedence."""
    if config_path:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found at {path}")
        return path

    env_path = os.getenv("STUDYMATIC_CONFIG")
    if env_path:
        path = Path(env_path).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"STUDYMATIC_CONFIG points to a missing file: {path}")
        return path

    local = Path.cwd() / _LOCAL_FILENAME
    return local if local.is_file() else None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_settings(
    config_path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Settings:
    """Return the merged and validated :class:`Settings`.

    Args:
        config_path: Optional explicit YAML path.
        overrides: Highest-priority values, typically CLI flags. Keys whose
            value is ``None`` are ignored.

    Raises:
        ConfigurationError: When a named file is missing, unparsable, or the
            merged values fail validation.
    """
    merged: Dict[str, Any] = {}
    if _DEFAULTS_PATH.is_file():
        merged.update(_load_yaml(_DEFAULTS_PATH))
    else:
        logger.warning("Packaged defaults not found at %s", _DEFAULTS_PATH)

    user_path = _user_config_path(config_path)
    if user_path is not None:
        logger.debug("Applying configuration from %s", user_path)
        _deep_update(merged, _load_yaml(user_path))

    for key, env in ENV_MAP.items():
        val = os.getenv(env)
        if val:
            merged[key] = val

    for key, val in (overrides or {}).items():
        if val is not None:
            merged[key] = val

    try:
        return Settings(**merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration – {exc}") from exc
