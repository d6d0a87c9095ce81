"""
Runtime configuration.

Settings live in a flat dict keyed by dotted names ("browser.headless") so
that gear classes can read them with ``config.get(key, default)``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Mapping

from .errors import InvalidParameters

DEFAULT_ENCODER_DIR = Path(__file__).resolve().parent / "bin"

# key -> (environment variable, default)
_SETTINGS: dict[str, tuple[str, Any]] = {
    "log.level": ("LOG_LEVEL", "INFO"),
    "browser.headless": ("SITECAST_HEADLESS", True),
    "browser.navigation_timeout_ms": ("SITECAST_NAV_TIMEOUT_MS", 30000),
    "encoder.bin_dir": ("SITECAST_ENCODER_DIR", DEFAULT_ENCODER_DIR),
    "server.heartbeat_seconds": ("SITECAST_HEARTBEAT_SECONDS", 30.0),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _coerce(key: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        value = raw.strip().lower()
        if value in _TRUE:
            return True
        if value in _FALSE:
            return False
        raise InvalidParameters(f"{key} expects a boolean, got {raw!r}")
    if isinstance(default, (int, float)):
        try:
            number = type(default)(raw)
        except ValueError:
            raise InvalidParameters(f"{key} expects a number, got {raw!r}") from None
        if number <= 0:
            raise InvalidParameters(f"{key} must be positive, got {raw!r}")
        return number
    if isinstance(default, Path):
        return Path(raw).expanduser()
    if key == "log.level":
        level = raw.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise InvalidParameters(f"{key} must be a logging level name, got {raw!r}")
        return level
    return raw


def load_config(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Build the config dict from environment variables, falling back to defaults."""
    environ = os.environ if environ is None else environ
    config: dict[str, Any] = {}
    for key, (env_name, default) in _SETTINGS.items():
        raw = environ.get(env_name)
        config[key] = default if raw in (None, "") else _coerce(key, raw, default)
    return config
