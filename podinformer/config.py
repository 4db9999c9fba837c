"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from podinformer.models.config import AppConfig, InformerConfig, LogConfig
from podinformer.observability.logging import LOG_FORMATS, get_logger

_log = get_logger("config")

_DEFAULT_INTERVAL = 600.0

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_RE_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def parse_duration(value: str) -> float:
    """Parse a duration such as ``90s``, ``10m``, ``1h30m`` or ``500ms`` into seconds.

    A bare ``0`` is accepted.  Raises ValueError for anything else.
    """
    text = value.strip()
    if text in ("0", "+0", "-0"):
        return 0.0
    sign = 1.0
    if text[:1] in ("+", "-"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if not text:
        raise ValueError(f"Invalid duration: {value!r}")

    total = 0.0
    pos = 0
    for match in _RE_DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"Invalid duration: {value!r}")
    return sign * total


def _env_duration(key: str, default: float) -> float:
    """Read a duration variable, falling back to *default* if absent or unparseable."""
    raw = _env(key)
    try:
        value = parse_duration(raw)
    except ValueError as exc:
        _log.info("duration_default_used", key=key, value=raw, default=default, error=str(exc))
        return default
    _log.info("duration_loaded", key=key, value=raw, seconds=value)
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    if value.lower() not in LOG_FORMATS:
        raise ValueError(f"Invalid log format: {value}. Must be one of {LOG_FORMATS}")
    return value.lower()


def load_config() -> AppConfig:
    """Load the example program's configuration from environment variables."""
    return AppConfig(
        interval=_env_duration("INTERVAL", _DEFAULT_INTERVAL),
        churn_limit=_env_int("CHURN_LIMIT", 0, min_val=0),
        kubeconfig=_env("KUBECONFIG", ""),
        informer=InformerConfig(
            namespace=_env("NAMESPACE", "default"),
            label_selector=_env("LABEL_SELECTOR") or "app=miniapi",
            resync_period=max(_env_duration("RESYNC_PERIOD", 0.0), 0.0),
            debug_log=_env_bool("DEBUG_LOG", False),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
