from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"
_LEVEL_ENV_VARS = ("REMOTE_REPOSITORY_LOG_LEVEL",)
_DEBUG_FLAGS = ("REMOTE_REPOSITORY_DEBUG",)
# Never urllib3: its request lines carry the full query, token included.
_WIRE_LOGGERS = ("remote_repository.adapters",)


def _coerce_level(value: Optional[str], fallback: int) -> int:
    if not value:
        return fallback
    text = value.strip()
    if not text:
        return fallback
    if text.isdigit():
        return int(text)
    candidate = logging.getLevelName(text.upper())
    if isinstance(candidate, int):
        return candidate
    return fallback


def _env_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def resolve_env_level(environ: Optional[Mapping[str, str]] = None) -> Optional[int]:
    env = os.environ if environ is None else environ
    for var in _LEVEL_ENV_VARS:
        value = env.get(var)
        if value:
            return _coerce_level(value, logging.INFO)
    if any(_env_truthy(env.get(flag)) for flag in _DEBUG_FLAGS):
        return logging.DEBUG
    return None


def configure_root(
    default_level: int | str = logging.INFO,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """
    Configure the root logger with a compact format.

    Environment overrides:
      - REMOTE_REPOSITORY_LOG_LEVEL: explicit log level
      - REMOTE_REPOSITORY_DEBUG: truthy -> DEBUG
    """
    fallback = (
        _coerce_level(default_level, logging.INFO)
        if isinstance(default_level, str)
        else int(default_level)
    )
    env_level = resolve_env_level(environ)
    effective = env_level if env_level is not None else fallback

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=_DEFAULT_FORMAT, datefmt=_DEFAULT_DATEFMT)
    root.setLevel(effective)
    return effective


def configure_wire_logging(
    enabled: Optional[bool] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Toggle DEBUG output for outgoing dispatcher requests.

    With ``enabled`` unset the decision follows the environment overrides.
    Returns whether wire logging is on.
    """
    if enabled is None:
        env_level = resolve_env_level(environ)
        enabled = env_level is not None and env_level <= logging.DEBUG
    level = logging.DEBUG if enabled else logging.NOTSET
    for name in _WIRE_LOGGERS:
        logging.getLogger(name).setLevel(level)
    return enabled


def level_name(level: int) -> str:
    """Return logging level name for diagnostics."""
    return logging.getLevelName(level)
