"""Configuration for a remote repository client.

Values come from keyword arguments, a settings mapping, or environment
variables (``REMOTE_REPOSITORY_URL``, ``REMOTE_REPOSITORY_REQUEST_TIMEOUT_S``,
``REMOTE_REPOSITORY_CALL_TIMEOUT_S``, ``REMOTE_REPOSITORY_AUTHORIZATION_PARAM``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

ENV_PREFIX = "REMOTE_REPOSITORY_"

# Custom operations may address long-running server jobs.
DEFAULT_CALL_TIMEOUT_S = 5 * 60


@dataclass(frozen=True)
class RepositoryConfig:
    """Connection settings for one remote repository.

    Attributes:
        base_url: Root URL of the remote service.
        request_timeout_s: Timeout for ordinary requests, in seconds.
        call_timeout_s: Timeout for custom operations and find-and-delete.
        authorization_param: Query parameter carrying the session token.
    """
    base_url: str
    request_timeout_s: float = 10
    call_timeout_s: float = DEFAULT_CALL_TIMEOUT_S
    authorization_param: str = "authorization"

    def __post_init__(self) -> None:
        if not isinstance(self.base_url, str) or not self.base_url.strip():
            raise ValueError("RepositoryConfig requires a base URL")
        for name in ("request_timeout_s", "call_timeout_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if not self.authorization_param:
            raise ValueError("authorization_param must be a non-empty string")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RepositoryConfig":
        """Build from a settings dict using the attribute names as keys."""
        kwargs: Dict[str, Any] = {"base_url": str(data.get("base_url") or "").strip()}
        for name in ("request_timeout_s", "call_timeout_s"):
            if data.get(name) not in (None, ""):
                kwargs[name] = _coerce_timeout(name, data[name])
        param = data.get("authorization_param")
        if param:
            kwargs["authorization_param"] = str(param).strip()
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        prefix: str = ENV_PREFIX,
    ) -> "RepositoryConfig":
        env = os.environ if environ is None else environ
        return cls.from_mapping(
            {
                "base_url": env.get(f"{prefix}URL"),
                "request_timeout_s": env.get(f"{prefix}REQUEST_TIMEOUT_S"),
                "call_timeout_s": env.get(f"{prefix}CALL_TIMEOUT_S"),
                "authorization_param": env.get(f"{prefix}AUTHORIZATION_PARAM"),
            }
        )


def _coerce_timeout(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


__all__ = ["DEFAULT_CALL_TIMEOUT_S", "ENV_PREFIX", "RepositoryConfig"]
