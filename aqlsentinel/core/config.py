"""Scan configuration, read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from aqlsentinel.exceptions import ConfigError

DEFAULT_FEED_URL = "https://research.jfrog.com/shai_hulud_2_packages.csv"
DEFAULT_REPORT_FILE = "aql_scan_report.csv"

# Checked in order; the first non-empty value wins.
TOKEN_ENV_VARS = ("rt_token", "RT_TOKEN")

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_str(key: str, default: str) -> str:
    return os.environ.get(key) or default


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def resolve_token() -> str | None:
    """Return the bearer token from the environment, or None if unset."""
    for key in TOKEN_ENV_VARS:
        value = os.environ.get(key)
        if value:
            return value
    return None


@dataclass(frozen=True)
class ScanConfig:
    """Everything a scan run needs, validated up front."""

    base_url: str
    token: str
    feed_url: str = DEFAULT_FEED_URL
    concurrency: int = 8
    timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    auth_failure_threshold: int = 5
    report_path: str = DEFAULT_REPORT_FILE
    sort_candidates: bool = False

    def __post_init__(self) -> None:
        if not self.base_url.strip():
            raise ConfigError("repository base URL is required")
        if not self.token:
            raise ConfigError(
                f"bearer token is required; export one of {', '.join(TOKEN_ENV_VARS)}"
            )
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.retry_base_delay < 0:
            raise ConfigError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.auth_failure_threshold < 0:
            raise ConfigError(
                f"auth_failure_threshold must be >= 0, got {self.auth_failure_threshold}"
            )

    @classmethod
    def from_env(cls, base_url: str, **overrides: Any) -> ScanConfig:
        """Build a config from the environment; non-None *overrides* win.

        Raises :class:`ConfigError` when the token is missing or a value is
        malformed.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"unknown config fields: {sorted(unknown)}")

        values: dict[str, Any] = {
            "base_url": base_url.strip().rstrip("/"),
            "token": resolve_token() or "",
            "feed_url": _env_str("AQLSENTINEL_FEED_URL", DEFAULT_FEED_URL),
            "report_path": _env_str("AQLSENTINEL_REPORT_FILE", DEFAULT_REPORT_FILE),
            "sort_candidates": _env_bool("AQLSENTINEL_SORT", False),
        }
        # Numeric env vars are only parsed when not overridden, so a bad
        # value in the environment cannot break an explicit CLI option.
        numeric = {
            "concurrency": (_env_int, "AQLSENTINEL_CONCURRENCY", 8),
            "timeout": (_env_float, "AQLSENTINEL_TIMEOUT", 30.0),
            "max_retries": (_env_int, "AQLSENTINEL_MAX_RETRIES", 3),
            "retry_base_delay": (_env_float, "AQLSENTINEL_RETRY_BASE_DELAY", 1.0),
            "auth_failure_threshold": (_env_int, "AQLSENTINEL_AUTH_FAILURE_THRESHOLD", 5),
        }
        for name, (reader, key, default) in numeric.items():
            if overrides.get(name) is None:
                values[name] = reader(key, default)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
