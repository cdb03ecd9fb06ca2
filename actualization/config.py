"""
actualization/config.py

Environment-driven configuration for the actualization service.

Values come from the process environment, with `.env` and `.env.local`
at the project root filling in anything unset. Blank or unparseable
values fall back to the documented default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, TypeVar

_T = TypeVar("_T")

ENV_FILES = (".env", ".env.local")
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(project_root: Path | None = None) -> None:
    """
    Copy KEY=VALUE pairs from the project env files into os.environ.
    Variables already set in the process win.
    """

    root = project_root or Path(__file__).resolve().parents[1]
    for filename in ENV_FILES:
        env_path = root / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _read_env(name: str) -> str | None:
    """
    Return the stripped value of ``name``; unset and blank both read as None.
    """

    _load_env_once()
    value = (os.getenv(name) or "").strip()
    return value or None


def _env(name: str, default: _T, parse: Callable[[str], _T]) -> _T:
    raw_value = _read_env(name)
    if raw_value is None:
        return default
    try:
        return parse(raw_value)
    except ValueError:
        return default


def _parse_flag(raw_value: str) -> bool:
    return raw_value.lower() in _TRUE_VALUES


@dataclass(frozen=True)
class ExecutorSettings:
    """
    HTTP behavior settings for the remote job executor client.
    """

    base_url: str = ""
    api_token: str | None = None
    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class PollingSettings:
    """
    Job status polling settings.
    """

    interval_ms: int = 5000
    max_notices: int = 50
    fetch_partial_results: bool = True

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0


@lru_cache(maxsize=1)
def get_executor_settings() -> ExecutorSettings:
    """
    Return cached executor client settings from environment variables.
    """

    return ExecutorSettings(
        base_url=_env("ACTUALIZATION_EXECUTOR_BASE_URL", "", str).rstrip("/"),
        api_token=_read_env("ACTUALIZATION_EXECUTOR_API_TOKEN"),
        timeout_seconds=max(1.0, _env("ACTUALIZATION_EXECUTOR_TIMEOUT_SECONDS", 15.0, float)),
        max_retries=max(0, _env("ACTUALIZATION_EXECUTOR_MAX_RETRIES", 3, int)),
        backoff_initial_seconds=max(
            0.1, _env("ACTUALIZATION_EXECUTOR_BACKOFF_INITIAL_SECONDS", 0.5, float)
        ),
        backoff_multiplier=max(1.0, _env("ACTUALIZATION_EXECUTOR_BACKOFF_MULTIPLIER", 2.0, float)),
    )


@lru_cache(maxsize=1)
def get_polling_settings() -> PollingSettings:
    """
    Return cached polling settings from environment variables.
    """

    return PollingSettings(
        interval_ms=max(500, _env("ACTUALIZATION_POLL_INTERVAL_MS", 5000, int)),
        max_notices=max(1, _env("ACTUALIZATION_MAX_NOTICES", 50, int)),
        fetch_partial_results=_env("ACTUALIZATION_FETCH_PARTIAL_RESULTS", True, _parse_flag),
    )


def get_log_level() -> str:
    return _env("LOG_LEVEL", "INFO", str).upper()
