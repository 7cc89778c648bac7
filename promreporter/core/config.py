from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

from promreporter.core.errors import ConfigurationError

LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("", "0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it's easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    log_level: LogLevel
    log_json: bool
    reporter_config: str | None

    @property
    def has_reporter_config(self) -> bool:
        return self.reporter_config is not None


def load_settings() -> Settings:
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ConfigurationError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw in _TRUTHY:
        log_json = True
    elif log_json_raw in _FALSY:
        log_json = False
    else:
        raise ConfigurationError(f"LOG_JSON must be a boolean (got {log_json_raw!r})")

    reporter_config = _getenv("REPORTER_CONFIG", "") or None

    return Settings(  # type: ignore[arg-type]
        log_level=log_level_raw,
        log_json=log_json,
        reporter_config=reporter_config,
    )
