"""Runtime configuration for the Zaku space store."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from platformdirs import user_data_dir

APP_NAME = "Zaku"


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    data_dir: Path
    log_level: int = logging.INFO


def _parse_log_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load settings from environment variables once per process.

    ``ZAKU_DATA_DIR`` overrides the OS-native data directory and
    ``ZAKU_LOG_LEVEL`` accepts either a level name or a number.
    """

    data_dir = os.getenv("ZAKU_DATA_DIR") or user_data_dir(APP_NAME, appauthor=False)

    return Settings(
        data_dir=Path(data_dir).expanduser(),
        log_level=_parse_log_level(os.getenv("ZAKU_LOG_LEVEL")),
    )


__all__ = ["APP_NAME", "Settings", "load_settings"]
