"""
Runtime settings for quantopts.

Read from environment variables:
- QUANTOPTS_LOG_LEVEL: logging level name (default WARNING)
- QUANTOPTS_DEFAULT_FORMAT: format used when a file extension is not
  recognized (json | text | binary, default json)
"""

import os
import threading
from dataclasses import dataclass
from typing import Optional

VALID_FORMATS = ("json", "text", "binary")

_settings: Optional["Settings"] = None
_settings_lock = threading.Lock()


@dataclass(frozen=True)
class Settings:
    """Process-wide settings."""
    log_level: str = "WARNING"
    default_format: str = "json"

    def __post_init__(self):
        if self.default_format not in VALID_FORMATS:
            raise ValueError(
                f"Invalid default format: {self.default_format!r} "
                f"(expected one of {', '.join(VALID_FORMATS)})"
            )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from QUANTOPTS_* environment variables."""
        return cls(
            log_level=os.environ.get("QUANTOPTS_LOG_LEVEL", "WARNING").upper(),
            default_format=os.environ.get("QUANTOPTS_DEFAULT_FORMAT", "json").lower(),
        )


def get_settings() -> Settings:
    """Get the cached settings instance, reading the environment once."""
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the environment is read again."""
    global _settings
    with _settings_lock:
        _settings = None
