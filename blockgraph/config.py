"""
Configuration - Environment Settings and Logging Setup

Settings are read from environment variables. A `.env` file in the
project root (or the current working directory) is loaded first.

Environment variables:
    BLOCKGRAPH_LOG_LEVEL            Minimum log level (default: INFO)
    BLOCKGRAPH_LOG_JSON             Render logs as JSON lines (default: false)
    BLOCKGRAPH_VALIDATE_ATTRIBUTES  Run blueprint attribute schemas while
                                    parsing (default: true)

Usage:
    from blockgraph.config import configure_logging, get_settings

    configure_logging()
    settings = get_settings()
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import structlog
from dotenv import load_dotenv

# Look for .env in the project root (parent of blockgraph package)
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class Settings:
    """Process settings for parsing and logging."""

    log_level: str = "INFO"
    log_json: bool = False
    validate_attributes: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment."""
        level = os.getenv("BLOCKGRAPH_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Invalid BLOCKGRAPH_LOG_LEVEL: {level}")
        return cls(
            log_level=level,
            log_json=_env_bool("BLOCKGRAPH_LOG_JSON", False),
            validate_attributes=_env_bool("BLOCKGRAPH_VALIDATE_ATTRIBUTES", True),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process-wide settings, reading the environment once."""
    global _settings

    if _settings is None:
        _settings = Settings.from_env()

    return _settings


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog for the process.

    Args:
        settings: Settings to use. Defaults to get_settings().
    """
    settings = settings or get_settings()

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[settings.log_level]
        ),
    )
