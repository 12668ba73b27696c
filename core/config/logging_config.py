#!/usr/bin/env python3
"""Logging configuration

Level and handlers for the checkout process, plus the third-party
loggers (database driver, event bus, payment SDK) that are held at INFO
even when the service itself logs at DEBUG.
"""
import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_QUIET_LOGGERS = ["asyncpg", "nats", "stripe", "httpx"]


@dataclass
class LoggingConfig:
    """Logging configuration"""
    log_level: str = "INFO"
    log_format: str = DEFAULT_FORMAT
    log_file: str = ""
    log_to_console: bool = True
    quiet_loggers: List[str] = field(default_factory=lambda: list(DEFAULT_QUIET_LOGGERS))

    @classmethod
    def from_env(cls) -> 'LoggingConfig':
        """Load logging config from environment variables"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        quiet = os.getenv("LOG_QUIET_LOGGERS")
        quiet_loggers = (
            [name.strip() for name in quiet.split(",") if name.strip()]
            if quiet is not None else list(DEFAULT_QUIET_LOGGERS)
        )
        return cls(
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO"),
            log_format=os.getenv("LOG_FORMAT", DEFAULT_FORMAT),
            log_file=os.getenv("LOG_FILE", ""),
            log_to_console=os.getenv("LOG_CONSOLE", "true").lower() != "false",
            quiet_loggers=quiet_loggers,
        )
