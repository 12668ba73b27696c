#!/usr/bin/env python3
"""
Service logger setup

Configures the root logger once per process from LoggingConfig so that every
module-level ``logging.getLogger(__name__)`` inherits the same handlers.

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("checkout_service")
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig

_configured = False


def setup_service_logger(
    service_name: str,
    level: Optional[str] = None,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure process-wide logging and return the service logger.

    Args:
        service_name: Logger name for the service
        level: Optional level override (e.g. "INFO")
        config: Optional LoggingConfig, loaded from environment when omitted

    Returns:
        Logger named after the service
    """
    global _configured

    config = config or LoggingConfig.from_env()
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)

    if not _configured:
        root = logging.getLogger()
        root.setLevel(log_level)
        formatter = logging.Formatter(config.log_format)

        if config.log_to_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        for name in config.quiet_loggers:
            logging.getLogger(name).setLevel(max(log_level, logging.INFO))
        _configured = True

    logger = logging.getLogger(service_name)
    logger.setLevel(log_level)
    return logger


__all__ = ["setup_service_logger"]
