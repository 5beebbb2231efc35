#!/usr/bin/env python3
"""
Service logger setup

Configures the root logger once per process from LoggingConfig and
returns the named service logger. Modules keep using
logging.getLogger(__name__) and inherit the handlers set up here.
"""

import logging
import sys
from typing import Optional

from .config.logging_config import LoggingConfig

_configured = False


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure logging for a service process

    Args:
        service_name: Logger name returned to the caller
        config: Logging settings (defaults to LoggingConfig.from_env())

    Returns:
        The service logger
    """
    global _configured

    if config is None:
        config = LoggingConfig.from_env()

    if not _configured:
        root = logging.getLogger()
        root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
        formatter = logging.Formatter(config.log_format)

        if config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        _configured = True

    logger = logging.getLogger(service_name)
    logger.debug(f"Logger configured for {service_name} ({config.environment})")
    return logger


__all__ = ["setup_service_logger"]
