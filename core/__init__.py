#!/usr/bin/env python3
"""
Core Module for the Dynamic QR Service

Shared infrastructure used by the service package.

COMPONENTS:
    - config/: Environment-driven configuration (logging, resolution, app)
    - logger.py: Process-wide logging setup

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger(settings.service_name, settings.logging)
"""

__all__ = [
    "config",
    "logger",
]
