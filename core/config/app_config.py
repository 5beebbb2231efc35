#!/usr/bin/env python3
"""Dynamic QR service main configuration

Combines the logging and resolution sub-configs with the HTTP
settings of the service process.
"""
import os
from dataclasses import dataclass, field

from .logging_config import LoggingConfig
from .resolution_config import ResolutionConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class AppConfig:
    """Main dynamic QR service configuration with all sub-configs"""

    # Environment
    environment: str = "development"
    debug: bool = False

    # Service settings
    service_name: str = "dynamic_qr_service"
    service_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8260

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),

            service_name=os.getenv("SERVICE_NAME", "dynamic_qr_service"),
            service_version=os.getenv("SERVICE_VERSION", "1.0.0"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int(os.getenv("PORT", "8260"), 8260),

            logging=LoggingConfig.from_env(),
            resolution=ResolutionConfig.from_env(),
        )
