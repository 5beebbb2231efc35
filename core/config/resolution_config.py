#!/usr/bin/env python3
"""Resolution engine configuration

Settings for the dynamic QR resolution cascade: repository deadlines,
fallback target, A/B test exclusivity and analytics dispatch.
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ResolutionConfig:
    """Dynamic content resolution settings"""

    # Upper bound for a single repository call (seconds)
    repository_timeout_seconds: float = 5.0

    # Returned when a version has neither redirect_url nor a usable content url
    fallback_redirect_url: str = "https://example.com"

    # Refuse to start/resume a test while another one of the same code runs
    enforce_single_running_test: bool = False

    # Analytics and event dispatch
    analytics_enabled: bool = True
    events_enabled: bool = False

    # Event bus connection, used when events are enabled
    nats_url: str = "nats://localhost:4222"

    @classmethod
    def from_env(cls) -> 'ResolutionConfig':
        """Load resolution configuration from environment variables"""
        return cls(
            repository_timeout_seconds=_float(os.getenv("REPOSITORY_TIMEOUT_SECONDS", "5"), 5.0),
            fallback_redirect_url=os.getenv("FALLBACK_REDIRECT_URL", "https://example.com"),
            enforce_single_running_test=_bool(os.getenv("ENFORCE_SINGLE_RUNNING_TEST", "false")),
            analytics_enabled=_bool(os.getenv("ANALYTICS_ENABLED", "true")),
            events_enabled=_bool(os.getenv("EVENTS_ENABLED", "false")),
            nats_url=os.getenv("NATS_URL", "nats://localhost:4222"),
        )
