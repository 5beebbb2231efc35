"""
Dynamic QR Service Events

Event models and publisher for dynamic QR service.
"""

from .models import (
    DynamicQREventType,
    ScannedEventData,
    VersionActivatedEventData,
    ABTestStatusEventData,
)
from .publishers import DynamicQREventPublisher

__all__ = [
    # Event Types
    "DynamicQREventType",
    # Event Data Models
    "ScannedEventData",
    "VersionActivatedEventData",
    "ABTestStatusEventData",
    # Publisher
    "DynamicQREventPublisher",
]
