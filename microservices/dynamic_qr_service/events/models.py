"""
Dynamic QR Event Data Models

Event type definitions and data structures for dynamic QR service events.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class DynamicQREventType(str, Enum):
    """
    Events published by dynamic_qr_service.

    Other services should reference these when subscribing.
    """
    # Resolution events
    SCANNED = "dynamic_qr.scanned"

    # Content version events
    VERSION_ACTIVATED = "dynamic_qr.version.activated"

    # A/B test lifecycle events
    AB_TEST_STARTED = "dynamic_qr.ab_test.started"
    AB_TEST_PAUSED = "dynamic_qr.ab_test.paused"
    AB_TEST_RESUMED = "dynamic_qr.ab_test.resumed"
    AB_TEST_COMPLETED = "dynamic_qr.ab_test.completed"


# =============================================================================
# Event Data Models - Published Events
# =============================================================================


class ScannedEventData(BaseModel):
    """dynamic_qr.scanned event data"""
    code_id: str = Field(..., description="Code ID")
    version_id: str = Field(..., description="Resolved content version")
    ab_test_id: Optional[str] = Field(None, description="Running test that decided the version")
    variant: Optional[str] = Field(None, description="A or B")
    redirect_rule_id: Optional[str] = Field(None, description="Rule that decided the version")
    device_type: Optional[str] = Field(None, description="Parsed device type")
    country: Optional[str] = Field(None, description="Visitor country")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class VersionActivatedEventData(BaseModel):
    """dynamic_qr.version.activated event data"""
    code_id: str = Field(..., description="Code ID")
    version_id: str = Field(..., description="Activated content version")
    version_number: int = Field(..., description="Version number")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class ABTestStatusEventData(BaseModel):
    """dynamic_qr.ab_test.* event data"""
    code_id: str = Field(..., description="Code ID")
    test_id: str = Field(..., description="A/B test ID")
    status: str = Field(..., description="New test status")
    traffic_split: int = Field(..., description="Percentage routed to variant A")
    winner_variant: Optional[str] = Field(None, description="Winner recorded on completion")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")
