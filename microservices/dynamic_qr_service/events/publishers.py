"""
Dynamic QR Event Publishers

Publishes events to the configured event bus.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import (
    DynamicQREventType,
    ScannedEventData,
    VersionActivatedEventData,
    ABTestStatusEventData,
)

logger = logging.getLogger(__name__)


class DynamicQREventPublisher:
    """Publisher for dynamic QR service events"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus
        self.source = "dynamic_qr_service"

    async def publish(
        self,
        event_type: DynamicQREventType,
        data: Dict[str, Any],
    ) -> bool:
        """
        Publish an event.

        Args:
            event_type: The event type enum
            data: Event data payload

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = {
                "event_type": event_type.value,
                "source": self.source,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "data": data,
            }

            await self.event_bus.publish_event(event)
            logger.debug(f"Published event: {event_type.value}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    async def publish_scanned(
        self,
        code_id: str,
        version_id: str,
        ab_test_id: Optional[str] = None,
        variant: Optional[str] = None,
        redirect_rule_id: Optional[str] = None,
        device_type: Optional[str] = None,
        country: Optional[str] = None,
    ) -> bool:
        """Publish dynamic_qr.scanned event"""
        data = ScannedEventData(
            code_id=code_id,
            version_id=version_id,
            ab_test_id=ab_test_id,
            variant=variant,
            redirect_rule_id=redirect_rule_id,
            device_type=device_type,
            country=country,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(DynamicQREventType.SCANNED, data.model_dump(mode="json"))

    async def publish_version_activated(
        self,
        code_id: str,
        version_id: str,
        version_number: int,
    ) -> bool:
        """Publish dynamic_qr.version.activated event"""
        data = VersionActivatedEventData(
            code_id=code_id,
            version_id=version_id,
            version_number=version_number,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(DynamicQREventType.VERSION_ACTIVATED, data.model_dump(mode="json"))

    async def publish_ab_test_status(
        self,
        event_type: DynamicQREventType,
        code_id: str,
        test_id: str,
        status: str,
        traffic_split: int,
        winner_variant: Optional[str] = None,
    ) -> bool:
        """Publish one of the dynamic_qr.ab_test.* events"""
        data = ABTestStatusEventData(
            code_id=code_id,
            test_id=test_id,
            status=status,
            traffic_split=traffic_split,
            winner_variant=winner_variant,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(event_type, data.model_dump(mode="json"))
