"""
NATS Client for Python Microservices
Provides event publishing over a plain NATS connection (nats-py).
"""

import json
import logging
from typing import Any, Dict, Optional

import nats
from nats.aio.client import Client as NATS

logger = logging.getLogger(__name__)


class NATSEventBus:
    """
    NATS event bus.

    Events are dicts carrying an ``event_type``; that value is the subject
    the event is published on, e.g. ``dynamic_qr.scanned``.
    """

    def __init__(self, service_name: str, url: str = "nats://localhost:4222", connect_timeout: float = 2.0):
        self.service_name = service_name
        self.url = url
        self.connect_timeout = connect_timeout
        self._client: Optional[NATS] = None

        logger.info(f"NATS EventBus initialized: {self.url}")

    @property
    def is_connected(self) -> bool:
        return bool(self._client and self._client.is_connected)

    async def connect(self):
        """Connect to the NATS server"""
        try:
            self._client = await nats.connect(
                servers=[self.url],
                name=self.service_name,
                connect_timeout=self.connect_timeout,
                max_reconnect_attempts=0,
                allow_reconnect=False,
            )
            logger.info(f"Connected to NATS at {self.url} as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS at {self.url}: {e}")
            raise

    async def publish_event(self, event: Dict[str, Any]) -> bool:
        """Publish an event on the subject named by its event_type"""
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            subject = event["event_type"]
            data = json.dumps(event, default=str).encode()
            await self._client.publish(subject, data)
            logger.debug(f"Published event {subject} to NATS")
            return True
        except Exception as e:
            logger.error(f"Error publishing event to NATS: {e}")
            return False

    async def close(self):
        """Drain pending messages and close the connection"""
        if self._client and not self._client.is_closed:
            await self._client.drain()
            logger.info("NATS connection closed")
        self._client = None


__all__ = ["NATSEventBus"]
