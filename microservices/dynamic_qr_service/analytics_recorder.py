"""
Analytics Recorder

Best-effort, fire-and-forget persistence of scan records. A failure here
is logged and counted, never raised to the resolution path.
"""

import asyncio
import logging
import uuid
from typing import Dict, Optional, Set

from .deadlines import RepositoryComponent
from .events import DynamicQREventPublisher
from .models import DeviceInfo, DynamicAnalyticsRecord, ResolutionEvent
from .protocols import DynamicQRRepositoryProtocol, UserAgentParserProtocol

logger = logging.getLogger(__name__)


class AnalyticsRecorder(RepositoryComponent):
    """Dispatches scan records to background tasks"""

    def __init__(
        self,
        repository: DynamicQRRepositoryProtocol,
        user_agent_parser: UserAgentParserProtocol,
        event_publisher: Optional[DynamicQREventPublisher] = None,
        timeout: Optional[float] = None,
        enabled: bool = True,
    ):
        super().__init__(repository, timeout)
        self.user_agent_parser = user_agent_parser
        self.event_publisher = event_publisher
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()
        self._counters = {"dispatched": 0, "recorded": 0, "failed": 0}

    def record(self, event: ResolutionEvent) -> None:
        """Schedule recording of one scan and return immediately"""
        if not self.enabled:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            self._counters["failed"] += 1
            logger.error(f"Failed to dispatch analytics for {event.code_id}: {e}")
            return

        task = loop.create_task(self._record(event))
        self._counters["dispatched"] += 1
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _record(self, event: ResolutionEvent) -> None:
        try:
            device = self._parse_device(event.context.user_agent)
            record = self.build_record(event, device)
            await self._call(self.repository.record_analytics(record))
            self._counters["recorded"] += 1

            if self.event_publisher:
                await self.event_publisher.publish_scanned(
                    code_id=event.code_id,
                    version_id=event.version_id,
                    ab_test_id=event.ab_test_id,
                    variant=event.variant.value if event.variant else None,
                    redirect_rule_id=event.redirect_rule_id,
                    device_type=record.device_type,
                    country=record.country,
                )
        except Exception as e:
            self._counters["failed"] += 1
            logger.error(f"Failed to record analytics for {event.code_id}: {e}")

    @staticmethod
    def build_record(event: ResolutionEvent, device: Optional[DeviceInfo]) -> DynamicAnalyticsRecord:
        context = event.context
        record = DynamicAnalyticsRecord(
            id=f"dqa_{uuid.uuid4().hex[:16]}",
            code_id=event.code_id,
            version_id=event.version_id,
            ab_test_id=event.ab_test_id,
            variant=event.variant,
            redirect_rule_id=event.redirect_rule_id,
            user_agent=context.user_agent,
            ip_address=context.ip_address,
            country=context.country,
            region=context.region,
            city=context.city,
            device_type=(device.device_type if device else None) or "desktop",
            browser=device.browser if device else None,
            os=device.os if device else None,
            referrer=context.referrer,
            session_id=context.session_id,
        )
        if context.timestamp is not None:
            record.scan_timestamp = context.timestamp
        return record

    def _parse_device(self, user_agent: Optional[str]) -> Optional[DeviceInfo]:
        if not user_agent:
            return None
        return self.user_agent_parser.parse(user_agent)

    def stats(self) -> Dict[str, int]:
        return {**self._counters, "pending": sum(1 for t in self._pending if not t.done())}

    async def drain(self) -> None:
        """Wait for every dispatched record to finish"""
        while True:
            pending = [t for t in self._pending if not t.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)


__all__ = ["AnalyticsRecorder"]
