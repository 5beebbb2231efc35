"""
Component Tests for Analytics Recorder

Tests fire-and-forget recording, device enrichment and failure isolation.
"""

import logging
from datetime import datetime, timezone

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.dynamic_qr_service.analytics_recorder import AnalyticsRecorder
from microservices.dynamic_qr_service.dynamic_qr_repository import InMemoryDynamicQRRepository
from tests.contracts.dynamic_qr.data_contract import ResolutionEvent, Variant


class FailingRepository(InMemoryDynamicQRRepository):
    async def record_analytics(self, record):
        raise ConnectionError("analytics store unavailable")


def _event(code_id, factory, **context):
    return ResolutionEvent(
        code_id=code_id,
        version_id="ver_1",
        ab_test_id="abt_1",
        variant=Variant.B,
        context=factory.make_context(**context),
    )


class TestRecord:
    """Tests for AnalyticsRecorder.record"""

    @pytest.mark.asyncio
    async def test_record_persists_after_drain(self, analytics_recorder, repository, factory, code_id):
        # When
        analytics_recorder.record(
            _event(code_id, factory, user_agent="Mozilla/5.0 (iPhone)", country="SE", session_id="s1")
        )
        await analytics_recorder.drain()

        # Then
        records = await repository.find_analytics_by_code(code_id)
        assert len(records) == 1
        record = records[0]
        assert record.id.startswith("dqa_")
        assert record.version_id == "ver_1"
        assert record.variant == Variant.B
        assert record.device_type == "mobile"
        assert record.browser == "Mobile Safari"
        assert record.country == "SE"
        assert record.session_id == "s1"
        assert analytics_recorder.stats() == {
            "dispatched": 1,
            "recorded": 1,
            "failed": 0,
            "pending": 0,
        }

    @pytest.mark.asyncio
    async def test_device_type_defaults_to_desktop(self, analytics_recorder, repository, factory, code_id):
        analytics_recorder.record(_event(code_id, factory))
        analytics_recorder.record(_event(code_id, factory, user_agent="bare"))
        await analytics_recorder.drain()

        records = await repository.find_analytics_by_code(code_id)
        assert [r.device_type for r in records] == ["desktop", "desktop"]

    @pytest.mark.asyncio
    async def test_context_timestamp_used(self, analytics_recorder, repository, factory, code_id):
        scanned_at = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

        analytics_recorder.record(_event(code_id, factory, timestamp=scanned_at))
        await analytics_recorder.drain()

        records = await repository.find_analytics_by_code(code_id)
        assert records[0].scan_timestamp == scanned_at

    @pytest.mark.asyncio
    async def test_scanned_event_published(self, analytics_recorder, event_bus, factory, code_id):
        analytics_recorder.record(_event(code_id, factory, country="SE"))
        await analytics_recorder.drain()

        events = event_bus.get_events_by_type("dynamic_qr.scanned")
        assert len(events) == 1
        assert events[0]["data"]["code_id"] == code_id
        assert events[0]["data"]["variant"] == "B"


class TestFailureIsolation:
    """Recording failures never reach the caller"""

    @pytest.mark.asyncio
    async def test_repository_failure_counted(self, user_agent_parser, factory, code_id, caplog):
        recorder = AnalyticsRecorder(FailingRepository(), user_agent_parser, timeout=1.0)

        with caplog.at_level(logging.ERROR):
            recorder.record(_event(code_id, factory))
            await recorder.drain()

        assert recorder.stats()["failed"] == 1
        assert recorder.stats()["recorded"] == 0
        assert "analytics store unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_disabled_recorder_is_noop(self, repository, user_agent_parser, factory, code_id):
        recorder = AnalyticsRecorder(repository, user_agent_parser, enabled=False)

        recorder.record(_event(code_id, factory))
        await recorder.drain()

        assert repository.analytics == []
        assert recorder.stats()["dispatched"] == 0

    def test_no_running_loop(self, repository, user_agent_parser, factory, code_id):
        recorder = AnalyticsRecorder(repository, user_agent_parser)

        recorder.record(_event(code_id, factory))

        assert recorder.stats()["failed"] == 1
        assert repository.analytics == []
