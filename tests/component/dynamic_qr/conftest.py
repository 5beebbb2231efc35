"""
Component Test Fixtures for Dynamic QR Service

Wires the real components against the in-memory repository, with a fake
user agent parser and a recording event bus.
"""

import pytest
from typing import Any, Dict, List

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.dynamic_qr_service.ab_test_engine import ABTestEngine
from microservices.dynamic_qr_service.analytics_recorder import AnalyticsRecorder
from microservices.dynamic_qr_service.content_scheduler import ContentScheduler
from microservices.dynamic_qr_service.content_version_store import ContentVersionStore
from microservices.dynamic_qr_service.dynamic_qr_repository import InMemoryDynamicQRRepository
from microservices.dynamic_qr_service.dynamic_qr_service import DynamicQRService
from microservices.dynamic_qr_service.events import DynamicQREventPublisher
from microservices.dynamic_qr_service.redirect_rule_evaluator import RedirectRuleEvaluator
from microservices.dynamic_qr_service.resolution_orchestrator import ResolutionOrchestrator
from tests.contracts.dynamic_qr.data_contract import DeviceInfo, DynamicQRTestDataFactory


# ====================
# Fakes
# ====================


class FakeUserAgentParser:
    """Keyword based parser: 'iphone' is mobile Safari, anything else desktop Chrome"""

    def __init__(self):
        self.calls: List[str] = []

    def parse(self, user_agent: str) -> DeviceInfo:
        self.calls.append(user_agent)
        if "iphone" in user_agent.lower():
            return DeviceInfo(device_type="mobile", browser="Mobile Safari", os="iOS")
        if "bare" in user_agent.lower():
            return DeviceInfo()
        return DeviceInfo(device_type="desktop", browser="Chrome", os="Windows")


class MockEventBus:
    """Event bus that records published events"""

    def __init__(self):
        self.published_events: List[Dict[str, Any]] = []

    async def publish_event(self, event: Dict[str, Any]) -> bool:
        self.published_events.append(event)
        return True

    async def close(self) -> None:
        pass

    def get_events_by_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.published_events if e["event_type"] == event_type]


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Provide test data factory"""
    return DynamicQRTestDataFactory()


@pytest.fixture
def code_id(factory):
    return factory.make_code_id()


@pytest.fixture
def repository():
    """Provide in-memory repository"""
    return InMemoryDynamicQRRepository()


@pytest.fixture
def user_agent_parser():
    return FakeUserAgentParser()


@pytest.fixture
def event_bus():
    return MockEventBus()


@pytest.fixture
def event_publisher(event_bus):
    return DynamicQREventPublisher(event_bus)


@pytest.fixture
def version_store(repository, event_publisher):
    return ContentVersionStore(repository, event_publisher=event_publisher, timeout=1.0)


@pytest.fixture
def ab_test_engine(repository, event_publisher):
    return ABTestEngine(repository, event_publisher=event_publisher, timeout=1.0)


@pytest.fixture
def rule_evaluator(repository, user_agent_parser):
    return RedirectRuleEvaluator(repository, user_agent_parser, timeout=1.0)


@pytest.fixture
def scheduler(repository):
    return ContentScheduler(repository, timeout=1.0)


@pytest.fixture
def analytics_recorder(repository, user_agent_parser, event_publisher):
    return AnalyticsRecorder(
        repository, user_agent_parser, event_publisher=event_publisher, timeout=1.0
    )


@pytest.fixture
def orchestrator(version_store, ab_test_engine, rule_evaluator, scheduler, analytics_recorder):
    return ResolutionOrchestrator(
        version_store=version_store,
        ab_test_engine=ab_test_engine,
        rule_evaluator=rule_evaluator,
        scheduler=scheduler,
        analytics_recorder=analytics_recorder,
    )


@pytest.fixture
def service(
    repository,
    version_store,
    ab_test_engine,
    rule_evaluator,
    scheduler,
    orchestrator,
    analytics_recorder,
):
    """Provide the public facade"""
    return DynamicQRService(
        repository=repository,
        version_store=version_store,
        ab_test_engine=ab_test_engine,
        rule_evaluator=rule_evaluator,
        scheduler=scheduler,
        orchestrator=orchestrator,
        analytics_recorder=analytics_recorder,
        timeout=1.0,
    )
