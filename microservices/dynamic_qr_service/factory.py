"""
Dynamic QR Service Factory

Factory for creating dynamic QR service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import AppConfig, get_settings
from core.nats_client import NATSEventBus

from .ab_test_engine import ABTestEngine
from .analytics_recorder import AnalyticsRecorder
from .content_scheduler import ContentScheduler
from .content_version_store import ContentVersionStore
from .dynamic_qr_repository import InMemoryDynamicQRRepository
from .dynamic_qr_service import DynamicQRService
from .events.publishers import DynamicQREventPublisher
from .protocols import DynamicQRRepositoryProtocol, EventBusProtocol, UserAgentParserProtocol
from .redirect_rule_evaluator import RedirectRuleEvaluator
from .resolution_orchestrator import ResolutionOrchestrator
from .user_agent_parser import UserAgentsParser

logger = logging.getLogger(__name__)


class DynamicQRServiceFactory:
    """Factory for creating dynamic QR service components"""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        repository: Optional[DynamicQRRepositoryProtocol] = None,
        user_agent_parser: Optional[UserAgentParserProtocol] = None,
        event_bus: Optional[EventBusProtocol] = None,
    ):
        self.config = config or get_settings()
        self._repository = repository
        self._user_agent_parser = user_agent_parser
        self._event_bus = event_bus
        self._event_publisher: Optional[DynamicQREventPublisher] = None
        self._analytics_recorder: Optional[AnalyticsRecorder] = None
        self._orchestrator: Optional[ResolutionOrchestrator] = None
        self._service: Optional[DynamicQRService] = None

    async def initialize(self) -> None:
        """Initialize all components"""
        logger.info("Initializing Dynamic QR Service components...")
        resolution = self.config.resolution
        timeout = resolution.repository_timeout_seconds

        # Initialize repository
        if self._repository is None:
            self._repository = InMemoryDynamicQRRepository()
        await self._repository.initialize()

        if self._user_agent_parser is None:
            self._user_agent_parser = UserAgentsParser()

        # Event publisher is optional
        if resolution.events_enabled:
            if self._event_bus is None:
                await self._connect_event_bus()
            if self._event_bus is not None:
                self._event_publisher = DynamicQREventPublisher(self._event_bus)
                logger.info("Event publishing enabled")

        version_store = ContentVersionStore(
            self._repository, event_publisher=self._event_publisher, timeout=timeout
        )
        ab_test_engine = ABTestEngine(
            self._repository,
            event_publisher=self._event_publisher,
            timeout=timeout,
            enforce_single_running_test=resolution.enforce_single_running_test,
        )
        rule_evaluator = RedirectRuleEvaluator(
            self._repository, self._user_agent_parser, timeout=timeout
        )
        scheduler = ContentScheduler(self._repository, timeout=timeout)
        self._analytics_recorder = AnalyticsRecorder(
            self._repository,
            self._user_agent_parser,
            event_publisher=self._event_publisher,
            timeout=timeout,
            enabled=resolution.analytics_enabled,
        )
        self._orchestrator = ResolutionOrchestrator(
            version_store=version_store,
            ab_test_engine=ab_test_engine,
            rule_evaluator=rule_evaluator,
            scheduler=scheduler,
            analytics_recorder=self._analytics_recorder,
            fallback_redirect_url=resolution.fallback_redirect_url,
        )

        # Initialize main service
        self._service = DynamicQRService(
            repository=self._repository,
            version_store=version_store,
            ab_test_engine=ab_test_engine,
            rule_evaluator=rule_evaluator,
            scheduler=scheduler,
            orchestrator=self._orchestrator,
            analytics_recorder=self._analytics_recorder,
            timeout=timeout,
        )

        logger.info("Dynamic QR Service components initialized")

    async def _connect_event_bus(self) -> None:
        """Connect to NATS; events stay off when the server is unreachable"""
        bus = NATSEventBus(
            service_name=self.config.service_name,
            url=self.config.resolution.nats_url,
        )
        try:
            await bus.connect()
            self._event_bus = bus
            logger.info("NATS client connected")
        except Exception as e:
            logger.warning(f"NATS client initialization failed: {e}")
            self._event_bus = None

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Dynamic QR Service components...")

        if self._analytics_recorder:
            await self._analytics_recorder.drain()

        if self._event_bus:
            await self._event_bus.close()

        if self._repository:
            await self._repository.close()

        logger.info("Dynamic QR Service components closed")

    @property
    def repository(self) -> DynamicQRRepositoryProtocol:
        """Get dynamic QR repository"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def service(self) -> DynamicQRService:
        """Get dynamic QR service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def orchestrator(self) -> ResolutionOrchestrator:
        """Get resolution orchestrator"""
        if not self._orchestrator:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._orchestrator

    @property
    def analytics_recorder(self) -> Optional[AnalyticsRecorder]:
        """Get analytics recorder"""
        return self._analytics_recorder

    @property
    def event_bus(self) -> Optional[EventBusProtocol]:
        """Get event bus"""
        return self._event_bus

    @property
    def event_publisher(self) -> Optional[DynamicQREventPublisher]:
        """Get event publisher"""
        return self._event_publisher


# Global factory instance
_factory: Optional[DynamicQRServiceFactory] = None


async def get_factory() -> DynamicQRServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = DynamicQRServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "DynamicQRServiceFactory",
    "get_factory",
    "close_factory",
]
