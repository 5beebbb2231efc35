"""
Dynamic QR Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from typing import Any, Dict, List, Optional, Protocol

from .models import (
    ABTest,
    ContentSchedule,
    ContentVersion,
    DeviceInfo,
    DynamicAnalyticsRecord,
    DynamicQRStats,
    RedirectRule,
)


# ====================
# Repository Protocol
# ====================


class DynamicQRRepositoryProtocol(Protocol):
    """Protocol for dynamic QR data repository"""

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    # Content versions
    async def create_content_version(self, version: ContentVersion) -> ContentVersion:
        """Persist a new content version"""
        ...

    async def find_content_version_by_id(self, version_id: str) -> Optional[ContentVersion]:
        """Get content version by ID"""
        ...

    async def find_content_versions_by_code(self, code_id: str) -> List[ContentVersion]:
        """List versions of a code in creation order"""
        ...

    async def get_active_content_version(self, code_id: str) -> Optional[ContentVersion]:
        """Get the active version of a code"""
        ...

    async def update_content_version(
        self, version_id: str, updates: Dict[str, Any]
    ) -> Optional[ContentVersion]:
        """Update content version fields"""
        ...

    async def activate_content_version(
        self, code_id: str, version_id: str
    ) -> Optional[ContentVersion]:
        """
        Make version_id the only active version of code_id.

        Must be a single atomic step: a SQL implementation issues one
        UPDATE ... SET is_active = (id = $2) WHERE code_id = $1.
        """
        ...

    async def delete_content_version(self, version_id: str) -> bool:
        """Delete content version"""
        ...

    # A/B tests
    async def create_ab_test(self, test: ABTest) -> ABTest:
        """Persist a new A/B test"""
        ...

    async def find_ab_test_by_id(self, test_id: str) -> Optional[ABTest]:
        """Get A/B test by ID"""
        ...

    async def find_ab_tests_by_code(self, code_id: str) -> List[ABTest]:
        """List A/B tests of a code in creation order"""
        ...

    async def update_ab_test(self, test_id: str, updates: Dict[str, Any]) -> Optional[ABTest]:
        """Update A/B test fields"""
        ...

    async def delete_ab_test(self, test_id: str) -> bool:
        """Delete A/B test"""
        ...

    # Redirect rules
    async def create_redirect_rule(self, rule: RedirectRule) -> RedirectRule:
        """Persist a new redirect rule"""
        ...

    async def find_redirect_rule_by_id(self, rule_id: str) -> Optional[RedirectRule]:
        """Get redirect rule by ID"""
        ...

    async def find_redirect_rules_by_code(self, code_id: str) -> List[RedirectRule]:
        """List redirect rules of a code in creation order"""
        ...

    async def update_redirect_rule(
        self, rule_id: str, updates: Dict[str, Any]
    ) -> Optional[RedirectRule]:
        """Update redirect rule fields"""
        ...

    async def delete_redirect_rule(self, rule_id: str) -> bool:
        """Delete redirect rule"""
        ...

    # Content schedules
    async def create_content_schedule(self, schedule: ContentSchedule) -> ContentSchedule:
        """Persist a new content schedule"""
        ...

    async def find_content_schedule_by_id(self, schedule_id: str) -> Optional[ContentSchedule]:
        """Get content schedule by ID"""
        ...

    async def find_content_schedules_by_code(self, code_id: str) -> List[ContentSchedule]:
        """List content schedules of a code in creation order"""
        ...

    async def update_content_schedule(
        self, schedule_id: str, updates: Dict[str, Any]
    ) -> Optional[ContentSchedule]:
        """Update content schedule fields"""
        ...

    async def delete_content_schedule(self, schedule_id: str) -> bool:
        """Delete content schedule"""
        ...

    # Analytics
    async def record_analytics(self, record: DynamicAnalyticsRecord) -> DynamicAnalyticsRecord:
        """Append an analytics record"""
        ...

    async def find_analytics_by_code(
        self, code_id: str, limit: int = 100, offset: int = 0
    ) -> List[DynamicAnalyticsRecord]:
        """List analytics records of a code, newest first"""
        ...

    async def get_stats(self, code_id: str) -> DynamicQRStats:
        """Aggregate statistics for a code"""
        ...


# ====================
# User Agent Parser Protocol
# ====================


class UserAgentParserProtocol(Protocol):
    """Protocol for user agent parsing"""

    def parse(self, user_agent: str) -> DeviceInfo:
        """Parse a user agent into device type, browser and os"""
        ...


# ====================
# Event Bus Protocol
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus operations"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event to the event bus"""
        ...

    async def close(self) -> None:
        """Close event bus connection"""
        ...


# ====================
# Custom Exceptions
# ====================


class DynamicQRServiceError(Exception):
    """Base exception for dynamic QR service errors"""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DynamicQRServiceError):
    """Raised when input is malformed or a required value is missing"""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.field = field


class NotFoundError(DynamicQRServiceError):
    """Raised when a referenced code, version, test, rule or schedule does not exist"""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        message = f"{resource} not found" if resource_id is None else f"{resource} not found: {resource_id}"
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class BusinessLogicError(DynamicQRServiceError):
    """Raised for a valid but disallowed state transition"""

    status_code = 400
    code = "BUSINESS_LOGIC_ERROR"


class NoActiveContentError(BusinessLogicError):
    """Raised when the resolution cascade yields no version"""

    status_code = 404
    code = "NO_ACTIVE_CONTENT"

    def __init__(self, code_id: str):
        super().__init__("No active content version found", details={"code_id": code_id})
        self.code_id = code_id


__all__ = [
    "DynamicQRRepositoryProtocol",
    "UserAgentParserProtocol",
    "EventBusProtocol",
    "DynamicQRServiceError",
    "ValidationError",
    "NotFoundError",
    "BusinessLogicError",
    "NoActiveContentError",
]
