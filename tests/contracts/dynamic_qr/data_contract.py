"""
Dynamic QR Service Data Contract

Re-exports the service models and provides test data factories for
content versions, A/B tests, redirect rules, schedules and resolution
contexts.

All dynamic QR tests should build their data through these factories.
"""

import random
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.dynamic_qr_service.models import (
    ABTest,
    ABTestCreateRequest,
    ABTestStatus,
    ABTestUpdateRequest,
    ContentSchedule,
    ContentScheduleCreateRequest,
    ContentScheduleUpdateRequest,
    ContentVersion,
    ContentVersionCreateRequest,
    ContentVersionUpdateRequest,
    CustomConditions,
    DeviceConditions,
    DeviceInfo,
    DynamicAnalyticsRecord,
    DynamicQRStats,
    GeographicConditions,
    RedirectRule,
    RedirectRuleCreateRequest,
    RedirectRuleUpdateRequest,
    RepeatPattern,
    ResolutionContext,
    ResolutionEvent,
    ResolutionResult,
    ResolutionSource,
    RuleType,
    ServiceResponse,
    TimeConditions,
    TimeRange,
    Variant,
)


# =============================================================================
# USER AGENTS
# =============================================================================

DESKTOP_CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_SAFARI_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPAD_SAFARI_UA = (
    "Mozilla/5.0 (iPad; CPU OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
)
GOOGLEBOT_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


# =============================================================================
# TEST DATA FACTORY
# =============================================================================

class DynamicQRTestDataFactory:
    """Factory for generating test data for dynamic QR service tests

    Usage:
        factory = DynamicQRTestDataFactory()
        version = factory.make_content_version(code_id="qr_1", is_active=True)
        test = factory.make_ab_test(code_id="qr_1", variant_a_version_id=..., variant_b_version_id=...)
    """

    @staticmethod
    def make_id(prefix: str) -> str:
        """Generate a unique ID with prefix"""
        return f"{prefix}_{uuid4().hex[:16]}"

    @staticmethod
    def make_code_id() -> str:
        """Generate QR code ID"""
        return f"qr_{uuid4().hex[:16]}"

    @staticmethod
    def make_session_id() -> str:
        """Generate random session ID"""
        return "".join(random.choices(string.ascii_letters + string.digits, k=24))

    @staticmethod
    def make_url(label: Optional[str] = None) -> str:
        return f"https://{label or uuid4().hex[:8]}.example"

    # ====================
    # Entities
    # ====================

    @classmethod
    def make_content_version(
        cls,
        code_id: Optional[str] = None,
        version_number: int = 1,
        content: Any = None,
        redirect_url: Optional[str] = None,
        is_active: bool = False,
        created_at: Optional[datetime] = None,
    ) -> ContentVersion:
        """Generate content version"""
        now = created_at or datetime.now(timezone.utc)
        return ContentVersion(
            id=cls.make_id("ver"),
            code_id=code_id or cls.make_code_id(),
            version_number=version_number,
            content=content if content is not None else {"title": f"Version {version_number}"},
            redirect_url=redirect_url,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def make_ab_test(
        cls,
        code_id: str,
        variant_a_version_id: str,
        variant_b_version_id: str,
        traffic_split: int = 50,
        status: ABTestStatus = ABTestStatus.DRAFT,
    ) -> ABTest:
        """Generate A/B test"""
        return ABTest(
            id=cls.make_id("abt"),
            code_id=code_id,
            test_name=f"Test {random.randint(1, 1000)}",
            variant_a_version_id=variant_a_version_id,
            variant_b_version_id=variant_b_version_id,
            traffic_split=traffic_split,
            status=status,
        )

    @classmethod
    def make_redirect_rule(
        cls,
        code_id: str,
        target_version_id: str,
        rule_type: RuleType,
        conditions: Dict[str, Any],
        priority: int = 1,
        is_enabled: bool = True,
    ) -> RedirectRule:
        """Generate redirect rule of any type"""
        return RedirectRule(
            id=cls.make_id("rul"),
            code_id=code_id,
            rule_name=f"{rule_type.value} rule",
            rule_type=rule_type,
            conditions={**conditions, "rule_type": rule_type.value},
            target_version_id=target_version_id,
            priority=priority,
            is_enabled=is_enabled,
        )

    @classmethod
    def make_geographic_rule(
        cls,
        code_id: str,
        target_version_id: str,
        countries: Optional[List[str]] = None,
        priority: int = 1,
    ) -> RedirectRule:
        """Generate geographic redirect rule"""
        return cls.make_redirect_rule(
            code_id,
            target_version_id,
            RuleType.GEOGRAPHIC,
            {"countries": countries if countries is not None else ["SE"]},
            priority=priority,
        )

    @classmethod
    def make_content_schedule(
        cls,
        code_id: str,
        version_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        repeat_pattern: RepeatPattern = RepeatPattern.NONE,
        repeat_days: Optional[List[int]] = None,
        tz_name: str = "UTC",
        is_active: bool = True,
        created_at: Optional[datetime] = None,
    ) -> ContentSchedule:
        """Generate content schedule"""
        now = datetime.now(timezone.utc)
        return ContentSchedule(
            id=cls.make_id("sch"),
            code_id=code_id,
            version_id=version_id,
            schedule_name=f"Schedule {random.randint(1, 1000)}",
            start_time=start_time or now - timedelta(days=1),
            end_time=end_time,
            repeat_pattern=repeat_pattern,
            repeat_days=repeat_days,
            timezone=tz_name,
            is_active=is_active,
            created_at=created_at or now,
            updated_at=created_at or now,
        )

    @classmethod
    def make_context(
        cls,
        session_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        country: Optional[str] = None,
        region: Optional[str] = None,
        city: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> ResolutionContext:
        """Generate resolution context"""
        return ResolutionContext(
            session_id=session_id,
            ip_address=ip_address,
            user_agent=user_agent,
            country=country,
            region=region,
            city=city,
            timestamp=timestamp,
        )

    # ====================
    # Requests
    # ====================

    @classmethod
    def make_version_create_request(
        cls,
        redirect_url: Optional[str] = None,
        content: Any = None,
        is_active: bool = False,
    ) -> ContentVersionCreateRequest:
        """Generate content version create request"""
        return ContentVersionCreateRequest(
            content=content if content is not None else {"title": "Landing"},
            redirect_url=redirect_url,
            is_active=is_active,
            created_by=cls.make_id("usr"),
        )

    @classmethod
    def make_ab_test_create_request(
        cls,
        variant_a_version_id: str,
        variant_b_version_id: str,
        traffic_split: Optional[int] = None,
    ) -> ABTestCreateRequest:
        """Generate A/B test create request"""
        return ABTestCreateRequest(
            test_name="Landing page test",
            variant_a_version_id=variant_a_version_id,
            variant_b_version_id=variant_b_version_id,
            traffic_split=traffic_split,
        )

    @classmethod
    def make_rule_create_request(
        cls,
        target_version_id: str,
        rule_type: RuleType = RuleType.GEOGRAPHIC,
        conditions: Optional[Dict[str, Any]] = None,
        priority: Optional[int] = None,
    ) -> RedirectRuleCreateRequest:
        """Generate redirect rule create request"""
        return RedirectRuleCreateRequest(
            rule_name=f"{rule_type.value} rule",
            rule_type=rule_type,
            conditions=conditions if conditions is not None else {"countries": ["SE"]},
            target_version_id=target_version_id,
            priority=priority,
        )

    @classmethod
    def make_schedule_create_request(
        cls,
        version_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        repeat_pattern: Optional[RepeatPattern] = None,
        repeat_days: Optional[List[int]] = None,
        tz_name: Optional[str] = None,
    ) -> ContentScheduleCreateRequest:
        """Generate content schedule create request"""
        return ContentScheduleCreateRequest(
            version_id=version_id,
            schedule_name="Campaign window",
            start_time=start_time or datetime.now(timezone.utc) - timedelta(hours=1),
            end_time=end_time,
            repeat_pattern=repeat_pattern,
            repeat_days=repeat_days,
            timezone=tz_name,
        )


__all__ = [
    # Models
    "ABTest",
    "ABTestCreateRequest",
    "ABTestStatus",
    "ABTestUpdateRequest",
    "ContentSchedule",
    "ContentScheduleCreateRequest",
    "ContentScheduleUpdateRequest",
    "ContentVersion",
    "ContentVersionCreateRequest",
    "ContentVersionUpdateRequest",
    "CustomConditions",
    "DeviceConditions",
    "DeviceInfo",
    "DynamicAnalyticsRecord",
    "DynamicQRStats",
    "GeographicConditions",
    "RedirectRule",
    "RedirectRuleCreateRequest",
    "RedirectRuleUpdateRequest",
    "RepeatPattern",
    "ResolutionContext",
    "ResolutionEvent",
    "ResolutionResult",
    "ResolutionSource",
    "RuleType",
    "ServiceResponse",
    "TimeConditions",
    "TimeRange",
    "Variant",
    # User agents
    "DESKTOP_CHROME_UA",
    "IPHONE_SAFARI_UA",
    "IPAD_SAFARI_UA",
    "GOOGLEBOT_UA",
    # Test Data
    "DynamicQRTestDataFactory",
]
