"""
Dynamic QR Service Data Repository

In-memory implementation of DynamicQRRepositoryProtocol. Records are kept
in insertion order and handed out as deep copies, so callers never share
state with the store.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from .models import (
    ABTest,
    ABTestStatus,
    ContentSchedule,
    ContentVersion,
    DynamicAnalyticsRecord,
    DynamicQRStats,
    RedirectRule,
    VersionPerformance,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _copy(record: Optional[M]) -> Optional[M]:
    return record.model_copy(deep=True) if record is not None else None


def _apply(record: M, updates: Dict[str, Any]) -> M:
    """Merge a patch into a record and re-validate it"""
    model: Type[M] = type(record)
    return model.model_validate({**record.model_dump(), **updates})


class InMemoryDynamicQRRepository:
    """Dynamic QR data repository - in-memory (asyncio)"""

    def __init__(self):
        self.versions: Dict[str, ContentVersion] = {}
        self.ab_tests: Dict[str, ABTest] = {}
        self.redirect_rules: Dict[str, RedirectRule] = {}
        self.schedules: Dict[str, ContentSchedule] = {}
        self.analytics: List[DynamicAnalyticsRecord] = []
        self._activation_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def initialize(self):
        """Initialize repository"""
        logger.info("Dynamic QR repository initialized (in-memory)")

    async def close(self):
        """Close repository"""
        logger.info("Dynamic QR repository closed")

    async def health_check(self) -> bool:
        return True

    # ====================
    # Content Versions
    # ====================

    async def create_content_version(self, version: ContentVersion) -> ContentVersion:
        self.versions[version.id] = _copy(version)
        return _copy(version)

    async def find_content_version_by_id(self, version_id: str) -> Optional[ContentVersion]:
        return _copy(self.versions.get(version_id))

    async def find_content_versions_by_code(self, code_id: str) -> List[ContentVersion]:
        return [_copy(v) for v in self.versions.values() if v.code_id == code_id]

    async def get_active_content_version(self, code_id: str) -> Optional[ContentVersion]:
        for version in self.versions.values():
            if version.code_id == code_id and version.is_active:
                return _copy(version)
        return None

    async def update_content_version(
        self, version_id: str, updates: Dict[str, Any]
    ) -> Optional[ContentVersion]:
        version = self.versions.get(version_id)
        if version is None:
            return None
        self.versions[version_id] = _apply(version, updates)
        return _copy(self.versions[version_id])

    async def activate_content_version(
        self, code_id: str, version_id: str
    ) -> Optional[ContentVersion]:
        async with self._activation_locks[code_id]:
            target = self.versions.get(version_id)
            if target is None or target.code_id != code_id:
                return None

            now = datetime.now(timezone.utc)
            for vid, version in list(self.versions.items()):
                if version.code_id != code_id:
                    continue
                if vid == version_id:
                    self.versions[vid] = _apply(
                        version, {"is_active": True, "activated_at": now, "updated_at": now}
                    )
                elif version.is_active:
                    self.versions[vid] = _apply(
                        version, {"is_active": False, "deactivated_at": now, "updated_at": now}
                    )
            return _copy(self.versions[version_id])

    async def delete_content_version(self, version_id: str) -> bool:
        return self.versions.pop(version_id, None) is not None

    # ====================
    # A/B Tests
    # ====================

    async def create_ab_test(self, test: ABTest) -> ABTest:
        self.ab_tests[test.id] = _copy(test)
        return _copy(test)

    async def find_ab_test_by_id(self, test_id: str) -> Optional[ABTest]:
        return _copy(self.ab_tests.get(test_id))

    async def find_ab_tests_by_code(self, code_id: str) -> List[ABTest]:
        return [_copy(t) for t in self.ab_tests.values() if t.code_id == code_id]

    async def update_ab_test(self, test_id: str, updates: Dict[str, Any]) -> Optional[ABTest]:
        test = self.ab_tests.get(test_id)
        if test is None:
            return None
        self.ab_tests[test_id] = _apply(test, updates)
        return _copy(self.ab_tests[test_id])

    async def delete_ab_test(self, test_id: str) -> bool:
        return self.ab_tests.pop(test_id, None) is not None

    # ====================
    # Redirect Rules
    # ====================

    async def create_redirect_rule(self, rule: RedirectRule) -> RedirectRule:
        self.redirect_rules[rule.id] = _copy(rule)
        return _copy(rule)

    async def find_redirect_rule_by_id(self, rule_id: str) -> Optional[RedirectRule]:
        return _copy(self.redirect_rules.get(rule_id))

    async def find_redirect_rules_by_code(self, code_id: str) -> List[RedirectRule]:
        return [_copy(r) for r in self.redirect_rules.values() if r.code_id == code_id]

    async def update_redirect_rule(
        self, rule_id: str, updates: Dict[str, Any]
    ) -> Optional[RedirectRule]:
        rule = self.redirect_rules.get(rule_id)
        if rule is None:
            return None
        self.redirect_rules[rule_id] = _apply(rule, updates)
        return _copy(self.redirect_rules[rule_id])

    async def delete_redirect_rule(self, rule_id: str) -> bool:
        return self.redirect_rules.pop(rule_id, None) is not None

    # ====================
    # Content Schedules
    # ====================

    async def create_content_schedule(self, schedule: ContentSchedule) -> ContentSchedule:
        self.schedules[schedule.id] = _copy(schedule)
        return _copy(schedule)

    async def find_content_schedule_by_id(self, schedule_id: str) -> Optional[ContentSchedule]:
        return _copy(self.schedules.get(schedule_id))

    async def find_content_schedules_by_code(self, code_id: str) -> List[ContentSchedule]:
        return [_copy(s) for s in self.schedules.values() if s.code_id == code_id]

    async def update_content_schedule(
        self, schedule_id: str, updates: Dict[str, Any]
    ) -> Optional[ContentSchedule]:
        schedule = self.schedules.get(schedule_id)
        if schedule is None:
            return None
        self.schedules[schedule_id] = _apply(schedule, updates)
        return _copy(self.schedules[schedule_id])

    async def delete_content_schedule(self, schedule_id: str) -> bool:
        return self.schedules.pop(schedule_id, None) is not None

    # ====================
    # Analytics
    # ====================

    async def record_analytics(self, record: DynamicAnalyticsRecord) -> DynamicAnalyticsRecord:
        self.analytics.append(_copy(record))
        return _copy(record)

    async def find_analytics_by_code(
        self, code_id: str, limit: int = 100, offset: int = 0
    ) -> List[DynamicAnalyticsRecord]:
        records = [r for r in reversed(self.analytics) if r.code_id == code_id]
        return [_copy(r) for r in records[offset : offset + limit]]

    async def get_stats(self, code_id: str) -> DynamicQRStats:
        versions = [v for v in self.versions.values() if v.code_id == code_id]
        records = [r for r in self.analytics if r.code_id == code_id]
        active = next((v for v in versions if v.is_active), None)

        performance = []
        for version in versions:
            scans = [r for r in records if r.version_id == version.id]
            conversions = sum(1 for r in scans if r.conversion_event)
            performance.append(
                VersionPerformance(
                    version_id=version.id,
                    version_number=version.version_number,
                    scans=len(scans),
                    conversion_rate=round(conversions / len(scans), 4) if scans else 0.0,
                )
            )

        return DynamicQRStats(
            code_id=code_id,
            total_versions=len(versions),
            active_version=active.version_number if active else None,
            total_scans=len(records),
            versions_performance=performance,
            ab_tests_running=sum(
                1 for t in self.ab_tests.values()
                if t.code_id == code_id and t.status == ABTestStatus.RUNNING
            ),
            redirect_rules_active=sum(
                1 for r in self.redirect_rules.values() if r.code_id == code_id and r.is_enabled
            ),
            scheduled_content=sum(
                1 for s in self.schedules.values() if s.code_id == code_id and s.is_active
            ),
        )


__all__ = ["InMemoryDynamicQRRepository"]
