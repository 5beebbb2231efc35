"""
A/B Test Engine

Lifecycle of A/B tests (draft -> running <-> paused -> completed) and the
stateless, session-stable variant assignment used during resolution.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .deadlines import RepositoryComponent
from .events import DynamicQREventPublisher, DynamicQREventType
from .models import (
    ABTest,
    ABTestCreateRequest,
    ABTestStatus,
    ABTestUpdateRequest,
    ResolutionContext,
    Variant,
)
from .protocols import (
    BusinessLogicError,
    DynamicQRRepositoryProtocol,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TRAFFIC_SPLIT = 50


def stable_hash(value: str) -> int:
    """
    31-multiplier rolling hash over UTF-16 code units.

    Each step wraps to a signed 32-bit integer; the absolute value of the
    final result is returned. "s1" hashes to 3614.
    """
    h = 0
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def assignment_key(context: ResolutionContext) -> str:
    return context.session_id or context.ip_address or "default"


class ABTestEngine(RepositoryComponent):
    """A/B test lifecycle and variant assignment"""

    def __init__(
        self,
        repository: DynamicQRRepositoryProtocol,
        event_publisher: Optional[DynamicQREventPublisher] = None,
        timeout: Optional[float] = None,
        enforce_single_running_test: bool = False,
    ):
        super().__init__(repository, timeout)
        self.event_publisher = event_publisher
        self.enforce_single_running_test = enforce_single_running_test

    # ====================
    # Lifecycle
    # ====================

    async def create(self, code_id: str, request: ABTestCreateRequest) -> ABTest:
        """Create a draft A/B test between two versions of the same code"""
        self._require_id(code_id, "code_id", "code ID")

        if not request.test_name or not request.test_name.strip():
            raise ValidationError("Test name is required", "test_name")
        if not request.variant_a_version_id or not request.variant_b_version_id:
            raise ValidationError("Both variant version IDs are required", "variant_a_version_id")

        traffic_split = (
            DEFAULT_TRAFFIC_SPLIT if request.traffic_split is None else request.traffic_split
        )
        self._validate_traffic_split(traffic_split)
        await self._validate_variants(
            code_id, request.variant_a_version_id, request.variant_b_version_id
        )

        now = datetime.now(timezone.utc)
        test = ABTest(
            id=f"abt_{uuid.uuid4().hex[:16]}",
            code_id=code_id,
            test_name=request.test_name.strip(),
            description=request.description,
            variant_a_version_id=request.variant_a_version_id,
            variant_b_version_id=request.variant_b_version_id,
            traffic_split=traffic_split,
            status=ABTestStatus.DRAFT,
            start_date=request.start_date,
            end_date=request.end_date,
            created_at=now,
            updated_at=now,
        )
        test = await self._call(self.repository.create_ab_test(test))
        logger.info(f"A/B test created: {test.id} (code {code_id}, split {traffic_split})")
        return test

    async def get(self, test_id: str) -> ABTest:
        """Get A/B test by ID"""
        self._require_id(test_id, "test_id", "test ID")
        test = await self._call(self.repository.find_ab_test_by_id(test_id))
        if not test:
            raise NotFoundError("A/B test", test_id)
        return test

    async def list_tests(self, code_id: str) -> List[ABTest]:
        """List A/B tests of a code"""
        self._require_id(code_id, "code_id", "code ID")
        return await self._call(self.repository.find_ab_tests_by_code(code_id))

    async def update(self, test_id: str, request: ABTestUpdateRequest) -> ABTest:
        """
        Update an A/B test

        The traffic split of a running test is frozen; any other field is
        re-validated as on create.
        """
        test = await self.get(test_id)
        updates = request.model_dump(exclude_unset=True)

        if "traffic_split" in updates:
            split = updates["traffic_split"]
            if split is None:
                raise ValidationError("Traffic split cannot be empty", "traffic_split")
            if test.status == ABTestStatus.RUNNING and split != test.traffic_split:
                raise BusinessLogicError(
                    "Cannot change traffic split of running test",
                    details={"test_id": test_id, "traffic_split": test.traffic_split},
                )
            self._validate_traffic_split(split)

        if "test_name" in updates:
            name = updates["test_name"]
            if not name or not name.strip():
                raise ValidationError("Test name is required", "test_name")
            updates["test_name"] = name.strip()

        if "variant_a_version_id" in updates or "variant_b_version_id" in updates:
            variant_a = updates.get("variant_a_version_id", test.variant_a_version_id)
            variant_b = updates.get("variant_b_version_id", test.variant_b_version_id)
            if not variant_a or not variant_b:
                raise ValidationError("Both variant version IDs are required", "variant_a_version_id")
            await self._validate_variants(test.code_id, variant_a, variant_b)

        if not updates:
            return test

        updates["updated_at"] = datetime.now(timezone.utc)
        updated = await self._call(self.repository.update_ab_test(test_id, updates))
        if not updated:
            raise NotFoundError("A/B test", test_id)
        logger.info(f"A/B test updated: {test_id} ({', '.join(sorted(updates))})")
        return updated

    async def start(self, test_id: str) -> ABTest:
        """Start a draft test"""
        test = await self.get(test_id)
        if test.status != ABTestStatus.DRAFT:
            raise BusinessLogicError(
                "Only draft tests can be started",
                details={"test_id": test_id, "status": test.status.value},
            )
        await self._check_single_running(test)

        updates: Dict[str, Any] = {"status": ABTestStatus.RUNNING}
        if test.start_date is None:
            updates["start_date"] = datetime.now(timezone.utc)
        return await self._transition(test, updates, DynamicQREventType.AB_TEST_STARTED)

    async def pause(self, test_id: str) -> ABTest:
        """Pause a test"""
        test = await self.get(test_id)
        return await self._transition(
            test, {"status": ABTestStatus.PAUSED}, DynamicQREventType.AB_TEST_PAUSED
        )

    async def resume(self, test_id: str) -> ABTest:
        """Resume a paused test"""
        test = await self.get(test_id)
        if test.status != ABTestStatus.PAUSED:
            raise BusinessLogicError(
                "Only paused tests can be resumed",
                details={"test_id": test_id, "status": test.status.value},
            )
        await self._check_single_running(test)
        return await self._transition(
            test, {"status": ABTestStatus.RUNNING}, DynamicQREventType.AB_TEST_RESUMED
        )

    async def complete(self, test_id: str, winner_variant: Optional[Variant] = None) -> ABTest:
        """Complete a test, optionally recording the winning variant"""
        winner = None
        if winner_variant is not None:
            try:
                winner = Variant(winner_variant)
            except ValueError:
                raise ValidationError("Winner variant must be A or B", "winner_variant")

        test = await self.get(test_id)
        updates: Dict[str, Any] = {"status": ABTestStatus.COMPLETED, "winner_variant": winner}
        if test.end_date is None:
            updates["end_date"] = datetime.now(timezone.utc)
        return await self._transition(test, updates, DynamicQREventType.AB_TEST_COMPLETED)

    async def delete(self, test_id: str) -> bool:
        """Delete a test that is not running"""
        test = await self.get(test_id)
        if test.status == ABTestStatus.RUNNING:
            raise BusinessLogicError(
                "Cannot delete running A/B test. Pause it first.",
                details={"test_id": test_id},
            )
        deleted = await self._call(self.repository.delete_ab_test(test_id))
        logger.info(f"A/B test deleted: {test_id}")
        return deleted

    # ====================
    # Resolution
    # ====================

    async def find_running(self, code_id: str) -> Optional[ABTest]:
        """First running test of a code in creation order"""
        tests = await self._call(self.repository.find_ab_tests_by_code(code_id))
        return next((t for t in tests if t.status == ABTestStatus.RUNNING), None)

    def assign_variant(self, test: ABTest, context: ResolutionContext) -> Variant:
        """Session-stable variant: bucket below the split goes to A"""
        bucket = stable_hash(assignment_key(context)) % 100
        return Variant.A if bucket < test.traffic_split else Variant.B

    # ====================
    # Helpers
    # ====================

    @staticmethod
    def _validate_traffic_split(traffic_split: int) -> None:
        if not isinstance(traffic_split, int) or traffic_split < 0 or traffic_split > 100:
            raise ValidationError("Traffic split must be between 0 and 100", "traffic_split")

    async def _validate_variants(self, code_id: str, variant_a_id: str, variant_b_id: str) -> None:
        if variant_a_id == variant_b_id:
            raise ValidationError("Variant A and B must be different versions", "variant_b_version_id")

        variant_a = await self._call(self.repository.find_content_version_by_id(variant_a_id))
        variant_b = await self._call(self.repository.find_content_version_by_id(variant_b_id))
        if not variant_a or not variant_b:
            raise ValidationError("Both variant versions must exist", "variant_a_version_id")
        if variant_a.code_id != code_id or variant_b.code_id != code_id:
            raise ValidationError("Variants must belong to the specified QR code", "code_id")

    async def _check_single_running(self, test: ABTest) -> None:
        if not self.enforce_single_running_test:
            return
        running = await self.find_running(test.code_id)
        if running and running.id != test.id:
            raise BusinessLogicError(
                "Another A/B test is already running for this QR code",
                details={"running_test_id": running.id},
            )

    async def _transition(
        self,
        test: ABTest,
        updates: Dict[str, Any],
        event_type: DynamicQREventType,
    ) -> ABTest:
        updates["updated_at"] = datetime.now(timezone.utc)
        updated = await self._call(self.repository.update_ab_test(test.id, updates))
        if not updated:
            raise NotFoundError("A/B test", test.id)

        logger.info(f"A/B test {test.id}: {test.status.value} -> {updated.status.value}")
        if self.event_publisher:
            await self.event_publisher.publish_ab_test_status(
                event_type=event_type,
                code_id=updated.code_id,
                test_id=updated.id,
                status=updated.status.value,
                traffic_split=updated.traffic_split,
                winner_variant=updated.winner_variant.value if updated.winner_variant else None,
            )
        return updated


__all__ = ["ABTestEngine", "stable_hash", "assignment_key", "DEFAULT_TRAFFIC_SPLIT"]
