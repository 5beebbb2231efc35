"""
Content Scheduler

Time windows, optionally recurring on weekdays, that put a specific
content version in front of visitors.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .deadlines import RepositoryComponent
from .models import (
    ContentSchedule,
    ContentScheduleCreateRequest,
    ContentScheduleUpdateRequest,
    RepeatPattern,
)
from .protocols import DynamicQRRepositoryProtocol, NotFoundError, ValidationError
from .time_utils import ensure_utc, get_timezone, localize, to_local, utcnow, weekday_number

logger = logging.getLogger(__name__)


def is_schedule_active(schedule: ContentSchedule, as_of: Optional[datetime] = None) -> bool:
    """
    Whether the schedule window covers as_of (now when None).

    Bounds are inclusive. Naive start_time/end_time are wall times in the
    schedule's timezone; a naive as_of is UTC. A recurring schedule with
    repeat_days also needs the weekday of as_of, in the schedule's timezone,
    to be listed; without repeat_days it recurs every day.
    """
    now = ensure_utc(as_of) if as_of is not None else utcnow()

    if now < localize(schedule.start_time, schedule.timezone):
        return False
    if schedule.end_time is not None and now > localize(schedule.end_time, schedule.timezone):
        return False

    if schedule.repeat_pattern != RepeatPattern.NONE and schedule.repeat_days:
        local = to_local(now, schedule.timezone)
        return weekday_number(local) in schedule.repeat_days

    return True


def most_recent(schedules: Iterable[ContentSchedule]) -> Optional[ContentSchedule]:
    return next(iter(schedules), None)


class ContentScheduler(RepositoryComponent):
    """Content schedule CRUD and active-window lookup"""

    def __init__(
        self,
        repository: DynamicQRRepositoryProtocol,
        timeout: Optional[float] = None,
    ):
        super().__init__(repository, timeout)

    async def create(self, code_id: str, request: ContentScheduleCreateRequest) -> ContentSchedule:
        """Create a content schedule for a version of the same code"""
        self._require_id(code_id, "code_id", "code ID")

        if not request.schedule_name or not request.schedule_name.strip():
            raise ValidationError("Schedule name is required", "schedule_name")
        if not request.version_id:
            raise ValidationError("Version ID is required", "version_id")
        if request.start_time is None:
            raise ValidationError("Start time is required", "start_time")

        self._validate_timezone(request.timezone or "UTC")
        self._validate_window(request.start_time, request.end_time, request.timezone or "UTC")
        self._validate_repeat_days(request.repeat_days)
        await self._validate_version(code_id, request.version_id)

        now = datetime.now(timezone.utc)
        schedule = ContentSchedule(
            id=f"sch_{uuid.uuid4().hex[:16]}",
            code_id=code_id,
            version_id=request.version_id,
            schedule_name=request.schedule_name.strip(),
            start_time=request.start_time,
            end_time=request.end_time,
            repeat_pattern=request.repeat_pattern or RepeatPattern.NONE,
            repeat_days=request.repeat_days,
            timezone=request.timezone or "UTC",
            is_active=request.is_active is not False,
            created_at=now,
            updated_at=now,
        )
        schedule = await self._call(self.repository.create_content_schedule(schedule))
        logger.info(f"Content schedule created: {schedule.id} (code {code_id})")
        return schedule

    async def get(self, schedule_id: str) -> ContentSchedule:
        """Get content schedule by ID"""
        self._require_id(schedule_id, "schedule_id", "schedule ID")
        schedule = await self._call(self.repository.find_content_schedule_by_id(schedule_id))
        if not schedule:
            raise NotFoundError("Content schedule", schedule_id)
        return schedule

    async def list_schedules(self, code_id: str) -> List[ContentSchedule]:
        """List content schedules of a code"""
        self._require_id(code_id, "code_id", "code ID")
        return await self._call(self.repository.find_content_schedules_by_code(code_id))

    async def update(
        self, schedule_id: str, request: ContentScheduleUpdateRequest
    ) -> ContentSchedule:
        """Update a content schedule; the merged window is re-validated"""
        schedule = await self.get(schedule_id)
        updates = request.model_dump(exclude_unset=True)

        if "schedule_name" in updates:
            name = updates["schedule_name"]
            if not name or not name.strip():
                raise ValidationError("Schedule name is required", "schedule_name")
            updates["schedule_name"] = name.strip()

        for field in ("start_time", "version_id", "is_active"):
            if field in updates and updates[field] is None:
                raise ValidationError(f"{field} cannot be empty", field)

        if "repeat_pattern" in updates and updates["repeat_pattern"] is None:
            updates["repeat_pattern"] = RepeatPattern.NONE
        if "timezone" in updates:
            updates["timezone"] = updates["timezone"] or "UTC"
            self._validate_timezone(updates["timezone"])
        if "repeat_days" in updates:
            self._validate_repeat_days(updates["repeat_days"])

        self._validate_window(
            updates.get("start_time", schedule.start_time),
            updates.get("end_time", schedule.end_time),
            updates.get("timezone", schedule.timezone),
        )
        if "version_id" in updates:
            await self._validate_version(schedule.code_id, updates["version_id"])

        if not updates:
            return schedule

        updates["updated_at"] = datetime.now(timezone.utc)
        updated = await self._call(self.repository.update_content_schedule(schedule_id, updates))
        if not updated:
            raise NotFoundError("Content schedule", schedule_id)
        logger.info(f"Content schedule updated: {schedule_id}")
        return updated

    async def delete(self, schedule_id: str) -> bool:
        """Delete a content schedule"""
        await self.get(schedule_id)
        deleted = await self._call(self.repository.delete_content_schedule(schedule_id))
        logger.info(f"Content schedule deleted: {schedule_id}")
        return deleted

    async def find_active(
        self, code_id: str, as_of: Optional[datetime] = None
    ) -> List[ContentSchedule]:
        """
        Enabled schedules whose window covers as_of, newest first.

        Equal created_at values keep the later-inserted schedule first.
        """
        schedules = await self._call(self.repository.find_content_schedules_by_code(code_id))
        active = [s for s in schedules if s.is_active and is_schedule_active(s, as_of)]
        return sorted(reversed(active), key=lambda s: ensure_utc(s.created_at), reverse=True)

    # ====================
    # Validation
    # ====================

    @staticmethod
    def _validate_window(start_time: datetime, end_time: Optional[datetime], tz_name: str = "UTC") -> None:
        if end_time is not None and localize(end_time, tz_name) < localize(start_time, tz_name):
            raise ValidationError("End time must not be before start time", "end_time")

    @staticmethod
    def _validate_timezone(tz_name: str) -> None:
        try:
            get_timezone(tz_name)
        except ValueError as e:
            raise ValidationError(str(e), "timezone")

    @staticmethod
    def _validate_repeat_days(repeat_days: Optional[List[int]]) -> None:
        if repeat_days and any(day < 0 or day > 6 for day in repeat_days):
            raise ValidationError(
                "repeat_days entries must be between 0 (Sunday) and 6 (Saturday)", "repeat_days"
            )

    async def _validate_version(self, code_id: str, version_id: str) -> None:
        version = await self._call(self.repository.find_content_version_by_id(version_id))
        if not version:
            raise ValidationError("Target version not found", "version_id")
        if version.code_id != code_id:
            raise ValidationError(
                "Target version must belong to the specified QR code", "version_id"
            )


__all__ = ["ContentScheduler", "is_schedule_active", "most_recent"]
