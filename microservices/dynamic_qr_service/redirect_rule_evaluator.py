"""
Redirect Rule Evaluator

CRUD for condition-based redirect rules and the priority-ordered
first-match evaluation used during resolution. The matchers are pure
functions of (conditions, context) so they can be tested in isolation.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .deadlines import RepositoryComponent
from .models import (
    CustomConditions,
    DeviceConditions,
    DeviceInfo,
    GeographicConditions,
    RedirectRule,
    RedirectRuleCreateRequest,
    RedirectRuleUpdateRequest,
    ResolutionContext,
    RuleConditions,
    RuleType,
    TimeConditions,
)
from .protocols import (
    DynamicQRRepositoryProtocol,
    NotFoundError,
    UserAgentParserProtocol,
    ValidationError,
)
from .time_utils import ensure_utc, to_local, utcnow, weekday_number

logger = logging.getLogger(__name__)

_conditions_adapter = TypeAdapter(RuleConditions)

DEFAULT_PRIORITY = 1


def parse_conditions(rule_type: RuleType, conditions: Dict[str, Any]):
    """Parse a raw conditions payload into the variant for rule_type"""
    if not isinstance(conditions, dict):
        raise ValidationError("Rule conditions must be an object", "conditions")

    declared = conditions.get("rule_type")
    if declared is not None and declared != rule_type.value:
        raise ValidationError(
            f"Conditions of type {declared} do not match rule type {rule_type.value}",
            "conditions",
        )

    try:
        return _conditions_adapter.validate_python({**conditions, "rule_type": rule_type.value})
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid rule conditions",
            "conditions",
            details=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
        )


# ====================
# Matchers
# ====================


def match_geographic(conditions: GeographicConditions, context: ResolutionContext) -> bool:
    """First non-empty list of countries, regions, cities decides"""
    if conditions.countries:
        return context.country in conditions.countries
    if conditions.regions:
        return context.region in conditions.regions
    if conditions.cities:
        return context.city in conditions.cities
    return False


def match_device(conditions: DeviceConditions, device: Optional[DeviceInfo]) -> bool:
    """Every non-empty list must contain the parsed value; no device, no match"""
    if device is None:
        return False

    if conditions.device_types:
        if (device.device_type or "desktop") not in conditions.device_types:
            return False
    if conditions.browsers:
        if device.browser not in conditions.browsers:
            return False
    if conditions.operating_systems:
        if device.os not in conditions.operating_systems:
            return False
    return True


def match_time(conditions: TimeConditions, instant: Optional[datetime] = None) -> bool:
    """
    First non-empty list of time_ranges, days_of_week, hours_of_day decides.

    Ranges are inclusive and absolute; weekday (0 = Sunday) and hour are
    read in the condition's timezone.
    """
    now = ensure_utc(instant) if instant is not None else utcnow()

    if conditions.time_ranges:
        return any(r.start <= now <= r.end for r in conditions.time_ranges)

    local = to_local(now, conditions.timezone)
    if conditions.days_of_week:
        return weekday_number(local) in conditions.days_of_week
    if conditions.hours_of_day:
        return local.hour in conditions.hours_of_day
    return False


def match_custom(conditions: CustomConditions, context: ResolutionContext) -> bool:
    """Custom rules are stored but never match"""
    logger.warning("Custom redirect rules are not evaluated; treating as no match")
    return False


class RedirectRuleEvaluator(RepositoryComponent):
    """Redirect rule CRUD and first-match evaluation"""

    def __init__(
        self,
        repository: DynamicQRRepositoryProtocol,
        user_agent_parser: UserAgentParserProtocol,
        timeout: Optional[float] = None,
    ):
        super().__init__(repository, timeout)
        self.user_agent_parser = user_agent_parser

    # ====================
    # CRUD
    # ====================

    async def create(self, code_id: str, request: RedirectRuleCreateRequest) -> RedirectRule:
        """Create a redirect rule targeting a version of the same code"""
        self._require_id(code_id, "code_id", "code ID")

        if not request.rule_name or not request.rule_name.strip():
            raise ValidationError("Rule name is required", "rule_name")
        if request.rule_type is None:
            raise ValidationError("Rule type is required", "rule_type")
        if request.conditions is None:
            raise ValidationError("Rule conditions are required", "conditions")
        if not request.target_version_id:
            raise ValidationError("Target version ID is required", "target_version_id")

        conditions = parse_conditions(request.rule_type, request.conditions)
        await self._validate_target(code_id, request.target_version_id)

        now = datetime.now(timezone.utc)
        rule = RedirectRule(
            id=f"rul_{uuid.uuid4().hex[:16]}",
            code_id=code_id,
            rule_name=request.rule_name.strip(),
            rule_type=request.rule_type,
            conditions=conditions,
            target_version_id=request.target_version_id,
            priority=DEFAULT_PRIORITY if request.priority is None else request.priority,
            is_enabled=request.is_enabled is not False,
            created_at=now,
            updated_at=now,
        )
        rule = await self._call(self.repository.create_redirect_rule(rule))
        logger.info(f"Redirect rule created: {rule.id} ({rule.rule_type.value}, priority {rule.priority})")
        return rule

    async def get(self, rule_id: str) -> RedirectRule:
        """Get redirect rule by ID"""
        self._require_id(rule_id, "rule_id", "rule ID")
        rule = await self._call(self.repository.find_redirect_rule_by_id(rule_id))
        if not rule:
            raise NotFoundError("Redirect rule", rule_id)
        return rule

    async def list_rules(self, code_id: str) -> List[RedirectRule]:
        """List redirect rules of a code"""
        self._require_id(code_id, "code_id", "code ID")
        return await self._call(self.repository.find_redirect_rules_by_code(code_id))

    async def update(self, rule_id: str, request: RedirectRuleUpdateRequest) -> RedirectRule:
        """Update a redirect rule, re-validating conditions and target"""
        rule = await self.get(rule_id)
        updates = request.model_dump(exclude_unset=True)

        if "rule_name" in updates:
            name = updates["rule_name"]
            if not name or not name.strip():
                raise ValidationError("Rule name is required", "rule_name")
            updates["rule_name"] = name.strip()

        for field in ("rule_type", "priority", "is_enabled"):
            if field in updates and updates[field] is None:
                raise ValidationError(f"{field} cannot be empty", field)

        if "rule_type" in updates or "conditions" in updates:
            rule_type = RuleType(updates.get("rule_type", rule.rule_type))
            raw = updates.get("conditions")
            if raw is None:
                raw = rule.conditions.model_dump(exclude={"rule_type"})
            updates["rule_type"] = rule_type
            updates["conditions"] = parse_conditions(rule_type, raw).model_dump()

        if "target_version_id" in updates:
            if not updates["target_version_id"]:
                raise ValidationError("Target version ID is required", "target_version_id")
            await self._validate_target(rule.code_id, updates["target_version_id"])

        if not updates:
            return rule

        updates["updated_at"] = datetime.now(timezone.utc)
        updated = await self._call(self.repository.update_redirect_rule(rule_id, updates))
        if not updated:
            raise NotFoundError("Redirect rule", rule_id)
        logger.info(f"Redirect rule updated: {rule_id}")
        return updated

    async def toggle(self, rule_id: str, enabled: Optional[bool] = None) -> RedirectRule:
        """Flip is_enabled, or set it when enabled is given"""
        rule = await self.get(rule_id)
        is_enabled = (not rule.is_enabled) if enabled is None else bool(enabled)
        updated = await self._call(
            self.repository.update_redirect_rule(
                rule_id, {"is_enabled": is_enabled, "updated_at": datetime.now(timezone.utc)}
            )
        )
        if not updated:
            raise NotFoundError("Redirect rule", rule_id)
        logger.info(f"Redirect rule {rule_id} {'enabled' if is_enabled else 'disabled'}")
        return updated

    async def delete(self, rule_id: str) -> bool:
        """Delete a redirect rule"""
        await self.get(rule_id)
        deleted = await self._call(self.repository.delete_redirect_rule(rule_id))
        logger.info(f"Redirect rule deleted: {rule_id}")
        return deleted

    # ====================
    # Evaluation
    # ====================

    async def evaluate(self, code_id: str, context: ResolutionContext) -> Optional[RedirectRule]:
        """First enabled rule, by ascending priority, whose conditions match"""
        rules = await self._call(self.repository.find_redirect_rules_by_code(code_id))
        candidates = sorted((r for r in rules if r.is_enabled), key=lambda r: r.priority)

        device: Optional[DeviceInfo] = None
        device_parsed = False
        for rule in candidates:
            if rule.rule_type == RuleType.DEVICE and not device_parsed:
                device = self._parse_device(context)
                device_parsed = True
            if self.matches(rule, context, device):
                logger.debug(f"Redirect rule matched: {rule.id} (code {code_id})")
                return rule
        return None

    def matches(
        self,
        rule: RedirectRule,
        context: ResolutionContext,
        device: Optional[DeviceInfo] = None,
    ) -> bool:
        conditions = rule.conditions
        if rule.rule_type == RuleType.GEOGRAPHIC:
            return match_geographic(conditions, context)
        if rule.rule_type == RuleType.DEVICE:
            if device is None:
                device = self._parse_device(context)
            return match_device(conditions, device)
        if rule.rule_type == RuleType.TIME:
            return match_time(conditions, context.timestamp)
        if rule.rule_type == RuleType.CUSTOM:
            return match_custom(conditions, context)
        return False

    def _parse_device(self, context: ResolutionContext) -> Optional[DeviceInfo]:
        if not context.user_agent:
            return None
        return self.user_agent_parser.parse(context.user_agent)

    async def _validate_target(self, code_id: str, version_id: str) -> None:
        target = await self._call(self.repository.find_content_version_by_id(version_id))
        if not target:
            raise ValidationError("Target version not found", "target_version_id")
        if target.code_id != code_id:
            raise ValidationError(
                "Target version must belong to the specified QR code", "target_version_id"
            )


__all__ = [
    "RedirectRuleEvaluator",
    "parse_conditions",
    "match_geographic",
    "match_device",
    "match_time",
    "match_custom",
]
