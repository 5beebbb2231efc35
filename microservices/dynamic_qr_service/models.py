"""
Dynamic QR Service Data Models

Canonical data structures for content versions, A/B tests, redirect rules,
content schedules, analytics records and the resolution context.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .time_utils import ensure_utc, get_timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class ABTestStatus(str, Enum):
    """A/B test lifecycle status"""
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class Variant(str, Enum):
    """A/B test variant"""
    A = "A"
    B = "B"


class RuleType(str, Enum):
    """Redirect rule type"""
    GEOGRAPHIC = "geographic"
    DEVICE = "device"
    TIME = "time"
    CUSTOM = "custom"


class RepeatPattern(str, Enum):
    """Content schedule repeat pattern"""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ResolutionSource(str, Enum):
    """Cascade step that produced the resolved version"""
    AB_TEST = "ab_test"
    REDIRECT_RULE = "redirect_rule"
    SCHEDULE = "schedule"
    ACTIVE_VERSION = "active_version"


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all dynamic QR models"""

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# CONTENT VERSIONS
# =============================================================================

class ContentVersion(BaseContract):
    """One candidate payload/redirect a code can resolve to"""
    id: str
    code_id: str
    version_number: int = Field(default=1, ge=1)
    content: Any = Field(..., description="Opaque JSON payload")
    redirect_url: Optional[str] = None
    is_active: bool = False
    scheduled_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    deactivated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ContentVersionCreateRequest(BaseContract):
    """Request to create a content version"""
    content: Any = None
    redirect_url: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    is_active: bool = False
    created_by: Optional[str] = None


class ContentVersionUpdateRequest(BaseContract):
    """Partial update of a content version"""
    content: Any = None
    redirect_url: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    is_active: Optional[bool] = None


# =============================================================================
# A/B TESTS
# =============================================================================

class ABTest(BaseContract):
    """Experiment splitting traffic between two versions of one code"""
    id: str
    code_id: str
    test_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    variant_a_version_id: str
    variant_b_version_id: str
    traffic_split: int = Field(default=50, ge=0, le=100, description="Percentage routed to variant A")
    status: ABTestStatus = ABTestStatus.DRAFT
    winner_variant: Optional[Variant] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def version_for(self, variant: Variant) -> str:
        """Version id served for a variant"""
        return self.variant_a_version_id if variant == Variant.A else self.variant_b_version_id

    def references_version(self, version_id: str) -> bool:
        return version_id in (self.variant_a_version_id, self.variant_b_version_id)


class ABTestCreateRequest(BaseContract):
    """Request to create an A/B test"""
    test_name: Optional[str] = None
    description: Optional[str] = None
    variant_a_version_id: Optional[str] = None
    variant_b_version_id: Optional[str] = None
    traffic_split: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ABTestUpdateRequest(BaseContract):
    """Partial update of an A/B test"""
    test_name: Optional[str] = None
    description: Optional[str] = None
    variant_a_version_id: Optional[str] = None
    variant_b_version_id: Optional[str] = None
    traffic_split: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ABTestCompleteRequest(BaseContract):
    """Completion of an A/B test"""
    winner_variant: Optional[str] = None


# =============================================================================
# REDIRECT RULE CONDITIONS (tagged union on rule_type)
# =============================================================================

class GeographicConditions(BaseContract):
    """Match on country, then region, then city"""
    model_config = ConfigDict(extra="forbid")

    rule_type: Literal["geographic"] = "geographic"
    countries: List[str] = Field(default_factory=list)
    regions: List[str] = Field(default_factory=list)
    cities: List[str] = Field(default_factory=list)


class DeviceConditions(BaseContract):
    """Match on parsed user agent; empty lists are wildcards"""
    model_config = ConfigDict(extra="forbid")

    rule_type: Literal["device"] = "device"
    device_types: List[str] = Field(default_factory=list)
    browsers: List[str] = Field(default_factory=list)
    operating_systems: List[str] = Field(default_factory=list)


class TimeRange(BaseContract):
    """Inclusive time window"""
    model_config = ConfigDict(extra="forbid")

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize_to_utc(cls, v):
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_order(self):
        if self.end < self.start:
            raise ValueError("Time range end must not be before start")
        return self


class TimeConditions(BaseContract):
    """Match on absolute ranges, then weekday (0 = Sunday), then hour"""
    model_config = ConfigDict(extra="forbid")

    rule_type: Literal["time"] = "time"
    time_ranges: List[TimeRange] = Field(default_factory=list)
    days_of_week: List[int] = Field(default_factory=list)
    hours_of_day: List[int] = Field(default_factory=list)
    timezone: str = "UTC"

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v):
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6 (Saturday)")
        return v

    @field_validator("hours_of_day")
    @classmethod
    def validate_hours(cls, v):
        if any(hour < 0 or hour > 23 for hour in v):
            raise ValueError("hours_of_day entries must be between 0 and 23")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        get_timezone(v)
        return v


class CustomConditions(BaseContract):
    """Placeholder variant; custom rules never match"""
    model_config = ConfigDict(extra="allow")

    rule_type: Literal["custom"] = "custom"


RuleConditions = Annotated[
    Union[GeographicConditions, DeviceConditions, TimeConditions, CustomConditions],
    Field(discriminator="rule_type"),
]


# =============================================================================
# REDIRECT RULES
# =============================================================================

class RedirectRule(BaseContract):
    """Priority-ordered, condition-based override selecting a target version"""
    id: str
    code_id: str
    rule_name: str = Field(..., min_length=1, max_length=255)
    rule_type: RuleType
    conditions: RuleConditions
    target_version_id: str
    priority: int = 1
    is_enabled: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def validate_conditions_type(self):
        """Conditions must match the declared rule type"""
        if self.conditions.rule_type != self.rule_type.value:
            raise ValueError(
                f"Conditions of type {self.conditions.rule_type} do not match rule type {self.rule_type.value}"
            )
        return self


class RedirectRuleCreateRequest(BaseContract):
    """Request to create a redirect rule"""
    rule_name: Optional[str] = None
    rule_type: Optional[RuleType] = None
    conditions: Optional[Dict[str, Any]] = None
    target_version_id: Optional[str] = None
    priority: Optional[int] = None
    is_enabled: Optional[bool] = None


class RedirectRuleUpdateRequest(BaseContract):
    """Partial update of a redirect rule"""
    rule_name: Optional[str] = None
    rule_type: Optional[RuleType] = None
    conditions: Optional[Dict[str, Any]] = None
    target_version_id: Optional[str] = None
    priority: Optional[int] = None
    is_enabled: Optional[bool] = None


class RedirectRuleToggleRequest(BaseContract):
    """Flip a rule, or set is_enabled explicitly"""
    enabled: Optional[bool] = None


# =============================================================================
# CONTENT SCHEDULES
# =============================================================================

class ContentSchedule(BaseContract):
    """
    Time window (optionally recurring) that activates a specific version

    Naive start_time/end_time are read in the schedule's timezone.
    """
    id: str
    code_id: str
    version_id: str
    schedule_name: str = Field(..., min_length=1, max_length=255)
    start_time: datetime
    end_time: Optional[datetime] = None
    repeat_pattern: RepeatPattern = RepeatPattern.NONE
    repeat_days: Optional[List[int]] = Field(None, description="Weekdays, 0 = Sunday")
    timezone: str = "UTC"
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ContentScheduleCreateRequest(BaseContract):
    """Request to create a content schedule"""
    version_id: Optional[str] = None
    schedule_name: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    repeat_pattern: Optional[RepeatPattern] = None
    repeat_days: Optional[List[int]] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None


class ContentScheduleUpdateRequest(BaseContract):
    """Partial update of a content schedule"""
    version_id: Optional[str] = None
    schedule_name: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    repeat_pattern: Optional[RepeatPattern] = None
    repeat_days: Optional[List[int]] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None


# =============================================================================
# RESOLUTION
# =============================================================================

class ResolutionContext(BaseContract):
    """Visitor attributes available at scan time"""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    referrer: Optional[str] = None
    session_id: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timestamp: Optional[datetime] = None


class DeviceInfo(BaseContract):
    """Parsed user agent"""
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None


class ResolutionResult(BaseContract):
    """Outcome of one resolution"""
    redirect_url: str
    version_id: str
    source: ResolutionSource
    ab_test_id: Optional[str] = None
    variant: Optional[Variant] = None
    redirect_rule_id: Optional[str] = None
    schedule_id: Optional[str] = None


class ResolutionEvent(BaseContract):
    """Input to the analytics recorder"""
    code_id: str
    version_id: str
    ab_test_id: Optional[str] = None
    variant: Optional[Variant] = None
    redirect_rule_id: Optional[str] = None
    context: ResolutionContext = Field(default_factory=ResolutionContext)


# =============================================================================
# ANALYTICS
# =============================================================================

class DynamicAnalyticsRecord(BaseContract):
    """Append-only scan record"""
    id: str
    code_id: str
    version_id: Optional[str] = None
    ab_test_id: Optional[str] = None
    variant: Optional[Variant] = None
    redirect_rule_id: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    referrer: Optional[str] = None
    conversion_event: Optional[str] = None
    session_id: Optional[str] = None
    scan_timestamp: datetime = Field(default_factory=_utcnow)


class VersionPerformance(BaseContract):
    """Scan performance of one version"""
    version_id: str
    version_number: int
    scans: int = 0
    conversion_rate: float = 0.0


class DynamicQRStats(BaseContract):
    """Aggregate statistics for one code"""
    code_id: str
    total_versions: int = 0
    active_version: Optional[int] = Field(None, description="version_number of the active version")
    total_scans: int = 0
    versions_performance: List[VersionPerformance] = Field(default_factory=list)
    ab_tests_running: int = 0
    redirect_rules_active: int = 0
    scheduled_content: int = 0


# =============================================================================
# RESPONSE ENVELOPE
# =============================================================================

T = TypeVar("T")


class ErrorDetail(BaseContract):
    """Structured error carried by a failed ServiceResponse"""
    code: str
    message: str
    status_code: int = 500
    details: Optional[Any] = None


class ServiceResponse(BaseModel, Generic[T]):
    """Success/error result returned by every public operation"""
    success: bool
    data: Optional[T] = None
    message: str = ""
    error: Optional[ErrorDetail] = None


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)
    analytics: Dict[str, int] = Field(default_factory=dict)


__all__ = [
    # Enums
    "ABTestStatus",
    "Variant",
    "RuleType",
    "RepeatPattern",
    "ResolutionSource",
    # Content versions
    "ContentVersion",
    "ContentVersionCreateRequest",
    "ContentVersionUpdateRequest",
    # A/B tests
    "ABTest",
    "ABTestCreateRequest",
    "ABTestUpdateRequest",
    "ABTestCompleteRequest",
    # Redirect rules
    "GeographicConditions",
    "DeviceConditions",
    "TimeRange",
    "TimeConditions",
    "CustomConditions",
    "RuleConditions",
    "RedirectRule",
    "RedirectRuleCreateRequest",
    "RedirectRuleUpdateRequest",
    "RedirectRuleToggleRequest",
    # Schedules
    "ContentSchedule",
    "ContentScheduleCreateRequest",
    "ContentScheduleUpdateRequest",
    # Resolution
    "ResolutionContext",
    "DeviceInfo",
    "ResolutionResult",
    "ResolutionEvent",
    # Analytics
    "DynamicAnalyticsRecord",
    "VersionPerformance",
    "DynamicQRStats",
    # Envelope
    "ErrorDetail",
    "ServiceResponse",
    "HealthResponse",
]
