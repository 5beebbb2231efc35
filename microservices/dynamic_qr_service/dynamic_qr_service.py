"""
Dynamic QR Service Business Logic

Public facade over the resolution components. Every operation returns a
ServiceResponse; exceptions are converted to structured errors here and
never reach the caller.
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .ab_test_engine import ABTestEngine
from .analytics_recorder import AnalyticsRecorder
from .content_scheduler import ContentScheduler
from .content_version_store import ContentVersionStore
from .deadlines import with_deadline
from .models import (
    ABTestCreateRequest,
    ABTestUpdateRequest,
    ContentScheduleCreateRequest,
    ContentScheduleUpdateRequest,
    ContentVersionCreateRequest,
    ContentVersionUpdateRequest,
    ErrorDetail,
    RedirectRuleCreateRequest,
    RedirectRuleUpdateRequest,
    ResolutionContext,
    ServiceResponse,
)
from .protocols import DynamicQRRepositoryProtocol, DynamicQRServiceError, ValidationError
from .redirect_rule_evaluator import RedirectRuleEvaluator
from .resolution_orchestrator import ResolutionOrchestrator

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class DynamicQRService:
    """Dynamic QR service business logic layer"""

    def __init__(
        self,
        repository: DynamicQRRepositoryProtocol,
        version_store: ContentVersionStore,
        ab_test_engine: ABTestEngine,
        rule_evaluator: RedirectRuleEvaluator,
        scheduler: ContentScheduler,
        orchestrator: ResolutionOrchestrator,
        analytics_recorder: Optional[AnalyticsRecorder] = None,
        timeout: Optional[float] = None,
    ):
        self.repository = repository
        self.version_store = version_store
        self.ab_test_engine = ab_test_engine
        self.rule_evaluator = rule_evaluator
        self.scheduler = scheduler
        self.orchestrator = orchestrator
        self.analytics_recorder = analytics_recorder
        self.timeout = timeout

    # ====================
    # Content Versions
    # ====================

    async def create_content_version(
        self,
        code_id: str,
        request: Union[ContentVersionCreateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(ContentVersionCreateRequest, request)
            version = await self.version_store.create(code_id, request)
            return ServiceResponse(
                success=True, data=version, message="Content version created successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to create content version", e)

    async def get_content_versions(self, code_id: str) -> ServiceResponse:
        try:
            versions = await self.version_store.list_versions(code_id)
            return ServiceResponse(
                success=True, data=versions, message=f"Found {len(versions)} content versions"
            )
        except Exception as e:
            return self._handle_error("Failed to get content versions", e)

    async def get_active_content_version(self, code_id: str) -> ServiceResponse:
        try:
            version = await self.version_store.get_active(code_id)
            return ServiceResponse(
                success=True,
                data=version,
                message="Active version found" if version else "No active version",
            )
        except Exception as e:
            return self._handle_error("Failed to get active content version", e)

    async def update_content_version(
        self,
        version_id: str,
        request: Union[ContentVersionUpdateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(ContentVersionUpdateRequest, request)
            version = await self.version_store.update(version_id, request)
            return ServiceResponse(
                success=True, data=version, message="Content version updated successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to update content version", e)

    async def activate_content_version(self, version_id: str) -> ServiceResponse:
        try:
            version = await self.version_store.activate(version_id)
            return ServiceResponse(
                success=True, data=version, message="Content version activated successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to activate content version", e)

    async def deactivate_content_version(self, version_id: str) -> ServiceResponse:
        try:
            version = await self.version_store.deactivate(version_id)
            return ServiceResponse(
                success=True, data=version, message="Content version deactivated successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to deactivate content version", e)

    async def delete_content_version(self, version_id: str) -> ServiceResponse:
        try:
            deleted = await self.version_store.delete(version_id)
            return ServiceResponse(
                success=True, data=deleted, message="Content version deleted successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to delete content version", e)

    # ====================
    # A/B Tests
    # ====================

    async def create_ab_test(
        self,
        code_id: str,
        request: Union[ABTestCreateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(ABTestCreateRequest, request)
            test = await self.ab_test_engine.create(code_id, request)
            return ServiceResponse(success=True, data=test, message="A/B test created successfully")
        except Exception as e:
            return self._handle_error("Failed to create A/B test", e)

    async def get_ab_tests(self, code_id: str) -> ServiceResponse:
        try:
            tests = await self.ab_test_engine.list_tests(code_id)
            return ServiceResponse(success=True, data=tests, message=f"Found {len(tests)} A/B tests")
        except Exception as e:
            return self._handle_error("Failed to get A/B tests", e)

    async def update_ab_test(
        self,
        test_id: str,
        request: Union[ABTestUpdateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(ABTestUpdateRequest, request)
            test = await self.ab_test_engine.update(test_id, request)
            return ServiceResponse(success=True, data=test, message="A/B test updated successfully")
        except Exception as e:
            return self._handle_error("Failed to update A/B test", e)

    async def start_ab_test(self, test_id: str) -> ServiceResponse:
        try:
            test = await self.ab_test_engine.start(test_id)
            return ServiceResponse(success=True, data=test, message="A/B test started successfully")
        except Exception as e:
            return self._handle_error("Failed to start A/B test", e)

    async def pause_ab_test(self, test_id: str) -> ServiceResponse:
        try:
            test = await self.ab_test_engine.pause(test_id)
            return ServiceResponse(success=True, data=test, message="A/B test paused successfully")
        except Exception as e:
            return self._handle_error("Failed to pause A/B test", e)

    async def resume_ab_test(self, test_id: str) -> ServiceResponse:
        try:
            test = await self.ab_test_engine.resume(test_id)
            return ServiceResponse(success=True, data=test, message="A/B test resumed successfully")
        except Exception as e:
            return self._handle_error("Failed to resume A/B test", e)

    async def complete_ab_test(
        self, test_id: str, winner_variant: Optional[str] = None
    ) -> ServiceResponse:
        try:
            test = await self.ab_test_engine.complete(test_id, winner_variant)
            return ServiceResponse(success=True, data=test, message="A/B test completed successfully")
        except Exception as e:
            return self._handle_error("Failed to complete A/B test", e)

    async def delete_ab_test(self, test_id: str) -> ServiceResponse:
        try:
            deleted = await self.ab_test_engine.delete(test_id)
            return ServiceResponse(success=True, data=deleted, message="A/B test deleted successfully")
        except Exception as e:
            return self._handle_error("Failed to delete A/B test", e)

    # ====================
    # Redirect Rules
    # ====================

    async def create_redirect_rule(
        self,
        code_id: str,
        request: Union[RedirectRuleCreateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(RedirectRuleCreateRequest, request)
            rule = await self.rule_evaluator.create(code_id, request)
            return ServiceResponse(success=True, data=rule, message="Redirect rule created successfully")
        except Exception as e:
            return self._handle_error("Failed to create redirect rule", e)

    async def get_redirect_rules(self, code_id: str) -> ServiceResponse:
        try:
            rules = await self.rule_evaluator.list_rules(code_id)
            return ServiceResponse(success=True, data=rules, message=f"Found {len(rules)} redirect rules")
        except Exception as e:
            return self._handle_error("Failed to get redirect rules", e)

    async def update_redirect_rule(
        self,
        rule_id: str,
        request: Union[RedirectRuleUpdateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(RedirectRuleUpdateRequest, request)
            rule = await self.rule_evaluator.update(rule_id, request)
            return ServiceResponse(success=True, data=rule, message="Redirect rule updated successfully")
        except Exception as e:
            return self._handle_error("Failed to update redirect rule", e)

    async def toggle_redirect_rule(
        self, rule_id: str, enabled: Optional[bool] = None
    ) -> ServiceResponse:
        try:
            rule = await self.rule_evaluator.toggle(rule_id, enabled)
            state = "enabled" if rule.is_enabled else "disabled"
            return ServiceResponse(success=True, data=rule, message=f"Redirect rule {state} successfully")
        except Exception as e:
            return self._handle_error("Failed to toggle redirect rule", e)

    async def delete_redirect_rule(self, rule_id: str) -> ServiceResponse:
        try:
            deleted = await self.rule_evaluator.delete(rule_id)
            return ServiceResponse(success=True, data=deleted, message="Redirect rule deleted successfully")
        except Exception as e:
            return self._handle_error("Failed to delete redirect rule", e)

    # ====================
    # Content Schedules
    # ====================

    async def create_content_schedule(
        self,
        code_id: str,
        request: Union[ContentScheduleCreateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(ContentScheduleCreateRequest, request)
            schedule = await self.scheduler.create(code_id, request)
            return ServiceResponse(
                success=True, data=schedule, message="Content schedule created successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to create content schedule", e)

    async def get_content_schedules(self, code_id: str) -> ServiceResponse:
        try:
            schedules = await self.scheduler.list_schedules(code_id)
            return ServiceResponse(
                success=True, data=schedules, message=f"Found {len(schedules)} content schedules"
            )
        except Exception as e:
            return self._handle_error("Failed to get content schedules", e)

    async def update_content_schedule(
        self,
        schedule_id: str,
        request: Union[ContentScheduleUpdateRequest, Dict[str, Any]],
    ) -> ServiceResponse:
        try:
            request = self._coerce(ContentScheduleUpdateRequest, request)
            schedule = await self.scheduler.update(schedule_id, request)
            return ServiceResponse(
                success=True, data=schedule, message="Content schedule updated successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to update content schedule", e)

    async def delete_content_schedule(self, schedule_id: str) -> ServiceResponse:
        try:
            deleted = await self.scheduler.delete(schedule_id)
            return ServiceResponse(
                success=True, data=deleted, message="Content schedule deleted successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to delete content schedule", e)

    # ====================
    # Statistics & Resolution
    # ====================

    async def get_dynamic_qr_stats(self, code_id: str) -> ServiceResponse:
        try:
            if not code_id or not isinstance(code_id, str) or not code_id.strip():
                raise ValidationError("Valid code ID is required", "code_id")
            stats = await with_deadline(self.repository.get_stats(code_id), self.timeout)
            return ServiceResponse(
                success=True, data=stats, message="Dynamic QR statistics retrieved successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to get dynamic QR statistics", e)

    async def get_dynamic_qr_analytics(self, code_id: str, limit: int = 100, offset: int = 0) -> ServiceResponse:
        """Scan records of a code, newest first"""
        try:
            if not code_id or not isinstance(code_id, str) or not code_id.strip():
                raise ValidationError("Valid code ID is required", "code_id")
            if limit < 1 or limit > 1000:
                raise ValidationError("Limit must be between 1 and 1000", "limit")
            if offset < 0:
                raise ValidationError("Offset must not be negative", "offset")
            records = await with_deadline(
                self.repository.find_analytics_by_code(code_id, limit=limit, offset=offset), self.timeout
            )
            return ServiceResponse(
                success=True, data=records, message="Dynamic QR analytics retrieved successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to get dynamic QR analytics", e)

    async def resolve_redirect(
        self,
        code_id: str,
        context: Union[ResolutionContext, Dict[str, Any], None] = None,
    ) -> ServiceResponse:
        """Resolve a scan; data is the redirect URL"""
        try:
            context = self._coerce(ResolutionContext, context or {})
            redirect_url = await self.orchestrator.resolve(code_id, context)
            return ServiceResponse(
                success=True, data=redirect_url, message="Redirect resolved successfully"
            )
        except Exception as e:
            return self._handle_error("Failed to resolve redirect", e)

    # ====================
    # Helpers
    # ====================

    @staticmethod
    def _coerce(model: Type[R], value: Union[R, Dict[str, Any]]) -> R:
        if isinstance(value, model):
            return value
        try:
            return model.model_validate(value)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {model.__name__}",
                details=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
            )

    def _handle_error(self, message: str, error: Exception) -> ServiceResponse:
        if isinstance(error, DynamicQRServiceError):
            logger.warning(f"{message}: {error.message}")
            return ServiceResponse(
                success=False,
                message=message,
                error=ErrorDetail(
                    code=error.code,
                    message=error.message,
                    status_code=error.status_code,
                    details=error.details,
                ),
            )

        logger.exception(f"{message}: {error}")
        return ServiceResponse(
            success=False,
            message=message,
            error=ErrorDetail(
                code="INTERNAL_SERVER_ERROR",
                message="Internal server error",
                status_code=500,
            ),
        )


__all__ = ["DynamicQRService"]
