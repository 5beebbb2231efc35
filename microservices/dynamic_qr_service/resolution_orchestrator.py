"""
Resolution Orchestrator

Runs the priority cascade for one scan:

    running A/B test -> matching redirect rule -> active schedule -> active version

The first step that yields an existing version wins. A step whose
referenced version no longer exists falls through to the next one.
"""

import logging
from typing import Any, Optional

from .ab_test_engine import ABTestEngine
from .analytics_recorder import AnalyticsRecorder
from .content_scheduler import ContentScheduler, most_recent
from .content_version_store import ContentVersionStore
from .models import (
    ContentVersion,
    ResolutionContext,
    ResolutionEvent,
    ResolutionResult,
    ResolutionSource,
)
from .protocols import NoActiveContentError, ValidationError
from .redirect_rule_evaluator import RedirectRuleEvaluator

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_URL = "https://example.com"


def derive_redirect_url(version: ContentVersion, fallback: str = DEFAULT_FALLBACK_URL) -> str:
    """
    Redirect target of a version.

    Explicit redirect_url, then string content, then the url, redirectUrl
    or redirect_url field of object content, then the fallback.
    """
    if version.redirect_url:
        return version.redirect_url

    content: Any = version.content
    if isinstance(content, str) and content:
        return content
    if isinstance(content, dict):
        for key in ("url", "redirectUrl", "redirect_url"):
            value = content.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


class ResolutionOrchestrator:
    """Stateless cascade over the resolution components"""

    def __init__(
        self,
        version_store: ContentVersionStore,
        ab_test_engine: ABTestEngine,
        rule_evaluator: RedirectRuleEvaluator,
        scheduler: ContentScheduler,
        analytics_recorder: Optional[AnalyticsRecorder] = None,
        fallback_redirect_url: str = DEFAULT_FALLBACK_URL,
    ):
        self.version_store = version_store
        self.ab_test_engine = ab_test_engine
        self.rule_evaluator = rule_evaluator
        self.scheduler = scheduler
        self.analytics_recorder = analytics_recorder
        self.fallback_redirect_url = fallback_redirect_url

    async def resolve(self, code_id: str, context: Optional[ResolutionContext] = None) -> str:
        """Resolve a scan to its redirect URL"""
        result = await self.resolve_detailed(code_id, context)
        return result.redirect_url

    async def resolve_detailed(
        self, code_id: str, context: Optional[ResolutionContext] = None
    ) -> ResolutionResult:
        """Resolve a scan and report which cascade step decided it"""
        if not code_id or not isinstance(code_id, str) or not code_id.strip():
            raise ValidationError("Valid code ID is required", "code_id")
        context = context or ResolutionContext()

        result = await self._run_cascade(code_id, context)

        if self.analytics_recorder:
            self.analytics_recorder.record(
                ResolutionEvent(
                    code_id=code_id,
                    version_id=result.version_id,
                    ab_test_id=result.ab_test_id,
                    variant=result.variant,
                    redirect_rule_id=result.redirect_rule_id,
                    context=context,
                )
            )

        logger.debug(f"Resolved {code_id} via {result.source.value} to {result.version_id}")
        return result

    async def _run_cascade(self, code_id: str, context: ResolutionContext) -> ResolutionResult:
        # 1. Running A/B test
        test = await self.ab_test_engine.find_running(code_id)
        if test:
            variant = self.ab_test_engine.assign_variant(test, context)
            version = await self.version_store.find(test.version_for(variant))
            if version:
                return self._result(
                    version, ResolutionSource.AB_TEST, ab_test_id=test.id, variant=variant
                )
            logger.warning(f"A/B test {test.id} variant {variant.value} version missing, falling through")

        # 2. Redirect rules
        rule = await self.rule_evaluator.evaluate(code_id, context)
        if rule:
            version = await self.version_store.find(rule.target_version_id)
            if version:
                return self._result(version, ResolutionSource.REDIRECT_RULE, redirect_rule_id=rule.id)
            logger.warning(f"Redirect rule {rule.id} target version missing, falling through")

        # 3. Scheduled content
        schedule = most_recent(await self.scheduler.find_active(code_id, context.timestamp))
        if schedule:
            version = await self.version_store.find(schedule.version_id)
            if version:
                return self._result(version, ResolutionSource.SCHEDULE, schedule_id=schedule.id)
            logger.warning(f"Schedule {schedule.id} version missing, falling through")

        # 4. Default active version
        version = await self.version_store.get_active(code_id)
        if version:
            return self._result(version, ResolutionSource.ACTIVE_VERSION)

        raise NoActiveContentError(code_id)

    def _result(self, version: ContentVersion, source: ResolutionSource, **kwargs) -> ResolutionResult:
        return ResolutionResult(
            redirect_url=derive_redirect_url(version, self.fallback_redirect_url),
            version_id=version.id,
            source=source,
            **kwargs,
        )


__all__ = ["ResolutionOrchestrator", "derive_redirect_url", "DEFAULT_FALLBACK_URL"]
