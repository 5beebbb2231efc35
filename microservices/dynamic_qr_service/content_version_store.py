"""
Content Version Store

Owns the content versions of a code and keeps at most one of them active.
Activation goes through the repository's atomic activate_content_version,
so the single-active invariant holds under concurrent activation requests.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from .deadlines import RepositoryComponent
from .events import DynamicQREventPublisher
from .models import (
    ABTestStatus,
    ContentVersion,
    ContentVersionCreateRequest,
    ContentVersionUpdateRequest,
)
from .protocols import (
    BusinessLogicError,
    DynamicQRRepositoryProtocol,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ContentVersionStore(RepositoryComponent):
    """Content version lifecycle with the single-active invariant"""

    def __init__(
        self,
        repository: DynamicQRRepositoryProtocol,
        event_publisher: Optional[DynamicQREventPublisher] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(repository, timeout)
        self.event_publisher = event_publisher

    async def create(self, code_id: str, request: ContentVersionCreateRequest) -> ContentVersion:
        """
        Create a content version

        The version is persisted inactive first; when is_active was
        requested it is then activated atomically, which deactivates every
        other version of the code. A version whose activation fails is
        removed again.
        """
        self._require_id(code_id, "code_id", "code ID")
        if request.content is None or request.content == "":
            raise ValidationError("Content is required", "content")

        existing = await self._call(self.repository.find_content_versions_by_code(code_id))
        version_number = max((v.version_number for v in existing), default=0) + 1

        now = datetime.now(timezone.utc)
        version = ContentVersion(
            id=f"ver_{uuid.uuid4().hex[:16]}",
            code_id=code_id,
            version_number=version_number,
            content=request.content,
            redirect_url=request.redirect_url,
            is_active=False,
            scheduled_at=request.scheduled_at,
            created_by=request.created_by,
            created_at=now,
            updated_at=now,
        )
        version = await self._call(self.repository.create_content_version(version))
        logger.info(f"Content version created: {version.id} (code {code_id}, v{version_number})")

        if request.is_active:
            try:
                version = await self._activate(version)
            except Exception:
                await self._discard(version)
                raise

        return version

    async def get(self, version_id: str) -> ContentVersion:
        """Get content version by ID"""
        self._require_id(version_id, "version_id", "version ID")
        version = await self._call(self.repository.find_content_version_by_id(version_id))
        if not version:
            raise NotFoundError("Content version", version_id)
        return version

    async def find(self, version_id: str) -> Optional[ContentVersion]:
        """Get content version by ID, None when missing"""
        return await self._call(self.repository.find_content_version_by_id(version_id))

    async def list_versions(self, code_id: str) -> List[ContentVersion]:
        """List content versions of a code"""
        self._require_id(code_id, "code_id", "code ID")
        return await self._call(self.repository.find_content_versions_by_code(code_id))

    async def get_active(self, code_id: str) -> Optional[ContentVersion]:
        """Get the single active version of a code, or None"""
        self._require_id(code_id, "code_id", "code ID")
        return await self._call(self.repository.get_active_content_version(code_id))

    async def update(self, version_id: str, request: ContentVersionUpdateRequest) -> ContentVersion:
        """
        Update a content version

        is_active=True in the patch activates atomically; is_active=False
        deactivates.
        """
        version = await self.get(version_id)

        updates = request.model_dump(exclude_unset=True, exclude={"is_active"})
        if "content" in updates and (updates["content"] is None or updates["content"] == ""):
            raise ValidationError("Content cannot be empty", "content")

        if updates:
            updates["updated_at"] = datetime.now(timezone.utc)
            version = await self._call(self.repository.update_content_version(version_id, updates))

        if request.is_active is True:
            version = await self._activate(version)
        elif request.is_active is False and version.is_active:
            version = await self._deactivate(version)

        return version

    async def activate(self, version_id: str) -> ContentVersion:
        """Make a version the only active version of its code"""
        version = await self.get(version_id)
        return await self._activate(version)

    async def deactivate(self, version_id: str) -> ContentVersion:
        """Deactivate a version (single write)"""
        version = await self.get(version_id)
        return await self._deactivate(version)

    async def delete(self, version_id: str) -> bool:
        """
        Delete a content version

        Blocked while a running A/B test uses the version as a variant.
        """
        version = await self.get(version_id)

        tests = await self._call(self.repository.find_ab_tests_by_code(version.code_id))
        blocking = [
            t for t in tests
            if t.status == ABTestStatus.RUNNING and t.references_version(version_id)
        ]
        if blocking:
            raise BusinessLogicError(
                "Cannot delete version that is part of active A/B tests",
                details={"ab_test_ids": [t.id for t in blocking]},
            )

        deleted = await self._call(self.repository.delete_content_version(version_id))
        logger.info(f"Content version deleted: {version_id}")
        return deleted

    async def _activate(self, version: ContentVersion) -> ContentVersion:
        activated = await self._call(
            self.repository.activate_content_version(version.code_id, version.id)
        )
        if not activated:
            raise NotFoundError("Content version", version.id)

        logger.info(f"Content version activated: {version.id} (code {version.code_id})")
        if self.event_publisher:
            await self.event_publisher.publish_version_activated(
                code_id=activated.code_id,
                version_id=activated.id,
                version_number=activated.version_number,
            )
        return activated

    async def _discard(self, version: ContentVersion) -> None:
        """Remove a version whose creation could not complete"""
        try:
            await self._call(self.repository.delete_content_version(version.id))
            logger.warning(f"Content version discarded after failed activation: {version.id}")
        except Exception as e:
            logger.error(f"Failed to discard content version {version.id}: {e}")

    async def _deactivate(self, version: ContentVersion) -> ContentVersion:
        now = datetime.now(timezone.utc)
        deactivated = await self._call(
            self.repository.update_content_version(
                version.id,
                {"is_active": False, "deactivated_at": now, "updated_at": now},
            )
        )
        if not deactivated:
            raise NotFoundError("Content version", version.id)

        logger.info(f"Content version deactivated: {version.id}")
        return deactivated


__all__ = ["ContentVersionStore"]
