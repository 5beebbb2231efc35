"""
Deadline-bounded repository access shared by the resolution components
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from .protocols import DynamicQRRepositoryProtocol, ValidationError

T = TypeVar("T")


async def with_deadline(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await with an upper bound; None means unbounded"""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


class RepositoryComponent:
    """Base for components that read and write through the repository"""

    def __init__(
        self,
        repository: DynamicQRRepositoryProtocol,
        timeout: Optional[float] = None,
    ):
        self.repository = repository
        self.timeout = timeout

    async def _call(self, awaitable: Awaitable[T]) -> T:
        return await with_deadline(awaitable, self.timeout)

    @staticmethod
    def _require_id(value: Optional[str], field: str, label: str) -> None:
        if not value or not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Valid {label} is required", field)
