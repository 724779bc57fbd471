"""Memory read and edit operations.

Summary text is derived from factual content and emotional significance at
write time, and token counts for both forms are cached on the row. Any edit
touching those fields re-derives them.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ember.db.models import Memory, MemoryRecord
from ember.db.repository import MemoryRepository, ProfileRepository
from ember.enums import MemoryCategory
from ember.services.retention import restore_cutoff
from ember.wake.estimator import TokenEstimator

logger = logging.getLogger(__name__)


def summarize(factual_content: str, emotional_significance: str | None) -> str:
    """Compact rendering of a memory used when verbatim text is not preferred."""
    summary = factual_content.strip()
    if emotional_significance:
        summary = f"{summary} ({emotional_significance.strip().rstrip('.')})"
    return summary


def refresh_derived(memory: Memory, estimator: TokenEstimator) -> None:
    """Recompute summary text and cached token counts in place."""
    memory.summary_text = summarize(memory.factual_content, memory.emotional_significance)
    memory.verbatim_tokens = estimator.estimate(memory.verbatim_text)
    memory.summary_tokens = estimator.estimate(memory.summary_text)


class MemoryUpdate(BaseModel):
    """User-editable fields. Omitted fields are left unchanged."""

    factual_content: str | None = Field(None, min_length=1)
    emotional_significance: str | None = None
    category: MemoryCategory | None = None
    importance: int | None = Field(None, ge=1, le=5)
    verbatim_text: str | None = Field(None, min_length=1)
    prefer_verbatim: bool | None = None

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "MemoryUpdate":
        for name in ("factual_content", "category", "importance", "verbatim_text", "prefer_verbatim"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class MemoryPage(BaseModel):
    items: list[MemoryRecord]
    next_cursor: str | None = None


class MemoryService:
    """Ownership-checked memory operations for API callers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        estimator: TokenEstimator,
        retention_days: int = 30,
    ):
        self.session_factory = session_factory
        self.estimator = estimator
        self.retention_days = retention_days

    async def list_memories(
        self,
        account_id: str,
        profile_id: str,
        category: MemoryCategory | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> MemoryPage:
        """One page of a profile's memories, newest first.

        Raises:
            ProfileNotFoundError: Profile missing or owned by another account
            InvalidCursorError: Cursor was not issued by this operation
        """
        async with self.session_factory() as session:
            await ProfileRepository(session).get(account_id, profile_id)
            rows, next_cursor = await MemoryRepository(session).list_page(
                account_id,
                profile_id,
                category=category.value if category else None,
                cursor=cursor,
                limit=limit,
            )
            return MemoryPage(
                items=[MemoryRecord.model_validate(row) for row in rows], next_cursor=next_cursor
            )

    async def search_memories(
        self,
        account_id: str,
        profile_id: str,
        query: str,
        category: MemoryCategory | None = None,
        limit: int = 20,
    ) -> list[MemoryRecord]:
        async with self.session_factory() as session:
            await ProfileRepository(session).get(account_id, profile_id)
            rows = await MemoryRepository(session).search(
                account_id,
                profile_id,
                query,
                category=category.value if category else None,
                limit=limit,
            )
            return [MemoryRecord.model_validate(row) for row in rows]

    async def get_memory(self, account_id: str, memory_id: str) -> MemoryRecord:
        async with self.session_factory() as session:
            memory = await MemoryRepository(session).get(account_id, memory_id)
            return MemoryRecord.model_validate(memory)

    async def update_memory(
        self, account_id: str, memory_id: str, update: MemoryUpdate
    ) -> MemoryRecord:
        """Apply a user edit.

        Raises:
            MemoryNotFoundError: Memory missing or owned by another account
        """
        changes: dict[str, Any] = update.model_dump(exclude_unset=True)
        async with self.session_factory() as session:
            memory = await MemoryRepository(session).get(account_id, memory_id)
            for field, value in changes.items():
                if field == "category":
                    value = MemoryCategory(value).value
                setattr(memory, field, value)

            if changes.keys() & {"factual_content", "emotional_significance", "verbatim_text"}:
                refresh_derived(memory, self.estimator)

            await session.commit()
            await session.refresh(memory)

            logger.info(
                f"Updated memory {memory_id}: {sorted(changes)}",
                extra={"memory_id": memory_id},
            )
            return MemoryRecord.model_validate(memory)

    async def resummarize(self, account_id: str, memory_id: str) -> MemoryRecord:
        """Recompute summary text and cached token counts."""
        async with self.session_factory() as session:
            memory = await MemoryRepository(session).get(account_id, memory_id)
            refresh_derived(memory, self.estimator)
            await session.commit()
            await session.refresh(memory)
            return MemoryRecord.model_validate(memory)

    async def delete_memory(self, account_id: str, memory_id: str) -> None:
        """Soft-delete a memory. The source capture's memory_count is not rewritten."""
        async with self.session_factory() as session:
            await MemoryRepository(session).delete(account_id, memory_id)
            await session.commit()

        logger.info(f"Deleted memory {memory_id}", extra={"memory_id": memory_id})

    async def restore_memory(self, account_id: str, memory_id: str) -> MemoryRecord:
        """Bring back a memory deleted within the retention window.

        Raises:
            MemoryNotFoundError: Not deleted, past the window, or owned by
                another account
        """
        cutoff = restore_cutoff(self.retention_days)
        async with self.session_factory() as session:
            memory = await MemoryRepository(session).restore(account_id, memory_id, cutoff)
            await session.commit()
            await session.refresh(memory)

            logger.info(f"Restored memory {memory_id}", extra={"memory_id": memory_id})
            return MemoryRecord.model_validate(memory)
