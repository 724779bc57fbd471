"""Restore window and purge of soft-deleted captures and memories."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ember.db.repository import CaptureRepository, MemoryRepository

logger = logging.getLogger(__name__)


def restore_cutoff(retention_days: int, now: datetime | None = None) -> datetime:
    """Oldest deletion time that can still be restored."""
    return (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)


class PurgeReport(BaseModel):
    cutoff: datetime
    memories: int = 0
    captures: int = 0


class RetentionService:
    """Removes deleted rows once their restore window has passed."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], retention_days: int):
        self.session_factory = session_factory
        self.retention_days = retention_days

    async def purge_expired(self, now: datetime | None = None) -> PurgeReport:
        """Delete expired memories, then expired captures, in one transaction.

        Memories derived from a purged capture that were not themselves
        deleted survive with capture_id cleared.
        """
        cutoff = restore_cutoff(self.retention_days, now)
        async with self.session_factory() as session:
            async with session.begin():
                memories = await MemoryRepository(session).purge_deleted(cutoff)
                captures = await CaptureRepository(session).purge_deleted(cutoff)

        report = PurgeReport(cutoff=cutoff, memories=memories, captures=captures)
        if memories or captures:
            logger.info(
                f"Purged {captures} captures and {memories} memories deleted before {cutoff.isoformat()}",
                extra={"captures": captures, "memories": memories},
            )
        return report

    async def run_forever(self, interval_seconds: float) -> None:
        """Purge on a fixed interval until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.purge_expired()
            except SQLAlchemyError as e:
                logger.error(f"Purge of deleted rows failed: {e}")
