"""Repositories for accounts, profiles, captures and memories.

Every lookup that starts from a caller-supplied identifier resolves the
account -> profile chain inside the same query. Repositories flush but never
commit; the caller owns the transaction.

Captures and memories are soft-deleted: deleted_at hides a row from every
read and transition here, restore() clears it inside the retention window,
and purge_deleted() removes rows whose window has passed.
"""

import base64
import binascii
import logging
from datetime import datetime, timezone

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ember.db.exceptions import (
    AccountNotFoundError,
    CaptureNotFoundError,
    DuplicateCaptureError,
    InvalidCursorError,
    MemoryNotFoundError,
    ProfileNotFoundError,
)
from ember.db.models import Account, Capture, Memory, Profile
from ember.enums import AccountTier, CaptureStatus, RETRYABLE_STATUSES

logger = logging.getLogger(__name__)


def encode_cursor(created_at: datetime, memory_id: str) -> str:
    """Build an opaque keyset cursor from the last item of a page."""
    raw = f"{created_at.isoformat()}|{memory_id}".encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    """Inverse of encode_cursor.

    Raises:
        InvalidCursorError: If the cursor was not produced by encode_cursor
    """
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        stamp, memory_id = raw.split("|", 1)
        created_at = datetime.fromisoformat(stamp)
    except (ValueError, UnicodeError, binascii.Error) as e:
        raise InvalidCursorError(cursor) from e
    if not memory_id:
        raise InvalidCursorError(cursor)
    return created_at, memory_id


class AccountRepository:
    """Persistence for the minimal account record."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        external_id: str,
        tier: AccountTier = AccountTier.FREE,
        token_budget: int = 8000,
        extraction_route: str = "server",
        byok_api_key: str | None = None,
    ) -> Account:
        account = Account(
            external_id=external_id,
            tier=tier.value,
            token_budget=token_budget,
            extraction_route=extraction_route,
            byok_api_key=byok_api_key,
        )
        self.session.add(account)
        await self.session.flush()

        logger.info(f"Created account {account.id}", extra={"account_id": account.id})
        return account

    async def get(self, account_id: str) -> Account:
        account = await self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_by_external_id(self, external_id: str) -> Account | None:
        result = await self.session.execute(
            select(Account).where(Account.external_id == external_id)
        )
        return result.scalar_one_or_none()


class ProfileRepository:
    """Persistence for profiles, enforcing one default per account."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _clear_default(self, account_id: str) -> None:
        await self.session.execute(
            update(Profile)
            .where(Profile.account_id == account_id, Profile.is_default.is_(True))
            .values(is_default=False)
        )

    async def create(
        self,
        account_id: str,
        name: str,
        platform: str | None = None,
        is_default: bool = False,
    ) -> Profile:
        """Create a profile.

        The first profile of an account always becomes the default. Creating
        a new default clears the previous one in the same transaction.
        """
        existing = await self.session.execute(
            select(func.count(Profile.id)).where(Profile.account_id == account_id)
        )
        if existing.scalar_one() == 0:
            is_default = True
        if is_default:
            await self._clear_default(account_id)

        profile = Profile(
            account_id=account_id, name=name, platform=platform, is_default=is_default
        )
        self.session.add(profile)
        await self.session.flush()

        logger.info(
            f"Created profile {profile.id} (default={is_default})",
            extra={"account_id": account_id, "profile_id": profile.id},
        )
        return profile

    async def get(self, account_id: str, profile_id: str) -> Profile:
        """Fetch a profile owned by account_id.

        Raises:
            ProfileNotFoundError: If missing or owned by another account
        """
        result = await self.session.execute(
            select(Profile).where(Profile.id == profile_id, Profile.account_id == account_id)
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            raise ProfileNotFoundError(profile_id)
        return profile

    async def list_for_account(self, account_id: str) -> list[Profile]:
        """List profiles, default first, then oldest first."""
        result = await self.session.execute(
            select(Profile)
            .where(Profile.account_id == account_id)
            .order_by(Profile.is_default.desc(), Profile.created_at, Profile.id)
        )
        return list(result.scalars().all())

    async def set_default(self, account_id: str, profile_id: str) -> Profile:
        profile = await self.get(account_id, profile_id)
        if profile.is_default:
            return profile
        await self._clear_default(account_id)
        profile.is_default = True
        await self.session.flush()
        return profile

    async def delete(self, account_id: str, profile_id: str) -> None:
        """Delete a profile together with its captures and memories.

        When the default profile is removed, the oldest remaining profile of
        the account takes over the default flag.
        """
        profile = await self.get(account_id, profile_id)
        was_default = profile.is_default

        memories = await self.session.execute(
            delete(Memory).where(Memory.profile_id == profile_id)
        )
        captures = await self.session.execute(
            delete(Capture).where(Capture.profile_id == profile_id)
        )
        await self.session.delete(profile)
        await self.session.flush()

        if was_default:
            result = await self.session.execute(
                select(Profile)
                .where(Profile.account_id == account_id)
                .order_by(Profile.created_at, Profile.id)
                .limit(1)
            )
            successor = result.scalar_one_or_none()
            if successor is not None:
                successor.is_default = True
                await self.session.flush()

        logger.info(
            f"Deleted profile {profile_id} with {captures.rowcount} captures "
            f"and {memories.rowcount} memories",
            extra={"account_id": account_id, "profile_id": profile_id},
        )


class CaptureRepository:
    """Persistence and status transitions for captures.

    Status transitions are conditional UPDATEs; a transition reports success
    only when the row was in an eligible state, so two workers can never both
    claim the same capture. Deleted captures are never eligible.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_fingerprint(self, profile_id: str, content_hash: str) -> Capture | None:
        """Active capture of a profile with this fingerprint, if any."""
        result = await self.session.execute(
            select(Capture).where(
                Capture.profile_id == profile_id,
                Capture.content_hash == content_hash,
                Capture.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        profile_id: str,
        method: str,
        raw_text: str | None,
        content_hash: str | None,
        platform: str | None = None,
        speaker_confidence: float | None = None,
    ) -> Capture:
        capture = Capture(
            profile_id=profile_id,
            method=method,
            raw_text=raw_text,
            content_hash=content_hash,
            platform=platform,
            speaker_confidence=speaker_confidence,
            status=CaptureStatus.QUEUED.value,
        )
        self.session.add(capture)
        await self.session.flush()
        return capture

    def _owned(self, account_id: str):
        return (
            select(Capture)
            .join(Profile, Capture.profile_id == Profile.id)
            .where(Profile.account_id == account_id)
        )

    async def get(self, account_id: str, capture_id: str) -> Capture:
        """Fetch an active capture whose profile belongs to account_id.

        Raises:
            CaptureNotFoundError: If missing, deleted or owned by another account
        """
        result = await self.session.execute(
            self._owned(account_id).where(Capture.id == capture_id, Capture.deleted_at.is_(None))
        )
        capture = result.scalar_one_or_none()
        if capture is None:
            raise CaptureNotFoundError(capture_id)
        return capture

    async def get_for_worker(self, capture_id: str) -> Capture | None:
        """Unscoped lookup used by the scheduler, which acts for the system."""
        return await self.session.get(Capture, capture_id, populate_existing=True)

    async def claim(self, capture_id: str) -> bool:
        """queued -> processing. Returns False if the capture was not queued."""
        result = await self.session.execute(
            update(Capture)
            .where(
                Capture.id == capture_id,
                Capture.status == CaptureStatus.QUEUED.value,
                Capture.deleted_at.is_(None),
            )
            .values(
                status=CaptureStatus.PROCESSING.value,
                started_at=datetime.now(timezone.utc),
                attempt_count=Capture.attempt_count + 1,
                error_message=None,
            )
        )
        return result.rowcount == 1

    async def complete(self, capture_id: str, memory_count: int) -> bool:
        """processing -> completed, writing the denormalized memory count."""
        now = datetime.now(timezone.utc)
        result = await self.session.execute(
            update(Capture)
            .where(
                Capture.id == capture_id,
                Capture.status == CaptureStatus.PROCESSING.value,
                Capture.deleted_at.is_(None),
            )
            .values(
                status=CaptureStatus.COMPLETED.value,
                memory_count=memory_count,
                error_message=None,
                completed_at=now,
            )
        )
        return result.rowcount == 1

    async def fail(self, capture_id: str, error_message: str) -> bool:
        """processing -> failed. Existing memories of the capture are untouched.

        Applies to deleted captures too, so a job cut short by a delete does
        not leave its capture in processing once restored.
        """
        result = await self.session.execute(
            update(Capture)
            .where(Capture.id == capture_id, Capture.status == CaptureStatus.PROCESSING.value)
            .values(
                status=CaptureStatus.FAILED.value,
                error_message=error_message,
                completed_at=datetime.now(timezone.utc),
            )
        )
        return result.rowcount == 1

    async def requeue(self, capture_id: str) -> bool:
        """failed | completed -> queued, for an explicit retry."""
        result = await self.session.execute(
            update(Capture)
            .where(
                Capture.id == capture_id,
                Capture.status.in_([s.value for s in RETRYABLE_STATUSES]),
                Capture.deleted_at.is_(None),
            )
            .values(
                status=CaptureStatus.QUEUED.value,
                error_message=None,
                started_at=None,
                completed_at=None,
            )
        )
        return result.rowcount == 1

    async def list_ids_by_status(self, status: CaptureStatus) -> list[str]:
        result = await self.session.execute(
            select(Capture.id)
            .where(Capture.status == status.value, Capture.deleted_at.is_(None))
            .order_by(Capture.created_at)
        )
        return list(result.scalars().all())

    async def fail_stale(self, started_before: datetime, error_message: str) -> list[str]:
        """Force captures stuck in processing since before the cutoff to failed."""
        result = await self.session.execute(
            select(Capture.id).where(
                Capture.status == CaptureStatus.PROCESSING.value,
                or_(Capture.started_at.is_(None), Capture.started_at < started_before),
            )
        )
        stale = list(result.scalars().all())
        for capture_id in stale:
            await self.fail(capture_id, error_message)
        return stale

    async def delete(self, account_id: str, capture_id: str) -> None:
        """Soft-delete a capture. Its memories stay visible."""
        capture = await self.get(account_id, capture_id)
        capture.deleted_at = datetime.now(timezone.utc)
        await self.session.flush()

        logger.info(f"Deleted capture {capture_id}", extra={"capture_id": capture_id})

    async def restore(self, account_id: str, capture_id: str, deleted_after: datetime) -> Capture:
        """Undo a delete made after deleted_after.

        Raises:
            CaptureNotFoundError: Not deleted, deleted before the cutoff, or
                owned by another account
            DuplicateCaptureError: An active capture of the profile now holds
                the same fingerprint
        """
        result = await self.session.execute(
            self._owned(account_id).where(
                Capture.id == capture_id,
                Capture.deleted_at.is_not(None),
                Capture.deleted_at >= deleted_after,
            )
        )
        capture = result.scalar_one_or_none()
        if capture is None:
            raise CaptureNotFoundError(capture_id)

        if capture.content_hash is not None:
            existing = await self.find_by_fingerprint(capture.profile_id, capture.content_hash)
            if existing is not None:
                raise DuplicateCaptureError(capture_id, existing.id)

        capture.deleted_at = None
        await self.session.flush()

        logger.info(f"Restored capture {capture_id}", extra={"capture_id": capture_id})
        return capture

    async def purge_deleted(self, deleted_before: datetime) -> int:
        """Permanently remove captures deleted before the cutoff.

        Memories that came from them are kept with capture_id nulled.

        Returns:
            Number of captures removed
        """
        expired = select(Capture.id).where(Capture.deleted_at < deleted_before)
        await self.session.execute(
            update(Memory)
            .where(Memory.capture_id.in_(expired))
            .values(capture_id=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            delete(Capture)
            .where(Capture.deleted_at < deleted_before)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class MemoryRepository:
    """Persistence for memories, always scoped to an owning profile."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _owned(self, account_id: str, deleted: bool = False):
        query = (
            select(Memory)
            .join(Profile, Memory.profile_id == Profile.id)
            .where(Profile.account_id == account_id)
        )
        if deleted:
            return query.where(Memory.deleted_at.is_not(None))
        return query.where(Memory.deleted_at.is_(None))

    async def replace_for_capture(
        self, capture_id: str, profile_id: str, memories: list[Memory]
    ) -> int:
        """Remove the memory set of a capture and insert a new one.

        Runs inside the caller's transaction so readers never see a
        half-replaced set. Deleted memories of the capture are removed too.

        Returns:
            Number of memories removed
        """
        removed = await self.session.execute(
            delete(Memory).where(Memory.capture_id == capture_id)
        )
        for memory in memories:
            memory.capture_id = capture_id
            memory.profile_id = profile_id
        self.session.add_all(memories)
        await self.session.flush()
        return removed.rowcount

    async def get(self, account_id: str, memory_id: str) -> Memory:
        """Fetch a memory through its profile's ownership.

        Raises:
            MemoryNotFoundError: If missing or owned by another account
        """
        result = await self.session.execute(self._owned(account_id).where(Memory.id == memory_id))
        memory = result.scalar_one_or_none()
        if memory is None:
            raise MemoryNotFoundError(memory_id)
        return memory

    async def list_page(
        self,
        account_id: str,
        profile_id: str,
        category: str | None = None,
        cursor: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Memory], str | None]:
        """One page of a profile's memories, newest first.

        Returns:
            (items, next_cursor) where next_cursor is None on the last page
        """
        query = self._owned(account_id).where(Memory.profile_id == profile_id)
        if category is not None:
            query = query.where(Memory.category == category)
        if cursor is not None:
            created_at, last_id = decode_cursor(cursor)
            query = query.where(
                or_(
                    Memory.created_at < created_at,
                    and_(Memory.created_at == created_at, Memory.id < last_id),
                )
            )
        query = query.order_by(Memory.created_at.desc(), Memory.id.desc()).limit(limit + 1)

        result = await self.session.execute(query)
        rows = list(result.scalars().all())
        if len(rows) <= limit:
            return rows, None
        page = rows[:limit]
        return page, encode_cursor(page[-1].created_at, page[-1].id)

    async def search(
        self,
        account_id: str,
        profile_id: str,
        query_text: str,
        category: str | None = None,
        limit: int = 20,
    ) -> list[Memory]:
        """Case-insensitive substring search, most important first."""
        needle = query_text.lower()
        query = (
            self._owned(account_id)
            .where(Memory.profile_id == profile_id)
            .where(
                or_(
                    func.lower(Memory.factual_content).contains(needle, autoescape=True),
                    func.lower(Memory.emotional_significance).contains(needle, autoescape=True),
                    func.lower(Memory.verbatim_text).contains(needle, autoescape=True),
                )
            )
        )
        if category is not None:
            query = query.where(Memory.category == category)
        query = query.order_by(
            Memory.importance.desc(), Memory.created_at.desc(), Memory.id.desc()
        ).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_for_profile(
        self, account_id: str, profile_id: str, categories: list[str] | None = None
    ) -> list[Memory]:
        """Every memory of a profile, optionally restricted to categories."""
        query = self._owned(account_id).where(Memory.profile_id == profile_id)
        if categories is not None:
            query = query.where(Memory.category.in_(categories))
        result = await self.session.execute(query.order_by(Memory.id))
        return list(result.scalars().all())

    async def count_for_capture(self, capture_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Memory.id)).where(
                Memory.capture_id == capture_id, Memory.deleted_at.is_(None)
            )
        )
        return result.scalar_one()

    async def delete(self, account_id: str, memory_id: str) -> None:
        """Soft-delete a memory; it disappears from every read."""
        memory = await self.get(account_id, memory_id)
        memory.deleted_at = datetime.now(timezone.utc)
        await self.session.flush()

    async def restore(self, account_id: str, memory_id: str, deleted_after: datetime) -> Memory:
        """Undo a delete made after deleted_after.

        Raises:
            MemoryNotFoundError: Not deleted, deleted before the cutoff, or
                owned by another account
        """
        result = await self.session.execute(
            self._owned(account_id, deleted=True).where(
                Memory.id == memory_id, Memory.deleted_at >= deleted_after
            )
        )
        memory = result.scalar_one_or_none()
        if memory is None:
            raise MemoryNotFoundError(memory_id)
        memory.deleted_at = None
        await self.session.flush()
        return memory

    async def purge_deleted(self, deleted_before: datetime) -> int:
        """Permanently remove memories deleted before the cutoff."""
        result = await self.session.execute(
            delete(Memory)
            .where(Memory.deleted_at < deleted_before)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
