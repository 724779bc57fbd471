"""Capture pipeline: intake, claim, extraction and commit.

State machine:
    queued -> processing -> completed | failed
    failed | completed -> queued (explicit retry)

Deleted captures leave every transition except processing -> failed; a
restore inside the retention window brings them back in the status they
were deleted in.

The pipeline is the only writer of capture status. Every transition is a
conditional update, and a successful extraction replaces the capture's
memory set and flips its status in one transaction.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ember.capture.exceptions import CaptureRejection, CaptureValidationError
from ember.capture.fingerprint import fingerprint, normalize_text
from ember.capture.intake import CaptureRequest
from ember.config import Settings
from ember.db.exceptions import InvalidTransitionError, ProfileNotFoundError
from ember.db.models import Account, Capture, CaptureRecord, Memory, Profile
from ember.db.repository import CaptureRepository, MemoryRepository, ProfileRepository
from ember.enums import CaptureMethod, CaptureStatus
from ember.extraction.errors import ExtractionError
from ember.extraction.extractor import ExtractionCapability
from ember.extraction.factory import build_extractor
from ember.extraction.models import ExtractionBatch, ProfileContext
from ember.llm import errors as llm_errors
from ember.llm.factory import ExtractionRoute
from ember.services.memories import refresh_derived
from ember.services.retention import restore_cutoff
from ember.wake.estimator import TokenEstimator

logger = logging.getLogger(__name__)


class JobInterruptedError(Exception):
    """The worker running a job was shut down mid-flight."""

    pass


# User-visible failure reasons, keyed by error class
_FAILURE_MESSAGES: dict[type[BaseException], str] = {
    llm_errors.AuthenticationError: "The extraction service rejected the configured credentials",
    llm_errors.RateLimitError: "The extraction service is rate limited, please retry later",
    llm_errors.TimeoutError: "The extraction service did not respond in time",
    llm_errors.ServiceUnavailableError: "The extraction service is unavailable, please retry later",
    llm_errors.ResourceNotFoundError: "The configured extraction model does not exist",
    llm_errors.InvalidRequestError: "The extraction service rejected the request",
    TimeoutError: "Extraction exceeded the maximum processing time",
    JobInterruptedError: "Processing was interrupted, please retry",
}

ExtractorFactory = Callable[[Account], ExtractionCapability]


def describe_failure(error: BaseException, limit: int = 500) -> str:
    """Short, non-sensitive reason stored on a failed capture.

    Built from the error class only, never from model output.
    """
    if isinstance(error, ExtractionError):
        message = error.public_message
    else:
        message = next(
            (text for cls, text in _FAILURE_MESSAGES.items() if isinstance(error, cls)),
            f"Memory extraction failed ({type(error).__name__})",
        )
    return message[:limit]


class CaptureReceipt(BaseModel):
    """Result of an intake call."""

    capture_id: str
    status: CaptureStatus
    duplicate: bool = False


class ClaimedCapture(BaseModel):
    """Everything a worker needs once it owns a capture."""

    capture_id: str
    profile_id: str
    method: CaptureMethod
    raw_text: str | None
    speaker_confidence: float | None = None
    context: ProfileContext


class CapturePipeline:
    """Owns capture state transitions and memory commits."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: Settings,
        estimator: TokenEstimator,
        extractor_factory: ExtractorFactory | None = None,
    ):
        """Initialize the pipeline.

        Args:
            session_factory: Memory Store session factory
            config: Application settings (intake bounds, error truncation)
            estimator: Token estimator for cached memory costs
            extractor_factory: Picks the extraction capability for an account;
                defaults to build_extractor with the account's route
        """
        self.session_factory = session_factory
        self.config = config
        self.estimator = estimator
        self.extractor_factory = extractor_factory or self._default_extractor

    def _default_extractor(self, account: Account) -> ExtractionCapability:
        return build_extractor(
            self.config,
            route=ExtractionRoute(account.extraction_route),
            byok_api_key=account.byok_api_key,
        )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def validate_size(self, raw_text: str) -> str:
        """Return the normalized text or raise a TooShort / TooLong rejection."""
        normalized = normalize_text(raw_text)
        if len(normalized) < self.config.capture_min_chars:
            raise CaptureValidationError(
                CaptureRejection.TOO_SHORT,
                f"Capture must be at least {self.config.capture_min_chars} characters",
            )
        if len(normalized) > self.config.capture_max_chars:
            raise CaptureValidationError(
                CaptureRejection.TOO_LONG,
                f"Capture must be at most {self.config.capture_max_chars} characters",
            )
        return normalized

    async def submit(self, account_id: str, request: CaptureRequest) -> CaptureReceipt:
        """Validate, deduplicate and persist a capture in queued status.

        Does not schedule extraction; see CaptureIntake.

        Raises:
            CaptureValidationError: TooShort, TooLong or InvalidProfile
        """
        normalized = self.validate_size(request.raw_text)
        digest = fingerprint(normalized)

        async with self.session_factory() as session:
            try:
                await ProfileRepository(session).get(account_id, request.profile_id)
            except ProfileNotFoundError as e:
                raise CaptureValidationError(
                    CaptureRejection.INVALID_PROFILE, "Profile not found"
                ) from e

            captures = CaptureRepository(session)
            existing = await captures.find_by_fingerprint(request.profile_id, digest)
            if existing is not None:
                logger.info(
                    f"Duplicate capture for profile {request.profile_id}, returning {existing.id}",
                    extra={"capture_id": existing.id},
                )
                return CaptureReceipt(
                    capture_id=existing.id, status=CaptureStatus(existing.status), duplicate=True
                )

            capture = await captures.create(
                request.profile_id,
                method=request.method.value,
                raw_text=request.raw_text,
                content_hash=digest,
                platform=request.resolved_platform().value,
                speaker_confidence=request.speaker_confidence,
            )
            try:
                await session.commit()
            except IntegrityError:
                # A concurrent submission of the same text won the insert
                await session.rollback()
                existing = await captures.find_by_fingerprint(request.profile_id, digest)
                if existing is None:
                    raise
                return CaptureReceipt(
                    capture_id=existing.id, status=CaptureStatus(existing.status), duplicate=True
                )

        logger.info(
            f"Queued capture {capture.id} ({request.method.value}, {len(normalized)} chars)",
            extra={"capture_id": capture.id, "profile_id": request.profile_id},
        )
        return CaptureReceipt(capture_id=capture.id, status=CaptureStatus.QUEUED)

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def claim(self, capture_id: str) -> ClaimedCapture | None:
        """Move a queued capture to processing.

        Returns:
            The claimed capture, or None if it was not queued (already taken,
            finished or deleted)
        """
        async with self.session_factory() as session:
            captures = CaptureRepository(session)
            if not await captures.claim(capture_id):
                await session.rollback()
                return None
            await session.commit()

            capture = await captures.get_for_worker(capture_id)
            profile = await session.get(Profile, capture.profile_id)
            return ClaimedCapture(
                capture_id=capture.id,
                profile_id=capture.profile_id,
                method=CaptureMethod(capture.method),
                raw_text=capture.raw_text,
                speaker_confidence=capture.speaker_confidence,
                context=ProfileContext(
                    profile_id=profile.id,
                    profile_name=profile.name,
                    platform=capture.platform,
                    method=capture.method,
                ),
            )

    async def extract(self, claimed: ClaimedCapture) -> ExtractionBatch:
        """Run the account's extraction capability on a claimed capture.

        Raises:
            ExtractionError: Non-transient extraction failure
            LLMError: Transport failure (transient or not)
        """
        if not claimed.raw_text:
            raise ExtractionError("Capture has no text to process")

        async with self.session_factory() as session:
            profile = await session.get(Profile, claimed.profile_id)
            account = await session.get(Account, profile.account_id)

        extractor = self.extractor_factory(account)
        try:
            return await extractor.extract(claimed.raw_text, claimed.context)
        finally:
            await extractor.aclose()

    def _build_memories(self, claimed: ClaimedCapture, batch: ExtractionBatch) -> list[Memory]:
        created_at = datetime.now(timezone.utc)
        confidence = (
            claimed.speaker_confidence if claimed.method == CaptureMethod.IMAGE_DERIVED else None
        )
        memories = []
        for candidate in batch.candidates:
            memory = Memory(
                category=candidate.category.value,
                factual_content=candidate.factual_content,
                emotional_significance=candidate.emotional_significance,
                importance=candidate.importance,
                verbatim_text=candidate.verbatim_text,
                prefer_verbatim=False,
                speaker_confidence=confidence,
                created_at=created_at,
            )
            refresh_derived(memory, self.estimator)
            memories.append(memory)
        return memories

    async def commit(self, claimed: ClaimedCapture, batch: ExtractionBatch) -> int:
        """Replace the capture's memories and mark it completed, atomically.

        Returns:
            Number of memories written

        Raises:
            InvalidTransitionError: The capture left processing meanwhile
                (deleted or forced to failed); nothing is written
        """
        memories = self._build_memories(claimed, batch)

        async with self.session_factory() as session:
            async with session.begin():
                if not await CaptureRepository(session).complete(claimed.capture_id, len(memories)):
                    raise InvalidTransitionError(
                        claimed.capture_id, "unknown", CaptureStatus.COMPLETED.value
                    )
                replaced = await MemoryRepository(session).replace_for_capture(
                    claimed.capture_id, claimed.profile_id, memories
                )

        logger.info(
            f"Completed capture {claimed.capture_id}: {len(memories)} memories "
            f"({replaced} replaced, {batch.dropped} dropped)",
            extra={"capture_id": claimed.capture_id, "memory_count": len(memories)},
        )
        return len(memories)

    async def fail(self, capture_id: str, error: BaseException) -> str | None:
        """Mark a processing capture failed with a non-sensitive reason.

        Returns:
            The stored message, or None if the capture was no longer processing
        """
        message = describe_failure(error, self.config.error_message_max_chars)
        async with self.session_factory() as session:
            updated = await CaptureRepository(session).fail(capture_id, message)
            await session.commit()

        if not updated:
            logger.warning(f"Capture {capture_id} was not processing, failure not recorded")
            return None
        logger.warning(
            f"Capture {capture_id} failed: {type(error).__name__}",
            extra={"capture_id": capture_id, "error_type": type(error).__name__},
        )
        return message

    # ------------------------------------------------------------------
    # Caller operations
    # ------------------------------------------------------------------

    async def get_status(self, account_id: str, capture_id: str) -> CaptureRecord:
        """Raises CaptureNotFoundError outside the caller's scope."""
        async with self.session_factory() as session:
            capture = await CaptureRepository(session).get(account_id, capture_id)
            return CaptureRecord.model_validate(capture)

    async def retry(self, account_id: str, capture_id: str) -> CaptureRecord:
        """Re-queue a failed or completed capture.

        Raises:
            CaptureNotFoundError: Capture outside the caller's scope
            InvalidTransitionError: Capture is queued or processing
        """
        async with self.session_factory() as session:
            captures = CaptureRepository(session)
            capture = await captures.get(account_id, capture_id)
            if not await captures.requeue(capture_id):
                raise InvalidTransitionError(capture_id, capture.status, CaptureStatus.QUEUED.value)
            await session.commit()
            await session.refresh(capture)
            return CaptureRecord.model_validate(capture)

    async def delete(self, account_id: str, capture_id: str) -> None:
        """Soft-delete a capture; a job still running for it cannot complete."""
        async with self.session_factory() as session:
            await CaptureRepository(session).delete(account_id, capture_id)
            await session.commit()

    async def restore(self, account_id: str, capture_id: str) -> CaptureRecord:
        """Bring back a capture deleted within the retention window.

        Raises:
            CaptureNotFoundError: Not deleted, past the window, or outside
                the caller's scope
            DuplicateCaptureError: The same text was captured again since
        """
        cutoff = restore_cutoff(self.config.deletion_retention_days)
        async with self.session_factory() as session:
            captures = CaptureRepository(session)
            try:
                capture = await captures.restore(account_id, capture_id, cutoff)
                await session.commit()
            except IntegrityError:
                # A concurrent submission took the fingerprint; the second
                # attempt reports which capture holds it
                await session.rollback()
                await captures.restore(account_id, capture_id, cutoff)
                raise
            await session.refresh(capture)
            return CaptureRecord.model_validate(capture)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def queued_ids(self) -> list[str]:
        async with self.session_factory() as session:
            return await CaptureRepository(session).list_ids_by_status(CaptureStatus.QUEUED)

    async def reap_stale(self, max_age_seconds: float) -> list[str]:
        """Force captures processing for longer than max_age_seconds to failed."""
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
        message = describe_failure(TimeoutError(), self.config.error_message_max_chars)
        async with self.session_factory() as session:
            stale = await CaptureRepository(session).fail_stale(cutoff, message)
            await session.commit()

        if stale:
            logger.warning(f"Marked {len(stale)} stale captures as failed", extra={"ids": stale})
        return stale
