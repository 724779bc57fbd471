"""Single entry point for every capture adapter."""

import logging

from ember.capture.intake import CaptureRequest
from ember.capture.pipeline import CapturePipeline, CaptureReceipt
from ember.capture.scheduler import JobScheduler
from ember.db.models import CaptureRecord
from ember.enums import CaptureStatus

logger = logging.getLogger(__name__)


class CaptureIntake:
    """Persists captures and hands new ones to the scheduler.

    Returns as soon as the capture row exists; extraction happens on the
    scheduler's workers.
    """

    def __init__(self, pipeline: CapturePipeline, scheduler: JobScheduler):
        self.pipeline = pipeline
        self.scheduler = scheduler

    async def submit(self, account_id: str, request: CaptureRequest) -> CaptureReceipt:
        """Validate, deduplicate, persist and schedule a capture.

        Raises:
            CaptureValidationError: TooShort, TooLong or InvalidProfile
        """
        receipt = await self.pipeline.submit(account_id, request)
        if not receipt.duplicate:
            self.scheduler.enqueue(receipt.capture_id)
        return receipt

    async def retry(self, account_id: str, capture_id: str) -> CaptureRecord:
        """Re-queue a failed or completed capture and schedule it.

        Raises:
            CaptureNotFoundError: Capture outside the caller's scope
            InvalidTransitionError: Capture is queued or processing
        """
        record = await self.pipeline.retry(account_id, capture_id)
        self.scheduler.enqueue(capture_id)
        logger.info(f"Retry scheduled for capture {capture_id}", extra={"capture_id": capture_id})
        return record

    async def restore(self, account_id: str, capture_id: str) -> CaptureRecord:
        """Restore a deleted capture, scheduling it again if it was still queued.

        Raises:
            CaptureNotFoundError: Not deleted, past the window, or outside
                the caller's scope
            DuplicateCaptureError: The same text was captured again since
        """
        record = await self.pipeline.restore(account_id, capture_id)
        if record.status == CaptureStatus.QUEUED:
            self.scheduler.enqueue(capture_id)
        return record
