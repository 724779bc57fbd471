"""Bounded worker pool for capture extraction jobs.

Jobs are capture ids on an asyncio queue consumed by a fixed number of
workers, so at most `concurrency` extraction calls are in flight no matter
how many captures arrive. Each job:

    claim (queued -> processing, skipped if someone else holds it)
    extract, retrying transient errors with exponential backoff
    commit memories + completed, or record failed

The whole extraction phase runs under a wall-clock timeout.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ember.capture.pipeline import CapturePipeline, ClaimedCapture, JobInterruptedError
from ember.config import Settings
from ember.extraction.models import ExtractionBatch
from ember.llm.errors import is_transient

logger = logging.getLogger(__name__)


class JobScheduler:
    """Runs capture extraction jobs on a fixed-size asyncio worker pool.

    Example:
        >>> scheduler = JobScheduler(pipeline, concurrency=5)
        >>> await scheduler.start()
        >>> scheduler.enqueue(capture_id)
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        pipeline: CapturePipeline,
        concurrency: int = 5,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        timeout_seconds: float = 300.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the scheduler.

        Args:
            pipeline: Capture pipeline performing the transitions
            concurrency: Number of workers (ceiling on concurrent extractions)
            max_attempts: Attempts per job for transient failures
            backoff_seconds: Delay before the second attempt, doubled after each
            timeout_seconds: Wall-clock limit for the extraction phase of a job
            sleep: Backoff sleep function
        """
        self.pipeline = pipeline
        self.concurrency = concurrency
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep

        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self.completed_count = 0
        self.failed_count = 0

    @classmethod
    def from_settings(cls, pipeline: CapturePipeline, config: Settings) -> "JobScheduler":
        return cls(
            pipeline,
            concurrency=config.worker_concurrency,
            max_attempts=config.job_max_attempts,
            backoff_seconds=config.job_backoff_seconds,
            timeout_seconds=config.job_timeout_seconds,
        )

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Job scheduler already running")
            return
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"capture-worker-{n}")
            for n in range(self.concurrency)
        ]
        logger.info(f"Job scheduler started with {self.concurrency} workers")

    async def stop(self) -> None:
        """Cancel the workers. Captures left queued are picked up by recover()."""
        if not self.is_running:
            return
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(
            f"Job scheduler stopped (completed={self.completed_count}, failed={self.failed_count})"
        )

    def enqueue(self, capture_id: str) -> None:
        """Schedule extraction for a capture. Never blocks."""
        self._queue.put_nowait(capture_id)
        logger.debug(f"Enqueued capture {capture_id} (pending={self.pending})")

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        await self._queue.join()

    async def recover(self) -> dict[str, list[str]]:
        """Restore scheduling state after a restart.

        Captures stuck in processing longer than the job timeout are marked
        failed; captures still queued are enqueued again.
        """
        failed = await self.pipeline.reap_stale(self.timeout_seconds)
        requeued = await self.pipeline.queued_ids()
        for capture_id in requeued:
            self.enqueue(capture_id)
        logger.info(f"Recovery: {len(requeued)} requeued, {len(failed)} timed out")
        return {"requeued": requeued, "failed": failed}

    async def _worker(self, number: int) -> None:
        while True:
            capture_id = await self._queue.get()
            try:
                await self.run_job(capture_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Worker {number} crashed on capture {capture_id}: {e}", exc_info=True
                )
            finally:
                self._queue.task_done()

    async def run_job(self, capture_id: str) -> bool | None:
        """Process one capture.

        Returns:
            True on completion, False on failure, None if the capture could
            not be claimed
        """
        claimed = await self.pipeline.claim(capture_id)
        if claimed is None:
            logger.debug(f"Capture {capture_id} not claimable, skipping")
            return None

        try:
            batch = await asyncio.wait_for(
                self._extract_with_retries(claimed), timeout=self.timeout_seconds
            )
            await self.pipeline.commit(claimed, batch)
        except asyncio.CancelledError:
            await self.pipeline.fail(capture_id, JobInterruptedError())
            raise
        except Exception as e:
            await self.pipeline.fail(capture_id, e)
            self.failed_count += 1
            return False

        self.completed_count += 1
        return True

    async def _extract_with_retries(self, claimed: ClaimedCapture) -> ExtractionBatch:
        attempt = 1
        while True:
            try:
                return await self.pipeline.extract(claimed)
            except Exception as e:
                if not is_transient(e) or attempt >= self.max_attempts:
                    raise
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    f"Transient extraction error on capture {claimed.capture_id} "
                    f"(attempt {attempt}/{self.max_attempts}), retrying in {delay:.1f}s: "
                    f"{type(e).__name__}",
                    extra={"capture_id": claimed.capture_id, "attempt": attempt},
                )
                await self._sleep(delay)
                attempt += 1
