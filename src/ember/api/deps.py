"""FastAPI dependency injection for services, caller identity and correlation IDs."""

import logging
import uuid

from fastapi import Header, HTTPException

from ember.capture.pipeline import CapturePipeline
from ember.capture.service import CaptureIntake
from ember.config import Settings
from ember.llm.errors import correlation_id_var
from ember.services.accounts import AccountService
from ember.services.memories import MemoryService
from ember.wake.service import WakePromptService

logger = logging.getLogger(__name__)

# Global service instances (initialized at startup)
_settings: Settings | None = None
_pipeline: CapturePipeline | None = None
_intake: CaptureIntake | None = None
_memory_service: MemoryService | None = None
_account_service: AccountService | None = None
_wake_service: WakePromptService | None = None


class CorrelationIdFilter(logging.Filter):
    """Logging filter to add correlation ID to all log records."""

    def filter(self, record):
        record.correlation_id = correlation_id_var.get() or "-"
        return True


async def get_correlation_id(x_correlation_id: str | None = Header(None)) -> str:
    """Get or generate correlation ID for request tracing.

    The same context variable is read by ember.llm.errors, so errors raised
    while serving the request carry this ID.
    """
    cid = x_correlation_id or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


async def get_account_id(x_account_id: str | None = Header(None)) -> str:
    """Caller's account, asserted by the authenticating proxy in front of the API.

    Raises:
        HTTPException: 401 when the header is missing
    """
    if not x_account_id:
        raise HTTPException(status_code=401, detail="Missing X-Account-Id header")
    return x_account_id


def set_services(
    config: Settings,
    pipeline: CapturePipeline,
    intake: CaptureIntake,
    memory_service: MemoryService,
    account_service: AccountService,
    wake_service: WakePromptService,
) -> None:
    """Set the global service instances (called during startup)."""
    global _settings, _pipeline, _intake, _memory_service, _account_service, _wake_service
    _settings = config
    _pipeline = pipeline
    _intake = intake
    _memory_service = memory_service
    _account_service = account_service
    _wake_service = wake_service


def _require(service, name: str):
    if service is None:
        raise RuntimeError(f"{name} not initialized - server startup may have failed")
    return service


def get_settings() -> Settings:
    return _require(_settings, "Settings")


def get_pipeline() -> CapturePipeline:
    return _require(_pipeline, "CapturePipeline")


def get_intake() -> CaptureIntake:
    return _require(_intake, "CaptureIntake")


def get_memory_service() -> MemoryService:
    return _require(_memory_service, "MemoryService")


def get_account_service() -> AccountService:
    return _require(_account_service, "AccountService")


def get_wake_service() -> WakePromptService:
    return _require(_wake_service, "WakePromptService")
