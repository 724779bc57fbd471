"""Capture submission and status endpoints."""

import logging

from fastapi import APIRouter, Depends, Response

from ember.api.deps import get_account_id, get_correlation_id, get_intake, get_pipeline
from ember.api.models.schemas import CaptureCreate, CaptureResponse, CaptureStatusResponse
from ember.capture.intake import (
    CaptureRequest,
    from_api,
    from_direct_text,
    from_forwarded_message,
    from_image_text,
)
from ember.capture.pipeline import CapturePipeline
from ember.capture.service import CaptureIntake
from ember.db.models import CaptureRecord
from ember.enums import CaptureMethod, CaptureStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/captures", dependencies=[Depends(get_correlation_id)])


def to_request(body: CaptureCreate) -> CaptureRequest:
    """Route a submission through the adapter for its method."""
    if body.method == CaptureMethod.DIRECT_TEXT:
        return from_direct_text(body.profile_id, body.text, body.platform)
    if body.method == CaptureMethod.IMAGE_DERIVED:
        return from_image_text(body.profile_id, body.text, body.speaker_confidence, body.platform)
    if body.method == CaptureMethod.FORWARDED_MESSAGE:
        return from_forwarded_message(body.profile_id, body.text, body.platform)
    return from_api(body.profile_id, body.text, body.platform)


def to_status(record: CaptureRecord) -> CaptureStatusResponse:
    return CaptureStatusResponse(
        capture_id=record.id,
        status=record.status,
        memory_count=record.memory_count if record.status == CaptureStatus.COMPLETED else None,
        error_message=record.error_message if record.status == CaptureStatus.FAILED else None,
    )


@router.post("", response_model=CaptureResponse, status_code=202)
async def submit_capture(
    body: CaptureCreate,
    account_id: str = Depends(get_account_id),
    intake: CaptureIntake = Depends(get_intake),
) -> CaptureResponse:
    """Queue a capture for extraction. Duplicates return the existing capture."""
    receipt = await intake.submit(account_id, to_request(body))
    return CaptureResponse(
        capture_id=receipt.capture_id, status=receipt.status, duplicate=receipt.duplicate
    )


@router.get("/{capture_id}/status", response_model=CaptureStatusResponse)
async def get_capture_status(
    capture_id: str,
    account_id: str = Depends(get_account_id),
    pipeline: CapturePipeline = Depends(get_pipeline),
) -> CaptureStatusResponse:
    return to_status(await pipeline.get_status(account_id, capture_id))


@router.post("/{capture_id}/retry", response_model=CaptureStatusResponse, status_code=202)
async def retry_capture(
    capture_id: str,
    account_id: str = Depends(get_account_id),
    intake: CaptureIntake = Depends(get_intake),
) -> CaptureStatusResponse:
    """Re-run extraction for a failed or completed capture."""
    return to_status(await intake.retry(account_id, capture_id))


@router.delete("/{capture_id}", status_code=204)
async def delete_capture(
    capture_id: str,
    account_id: str = Depends(get_account_id),
    pipeline: CapturePipeline = Depends(get_pipeline),
) -> Response:
    """Delete a capture. Its memories are kept; restore is possible until purge."""
    await pipeline.delete(account_id, capture_id)
    return Response(status_code=204)


@router.post("/{capture_id}/restore", response_model=CaptureStatusResponse)
async def restore_capture(
    capture_id: str,
    account_id: str = Depends(get_account_id),
    intake: CaptureIntake = Depends(get_intake),
) -> CaptureStatusResponse:
    """Undo a delete within the retention window."""
    return to_status(await intake.restore(account_id, capture_id))
