"""Request and response bodies of the /v1 API."""

from pydantic import BaseModel, Field, model_validator

from ember.db.models import MemoryRecord, ProfileRecord
from ember.enums import AccountTier, CaptureMethod, CaptureStatus, MemoryCategory, Platform
from ember.llm.factory import ExtractionRoute


class AccountCreate(BaseModel):
    """Account provisioning request sent by the identity provider."""

    external_id: str = Field(..., min_length=1, max_length=255)
    tier: AccountTier = AccountTier.FREE
    extraction_route: ExtractionRoute = ExtractionRoute.SERVER
    byok_api_key: str | None = Field(None, min_length=1)

    @model_validator(mode="after")
    def byok_requires_key(self) -> "AccountCreate":
        if self.extraction_route == ExtractionRoute.BYOK and not self.byok_api_key:
            raise ValueError("byok_api_key is required for the byok extraction route")
        return self


class AccountResponse(BaseModel):
    account_id: str
    default_profile: ProfileRecord


class ProfileCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    platform: Platform | None = None
    is_default: bool = False


class CaptureCreate(BaseModel):
    """Capture submission. The method picks the intake adapter."""

    profile_id: str = Field(..., min_length=1)
    text: str = Field(..., description="Raw transcript, or the forwarded message body")
    method: CaptureMethod = CaptureMethod.PROGRAMMATIC
    platform: Platform | None = None
    speaker_confidence: float | None = Field(None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def image_text_needs_confidence(self) -> "CaptureCreate":
        if self.method == CaptureMethod.IMAGE_DERIVED and self.speaker_confidence is None:
            raise ValueError("speaker_confidence is required for image_derived captures")
        return self


class CaptureResponse(BaseModel):
    capture_id: str
    status: CaptureStatus
    duplicate: bool = False


class CaptureStatusResponse(BaseModel):
    """Pollable capture status."""

    capture_id: str
    status: CaptureStatus
    memory_count: int | None = None
    error_message: str | None = None


class MemoryListResponse(BaseModel):
    items: list[MemoryRecord]
    next_cursor: str | None = None


class WakePromptRequest(BaseModel):
    profile_id: str = Field(..., min_length=1)
    categories: list[MemoryCategory] = Field(..., min_length=1)
    token_budget: int | None = Field(None, ge=0, description="Defaults to the account budget")


class WakePromptResponse(BaseModel):
    text: str
    token_count: int
    memory_count: int
    per_category_tokens: dict[str, int]
    compressed: bool = False
