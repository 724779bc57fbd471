"""Wake prompt endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from ember.api.deps import get_account_id, get_correlation_id, get_settings, get_wake_service
from ember.api.models.schemas import WakePromptRequest, WakePromptResponse
from ember.config import Settings
from ember.wake.service import WakePromptService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", dependencies=[Depends(get_correlation_id)])


@router.post("/wake-prompts", response_model=WakePromptResponse)
async def generate_wake_prompt(
    body: WakePromptRequest,
    account_id: str = Depends(get_account_id),
    wake: WakePromptService = Depends(get_wake_service),
    config: Settings = Depends(get_settings),
) -> WakePromptResponse:
    """Assemble a wake prompt. Read-only: nothing is persisted."""
    if body.token_budget is not None and body.token_budget > config.max_token_budget:
        raise HTTPException(
            status_code=422,
            detail=f"token_budget must be at most {config.max_token_budget}",
        )
    prompt = await wake.generate(account_id, body.profile_id, body.categories, body.token_budget)
    return WakePromptResponse(**prompt.model_dump())
