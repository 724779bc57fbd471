"""Account provisioning and profile endpoints."""

import logging

from fastapi import APIRouter, Depends, Response

from ember.api.deps import get_account_id, get_account_service, get_correlation_id
from ember.api.models.schemas import AccountCreate, AccountResponse, ProfileCreate
from ember.db.models import ProfileRecord
from ember.services.accounts import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", dependencies=[Depends(get_correlation_id)])


@router.post("/accounts", response_model=AccountResponse, status_code=201)
async def create_account(
    body: AccountCreate,
    accounts: AccountService = Depends(get_account_service),
) -> AccountResponse:
    """Provision an account and its default profile (idempotent on external_id)."""
    account_id, profile = await accounts.create_account(
        body.external_id,
        tier=body.tier,
        extraction_route=body.extraction_route,
        byok_api_key=body.byok_api_key,
    )
    return AccountResponse(account_id=account_id, default_profile=profile)


@router.post("/profiles", response_model=ProfileRecord, status_code=201)
async def create_profile(
    body: ProfileCreate,
    account_id: str = Depends(get_account_id),
    accounts: AccountService = Depends(get_account_service),
) -> ProfileRecord:
    return await accounts.create_profile(
        account_id, body.name, platform=body.platform, is_default=body.is_default
    )


@router.get("/profiles", response_model=list[ProfileRecord])
async def list_profiles(
    account_id: str = Depends(get_account_id),
    accounts: AccountService = Depends(get_account_service),
) -> list[ProfileRecord]:
    return await accounts.list_profiles(account_id)


@router.post("/profiles/{profile_id}/default", response_model=ProfileRecord)
async def set_default_profile(
    profile_id: str,
    account_id: str = Depends(get_account_id),
    accounts: AccountService = Depends(get_account_service),
) -> ProfileRecord:
    return await accounts.set_default_profile(account_id, profile_id)


@router.delete("/profiles/{profile_id}", status_code=204)
async def delete_profile(
    profile_id: str,
    account_id: str = Depends(get_account_id),
    accounts: AccountService = Depends(get_account_service),
) -> Response:
    """Delete a profile with its captures and memories."""
    await accounts.delete_profile(account_id, profile_id)
    return Response(status_code=204)
