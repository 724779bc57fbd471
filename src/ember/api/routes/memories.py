"""Memory browsing and editing endpoints."""

from fastapi import APIRouter, Depends, Query, Response

from ember.api.deps import get_account_id, get_correlation_id, get_memory_service
from ember.api.models.schemas import MemoryListResponse
from ember.db.models import MemoryRecord
from ember.enums import MemoryCategory
from ember.services.memories import MemoryService, MemoryUpdate

router = APIRouter(prefix="/v1/memories", dependencies=[Depends(get_correlation_id)])


@router.get("", response_model=MemoryListResponse)
async def list_memories(
    profile_id: str = Query(..., min_length=1),
    category: MemoryCategory | None = None,
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=100),
    account_id: str = Depends(get_account_id),
    memories: MemoryService = Depends(get_memory_service),
) -> MemoryListResponse:
    page = await memories.list_memories(
        account_id, profile_id, category=category, cursor=cursor, limit=limit
    )
    return MemoryListResponse(items=page.items, next_cursor=page.next_cursor)


@router.get("/search", response_model=list[MemoryRecord])
async def search_memories(
    profile_id: str = Query(..., min_length=1),
    q: str = Query(..., min_length=1, max_length=200),
    category: MemoryCategory | None = None,
    limit: int = Query(20, ge=1, le=100),
    account_id: str = Depends(get_account_id),
    memories: MemoryService = Depends(get_memory_service),
) -> list[MemoryRecord]:
    return await memories.search_memories(account_id, profile_id, q, category=category, limit=limit)


@router.get("/{memory_id}", response_model=MemoryRecord)
async def get_memory(
    memory_id: str,
    account_id: str = Depends(get_account_id),
    memories: MemoryService = Depends(get_memory_service),
) -> MemoryRecord:
    return await memories.get_memory(account_id, memory_id)


@router.patch("/{memory_id}", response_model=MemoryRecord)
async def update_memory(
    memory_id: str,
    body: MemoryUpdate,
    account_id: str = Depends(get_account_id),
    memories: MemoryService = Depends(get_memory_service),
) -> MemoryRecord:
    return await memories.update_memory(account_id, memory_id, body)


@router.post("/{memory_id}/resummarize", response_model=MemoryRecord)
async def resummarize_memory(
    memory_id: str,
    account_id: str = Depends(get_account_id),
    memories: MemoryService = Depends(get_memory_service),
) -> MemoryRecord:
    return await memories.resummarize(account_id, memory_id)


@router.delete("/{memory_id}", status_code=204)
async def delete_memory(
    memory_id: str,
    account_id: str = Depends(get_account_id),
    memories: MemoryService = Depends(get_memory_service),
) -> Response:
    await memories.delete_memory(account_id, memory_id)
    return Response(status_code=204)


@router.post("/{memory_id}/restore", response_model=MemoryRecord)
async def restore_memory(
    memory_id: str,
    account_id: str = Depends(get_account_id),
    memories: MemoryService = Depends(get_memory_service),
) -> MemoryRecord:
    return await memories.restore_memory(account_id, memory_id)
