from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import get_requester_id, verify_api_key
from server.models.requests import QueryMemoryRequest, RecordMemoryRequest
from server.models.responses import MemoryListResponse
from shared.models.memory import Memory

router = APIRouter(prefix="/memory", tags=["memory"], dependencies=[Depends(verify_api_key)])


@router.post("", status_code=201)
async def record_memory(
    request: Request,
    body: RecordMemoryRequest,
    requester_id: str = Depends(get_requester_id),
) -> Memory:
    """Record a memory for the requester.

    Args:
        request (Request): FastAPI request (provides app.state.memory_service).
        body (RecordMemoryRequest): Content plus optional category and metadata.
        requester_id (str): Caller identity from X-User-Id.

    Returns:
        Memory: The stored memory with its inferred category and importance.
    """
    return request.app.state.memory_service.record(
        requester_id=requester_id,
        user_id=body.user_id or requester_id,
        content=body.content,
        category=body.category,
        metadata=body.metadata,
    )


@router.post("/query")
async def query_memory(
    request: Request,
    body: QueryMemoryRequest,
    requester_id: str = Depends(get_requester_id),
) -> MemoryListResponse:
    memories = request.app.state.memory_service.query(
        requester_id=requester_id,
        user_id=body.user_id or requester_id,
        category=body.category,
        free_text_query=body.query,
        limit=body.limit,
    )
    return MemoryListResponse(memories=memories, total=len(memories))


@router.get("/{memory_id}")
async def get_memory(
    request: Request,
    memory_id: str,
    requester_id: str = Depends(get_requester_id),
) -> Memory:
    return request.app.state.memory_service.get_memory(requester_id, requester_id, memory_id)
