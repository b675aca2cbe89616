from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import get_requester_id, verify_api_key
from server.models.requests import ChatRequest, ContextRequest
from server.models.responses import ChatResponse
from shared.models.context import ConversationContext

router = APIRouter(tags=["context"], dependencies=[Depends(verify_api_key)])


@router.post("/context")
async def build_context(
    request: Request,
    body: ContextRequest,
    requester_id: str = Depends(get_requester_id),
) -> ConversationContext:
    """Assemble memories and knowledge base hits for a query.

    Args:
        request (Request): FastAPI request (provides app.state.context_assembler).
        body (ContextRequest): The query and optional user_id.
        requester_id (str): Caller identity from X-User-Id.

    Returns:
        ConversationContext: Always all four fields, possibly empty.
    """
    return await request.app.state.context_assembler.build_context(
        requester_id=requester_id,
        user_id=body.user_id or requester_id,
        query=body.query,
    )


@router.post("/chat")
async def chat(
    request: Request,
    body: ChatRequest,
    requester_id: str = Depends(get_requester_id),
) -> ChatResponse:
    """Answer a message with the configured generator and record the turn."""
    turn = await request.app.state.chat_service.do_chat(
        requester_id=requester_id,
        user_id=body.user_id or requester_id,
        message=body.message,
        metadata=body.metadata,
    )
    return ChatResponse(reply=turn.reply, memory_id=turn.memory.id, context=turn.context)
