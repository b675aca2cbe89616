from pydantic import BaseModel

from shared.models.context import ConversationContext
from shared.models.document import KnowledgeDocument
from shared.models.memory import Memory


class DocumentListResponse(BaseModel):
    documents: list[KnowledgeDocument]
    total: int


class DeleteDocumentResponse(BaseModel):
    id: str
    filename: str
    deleted: bool = True


class MemoryListResponse(BaseModel):
    memories: list[Memory]
    total: int


class ChatResponse(BaseModel):
    reply: str
    memory_id: str
    context: ConversationContext


class ErrorResponse(BaseModel):
    detail: str
    error: str
