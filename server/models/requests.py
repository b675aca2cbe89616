from typing import Any

from pydantic import BaseModel, Field


class RecordMemoryRequest(BaseModel):
    """user_id defaults to the X-User-Id requester."""

    user_id: str | None = None
    content: str
    category: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class QueryMemoryRequest(BaseModel):
    user_id: str | None = None
    category: str | None = None
    query: str | None = None
    limit: int = 10


class ContextRequest(BaseModel):
    user_id: str | None = None
    query: str


class ChatRequest(BaseModel):
    user_id: str | None = None
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
