"""Pydantic models for the context object handed to the answer generator."""

from typing import Any

from pydantic import BaseModel

from shared.models.memory import Memory


class KnowledgeHit(BaseModel):
    """A knowledge base chunk matched by a vector search."""

    chunk_id: str
    document_id: str
    filename: str
    category: str
    chunk_index: int
    text: str
    score: float
    start_offset: int
    end_offset: int


class ConversationContext(BaseModel):
    """Merged bundle of memories and retrieved knowledge.

    All four fields are always present; an empty list or mapping means nothing
    matched, never that the field was skipped.
    """

    recent_memories: list[Memory] = []
    relevant_knowledge: list[KnowledgeHit] = []
    career_insights: list[Memory] = []
    personal_context: dict[str, Any] = {}
