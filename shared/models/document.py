"""Pydantic models for knowledge base documents.

Hierarchy:
  KnowledgeDocument:   one uploaded file and its ingestion state.
  ChunkSpan:           one window of a document's extracted text.
  KnowledgeBaseStats:  derived view, recomputed on every read.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from shared.exceptions.errors import InvalidInput


class DocumentCategory(str, Enum):
    INTERVIEW_TRANSCRIPT = "interview-transcript"
    RESUME_VERSION = "resume-version"
    CAREER_PLAN = "career-plan"
    JOB_DESCRIPTION = "job-description"

    @classmethod
    def parse(cls, raw: "str | DocumentCategory") -> "DocumentCategory":
        """Parse a category name, raising InvalidInput for anything outside the enumeration."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            allowed = ", ".join(c.value for c in cls)
            raise InvalidInput(f"Unknown document category '{raw}'. Allowed: {allowed}.")


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    EMBEDDED = "embedded"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING


class KnowledgeDocument(BaseModel):
    """A document accepted for ingestion.

    Records are immutable; the document store replaces them on every status
    transition so readers holding an older snapshot are never affected.

    Attributes:
        id:             Opaque identifier assigned on upload.
        filename:       Original file name as uploaded.
        category:       One of the fixed document categories.
        size_bytes:     Size of the raw upload.
        uploaded_at:    Upload acceptance time (UTC).
        status:         processing -> embedded | error.
        chunk_count:    Number of chunks committed; 0 until the document is embedded.
        owner_id:       Owner used to scope vector searches.
        mime_type:      Content type used for extraction.
        failure_reason: Why the document ended in status error.
        processed_at:   Time the terminal state was reached.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    category: DocumentCategory
    size_bytes: int
    uploaded_at: datetime
    status: DocumentStatus = DocumentStatus.PROCESSING
    chunk_count: int = 0
    owner_id: str
    mime_type: str | None = None
    failure_reason: str | None = None
    processed_at: datetime | None = None


class ChunkSpan(BaseModel):
    """A window of extracted text. text == source[start_offset:end_offset]."""

    model_config = ConfigDict(frozen=True)

    index: int
    text: str
    start_offset: int
    end_offset: int


class KnowledgeBaseStats(BaseModel):
    """Statistics over committed ingestion state only.

    Processing documents are counted in documents_by_status but contribute no
    chunks, vectors or category counts.
    """

    documents_by_category: dict[str, int]
    documents_by_status: dict[str, int]
    total_documents: int
    total_chunks: int
    total_vectors: int
