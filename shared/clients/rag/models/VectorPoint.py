"""VectorPoint model: metadata stored alongside each chunk vector."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class VectorPoint(BaseModel):
    """Metadata payload stored alongside each chunk vector in the vector store.

    The owner_id field is mandatory and is the field every owner-scoped search
    filters on. It must never be absent or empty.

    Attributes:
        document_id:  Id of the owning document (exclusive ownership).
        chunk_index:  Zero-based position of this chunk within the document.
        category:     Document category, used for category-filtered search.
        owner_id:     Owner of the document, used for access scoping.
        uploaded_at:  Upload time of the owning document; breaks score ties.
        filename:     Original file name of the owning document.
        chunk_text:   Raw text content of this chunk.
        start_offset: Start of the chunk in the extracted document text.
        end_offset:   End (exclusive) of the chunk in the extracted document text.
    """

    model_config = ConfigDict(frozen=True)

    # Core identity
    document_id: str
    chunk_index: int
    category: str

    # never empty
    owner_id: str

    # Temporal metadata
    uploaded_at: datetime

    # Chunk content
    filename: str = ""
    chunk_text: str = ""
    start_offset: int = 0
    end_offset: int = 0
