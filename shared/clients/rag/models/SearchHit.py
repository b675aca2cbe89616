from pydantic import BaseModel

from shared.clients.rag.models.VectorPoint import VectorPoint


class SearchHit(BaseModel):
    """One ranked result of a vector search.

    Attributes:
        chunk_id: Id of the matched chunk.
        score:    Cosine similarity between query and chunk vector, rounded to 6 places.
        point:    Metadata stored with the chunk vector.
    """

    chunk_id: str
    score: float
    point: VectorPoint
