from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.exceptions.errors import InvalidInput
from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Vector store contract.

    Visibility rules every engine must honour:
    - do_put() stages a chunk under its document; staged chunks are never returned
      by do_search().
    - do_publish() makes all staged chunks of one document searchable at once.
    - do_delete_by_document() removes staged and searchable chunks of one document
      at once; a search running concurrently sees either all of them or none.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def _check_point(self, chunk_id: str, point: VectorPoint) -> None:
        """Validate a point before it is written.

        Raises:
            InvalidInput: If the chunk id or owner_id is empty.
        """
        if not chunk_id:
            raise InvalidInput("chunk_id must not be empty.")
        if not point.owner_id:
            raise InvalidInput(f"Point for chunk '{chunk_id}' has no owner_id (security invariant).")

    def _check_top_k(self, top_k: int) -> None:
        """
        Raises:
            InvalidInput: If top_k is smaller than 1.
        """
        if top_k < 1:
            raise InvalidInput(f"top_k must be >= 1, got {top_k}.")

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_put(self, chunk_id: str, vector: list[float], point: VectorPoint) -> None:
        """Upsert a chunk vector, keyed by chunk_id.

        Writing the same chunk_id twice leaves exactly one entry. Chunks of a
        document that is not yet published are staged and stay invisible.

        Args:
            chunk_id (str): Unique chunk id.
            vector (list[float]): The chunk embedding.
            point (VectorPoint): Metadata stored alongside the vector.

        Raises:
            InvalidInput: If the point or vector is malformed.
            StorageUnavailable: If the store cannot be reached.
        """
        pass

    @abstractmethod
    async def do_publish(self, document_id: str) -> int:
        """Make all staged chunks of a document searchable in one step.

        Args:
            document_id (str): The document whose chunks are published.

        Returns:
            int: Number of chunks that became visible.

        Raises:
            StorageUnavailable: If the store cannot be reached.
        """
        pass

    @abstractmethod
    async def do_search(
        self,
        query_vector: list[float],
        top_k: int,
        category: str | None = None,
        owner_id: str | None = None,
    ) -> list[SearchHit]:
        """Rank visible chunks by cosine similarity to query_vector.

        Results are sorted by score descending; equal scores are ordered by the
        most recent uploaded_at of the owning document.

        Args:
            query_vector (list[float]): The embedded query.
            top_k (int): Maximum number of hits, must be >= 1.
            category (str | None): Restrict to one document category.
            owner_id (str | None): Restrict to one owner.

        Returns:
            list[SearchHit]: At most top_k hits.

        Raises:
            InvalidInput: If top_k < 1 or the vector has the wrong dimension.
            StorageUnavailable: If the store cannot be reached.
        """
        pass

    @abstractmethod
    async def do_delete_by_document(self, document_id: str) -> int:
        """Remove every staged and visible chunk of a document atomically.

        Args:
            document_id (str): The document to remove.

        Returns:
            int: Number of chunks removed.

        Raises:
            StorageUnavailable: If the store cannot be reached.
        """
        pass

    @abstractmethod
    async def do_count(self) -> int:
        """Count the visible vectors in the store.

        Returns:
            int: Number of searchable chunk vectors.
        """
        pass

    @abstractmethod
    async def do_count_by_document(self) -> dict[str, int]:
        """Count the visible vectors per document id.

        Returns:
            dict[str, int]: document_id -> number of searchable chunks.
        """
        pass
