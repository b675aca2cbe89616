from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager[RAGClientInterface]):
    """Vector store client from RAG_ENGINE, the in-process store by default."""

    client_type = "rag"
    class_prefix = "RAGClient"
    default_engine = "local"

    def get_client(self) -> RAGClientInterface:
        return self.client
