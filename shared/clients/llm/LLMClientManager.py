from shared.clients.ClientManager import ClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(ClientManager[LLMClientInterface]):
    """Answer generator client from LLM_ENGINE.

    The generator is optional: without LLM_ENGINE the engine still ingests,
    records and assembles context, only /chat is unavailable.
    """

    client_type = "llm"
    class_prefix = "LLMClient"
    optional = True
