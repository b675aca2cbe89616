from shared.clients.OllamaBackend import OllamaBackend
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientOllama(OllamaBackend, LLMClientInterface):
    """Answer generator on the non-streaming /api/chat endpoint of Ollama."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._temperature = float(self.get_config_val("TEMPERATURE", default=0.7, val_type="number"))

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    def get_chat_payload(self, messages: list[dict]) -> dict:
        return {
            "model": self.chat_model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": self._temperature},
        }

    def extract_chat_response(self, response_data: dict) -> str:
        """Reply text of a /api/chat answer.

        Raises:
            ValueError: If the answer carries no message content.
        """
        content = (response_data.get("message") or {}).get("content")
        if not content or not content.strip():
            raise ValueError(f"Ollama chat answer without content; keys: {sorted(response_data)}")
        return content.strip()
