import httpx

from shared.clients.HttpClientInterface import HttpClientInterface
from shared.clients.OllamaBackend import OllamaBackend
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.exceptions.errors import EmbeddingRejected, EmbeddingUnavailable

# a busy or broken server, not a bad input
TRANSIENT_STATUS = frozenset({408, 429, 500, 502, 503, 504})


class EmbedClientOllama(OllamaBackend, HttpClientInterface, EmbedClientInterface):
    """Embeds texts with the /api/embed endpoint of an Ollama server (EMBED_MODEL)."""

    def _get_endpoint_embed(self) -> str:
        return "/api/embed"

    def _parse_embeddings(self, body: dict, expected: int) -> list[list[float]]:
        embeddings = body.get("embeddings")
        if not isinstance(embeddings, list) or len(embeddings) != expected or not all(embeddings):
            raise EmbeddingUnavailable(
                f"Ollama answered without {expected} embedding(s); keys: {sorted(body)}"
            )
        return embeddings

    async def _do_embed_texts(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self.do_request(
                "POST",
                self._get_endpoint_embed(),
                json={"model": self.embed_model, "input": texts},
            )
        except httpx.TransportError as exc:
            raise EmbeddingUnavailable(f"Ollama at {self._get_base_url()} unreachable: {exc}") from exc

        status = response.status_code
        if status in TRANSIENT_STATUS:
            self.logging.warning("Ollama embed answered %d, will be retried.", status)
            raise EmbeddingUnavailable(f"Ollama embed answered {status}.")
        if not response.is_success:
            self.logging.error("Ollama refused embedding input (%d): %s", status, response.text[:200])
            raise EmbeddingRejected(f"Ollama embed answered {status}.")

        try:
            body = response.json()
        except ValueError as exc:
            raise EmbeddingUnavailable(f"Ollama embed answered invalid JSON: {exc}") from exc
        return self._parse_embeddings(body, expected=len(texts))
