from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.exceptions.errors import EmbeddingRejected
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    """Embedder adapter: turns one text into a vector of fixed dimension.

    The engine depends only on do_embed() and its two failure modes:
    EmbeddingUnavailable (transient, the caller may retry) and EmbeddingRejected
    (the input itself is unacceptable, retrying is pointless).
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="")
        self.embed_dimension = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_DIMENSION", default=768))
        self.embed_model_max_chars = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MODEL_MAX_CHARS", default=8000))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    def get_dimension(self) -> int:
        """
        Returns the fixed dimension D of every vector this client produces.
        """
        return self.embed_dimension

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def _check_input(self, text: str) -> None:
        """Reject input the embedder must never receive.

        Raises:
            EmbeddingRejected: If the text is empty or longer than the model limit.
        """
        if not text or not text.strip():
            raise EmbeddingRejected("Cannot embed empty text.")
        if len(text) > self.embed_model_max_chars:
            raise EmbeddingRejected(
                f"Text of {len(text)} characters exceeds the model limit of {self.embed_model_max_chars}."
            )

    def _check_vector(self, vector: list[float]) -> list[float]:
        """Verify that a backend vector has the configured dimension.

        Raises:
            EmbeddingRejected: If the dimension differs.
        """
        if len(vector) != self.embed_dimension:
            raise EmbeddingRejected(
                f"Embedder '{self.get_engine_name()}' returned a vector of dimension {len(vector)}, expected {self.embed_dimension}."
            )
        return [float(v) for v in vector]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def _do_embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Backend-specific embedding call.

        Args:
            texts (list[str]): Already validated texts.

        Returns:
            list[list[float]]: One vector per input text, in input order.

        Raises:
            EmbeddingUnavailable: On transient backend failures.
            EmbeddingRejected: If the backend refuses the input.
        """
        pass

    async def do_embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text (str): The text to embed.

        Returns:
            list[float]: A vector of length get_dimension().

        Raises:
            EmbeddingUnavailable: On transient backend failures.
            EmbeddingRejected: If the input is empty, too long, or the backend
                returns a vector of the wrong dimension.
        """
        self._check_input(text)
        vectors = await self._do_embed_texts([text])
        return self._check_vector(vectors[0])
