from typing import Generic, TypeVar

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

C = TypeVar("C", bound=ClientInterface)


class ClientManager(Generic[C]):
    """Instantiates the engine configured in <TYPE>_ENGINE for one client type.

    Engines are looked up by convention: engine "ollama" of type "embed" lives in
    shared.clients.embed.ollama.EmbedClientOllama. Subclasses only declare the
    type, its class prefix and whether the engine may be left unset.
    """

    client_type: str = ""
    class_prefix: str = ""
    default_engine: str | None = None
    optional: bool = False

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client: C | None = self._initialize_client()

    def _engine_key(self) -> str:
        return f"{self.client_type.upper()}_ENGINE"

    def _get_engine_from_env(self) -> str | None:
        """Read the engine name for this client type.

        Returns:
            str | None: Capitalised engine name (e.g. "Ollama"), None if unset and optional.

        Raises:
            ValueError: If the engine is required and not configured.
        """
        engine = self.helper_config.get_optional_string_val(self._engine_key()) or self.default_engine
        if not engine:
            if self.optional:
                return None
            raise ValueError(f"No {self.client_type} engine configured ({self._engine_key()}).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> C | None:
        engine = self._get_engine_from_env()
        if engine is None:
            self.logging.info("%s is not set, %s client disabled.", self._engine_key(), self.client_type)
            return None

        class_name = f"{self.class_prefix}{engine}"
        try:
            module = __import__(
                f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type} engine '{engine}': {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, engine)
        return client

    def get_client(self) -> C | None:
        return self.client
