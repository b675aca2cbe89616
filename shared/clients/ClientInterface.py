from abc import ABC, abstractmethod
from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Common base of every backend adapter (embedder, vector store, generator).

    A client is identified by its type ("embed", "rag", "llm") and engine
    ("ollama", "local", ...). Engine settings are read from
    <TYPE>_<ENGINE>_<KEY> and validated when the client is constructed, so a
    misconfigured engine fails at start-up instead of on the first request.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.validate_full_configuration()

    def validate_full_configuration(self) -> None:
        """Resolve every setting the engine declares.

        Raises:
            ValueError: If a required setting is missing or malformed.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Engine settings, without the <TYPE>_<ENGINE>_ prefix."""
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return "_".join((self.get_client_type(), self.get_engine_name(), raw_key)).upper()

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """Read one engine setting, e.g. raw_key "BASE_URL" of the Ollama embedder
        reads EMBED_OLLAMA_BASE_URL.

        Raises:
            ValueError: If val_type is unknown, or the setting is required and absent.
        """
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported value type '{val_type}' for setting '{raw_key}'.")
        return readers[val_type](self._get_config_key_name(raw_key), default=default)

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        """Acquire backend resources. In-process engines need none."""
        return None

    async def close(self) -> None:
        return None

    async def do_healthcheck(self) -> bool:
        return True
