from shared.models.config import EnvConfig


class OllamaBackend:
    """Settings shared by every client that talks to an Ollama server.

    Mixed in before HttpClientInterface, it reads <TYPE>_OLLAMA_BASE_URL and the
    optional <TYPE>_OLLAMA_API_KEY, so embedder and generator may point at
    different servers.
    """

    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    def _get_base_url(self) -> str:
        return self.get_config_val("BASE_URL", val_type="string")

    def _get_auth_header(self) -> dict:
        api_key = self.get_config_val("API_KEY", default="", val_type="string")
        return {"Authorization": f"Bearer {api_key}"} if api_key else {}

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/version"
