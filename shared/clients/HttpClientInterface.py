from abc import abstractmethod

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class HttpClientInterface(ClientInterface):
    """Client whose backend is reached over HTTP with JSON bodies.

    The httpx.AsyncClient is created in boot() and shared by all requests of the
    client; <TYPE>_TIMEOUT bounds every request in seconds.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.timeout = float(helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0))
        self._client: httpx.AsyncClient | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers that authenticate against the backend, empty without an API key."""
        pass

    @abstractmethod
    def _get_base_url(self) -> str:
        """Backend root, e.g. "http://localhost:11434"."""
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """Cheap GET endpoint that answers 2xx while the backend is usable."""
        pass

    def _build_url(self, endpoint: str) -> str:
        path = endpoint.strip().lstrip("/")
        base = self._get_base_url().rstrip("/")
        return f"{base}/{path}" if path else base

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def do_healthcheck(self) -> bool:
        try:
            response = await self.do_request("GET", self._get_endpoint_healthcheck())
        except (httpx.HTTPError, RuntimeError) as exc:
            self.logging.warning("%s backend '%s' unreachable: %s", self.get_client_type(), self.get_engine_name(), exc)
            return False
        return response.is_success

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_request(
        self,
        method: str,
        endpoint: str,
        json: dict | None = None,
        params: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send one request to the backend.

        Args:
            method (str): HTTP method.
            endpoint (str): Path below the base URL.
            json (dict | None): JSON body.
            params (dict | None): Query parameters.
            raise_on_error (bool): Raise httpx.HTTPStatusError on a non-2xx answer.

        Returns:
            httpx.Response: The raw response.

        Raises:
            RuntimeError: If boot() was not called.
            httpx.HTTPError: On transport errors, or on non-2xx with raise_on_error.
        """
        if self._client is None:
            raise RuntimeError(f"{self.get_client_type()} client used before boot().")

        url = self._build_url(endpoint)
        response = await self._client.request(
            method,
            url,
            json=json,
            params=params,
            headers=self._get_auth_header(),
            timeout=self.timeout,
        )
        if raise_on_error and not response.is_success:
            self.logging.error("%s %s answered %d: %s", method, url, response.status_code, response.text[:200])
            response.raise_for_status()
        return response
