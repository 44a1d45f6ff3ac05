from abc import ABC, abstractmethod

import httpx
from httpx._types import QueryParamTypes, RequestContent
from typing import Any
from shared.models.config import EnvConfig
from shared.models.errors import IngestError

from shared.helper.HelperConfig import HelperConfig


class ClientInterface(ABC):
    """Base of every backend client of the worker.

    A client belongs to one type (e.g. "embed", "rag") and one engine
    (e.g. "openai", "qdrant"). Its settings live in environment variables
    named <TYPE>_<ENGINE>_<KEY>, its HTTP connection is opened by boot() and
    released by close().
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every key listed by _get_required_config() once, so a missing
        or unparsable setting fails at construction instead of mid-job.

        Raises:
            ValueError: If a required key is unset or cannot be parsed.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """
        Client family used as the env prefix, e.g. "embed" or "rag".
        """
        pass

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """
        Display name of the backend, e.g. "OpenAI" or "Qdrant".
        """
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Lists the engine-specific settings, without the <TYPE>_<ENGINE>_ prefix.

        Returns:
            list[EnvConfig]: One entry per setting, with its type and default.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The prefixed env key, e.g. "BASE_URL" -> "RAG_QDRANT_BASE_URL".
        """
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads one engine-specific setting.

        Args:
            raw_key (str): Key without prefix, e.g. "API_KEY".
            default (Any): Value used when the variable is unset. None makes the key required.
            val_type (str): "string", "number" or "bool".
        """
        getters = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
        }
        getter = getters.get(val_type)
        if getter is None:
            raise ValueError(
                f"Unsupported config value type '{val_type}' for {self._get_config_key_name(raw_key)}."
            )
        return getter(self._get_config_key_name(raw_key), default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Headers authenticating against the backend. Empty if no credential is configured.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Root URL all endpoints are appended to, e.g. "http://localhost:6333".
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Cheap endpoint answering 2xx while the backend is usable, e.g. "/healthz".
        """
        pass

    ################ ERRORS ##################
    @abstractmethod
    def _build_transport_error(self, url: str, exc: httpx.TransportError) -> Exception:
        """
        Maps a connection-level failure to the client's error type.

        Args:
            url (str): The URL that could not be reached.
            exc (httpx.TransportError): The httpx failure.
        """
        pass

    @abstractmethod
    def _build_status_error(self, response: httpx.Response) -> Exception:
        """
        Maps a non-2xx answer to the client's error type.

        Args:
            response (httpx.Response): The rejected response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> bool:
        """Ask the backend whether it is usable.

        Returns:
            bool: True on a 2xx answer. False on any other answer or when the backend is unreachable.
        """
        try:
            response = await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())
        except IngestError as exc:
            self.logging.warning("Healthcheck of %s failed: %s", self.get_engine_name(), exc)
            return False
        return response.is_success

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP connection pool.

        Args:
            transport (httpx.AsyncBaseTransport | None): Replacement transport, e.g. httpx.MockTransport in tests.
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send one request to the backend.

        Args:
            method: HTTP verb.
            content: Raw body. The caller sets its Content-Type through additional_headers.
            json: Body to serialise as JSON. Ignored when content is given.
            params: Query parameters.
            endpoint: Path below the base URL.
            additional_headers: Headers merged over the auth header.
            raise_on_error: Turn a non-2xx answer into the client's status error.

        Returns:
            The httpx.Response.

        Raises:
            RuntimeError: If boot() has not been called.
            Exception: The client's transport error when the backend is unreachable, and its
                status error on a non-2xx answer if raise_on_error is set.
        """
        if self._client is None:
            raise RuntimeError("HTTP client not initialised. Call boot() before making requests.")

        path = endpoint.strip()
        url = self._get_base_url().rstrip("/") + ("/" + path.lstrip("/") if path else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        body: dict = {}
        if content is not None:
            body["content"] = content
        elif json is not None:
            body["json"] = json

        try:
            response = await self._client.request(
                method, url, headers=headers, params=params, timeout=self.timeout, **body
            )
        except httpx.TransportError as exc:
            self.logging.error("%s %s failed: %s", method, url, exc)
            raise self._build_transport_error(url, exc) from exc

        if raise_on_error and not response.is_success:
            self.logging.error("%s %s answered %d: %s", method, url, response.status_code, response.text[:200])
            raise self._build_status_error(response)

        return response
