from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes

from shared.errors import StoreRequestError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """
    Common ground of the remote clients.

    A client is identified by its type ("store") and engine ("firestore"). Its
    settings live in environment variables prefixed with both, e.g.
    ``STORE_FIRESTORE_PROJECT_ID``, and are all read once at construction.
    Requests go through a single ``httpx.AsyncClient`` created by :meth:`boot`.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._readers = {
            "string": helper_config.get_string_val,
            "number": helper_config.get_number_val,
            "bool": helper_config.get_bool_val,
            "list": helper_config.get_list_val,
        }
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Raises:
            ValueError: If a declared setting is missing or malformed.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
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

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Settings of this engine, keyed without the type/engine prefix."""
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return "_".join((self.get_client_type(), self.get_engine_name(), raw_key)).upper()

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Read one engine setting.

        Args:
            raw_key (str): Key without prefix, e.g. "PROJECT_ID".
            default (Any): Value used when the variable is unset. None makes it mandatory.
            val_type (str): "string", "number", "bool" or "list".

        Raises:
            ValueError: For an unknown val_type or a missing or malformed value.
        """
        reader = self._readers.get(val_type)
        if reader is None:
            raise ValueError(f"{self.get_client_type()} client '{self.get_engine_name()}' declares '{raw_key}' with unknown type '{val_type}'.")
        return reader(self._get_config_key_name(raw_key), default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers carrying credentials; empty when the engine has none configured."""
        pass

    def _get_auth_params(self) -> dict:
        """Query parameters carrying credentials, such as an API key."""
        return {}

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """
        Raises:
            StoreRequestError: If the backend answers with an error status.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=True)

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP client. Tests pass an ``httpx.MockTransport``."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        endpoint = endpoint.strip()
        # custom methods like ":runQuery" attach directly to the resource
        if endpoint and not endpoint.startswith(":"):
            endpoint = "/" + endpoint.lstrip("/")
        return self._get_base_url().rstrip("/") + endpoint

    async def do_request(
        self,
        method: str = "GET",
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send a request relative to the base URL with the engine's credentials attached.

        Args:
            method (str): HTTP verb.
            json (dict | None): Request body.
            params (QueryParamTypes | None): Query parameters; they win over the auth parameters.
            endpoint (str): Path below the base URL, or a custom method starting with ":".
            additional_headers (dict | None): Headers that win over the auth headers.
            raise_on_error (bool): Turn a non-2xx answer into StoreRequestError.

        Returns:
            httpx.Response: The response as received.

        Raises:
            RuntimeError: If the client was not booted.
            StoreRequestError: If raise_on_error is set and the status is not 2xx.
        """
        if self._client is None:
            raise RuntimeError(f"{self.get_engine_name()} client is not booted; call boot() first.")

        headers = {**self._get_auth_header(), **(additional_headers or {})}
        query = {**self._get_auth_params(), **dict(params or {})}
        url = self._build_url(endpoint)

        response = await self._client.request(method, url, headers=headers, params=query or None, json=json)
        if raise_on_error and not response.is_success:
            self.logging.error("%s %s answered %d: %s", method, url, response.status_code, response.text)
            raise StoreRequestError(url, response.status_code, response.text)
        return response
