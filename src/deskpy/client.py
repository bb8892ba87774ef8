import asyncio
from contextlib import AsyncExitStack
from typing import Any, ClassVar, Dict, List, Optional, Set, Union

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from multidict import CIMultiDict
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import __version__
from .auth import Auth
from .config import ClientConfig
from .exceptions import ApiResponseError, ConfigError, DeskClientError
from .logging import DefaultLogger, Logger
from .pagination_manager import PaginationManager
from .resources import Groups, Organizations, TicketFields, Tickets, Users, Views
from .retry import RetryManager, RetryPolicy

CONFIG_FIELDS = set(ClientConfig.model_fields)


class Debug(BaseModel):
    """What was sent and received by the most recent request."""

    last_request_headers: Dict[str, Any] = Field(default_factory=dict)
    last_request_body: Optional[Any] = None
    last_response_code: Optional[int] = None
    last_response_headers: CIMultiDict = Field(default_factory=CIMultiDict)
    last_response_error: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class DeskClient(BaseModel):
    """Async client for the ticketing API.

    Use it as an async context manager so the underlying
    :class:`aiohttp.ClientSession` is opened and closed with it::

        async with DeskClient(subdomain="acme", username="agent@acme.test") as client:
            client.set_auth("basic", {"username": "agent@acme.test", "token": "..."})
            async for ticket in client.tickets.iterate({"per_page": 50}):
                ...
    """

    client_config: ClientConfig
    session: Optional[ClientSession] = None
    headers: Optional[Dict[str, str]] = None
    retry_policy: Optional[Union[str, RetryPolicy]] = None
    logger: Optional[Logger] = None
    auth: Optional[Auth] = None
    sideload: Optional[List[str]] = None
    _exit_stack: Optional[AsyncExitStack] = None
    _owns_session: bool = False
    _timeout: Optional[ClientTimeout] = None
    _debug: Optional[Debug] = None
    _pagination_manager: Optional[PaginationManager] = None
    _retry_manager: Optional[RetryManager] = None

    VALID_METHODS: ClassVar[Set[str]] = {"GET", "POST", "PUT", "DELETE", "PATCH"}
    DEFAULT_USER_AGENT: ClassVar[str] = f"deskpy/{__version__}"
    DEFAULT_HEADERS: ClassVar[Dict[str, str]] = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": DEFAULT_USER_AGENT,
    }

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __init__(self, **data):
        # Connection settings may be passed flat instead of as a ClientConfig
        if "client_config" not in data:
            settings = {key: data.pop(key) for key in list(data) if key in CONFIG_FIELDS}
            try:
                data["client_config"] = ClientConfig(**settings)
            except ValidationError as e:
                raise ConfigError(str(e)) from e

        super().__init__(**data)

        default_headers = self.DEFAULT_HEADERS.copy()
        if self.headers:
            default_headers.update(self.headers)
        self.headers = default_headers

        self._timeout = ClientTimeout(total=self.client_config.timeout)
        self._debug = Debug()

        if self.logger is None:
            self.logger = DefaultLogger(name="deskpy")

        self._pagination_manager = PaginationManager(logger=self.logger)
        self._pagination_manager.register_builtin_strategies()

        self._retry_manager = RetryManager(logger=self.logger)
        self._retry_manager.register_builtin_policies()
        if self.retry_policy is None or isinstance(self.retry_policy, str):
            self.retry_policy = self._retry_manager.get_policy(self.retry_policy)

    async def __aenter__(self) -> "DeskClient":
        self._exit_stack = AsyncExitStack()
        if self.session is None:
            self.session = await self._exit_stack.enter_async_context(
                ClientSession(timeout=self._timeout)
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if self._exit_stack:
                await self._exit_stack.aclose()
        finally:
            self._exit_stack = None
            # An externally supplied session stays open and attached
            if self._owns_session:
                self.session = None
                self._owns_session = False

    # Settings access
    def get_api_url(self) -> str:
        return self.client_config.api_url

    def get_subdomain(self) -> Optional[str]:
        return self.client_config.subdomain

    def set_auth(self, strategy: str, options: Dict[str, Any]) -> None:
        """Configure authentication.

        Raises:
            AuthError: If the strategy is unknown or an option is missing
        """
        self.auth = Auth(strategy, options)
        self.logger.debug(f"Configured {strategy} auth")

    def get_auth_strategy(self) -> Optional[str]:
        return self.auth.strategy if self.auth else None

    def get_auth_options(self) -> Optional[Dict[str, Any]]:
        return self.auth.options if self.auth else None

    def set_sideload(self, fields: Optional[List[str]] = None) -> "DeskClient":
        """Embed related resources in the next request's response."""
        self.sideload = fields
        return self

    def get_sideload(self, params: Optional[Dict[str, Any]] = None) -> Optional[List[str]]:
        """A ``sideload`` list in ``params`` wins over the client-level one."""
        if params and isinstance(params.get("sideload"), list):
            return params["sideload"]
        return self.sideload

    def get_debug(self) -> Debug:
        return self._debug

    def get_pagination_manager(self) -> PaginationManager:
        return self._pagination_manager

    def get_retry_manager(self) -> RetryManager:
        return self._retry_manager

    def update_headers(self, headers: Dict[str, str]) -> None:
        self.headers.update(headers)
        self.logger.debug("Updated headers", headers=headers)

    # Resource accessors
    @property
    def tickets(self) -> Tickets:
        return Tickets(self)

    @property
    def users(self) -> Users:
        return Users(self)

    @property
    def organizations(self) -> Organizations:
        return Organizations(self)

    @property
    def groups(self) -> Groups:
        return Groups(self)

    @property
    def views(self) -> Views:
        return Views(self)

    @property
    def ticket_fields(self) -> TicketFields:
        return TicketFields(self)

    @staticmethod
    def _encode_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Turn query values into types aiohttp accepts; ``None`` is dropped."""
        encoded = {}
        for key, value in (params or {}).items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (list, tuple)):
                value = ",".join(str(v) for v in value)
            encoded[key] = value
        return encoded

    async def send(
        self,
        endpoint: str,
        method: str = "GET",
        query_params: Optional[Dict[str, Any]] = None,
        post_fields: Optional[Any] = None,
    ) -> Any:
        """Perform one API call and return the decoded JSON body.

        Args:
            endpoint: Path relative to the API base URL, e.g. ``tickets.json``
            method: HTTP method
            query_params: Query string parameters
            post_fields: JSON request body

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            DeskClientError: If the method is invalid or no session is open
            ApiResponseError: If the API answers with a non-2xx status
        """
        method = method.upper()
        if method not in self.VALID_METHODS:
            raise DeskClientError(f"Invalid HTTP method: {method}")
        if self.session is None:
            raise DeskClientError("Session not initialized. Use async with context.")

        url = f"{self.client_config.api_url}{endpoint.lstrip('/')}"
        headers = self.headers.copy()
        if self.auth is not None:
            headers.update(self.auth.headers())
        params = self._encode_params(query_params)

        self._debug = Debug(
            last_request_headers=Logger.redact(headers),
            last_request_body=post_fields,
        )
        self.logger.debug(f"Making {method} request to {url}", params=params)

        async def execute_request():
            return await self.session.request(
                method=method,
                url=url,
                params=params,
                json=post_fields,
                headers=headers,
                timeout=self._timeout,
            )

        try:
            response = await self.retry_policy.execute_with_retry(execute_request)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._debug.last_response_error = str(e) or type(e).__name__
            self.logger.error(f"{method} {url} failed: {e}")
            raise

        self._debug.last_response_code = response.status
        self._debug.last_response_headers = CIMultiDict(response.headers or {})
        self.logger.debug(f"Received response: status={response.status}")

        if not 200 <= response.status < 300:
            details = await self._error_details(response)
            message = f"{method} {url} failed"
            if isinstance(details, dict):
                description = details.get("description") or details.get("error")
                if description:
                    message = f"{message}: {description}"
            self._debug.last_response_error = message
            self.logger.error(message, status=response.status)
            raise ApiResponseError(message, status=response.status, details=details)

        if response.status == 204:
            return None
        return await response.json(content_type=None)

    @staticmethod
    async def _error_details(response) -> Any:
        try:
            return await response.json(content_type=None)
        except (ValueError, aiohttp.ContentTypeError):
            return await response.text()

    async def get(self, endpoint: str, query_params: Optional[Dict[str, Any]] = None) -> Any:
        """GET with sideloads applied as ``include=a,b``."""
        query_params = dict(query_params or {})
        sideloads = self.get_sideload(query_params)
        query_params.pop("sideload", None)
        if isinstance(sideloads, list):
            query_params["include"] = ",".join(sideloads)

        try:
            return await self.send(endpoint, "GET", query_params=query_params)
        finally:
            self.set_sideload(None)

    async def post(self, endpoint: str, post_fields: Optional[Any] = None) -> Any:
        try:
            return await self.send(endpoint, "POST", post_fields=post_fields or {})
        finally:
            self.set_sideload(None)

    async def put(self, endpoint: str, put_fields: Optional[Any] = None) -> Any:
        try:
            return await self.send(endpoint, "PUT", post_fields=put_fields or {})
        finally:
            self.set_sideload(None)

    async def delete(self, endpoint: str) -> Any:
        try:
            return await self.send(endpoint, "DELETE")
        finally:
            self.set_sideload(None)
