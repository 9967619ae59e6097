"""HTTP client for the mail-indexing API with the interceptor chain applied.

Every dispatch goes through the same stages:

1. build the request and pass it through each interceptor's ``on_request``
2. send it (the transport enforces the configured timeout)
3. raise ``httpx.HTTPStatusError`` for 4xx/5xx responses
4. pass the response through each interceptor's ``on_response``
5. run the caller's optional ``handler`` on the response

An exception from any stage is shown to each interceptor's ``on_error``
and then re-raised unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from mailscanner.api.interceptors import (
    AuthInterceptor,
    Interceptor,
    Navigator,
    RecoveryInterceptor,
    log_navigation,
)
from mailscanner.storage.slots import UserStorage
from mailscanner.utils.logging import correlation_scope

if TYPE_CHECKING:
    from mailscanner.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

T = TypeVar("T")


class ApiClient:
    """Async API client wrapping httpx with request/response interceptors.

    Example:
        ```python
        async with ApiClient("http://127.0.0.1:8080/api", user_storage) as client:
            response = await client.request("GET", "/health")
            print(response.json())
        ```
    """

    def __init__(
        self,
        base_url: str,
        user_storage: UserStorage,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        navigate: Navigator = log_navigation,
        interceptors: Sequence[Interceptor] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: API base URL (e.g. ``http://host/api``)
            user_storage: Session slots used for credentials and recovery
            timeout: Request timeout in seconds
            navigate: Callback invoked with a URL when the user must re-authenticate
            interceptors: Interceptor chain (default: auth + recovery)
            transport: Optional httpx transport (used by tests)
        """
        self.user_storage = user_storage
        self.timeout = timeout
        self.navigate = navigate
        if interceptors is None:
            interceptors = [
                AuthInterceptor(user_storage),
                RecoveryInterceptor(user_storage, navigate),
            ]
        self.interceptors = list(interceptors)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        user_storage: UserStorage | None = None,
        *,
        navigate: Navigator = log_navigation,
    ) -> ApiClient:
        """Build a client from application settings (default: get_settings())."""
        from mailscanner.config import get_settings
        from mailscanner.storage.slots import get_user_storage

        settings = settings or get_settings()
        return cls(
            settings.api_base_url,
            user_storage or get_user_storage(settings),
            timeout=settings.request_timeout,
            navigate=navigate,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        handler: Callable[[httpx.Response], T] | None = None,
    ) -> httpx.Response | T:
        """Dispatch a request through the interceptor chain.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            json: Optional JSON body
            params: Optional query parameters
            headers: Optional extra headers
            handler: Optional callback run on the successful response inside
                the recovery scope; its return value is returned instead of
                the response

        Returns:
            The response, or the handler's result

        Raises:
            httpx.HTTPStatusError: For 4xx/5xx responses
            httpx.TimeoutException: If the request timed out
            httpx.RequestError: For other transport failures
            Exception: Whatever the handler raised
        """
        with correlation_scope():
            try:
                request = self._client.build_request(
                    method, path, json=json, params=params, headers=headers
                )
                for interceptor in self.interceptors:
                    interceptor.on_request(request)

                logger.debug(f"{method} {request.url}")
                response = await self._client.send(request)
                response.raise_for_status()

                for interceptor in self.interceptors:
                    interceptor.on_response(response)

                if handler is not None:
                    return handler(response)
                return response
            except Exception as e:
                self._notify_error(e)
                raise

    def _notify_error(self, error: Exception) -> None:
        for interceptor in self.interceptors:
            try:
                interceptor.on_error(error)
            except Exception as e:
                logger.exception(f"Interceptor {type(interceptor).__name__} failed: {e}")

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
