"""Tests for ApiClient and its interceptors.

Tests cover:
- AuthInterceptor: bearer header only when a token is stored
- RecoveryInterceptor: 401 teardown, quota cleanup, logging
- ApiClient.request: errors re-raised unchanged, handler inside recovery scope
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from unittest.mock import patch

import httpx
import pytest

from mailscanner.api.client import ApiClient
from mailscanner.api.interceptors import (
    UNAUTHORIZED_REDIRECT,
    AuthInterceptor,
    Interceptor,
    RecoveryInterceptor,
    is_unauthorized,
)
from mailscanner.storage.errors import StorageFull
from mailscanner.storage.slots import UserStorage

BASE_URL = "http://testserver/api"


def make_client(
    user_storage: UserStorage,
    handler: Callable[[httpx.Request], httpx.Response],
    navigations: list[str] | None = None,
    **kwargs,
) -> ApiClient:
    navigate = navigations.append if navigations is not None else (lambda url: None)
    return ApiClient(
        BASE_URL,
        user_storage,
        navigate=navigate,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestAuthInterceptor:
    """Tests for bearer credentials."""

    @pytest.mark.asyncio
    async def test_no_token_no_header(self, user_storage: UserStorage) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async with make_client(user_storage, handler) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert "Authorization" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_bearer_header(self, user_storage: UserStorage) -> None:
        user_storage.save_auth_token("abc")
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        async with make_client(user_storage, handler) as client:
            await client.get("/stats")

        assert seen[0].headers["Authorization"] == "Bearer abc"

    @pytest.mark.asyncio
    async def test_paths_resolve_under_base_url(self, user_storage: UserStorage) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        async with make_client(user_storage, handler) as client:
            await client.get("/health")

        assert seen[0].url.path == "/api/health"

    def test_token_read_at_dispatch(self, user_storage: UserStorage) -> None:
        """The header reflects the token stored when the request is built."""
        interceptor = AuthInterceptor(user_storage)
        request = httpx.Request("GET", f"{BASE_URL}/health")

        user_storage.save_auth_token("first")
        user_storage.save_auth_token("second")
        interceptor.on_request(request)

        assert request.headers["Authorization"] == "Bearer second"


class TestRecovery:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_unauthorized_clears_token_and_navigates(
        self, user_storage: UserStorage, navigations: list[str]
    ) -> None:
        user_storage.save_auth_token("expired")
        user_storage.save_user_info("me@example.com", "Me")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"detail": "expired"})

        async with make_client(user_storage, handler, navigations) as client:
            with pytest.raises(httpx.HTTPStatusError) as exc_info:
                await client.get("/messages")

        assert exc_info.value.response.status_code == 401
        assert user_storage.get_auth_token() is None
        assert navigations == [UNAUTHORIZED_REDIRECT]
        # Only the token is removed on 401
        assert user_storage.get_user_info().email == "me@example.com"

    @pytest.mark.asyncio
    async def test_server_error_keeps_session(
        self, user_storage: UserStorage, navigations: list[str], caplog: pytest.LogCaptureFixture
    ) -> None:
        user_storage.save_auth_token("tok")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with make_client(user_storage, handler, navigations) as client:
            with caplog.at_level(logging.ERROR):
                with pytest.raises(httpx.HTTPStatusError) as exc_info:
                    await client.get("/stats")

        assert exc_info.value.response.status_code == 500
        assert user_storage.get_auth_token() == "tok"
        assert navigations == []
        assert "API Error" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout_propagates(
        self, user_storage: UserStorage, navigations: list[str]
    ) -> None:
        user_storage.save_auth_token("tok")

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(user_storage, handler, navigations) as client:
            with pytest.raises(httpx.TimeoutException):
                await client.get("/scan-status")

        assert user_storage.get_auth_token() == "tok"
        assert navigations == []

    @pytest.mark.asyncio
    async def test_quota_error_in_handler_runs_cleanup(self, user_storage: UserStorage) -> None:
        """A capacity error raised while handling a response triggers cleanup."""
        user_storage.guard.store.set("viteDeps", "cache")
        raised = StorageFull("full", key="user_name")

        def handle(response: httpx.Response) -> None:
            raise raised

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        async with make_client(user_storage, handler) as client:
            with pytest.raises(StorageFull) as exc_info:
                await client.get("/folders", handler=handle)

        assert exc_info.value is raised
        assert user_storage.guard.read("viteDeps") is None

    @pytest.mark.asyncio
    async def test_handler_result_returned(self, user_storage: UserStorage) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"folders": ["INBOX"]})

        async with make_client(user_storage, handler) as client:
            result = await client.get("/folders", handler=lambda r: r.json()["folders"])

        assert result == ["INBOX"]

    @pytest.mark.asyncio
    async def test_failing_interceptor_does_not_mask_error(
        self, user_storage: UserStorage
    ) -> None:
        class Broken(Interceptor):
            def on_error(self, error: Exception) -> None:
                raise RuntimeError("interceptor bug")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        async with make_client(user_storage, handler, interceptors=[Broken()]) as client:
            with pytest.raises(httpx.HTTPStatusError) as exc_info:
                await client.get("/messages/1")

        assert exc_info.value.response.status_code == 404

    @pytest.mark.asyncio
    async def test_on_response_hook(self, user_storage: UserStorage) -> None:
        statuses: list[int] = []

        class Recorder(Interceptor):
            def on_response(self, response: httpx.Response) -> None:
                statuses.append(response.status_code)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(204)

        async with make_client(user_storage, handler, interceptors=[Recorder()]) as client:
            await client.delete("/messages/7")

        assert statuses == [204]

    def test_teardown_failure_is_logged(
        self, user_storage: UserStorage, caplog: pytest.LogCaptureFixture
    ) -> None:
        def navigate(url: str) -> None:
            raise RuntimeError("no router")

        interceptor = RecoveryInterceptor(user_storage, navigate)
        request = httpx.Request("GET", f"{BASE_URL}/stats")
        error = httpx.HTTPStatusError(
            "401", request=request, response=httpx.Response(401, request=request)
        )

        with caplog.at_level(logging.ERROR):
            interceptor.on_error(error)

        assert "Session teardown failed" in caplog.text

    def test_quota_recovery_calls_cleanup_once(self, user_storage: UserStorage) -> None:
        interceptor = RecoveryInterceptor(user_storage)

        with patch.object(user_storage, "cleanup_storage", return_value=False) as cleanup:
            interceptor.on_error(StorageFull("full"))

        cleanup.assert_called_once_with()


class TestIsUnauthorized:
    """Tests for 401 classification."""

    @pytest.mark.parametrize(("status", "expected"), [(401, True), (403, False), (500, False)])
    def test_status_codes(self, status: int, expected: bool) -> None:
        request = httpx.Request("GET", f"{BASE_URL}/stats")
        error = httpx.HTTPStatusError(
            str(status), request=request, response=httpx.Response(status, request=request)
        )

        assert is_unauthorized(error) is expected

    def test_transport_error(self) -> None:
        assert is_unauthorized(httpx.ConnectError("refused")) is False
