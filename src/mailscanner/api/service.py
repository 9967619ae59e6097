"""Endpoint wrappers for the mail-indexing API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from mailscanner.api.client import ApiClient
from mailscanner.storage.slots import UserStorage

logger = logging.getLogger(__name__)

DEFAULT_FOLDERS = ("INBOX",)


class ApiService:
    """Typed calls for each API endpoint; every method returns the decoded JSON body."""

    def __init__(self, client: ApiClient, user_storage: UserStorage | None = None) -> None:
        self.client = client
        self.user_storage = user_storage or client.user_storage

    # Authentication

    async def login_with_imap(self, email: str, password: str) -> dict[str, Any]:
        """Log in with IMAP credentials and persist the returned session.

        The token and user info are saved inside the dispatch, so a storage
        quota error raised while saving goes through the recovery chain.

        Raises:
            httpx.HTTPStatusError: If the server rejects the credentials
            StorageFull: If the session cannot be persisted
        """

        def persist(response: httpx.Response) -> dict[str, Any]:
            data = response.json()
            token = data.get("token")
            if token:
                self.user_storage.save_auth_token(token)
                self.user_storage.save_user_info(data.get("email", email), data.get("name"))
                logger.info("Login succeeded, session saved")
            else:
                logger.warning("Login response did not include a token")
            return data

        return await self.client.post(
            "/auth/login", json={"email": email, "password": password}, handler=persist
        )

    async def logout(self) -> None:
        """End the server session; the local session is always cleared."""
        try:
            await self.client.post("/auth/logout")
        except Exception as e:
            logger.error(f"Logout error: {e}")
        finally:
            self.user_storage.remove_auth_token()
            self.user_storage.remove_user_info()
            self.client.navigate("/")

    # Health

    async def health(self) -> Any:
        return await self.client.get("/health", handler=_json)

    # Scanning

    async def start_scan(self, folders: list[str] | None = None) -> Any:
        payload = {"folders": list(folders) if folders else list(DEFAULT_FOLDERS)}
        return await self.client.post("/scan", json=payload, handler=_json)

    async def get_scan_status(self) -> Any:
        return await self.client.get("/scan-status", handler=_json)

    async def get_scan_progress(self) -> Any:
        return await self.client.get("/scan-progress", handler=_json)

    async def cancel_scan(self) -> Any:
        return await self.client.post("/scan-cancel", handler=_json)

    async def get_folders(self) -> Any:
        return await self.client.get("/folders", handler=_json)

    # Messages

    async def get_messages(self, page: int = 1, query: str = "") -> Any:
        params: dict[str, Any] = {"page": page}
        if query:
            params["q"] = query
        return await self.client.get("/messages", params=params, handler=_json)

    async def delete_message(self, message_id: str | int) -> Any:
        return await self.client.delete(f"/messages/{message_id}", handler=_json)

    # Statistics

    async def get_stats(self) -> Any:
        return await self.client.get("/stats", handler=_json)


def _json(response: httpx.Response) -> Any:
    return response.json()
