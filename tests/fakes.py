"""Shared fakes for the test suite: a local OAuth2 token endpoint and settings builders."""

from __future__ import annotations

from typing import Optional

from aiohttp import web
from aiohttp.test_utils import TestServer

from dropbox_cache.config.models import CredentialsSettings, StorageSettings
from dropbox_cache.storage.mock import InMemoryStorage


class FakeTokenEndpoint:
    """
    Serves ``POST /oauth2/token`` on localhost.

    Each successful exchange issues a new token ``token-N``; when ``storage``
    is set the token is also registered as valid there.
    """

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        *,
        status: int = 200,
        body: Optional[str] = None,
    ) -> None:
        self.storage = storage
        self.status = status
        self.body = body
        self.requests: list[dict[str, str]] = []
        self._issued = 0
        self._server: Optional[TestServer] = None

    async def start(self) -> str:
        app = web.Application()
        app.router.add_post("/oauth2/token", self._handle)
        self._server = TestServer(app)
        await self._server.start_server()
        return str(self._server.make_url("/oauth2/token"))

    async def close(self) -> None:
        if self._server is not None:
            await self._server.close()

    async def _handle(self, request: web.Request) -> web.Response:
        form = await request.post()
        self.requests.append({key: str(value) for key, value in form.items()})
        if self.body is not None:
            return web.Response(status=self.status, text=self.body)
        if self.status != 200:
            return web.json_response({"error": "invalid_grant"}, status=self.status)
        self._issued += 1
        token = f"token-{self._issued}"
        if self.storage is not None:
            self.storage.valid_tokens.add(token)
        return web.json_response({"access_token": token, "token_type": "bearer", "expires_in": 14400})


def make_credentials() -> CredentialsSettings:
    return CredentialsSettings(client_id="app-key", client_secret="app-secret", refresh_token="refresh-abc")


def make_storage_settings(token_url: str, base_url: str = "http://127.0.0.1:1/2") -> StorageSettings:
    return StorageSettings(
        token_url=token_url,
        api_base_url=base_url,
        content_base_url=base_url,
        request_timeout_seconds=5,
    )
