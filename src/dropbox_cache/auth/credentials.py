from __future__ import annotations

import asyncio
import json
import logging
from functools import partial
from typing import Optional

import aiohttp

from dropbox_cache.config.models import CredentialsSettings, StorageSettings
from dropbox_cache.errors import TokenRefreshError
from dropbox_cache.storage.dropbox_client import DropboxClient
from dropbox_cache.storage.interfaces import StorageClient, StorageClientFactory

logger = logging.getLogger(__name__)


class CredentialManager:
    """
    Hands out storage clients bound to a valid access token.

    The access token lives in memory only. It is obtained lazily from the
    token endpoint with the refresh-token grant and dropped by ``invalidate()``
    after the storage API rejects it. Concurrent callers that find no token
    share a single refresh exchange.
    """

    def __init__(
        self,
        credentials: CredentialsSettings,
        storage: StorageSettings,
        *,
        client_factory: Optional[StorageClientFactory] = None,
    ) -> None:
        self._credentials = credentials
        self._storage = storage
        self._client_factory = client_factory or partial(DropboxClient, settings=storage)
        self._access_token: Optional[str] = None
        self._client: Optional[StorageClient] = None
        self._refresh_lock = asyncio.Lock()
        self._refresh_count = 0

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    @property
    def has_token(self) -> bool:
        return self._client is not None and self._access_token is not None

    async def get_client(self) -> StorageClient:
        client = self._client
        if client is not None and self._access_token is not None:
            return client

        async with self._refresh_lock:
            # Another task may have refreshed while we waited.
            if self._client is not None and self._access_token is not None:
                return self._client
            access_token = await self._refresh_access_token()
            self._access_token = access_token
            self._client = self._client_factory(access_token)
            return self._client

    def invalidate(self) -> None:
        if self._access_token is not None:
            logger.info("Access token invalidated; the next request will re-authenticate.")
        self._access_token = None
        self._client = None

    async def _refresh_access_token(self) -> str:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self._credentials.refresh_token.get_secret_value(),
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret.get_secret_value(),
        }
        timeout = aiohttp.ClientTimeout(total=self._storage.request_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self._storage.token_url, data=data) as resp:
                    status = resp.status
                    body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Access token refresh request failed. url=%s error=%s", self._storage.token_url, e)
            raise TokenRefreshError(f"Token endpoint unreachable: {e}") from e

        if not 200 <= status < 300:
            logger.error("Access token refresh was rejected. status=%s body=%s", status, body[:500])
            raise TokenRefreshError(f"Token endpoint returned HTTP {status}", status=status, body=body)

        try:
            payload = json.loads(body)
            access_token = payload["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Access token refresh returned an unexpected body. status=%s", status)
            raise TokenRefreshError("Token endpoint returned a malformed body", status=status, body=body) from e
        if not isinstance(access_token, str) or not access_token:
            raise TokenRefreshError("Token endpoint returned an empty access token", status=status, body=body)

        self._refresh_count += 1
        logger.info("Access token refreshed. refresh_count=%s", self._refresh_count)
        return access_token
