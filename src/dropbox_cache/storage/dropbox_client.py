from __future__ import annotations

import json
import logging
from typing import Any, Optional

import aiohttp

from dropbox_cache.config.models import StorageSettings
from dropbox_cache.errors import AuthenticationError, NotFoundError, StorageApiError
from dropbox_cache.storage.interfaces import DownloadResult, RemoteMetadata, StorageClient

logger = logging.getLogger(__name__)

# Dropbox reports a missing path as HTTP 409 with this marker in error_summary.
_NOT_FOUND_MARKER = "not_found"


def _parse_metadata(payload: dict[str, Any], remote_path: str) -> RemoteMetadata:
    try:
        return RemoteMetadata(
            path=payload.get("path_display") or remote_path,
            revision=payload["rev"],
            server_modified=payload.get("server_modified", ""),
            size_bytes=int(payload.get("size", 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise StorageApiError(
            f"Unexpected metadata payload for {remote_path}",
            status=200,
            body=json.dumps(payload)[:500],
        ) from e


class DropboxClient(StorageClient):
    """Minimal Dropbox API v2 client for the calls the cache needs."""

    def __init__(self, access_token: str, settings: StorageSettings) -> None:
        self._access_token = access_token
        self._settings = settings
        self._timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _raise_for_status(self, resp: aiohttp.ClientResponse, remote_path: Optional[str]) -> None:
        if resp.status < 300:
            return
        body = await resp.text()
        if resp.status == 401:
            raise AuthenticationError(f"Access token rejected by the storage API: {body[:200]}")
        if resp.status == 409 and remote_path is not None and _NOT_FOUND_MARKER in body:
            raise NotFoundError(remote_path)
        raise StorageApiError(
            f"Storage API request failed with HTTP {resp.status}",
            status=resp.status,
            body=body,
        )

    async def get_metadata(self, remote_path: str) -> RemoteMetadata:
        url = f"{self._settings.api_base_url.rstrip('/')}/files/get_metadata"
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(url, headers=self._headers(), json={"path": remote_path}) as resp:
                await self._raise_for_status(resp, remote_path)
                payload = await resp.json(content_type=None)
        if not isinstance(payload, dict) or payload.get(".tag", "file") != "file":
            raise StorageApiError(f"Remote path is not a file: {remote_path}", status=200)
        return _parse_metadata(payload, remote_path)

    async def download(self, remote_path: str) -> DownloadResult:
        url = f"{self._settings.content_base_url.rstrip('/')}/files/download"
        headers = self._headers()
        # json.dumps escapes non-ASCII characters, which HTTP headers require.
        headers["Dropbox-API-Arg"] = json.dumps({"path": remote_path})
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(url, headers=headers) as resp:
                await self._raise_for_status(resp, remote_path)
                raw_result = resp.headers.get("Dropbox-API-Result", "")
                content = await resp.read()
        try:
            result = json.loads(raw_result)
        except ValueError as e:
            raise StorageApiError(
                f"Download response for {remote_path} has no readable Dropbox-API-Result header",
                status=200,
                body=raw_result[:500],
            ) from e
        metadata = _parse_metadata(result, remote_path)
        logger.debug(
            "Downloaded remote file. path=%s revision=%s size_bytes=%s",
            remote_path,
            metadata.revision,
            len(content),
        )
        return DownloadResult(content=content, metadata=metadata)

    async def get_account_display_name(self) -> str:
        url = f"{self._settings.api_base_url.rstrip('/')}/users/get_current_account"
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(url, headers=self._headers()) as resp:
                await self._raise_for_status(resp, None)
                payload = await resp.json(content_type=None)
        try:
            return payload["name"]["display_name"]
        except (KeyError, TypeError) as e:
            raise StorageApiError("Unexpected account payload", status=200) from e
