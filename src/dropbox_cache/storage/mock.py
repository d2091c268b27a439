from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import aiohttp

from dropbox_cache.errors import AuthenticationError, NotFoundError
from dropbox_cache.storage.interfaces import DownloadResult, RemoteMetadata, StorageClient


@dataclass(slots=True)
class RemoteFile:
    content: bytes
    revision: str
    server_modified: str = "2024-01-01T00:00:00Z"


@dataclass(slots=True)
class InMemoryStorage:
    """
    A deterministic in-process stand-in for the storage API.

    Tokens are accepted only while they are listed in ``valid_tokens``; files
    live in ``files`` keyed by remote path. Call counters let tests assert how
    much network traffic a fetch produced.
    """

    files: dict[str, RemoteFile] = field(default_factory=dict)
    valid_tokens: set[str] = field(default_factory=set)
    account_name: str = "Cache Test Account"
    fail_metadata: bool = False
    download_delay_seconds: float = 0.0
    metadata_calls: int = 0
    download_calls: int = 0

    def put(self, remote_path: str, content: bytes, revision: str) -> None:
        self.files[remote_path] = RemoteFile(content=content, revision=revision)

    def client_for(self, access_token: str) -> StorageClient:
        return InMemoryStorageClient(storage=self, access_token=access_token)

    def _check_token(self, access_token: str) -> None:
        if access_token not in self.valid_tokens:
            raise AuthenticationError("expired_access_token")

    def _lookup(self, remote_path: str) -> RemoteFile:
        remote = self.files.get(remote_path)
        if remote is None:
            raise NotFoundError(remote_path)
        return remote


@dataclass(frozen=True, slots=True)
class InMemoryStorageClient(StorageClient):
    storage: InMemoryStorage
    access_token: str

    async def get_metadata(self, remote_path: str) -> RemoteMetadata:
        self.storage.metadata_calls += 1
        if self.storage.fail_metadata:
            raise aiohttp.ClientConnectionError("simulated metadata failure")
        self.storage._check_token(self.access_token)
        remote = self.storage._lookup(remote_path)
        return RemoteMetadata(
            path=remote_path,
            revision=remote.revision,
            server_modified=remote.server_modified,
            size_bytes=len(remote.content),
        )

    async def download(self, remote_path: str) -> DownloadResult:
        self.storage.download_calls += 1
        if self.storage.download_delay_seconds:
            await asyncio.sleep(self.storage.download_delay_seconds)
        self.storage._check_token(self.access_token)
        remote = self.storage._lookup(remote_path)
        return DownloadResult(
            content=remote.content,
            metadata=RemoteMetadata(
                path=remote_path,
                revision=remote.revision,
                server_modified=remote.server_modified,
                size_bytes=len(remote.content),
            ),
        )

    async def get_account_display_name(self) -> str:
        self.storage._check_token(self.access_token)
        return self.storage.account_name
