from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True, slots=True)
class RemoteMetadata:
    path: str
    revision: str
    server_modified: str
    size_bytes: int = 0


@dataclass(frozen=True, slots=True)
class DownloadResult:
    content: bytes
    metadata: RemoteMetadata


class StorageClient:
    """A storage API client bound to a single access token."""

    async def get_metadata(self, remote_path: str) -> RemoteMetadata:
        """
        Return the current metadata of a remote file.

        Raises AuthenticationError when the token is rejected and NotFoundError
        when the path does not exist.
        """
        raise NotImplementedError

    async def download(self, remote_path: str) -> DownloadResult:
        """Return the file content together with the metadata of the revision downloaded."""
        raise NotImplementedError

    async def get_account_display_name(self) -> str:
        """Return the display name of the account the token belongs to."""
        raise NotImplementedError


StorageClientFactory = Callable[[str], StorageClient]
