from __future__ import annotations

from dropbox_cache.storage.dropbox_client import DropboxClient
from dropbox_cache.storage.interfaces import DownloadResult, RemoteMetadata, StorageClient, StorageClientFactory

__all__ = ["DownloadResult", "DropboxClient", "RemoteMetadata", "StorageClient", "StorageClientFactory"]
