"""Local disk cache in front of Dropbox with transparent OAuth2 token refresh."""

from __future__ import annotations

from dropbox_cache.errors import (
    AuthenticationError,
    ConfigurationError,
    DownloadError,
    DropboxCacheError,
    MetadataCheckError,
    NotFoundError,
    StorageApiError,
    TokenRefreshError,
)
from dropbox_cache.fetcher import CacheAwareFetcher, build_fetcher

__all__ = [
    "AuthenticationError",
    "CacheAwareFetcher",
    "ConfigurationError",
    "DownloadError",
    "DropboxCacheError",
    "MetadataCheckError",
    "NotFoundError",
    "StorageApiError",
    "TokenRefreshError",
    "build_fetcher",
]
