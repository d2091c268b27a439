"""Exception hierarchy shared by the credential manager, storage client and fetcher."""

from __future__ import annotations

from typing import Optional


class DropboxCacheError(Exception):
    """Base exception for all dropbox-cache errors."""


class ConfigurationError(DropboxCacheError):
    """Required configuration is missing or invalid."""


class AuthenticationError(DropboxCacheError):
    """Credentials were rejected by the storage API."""


class TokenRefreshError(AuthenticationError):
    """The refresh-token exchange at the token endpoint failed."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class NotFoundError(DropboxCacheError):
    """The remote path does not exist."""

    def __init__(self, remote_path: str) -> None:
        super().__init__(f"Remote path not found: {remote_path}")
        self.remote_path = remote_path


class StorageApiError(DropboxCacheError):
    """The storage API answered with an unexpected status."""

    def __init__(self, message: str, *, status: int, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class MetadataCheckError(DropboxCacheError):
    """The cache freshness check could not reach a verdict."""


class DownloadError(DropboxCacheError):
    """A remote file could not be downloaded after all attempts."""

    def __init__(
        self,
        remote_path: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        if last_error is None:
            detail = "unknown error"
        else:
            detail = f"{type(last_error).__name__}: {last_error}"
        super().__init__(f"Failed to download {remote_path} after {attempts} attempt(s): {detail}")
        self.remote_path = remote_path
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DownloadError",
    "DropboxCacheError",
    "MetadataCheckError",
    "NotFoundError",
    "StorageApiError",
    "TokenRefreshError",
]
