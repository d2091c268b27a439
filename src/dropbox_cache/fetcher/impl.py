from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from dropbox_cache.auth.credentials import CredentialManager
from dropbox_cache.cache.models import CacheEntry, CacheMetadata
from dropbox_cache.cache.store import CacheStore
from dropbox_cache.cache.utils import format_rfc3339, utc_now
from dropbox_cache.config.models import AppConfig, CacheSettings
from dropbox_cache.errors import (
    AuthenticationError,
    DownloadError,
    MetadataCheckError,
    NotFoundError,
    TokenRefreshError,
)
from dropbox_cache.fetcher.state_machine import FetchRun, FetchState
from dropbox_cache.storage.interfaces import DownloadResult

logger = logging.getLogger(__name__)


class CacheAwareFetcher:
    """
    Resolves remote paths to local files, downloading only when the cached
    revision is missing or out of date.

    A download that fails because the access token was rejected is retried
    after re-authenticating, up to ``max_attempts`` attempts in total.
    """

    def __init__(
        self,
        credentials: CredentialManager,
        store: CacheStore,
        settings: CacheSettings = CacheSettings(),
    ) -> None:
        self._credentials = credentials
        self._store = store
        self._settings = settings

    @property
    def store(self) -> CacheStore:
        return self._store

    async def fetch(
        self,
        remote_path: str,
        max_attempts: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Path:
        """Return the local path of an up-to-date copy of ``remote_path``.

        ``timeout`` bounds the whole fetch in seconds; on expiry
        ``asyncio.TimeoutError`` is raised and the cache keeps its previous
        contents.
        """
        attempts = max_attempts if max_attempts is not None else self._settings.max_attempts
        if timeout is None:
            return await self._fetch(remote_path, attempts)
        return await asyncio.wait_for(self._fetch(remote_path, attempts), timeout=timeout)

    async def test_connection(self) -> bool:
        try:
            client = await self._credentials.get_client()
            display_name = await client.get_account_display_name()
        except AuthenticationError:
            logger.exception("Storage connection test failed: credentials were rejected.")
            self._credentials.invalidate()
            return False
        except Exception:
            logger.exception("Storage connection test failed.")
            return False
        logger.info("Connected to storage. account=%s", display_name)
        return True

    async def _fetch(self, remote_path: str, max_attempts: int) -> Path:
        run = FetchRun(remote_path, max_attempts)
        entry = self._store.entry_for(remote_path)

        if await self._is_cache_fresh(entry, remote_path):
            run.move_to(FetchState.SUCCEEDED)
            logger.info("Using cached copy. path=%s key=%s", remote_path, entry.key)
            return entry.content_path

        run.move_to(FetchState.DOWNLOADING)
        last_error: Optional[BaseException] = None
        while run.state is FetchState.DOWNLOADING:
            try:
                client = await self._credentials.get_client()
                result = await client.download(remote_path)
                await self._store.write(entry, result.content, self._build_metadata(remote_path, result))
            except NotFoundError:
                run.move_to(FetchState.FAILED)
                logger.warning("Remote path does not exist. path=%s attempt=%s", remote_path, run.attempt)
                raise
            except TokenRefreshError as e:
                last_error = e
                run.move_to(FetchState.FAILED)
            except AuthenticationError as e:
                last_error = e
                if not run.can_retry:
                    run.move_to(FetchState.FAILED)
                    continue
                logger.info(
                    "Access token expired, re-authenticating. path=%s attempt=%s/%s",
                    remote_path,
                    run.attempt,
                    run.max_attempts,
                )
                run.move_to(FetchState.REAUTHENTICATING)
                self._credentials.invalidate()
                await self._backoff(run.attempt)
                run.move_to(FetchState.DOWNLOADING)
            except Exception as e:
                last_error = e
                run.move_to(FetchState.FAILED)
            else:
                run.move_to(FetchState.SUCCEEDED)
                logger.info(
                    "Downloaded remote file. path=%s revision=%s size_bytes=%s attempt=%s",
                    remote_path,
                    result.metadata.revision,
                    len(result.content),
                    run.attempt,
                )
                return entry.content_path

        logger.error(
            "Download failed. path=%s attempts=%s/%s error=%s",
            remote_path,
            run.attempt,
            run.max_attempts,
            last_error,
        )
        raise DownloadError(remote_path, run.attempt, last_error) from last_error

    async def _is_cache_fresh(self, entry: CacheEntry, remote_path: str) -> bool:
        if not self._store.has_complete_entry(entry):
            return False
        try:
            return await self._cached_revision_matches(entry, remote_path)
        except MetadataCheckError as e:
            logger.warning("Cache freshness check failed, downloading instead. path=%s error=%s", remote_path, e)
            return False

    async def _cached_revision_matches(self, entry: CacheEntry, remote_path: str) -> bool:
        cached = self._store.read_metadata(entry)
        try:
            size_on_disk = entry.content_path.stat().st_size
        except OSError as e:
            raise MetadataCheckError(f"Cached content unreadable: {e}") from e
        if size_on_disk != cached.size_bytes:
            raise MetadataCheckError(
                f"Cached content size {size_on_disk} does not match metadata size {cached.size_bytes}"
            )

        try:
            client = await self._credentials.get_client()
            current = await client.get_metadata(remote_path)
        except Exception as e:
            raise MetadataCheckError(f"Remote metadata query failed: {type(e).__name__}: {e}") from e

        if current.revision == cached.revision:
            return True
        logger.info(
            "Cached copy is stale. path=%s cached_revision=%s remote_revision=%s",
            remote_path,
            cached.revision,
            current.revision,
        )
        return False

    def _build_metadata(self, remote_path: str, result: DownloadResult) -> CacheMetadata:
        return CacheMetadata(
            remote_path=remote_path,
            revision=result.metadata.revision,
            server_modified=result.metadata.server_modified,
            last_fetched_at=format_rfc3339(utc_now()),
            size_bytes=len(result.content),
        )

    async def _backoff(self, attempt: int) -> None:
        delay_seconds = self._settings.retry_backoff_seconds * (2 ** (attempt - 1))
        if delay_seconds <= 0:
            return
        logger.debug("Backing off before retry. attempt=%s delay_seconds=%s", attempt, delay_seconds)
        await asyncio.sleep(delay_seconds)


def build_fetcher(config: AppConfig) -> CacheAwareFetcher:
    """Wire a fetcher from configuration, creating the cache directory if needed."""
    store = CacheStore(config.cache.resolved_cache_dir(), max_entries=config.cache.max_entries)
    store.ensure_dir()
    credentials = CredentialManager(config.credentials, config.storage)
    return CacheAwareFetcher(credentials, store, config.cache)
