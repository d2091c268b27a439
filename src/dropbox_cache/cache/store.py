from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dropbox_cache.cache.io import atomic_write_bytes, atomic_write_json, encode_metadata, read_metadata_file
from dropbox_cache.cache.models import META_SUFFIX, CacheEntry, CacheMetadata
from dropbox_cache.cache.utils import hash_remote_path, parse_rfc3339
from dropbox_cache.errors import MetadataCheckError

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class CacheStore:
    """On-disk layout of cached remote files.

    Each remote path owns two files named after the hash of the path: the
    content blob and a JSON metadata record. Both are replaced atomically,
    content first, so a readable metadata record always has its content next
    to it.
    """

    def __init__(self, cache_dir: Path, *, max_entries: Optional[int] = None) -> None:
        self.cache_dir = cache_dir
        self.max_entries = max_entries

    def ensure_dir(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def entry_for(self, remote_path: str) -> CacheEntry:
        key = hash_remote_path(remote_path)
        content_path = self.cache_dir / key
        return CacheEntry(
            key=key,
            content_path=content_path,
            meta_path=content_path.with_name(key + META_SUFFIX),
        )

    def has_complete_entry(self, entry: CacheEntry) -> bool:
        return entry.content_path.is_file() and entry.meta_path.is_file()

    def read_metadata(self, entry: CacheEntry) -> CacheMetadata:
        return read_metadata_file(entry.meta_path)

    async def write(self, entry: CacheEntry, content: bytes, metadata: CacheMetadata) -> None:
        await asyncio.to_thread(atomic_write_bytes, entry.content_path, content)
        atomic_write_json(entry.meta_path, encode_metadata(metadata))
        logger.debug(
            "Cache entry written. key=%s revision=%s size_bytes=%s",
            entry.key,
            metadata.revision,
            metadata.size_bytes,
        )
        if self.max_entries is not None:
            await asyncio.to_thread(self.prune, self.max_entries, keep=entry.key)

    def prune(self, max_entries: int, *, keep: Optional[str] = None) -> int:
        """Evict the least recently fetched entries beyond ``max_entries``.

        The entry named by ``keep`` is never evicted, even when it falls
        outside the bound. Returns the number of entries removed.
        """
        if max_entries < 0:
            raise ValueError(f"max_entries must be >= 0, got {max_entries}")
        if not self.cache_dir.exists():
            return 0

        ranked: list[tuple[datetime, str]] = []
        for meta_path in self.cache_dir.glob("*" + META_SUFFIX):
            key = meta_path.name[: -len(META_SUFFIX)]
            try:
                fetched_at = parse_rfc3339(read_metadata_file(meta_path).last_fetched_at)
            except (MetadataCheckError, ValueError):
                fetched_at = _OLDEST
            if fetched_at.tzinfo is None:
                fetched_at = fetched_at.replace(tzinfo=timezone.utc)
            ranked.append((fetched_at, key))

        if len(ranked) <= max_entries:
            return 0

        ranked.sort(reverse=True)
        removed = 0
        for _, key in ranked[max_entries:]:
            if key == keep:
                continue
            content_path = self.cache_dir / key
            # Metadata goes first so a half-evicted entry reads as stale.
            try:
                content_path.with_name(key + META_SUFFIX).unlink(missing_ok=True)
                content_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to evict cache entry. key=%s error=%s", key, e)
                continue
            removed += 1
        logger.info("Cache pruned. removed=%s kept=%s", removed, len(ranked) - removed)
        return removed
