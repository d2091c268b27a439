"""Local on-disk cache of remote files keyed by the hash of their remote path."""

from __future__ import annotations

from dropbox_cache.cache.models import CacheEntry, CacheMetadata
from dropbox_cache.cache.store import CacheStore
from dropbox_cache.cache.utils import hash_remote_path

__all__ = ["CacheEntry", "CacheMetadata", "CacheStore", "hash_remote_path"]
