from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

SchemaVersion = 1
META_SUFFIX = ".meta.json"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    content_path: Path
    meta_path: Path


@dataclass(slots=True)
class CacheMetadata:
    remote_path: str
    revision: str
    server_modified: str
    last_fetched_at: str
    size_bytes: int
    schema_version: int = SchemaVersion
