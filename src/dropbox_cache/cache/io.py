from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from dropbox_cache.cache.models import CacheMetadata, SchemaVersion
from dropbox_cache.errors import MetadataCheckError

logger = logging.getLogger(__name__)


def _tmp_path_for(path: Path) -> Path:
    # Unique per writer so concurrent writes of the same entry never share a temp file.
    return path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _tmp_path_for(path)
    try:
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
    finally:
        tmp_path.unlink(missing_ok=True)


def atomic_write_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _tmp_path_for(path)
    try:
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(path)
    finally:
        tmp_path.unlink(missing_ok=True)


def encode_metadata(metadata: CacheMetadata) -> dict:
    return {
        "schema_version": metadata.schema_version,
        "remote_path": metadata.remote_path,
        "revision": metadata.revision,
        "server_modified": metadata.server_modified,
        "last_fetched_at": metadata.last_fetched_at,
        "size_bytes": metadata.size_bytes,
    }


def decode_metadata(payload: dict) -> CacheMetadata:
    return CacheMetadata(
        remote_path=payload.get("remote_path", ""),
        revision=payload["revision"],
        server_modified=payload.get("server_modified", ""),
        last_fetched_at=payload.get("last_fetched_at", ""),
        size_bytes=int(payload.get("size_bytes", 0)),
        schema_version=int(payload.get("schema_version", SchemaVersion)),
    )


def read_metadata_file(path: Path) -> CacheMetadata:
    """Read a metadata record, raising MetadataCheckError when it cannot be trusted."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise MetadataCheckError(f"Unreadable cache metadata: {path}") from e
    if not isinstance(payload, dict):
        raise MetadataCheckError(f"Cache metadata is not a mapping: {path}")
    try:
        metadata = decode_metadata(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise MetadataCheckError(f"Malformed cache metadata: {path}") from e
    if metadata.schema_version != SchemaVersion:
        raise MetadataCheckError(
            f"Cache metadata schema mismatch: {path} expected={SchemaVersion} actual={metadata.schema_version}"
        )
    if not metadata.revision:
        raise MetadataCheckError(f"Cache metadata has no revision: {path}")
    return metadata
