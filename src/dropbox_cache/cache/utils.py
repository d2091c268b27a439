from __future__ import annotations

import hashlib
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_rfc3339(value: str) -> datetime:
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def hash_remote_path(remote_path: str) -> str:
    """Return the cache key for a remote path.

    The key depends only on the path string, never on file content, so the
    same path maps to the same key across calls and restarts.
    """
    return hashlib.sha256(remote_path.encode("utf-8")).hexdigest()
