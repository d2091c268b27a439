from __future__ import annotations

from dropbox_cache.fetcher.impl import CacheAwareFetcher, build_fetcher
from dropbox_cache.fetcher.state_machine import FetchState

__all__ = ["CacheAwareFetcher", "FetchState", "build_fetcher"]
