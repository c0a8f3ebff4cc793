from __future__ import annotations

import hashlib
import json
import time
from collections import OrderedDict
from typing import Any, Dict, Optional, Tuple

from media_search.core.config import settings
from media_search.schemas.media import SearchPage


class SearchCache:
    """Cache-aside store for normalized Openverse result pages.

    OpenverseService looks a page up before calling upstream and stores it after
    a successful call; failed calls are never stored. Each entry expires
    ttl_seconds after it was stored, and the least recently read entry is evicted
    once max_entries is exceeded. The cache is per-process; a TTL of 0 turns it off.
    """

    def __init__(self, max_entries: int = 256, ttl_seconds: int = 300) -> None:
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        # key -> (expires_at, page), least recently used first
        self._pages: "OrderedDict[str, Tuple[float, SearchPage]]" = OrderedDict()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def _drop_expired(self, now: float) -> None:
        for key in [key for key, (expires_at, _) in self._pages.items() if expires_at < now]:
            del self._pages[key]

    def get(self, key: str) -> Optional[SearchPage]:
        if not self.enabled:
            return None
        self._drop_expired(time.time())
        entry = self._pages.get(key)
        if entry is None:
            return None
        self._pages.move_to_end(key)
        return entry[1]

    def set(self, key: str, page: SearchPage) -> None:
        if not self.enabled:
            return
        now = time.time()
        self._drop_expired(now)
        self._pages[key] = (now + self.ttl_seconds, page)
        self._pages.move_to_end(key)
        while len(self._pages) > self.max_entries:
            self._pages.popitem(last=False)

    def clear(self) -> None:
        self._pages.clear()

    def __len__(self) -> int:
        return len(self._pages)


def stable_hash(payload: Dict[str, Any]) -> str:
    """Create a stable hash for a JSON-serializable dict."""
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


search_cache = SearchCache(
    max_entries=settings.SEARCH_CACHE_MAX_ENTRIES,
    ttl_seconds=settings.SEARCH_CACHE_TTL_SECONDS,
)
