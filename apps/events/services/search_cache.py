"""Read-through response cache for event search (bounded LRU with TTL)."""

import copy
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Optional

from apps.events.schemas.filters import SearchFilters

logger = logging.getLogger(__name__)


class SearchCache:
    """Entries are copied on the way in and out so callers never share state."""

    def __init__(self, ttl_s: float = 120, max_entries: int = 256, clock=time.monotonic):
        self._entries = OrderedDict()
        self._lock = threading.Lock()
        self._ttl = ttl_s
        self._max_entries = max_entries
        self._clock = clock
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(method: str, filters: SearchFilters) -> str:
        """md5 of the method name plus the normalized filter set, sort and page window."""
        payload = {
            "query": filters.query or "",
            "filters": filters.applied_filters(),
            "sort": filters.sort.mode.value,
            "order": filters.sort.order.value if filters.sort.order else None,
            "page": filters.page,
            "page_size": filters.page_size,
        }
        key = f"{method}|{json.dumps(payload, sort_keys=True, default=str)}"
        return hashlib.md5(key.encode()).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                self.misses += 1
                return None
            if (self._clock() - entry["timestamp"]) > self._ttl:
                self._entries.pop(key, None)
                self.misses += 1
                return None
            # bump LRU
            self._entries.move_to_end(key, last=True)
            self.hits += 1
            return copy.deepcopy(entry["value"])

    def set(self, key: str, value: Any) -> None:
        entry = {"value": copy.deepcopy(value), "timestamp": self._clock()}
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
