"""
Compilation cache for structured queries.

Bounded least-recently-used mapping from a structured query (compared by
structure, not identity) to its compiled text. Uses cachetools LRUCache
guarded by a lock so concurrent readers and miss-then-insert writers keep
the size bound intact.
"""
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

import cachetools

from dbexec.compiler import freeze

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 100


class QueryCache:
    """Thread-safe LRU cache of compiled structured queries."""

    def __init__(self, maxsize: int = DEFAULT_CACHE_SIZE) -> None:
        if maxsize < 1:
            raise ValueError('maxsize must be at least 1')
        self._cache: cachetools.LRUCache = cachetools.LRUCache(maxsize=maxsize)
        self._lock = threading.RLock()

    @property
    def maxsize(self) -> int:
        return self._cache.maxsize

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, query: Mapping[str, Any]) -> bool:
        with self._lock:
            return freeze(query) in self._cache

    def get(self, query: Mapping[str, Any]) -> str | None:
        """Return compiled text, marking the entry most recently used."""
        key = freeze(query)
        with self._lock:
            try:
                return self._cache[key]
            except KeyError:
                return None

    def put(self, query: Mapping[str, Any], text: str) -> None:
        """Insert compiled text, evicting the least recently used entry if full."""
        key = freeze(query)
        with self._lock:
            self._cache[key] = text

    def get_or_compile(self, query: Mapping[str, Any],
                       compiler: Callable[[Mapping[str, Any]], str]) -> str:
        """Return cached text for `query`, compiling and inserting on a miss.

        The compiler runs outside the lock; two threads missing on the same
        key both compile and the last insert wins.
        """
        text = self.get(query)
        if text is not None:
            logger.debug(f'Query cache hit: {text[:60]}')
            return text

        text = compiler(query)
        self.put(query, text)
        logger.debug(f'Query cache miss, compiled: {text[:60]}')
        return text

    def clear(self) -> None:
        """Drop every cached entry."""
        with self._lock:
            self._cache.clear()
