"""
Generation-keyed score cache
Memoizes derived statistics per graph generation

How it works:
1. Every entry is keyed by (statistic, target, generation)
2. A lookup for the current generation either hits or computes + stores
3. A mutation bumps the generation, so no older key can match again
4. Entries of older generations are pruned the first time a newer
   generation is seen

clear() empties the cache without touching the graph or the generation.
"""

import threading
from typing import Any, Callable, Dict, Hashable, Tuple

from loguru import logger


CacheKey = Tuple[str, Hashable, int]


class ScoreCache:
    """
    Usage:
        cache = ScoreCache()
        rate = cache.get_or_compute("failure_rate", "search", store.generation,
                                    lambda: compute_failure_rate("search"))
    """

    def __init__(self):
        self._entries: Dict[CacheKey, Any] = {}
        self._generation = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self,
        statistic: str,
        target: Hashable,
        generation: int,
        compute: Callable[[], Any],
    ) -> Any:
        """
        Return the memoized value for (statistic, target, generation)

        Args:
            statistic: Statistic name, e.g. "failure_rate"
            target: Target id the statistic is computed for
            generation: Graph generation the value belongs to
            compute: Called on a miss; its result is stored

        Returns:
            Cached or freshly computed value
        """
        key = (statistic, target, generation)
        with self._lock:
            if key in self._entries:
                self.hits += 1
                return self._entries[key]

        value = compute()

        with self._lock:
            self.misses += 1
            if generation > self._generation:
                self._prune(generation)
            if generation >= self._generation:
                self._entries[key] = value
        logger.debug(f"[Score Cache Miss] {statistic}:{target} @ generation {generation}")
        return value

    def _prune(self, generation: int) -> None:
        stale = [key for key in self._entries if key[2] < generation]
        for key in stale:
            del self._entries[key]
        self._generation = generation

    def clear(self) -> None:
        """Empty the cache (the graph and its generation are untouched)"""
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
        logger.info("Score cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
                "generation": self._generation,
            }
