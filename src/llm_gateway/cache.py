"""
llm-gateway: In-memory response cache with exact and near-duplicate matching.

Caches completion results keyed by prompt + request options and returns them
for identical (or, optionally, near-identical) future prompts.

Features:
- Exact fingerprint match (SHA-256 of prompt + serialized options)
- Optional similarity matching via term-frequency cosine similarity
- TTL-based expiration (lazy on lookup, eager via purge_expired())
- LRU eviction when max_size is reached
- Hit/miss statistics

Similarity is a word-overlap heuristic, not a semantic judgment: it is only
ever applied between entries whose options serialize identically.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import threading
import time
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from llm_gateway.errors import GatewayError
from llm_gateway.models import CompletionOptions, CompletionResult

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached completion. Owned by ResponseCache."""

    fingerprint: str
    prompt_text: str
    options_key: str
    result: CompletionResult
    created_at: float
    last_accessed_at: float
    access_count: int = 0


@dataclass
class CacheStats:
    """Cache performance statistics."""

    total_queries: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    exact_hits: int = 0
    semantic_hits: int = 0
    evictions: int = 0
    avg_similarity: float = 0.0
    _similarity_count: int = field(default=0, repr=False)

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a fraction (0.0 to 1.0)."""
        if self.total_queries == 0:
            return 0.0
        return self.cache_hits / self.total_queries


class ResponseCache:
    """LRU/TTL response cache.

    Lookup strategy:
    1. Exact fingerprint match (fast path)
    2. If semantic matching is enabled, scan non-expired entries with the same
       options and pick the most similar prompt at or above the threshold

    Example::

        cache = ResponseCache(semantic=True, similarity_threshold=0.9)

        result = cache.lookup("What is Python?", options)
        if result is None:
            result = await backend.complete(prompt, options)
            cache.store("What is Python?", options, result)
    """

    def __init__(
        self,
        enabled: bool = True,
        semantic: bool = False,
        similarity_threshold: float = 0.9,
        max_size: int = 100,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            enabled: When False, lookup always misses and store is a no-op.
            semantic: Enable similarity matching on exact-match misses.
            similarity_threshold: Minimum cosine similarity for a similarity hit (0.0-1.0).
            max_size: Maximum entries before LRU eviction.
            ttl_seconds: Entry time-to-live in seconds.
            clock: Time source returning seconds since the epoch.
        """
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError("similarity_threshold must be between 0 and 1")
        if max_size < 1:
            raise ValueError("max_size must be >= 1")

        self.enabled = enabled
        self.semantic = semantic
        self.similarity_threshold = similarity_threshold
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    # ──────────────────────────────────────────────────────────────────────
    # Keys and similarity
    # ──────────────────────────────────────────────────────────────────────

    @staticmethod
    def _options_key(options: CompletionOptions | None) -> str:
        try:
            return (options or CompletionOptions()).cache_key()
        except (TypeError, ValueError) as e:
            raise GatewayError.cache(f"options are not serializable: {e}") from e

    @staticmethod
    def fingerprint(prompt: str, options_key: str) -> str:
        """SHA-256 of the prompt text and serialized options."""
        data = json.dumps({"prompt": prompt, "options": options_key}, sort_keys=True)
        return hashlib.sha256(data.encode()).hexdigest()

    @staticmethod
    def similarity(prompt_a: str, prompt_b: str) -> float:
        """Cosine similarity between the term-frequency vectors of two prompts."""
        a = prompt_a.lower().strip()
        b = prompt_b.lower().strip()
        if a == b:
            return 1.0

        freq_a = Counter(a.split())
        freq_b = Counter(b.split())

        dot = sum(count * freq_b[word] for word, count in freq_a.items())
        norm_a = math.sqrt(sum(c * c for c in freq_a.values()))
        norm_b = math.sqrt(sum(c * c for c in freq_b.values()))
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return dot / (norm_a * norm_b)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    # ──────────────────────────────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────────────────────────────

    def lookup(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionResult | None:
        """Look up a cached result.

        Args:
            prompt: The original (uncompressed) prompt.
            options: The request options; must match the stored options exactly.

        Returns:
            A copy of the cached result with ``was_cached=True``, or None on a miss.

        Raises:
            GatewayError: kind CACHE if the options cannot be serialized.
        """
        if not self.enabled:
            return None

        options_key = self._options_key(options)

        with self._lock:
            self.stats.total_queries += 1
            now = self._clock()

            entry = self._entries.get(self.fingerprint(prompt, options_key))
            if entry is not None and not self._is_expired(entry, now):
                self.stats.exact_hits += 1
                return self._hit(entry, now)

            if self.semantic:
                best_entry: CacheEntry | None = None
                best_similarity = -1.0
                for candidate in self._entries.values():
                    if self._is_expired(candidate, now):
                        continue
                    if candidate.options_key != options_key:
                        continue
                    similarity = self.similarity(prompt, candidate.prompt_text)
                    if similarity >= self.similarity_threshold and similarity > best_similarity:
                        best_similarity = similarity
                        best_entry = candidate

                if best_entry is not None:
                    self.stats.semantic_hits += 1
                    self.stats._similarity_count += 1
                    self.stats.avg_similarity += (
                        best_similarity - self.stats.avg_similarity
                    ) / self.stats._similarity_count
                    logger.debug(f"Cache similarity hit ({best_similarity:.3f})")
                    return self._hit(best_entry, now)

            self.stats.cache_misses += 1
            return None

    def store(
        self,
        prompt: str,
        options: CompletionOptions | None,
        result: CompletionResult,
    ) -> None:
        """Store a result under the original prompt and options.

        Evicts the least recently accessed entry first when the cache is full.
        """
        if not self.enabled:
            return

        options_key = self._options_key(options)
        key = self.fingerprint(prompt, options_key)

        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_lru()

            now = self._clock()
            self._entries[key] = CacheEntry(
                fingerprint=key,
                prompt_text=prompt,
                options_key=options_key,
                result=replace(result, was_cached=False),
                created_at=now,
                last_accessed_at=now,
            )

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Delete expired entries now. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Cache purged {len(expired)} expired entries")
        return len(expired)

    @property
    def size(self) -> int:
        """Current number of entries, expired ones included."""
        return len(self._entries)

    def get_stats(self) -> dict[str, Any]:
        """Get cache configuration and performance statistics."""
        with self._lock:
            now = self._clock()
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "enabled": self.enabled,
                "semantic": self.semantic,
                "similarity_threshold": self.similarity_threshold,
                "total_queries": self.stats.total_queries,
                "cache_hits": self.stats.cache_hits,
                "cache_misses": self.stats.cache_misses,
                "hit_rate": round(self.stats.hit_rate, 3),
                "exact_hits": self.stats.exact_hits,
                "semantic_hits": self.stats.semantic_hits,
                "evictions": self.stats.evictions,
                "avg_similarity": round(self.stats.avg_similarity, 3),
                "total_accesses": sum(e.access_count for e in self._entries.values()),
                "expired_count": sum(
                    1 for e in self._entries.values() if self._is_expired(e, now)
                ),
            }

    # ──────────────────────────────────────────────────────────────────────
    # Internal (caller must hold the lock)
    # ──────────────────────────────────────────────────────────────────────

    def _hit(self, entry: CacheEntry, now: float) -> CompletionResult:
        entry.access_count += 1
        entry.last_accessed_at = now
        # Move to the end so equal timestamps still evict in access order
        self._entries[entry.fingerprint] = self._entries.pop(entry.fingerprint)
        self.stats.cache_hits += 1
        return replace(entry.result, was_cached=True)

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        oldest_key = min(self._entries, key=lambda k: self._entries[k].last_accessed_at)
        del self._entries[oldest_key]
        self.stats.evictions += 1
        logger.debug(f"Cache evicted 1 entry (LRU, size={len(self._entries)})")
