"""Tests for the response cache."""

import pytest

from conftest import FakeClock
from llm_gateway.cache import ResponseCache
from llm_gateway.errors import ErrorKind, GatewayError
from llm_gateway.models import BackendKind, CompletionOptions, CompletionResult


def make_result(text: str = "answer", cost: float = 0.01) -> CompletionResult:
    return CompletionResult(text=text, token_count=10, cost=cost, backend_name="mock")


class TestExactMatching:
    """Fingerprint lookups."""

    def test_hit_after_store(self) -> None:
        cache = ResponseCache()
        cache.store("What is Python?", None, make_result("A language"))

        result = cache.lookup("What is Python?")

        assert result is not None
        assert result.text == "A language"
        assert result.was_cached is True

    def test_miss_on_empty_cache(self) -> None:
        assert ResponseCache().lookup("anything") is None

    def test_options_must_match(self) -> None:
        cache = ResponseCache()
        cache.store("Hello", CompletionOptions(temperature=0.2), make_result())

        assert cache.lookup("Hello", CompletionOptions(temperature=0.9)) is None
        assert cache.lookup("Hello", CompletionOptions(temperature=0.2)) is not None

    def test_none_options_equal_defaults(self) -> None:
        cache = ResponseCache()
        cache.store("Hello", None, make_result())

        assert cache.lookup("Hello", CompletionOptions()) is not None

    def test_force_backend_is_part_of_the_key(self) -> None:
        cache = ResponseCache()
        cache.store("Hello", CompletionOptions(force_backend=BackendKind.LOCAL), make_result())

        assert cache.lookup("Hello") is None
        assert cache.lookup("Hello", CompletionOptions(force_backend="local")) is not None

    def test_stored_copy_is_not_marked_cached(self) -> None:
        cache = ResponseCache()
        cached_input = CompletionResult("x", 1, 0.0, "mock", was_cached=True)
        cache.store("p", None, cached_input)

        assert cache._entries[next(iter(cache._entries))].result.was_cached is False

    def test_unserializable_options_raise_cache_error(self) -> None:
        cache = ResponseCache()
        with pytest.raises(GatewayError) as exc_info:
            cache.lookup("Hello", CompletionOptions(model=object()))
        assert exc_info.value.kind is ErrorKind.CACHE

    def test_disabled_cache_never_hits(self) -> None:
        cache = ResponseCache(enabled=False)
        cache.store("Hello", None, make_result())

        assert cache.lookup("Hello") is None
        assert cache.size == 0


class TestExpiration:
    """TTL handling."""

    def test_entry_expires_after_ttl(self) -> None:
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=1, clock=clock)
        cache.store("Hello", None, make_result())

        clock.advance(0.5)
        assert cache.lookup("Hello") is not None

        clock.advance(0.6)
        assert cache.lookup("Hello") is None

    def test_purge_expired(self) -> None:
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=10, clock=clock)
        cache.store("old", None, make_result())
        clock.advance(8)
        cache.store("new", None, make_result())
        clock.advance(5)

        assert cache.purge_expired() == 1
        assert cache.size == 1
        assert cache.lookup("new") is not None


class TestEviction:
    """LRU eviction at max_size."""

    def test_evicts_least_recently_accessed(self) -> None:
        clock = FakeClock()
        cache = ResponseCache(max_size=2, clock=clock)
        cache.store("a", None, make_result("A"))
        clock.advance(1)
        cache.store("b", None, make_result("B"))
        clock.advance(1)
        cache.lookup("a")
        clock.advance(1)

        cache.store("c", None, make_result("C"))

        assert cache.size == 2
        assert cache.lookup("a") is not None
        assert cache.lookup("b") is None
        assert cache.lookup("c") is not None
        assert cache.get_stats()["evictions"] == 1

    def test_never_exceeds_max_size(self) -> None:
        cache = ResponseCache(max_size=3)
        for i in range(10):
            cache.store(f"prompt {i}", None, make_result())
        assert cache.size == 3

    def test_overwrite_does_not_evict(self) -> None:
        cache = ResponseCache(max_size=2)
        cache.store("a", None, make_result("A1"))
        cache.store("b", None, make_result("B"))
        cache.store("a", None, make_result("A2"))

        assert cache.size == 2
        assert cache.lookup("a").text == "A2"
        assert cache.lookup("b") is not None

    def test_clear(self) -> None:
        cache = ResponseCache()
        cache.store("a", None, make_result())
        cache.clear()
        assert cache.size == 0
        assert cache.lookup("a") is None


class TestSimilarityMatching:
    """Near-duplicate prompt matching."""

    def test_identical_prompts_have_similarity_one(self) -> None:
        assert ResponseCache.similarity("Explain TypeScript", "explain typescript ") == 1.0

    def test_disjoint_prompts_have_similarity_zero(self) -> None:
        assert ResponseCache.similarity("What is TypeScript?", "Explain JavaScript") == 0.0

    def test_no_match_below_threshold(self) -> None:
        cache = ResponseCache(semantic=True, similarity_threshold=0.95)
        cache.store("What is TypeScript?", None, make_result())

        assert cache.lookup("Explain JavaScript") is None

    def test_match_at_low_threshold(self) -> None:
        cache = ResponseCache(semantic=True, similarity_threshold=0.3)
        cache.store("Can you explain TypeScript?", None, make_result("TS is typed JS"))

        result = cache.lookup("Explain TypeScript")

        assert result is not None
        assert result.text == "TS is typed JS"
        assert cache.get_stats()["semantic_hits"] == 1

    def test_similarity_disabled_by_default(self) -> None:
        cache = ResponseCache(similarity_threshold=0.3)
        cache.store("Can you explain TypeScript?", None, make_result())

        assert cache.lookup("Explain TypeScript") is None

    def test_similarity_requires_matching_options(self) -> None:
        cache = ResponseCache(semantic=True, similarity_threshold=0.3)
        cache.store("Can you explain TypeScript?", CompletionOptions(model="a"), make_result())

        assert cache.lookup("Explain TypeScript", CompletionOptions(model="b")) is None

    def test_picks_most_similar_entry(self) -> None:
        cache = ResponseCache(semantic=True, similarity_threshold=0.3)
        cache.store("explain python decorators to me please", None, make_result("far"))
        cache.store("explain python decorators", None, make_result("close"))

        result = cache.lookup("explain python decorators now")

        assert result.text == "close"

    def test_invalid_threshold_rejected(self) -> None:
        with pytest.raises(ValueError):
            ResponseCache(similarity_threshold=1.5)


class TestCacheStats:
    """Hit/miss accounting."""

    def test_hit_rate(self) -> None:
        cache = ResponseCache()
        cache.store("a", None, make_result())
        cache.lookup("a")
        cache.lookup("b")

        stats = cache.get_stats()
        assert stats["total_queries"] == 2
        assert stats["cache_hits"] == 1
        assert stats["cache_misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["total_accesses"] == 1
