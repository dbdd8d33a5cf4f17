"""
llm-gateway: Request metrics and statistics tracking.

Thread-safe statistics collection for monitoring backend utilization,
failover, cache efficiency, spend, and budget rejections.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass
class GatewayStats:
    """Snapshot of gateway metrics.

    Attributes:
        total_requests: complete() and stream() calls received.
        successes: Requests served by a backend.
        failures: Requests that exhausted every backend.
        cache_hits: Requests served from the response cache.
        budget_rejections: Requests refused by the budget ledger.
        unavailable_skips: Backends skipped because they reported unavailable.
        requests_by_backend: Per-backend attempt counts.
        failures_by_backend: Per-backend failure counts.
        spend_by_backend: Per-backend committed cost in USD.
        avg_latency_ms: Running average backend latency for successful attempts.
    """

    total_requests: int = 0
    successes: int = 0
    failures: int = 0
    cache_hits: int = 0
    budget_rejections: int = 0
    unavailable_skips: int = 0
    requests_by_backend: dict[str, int] = field(default_factory=dict)
    failures_by_backend: dict[str, int] = field(default_factory=dict)
    spend_by_backend: dict[str, float] = field(default_factory=dict)
    avg_latency_ms: float = 0.0


class StatsTracker:
    """Thread-safe statistics tracker for the gateway.

    All methods are safe to call from any thread. Stats are collected
    in real-time and can be retrieved as a snapshot via get_stats().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats = GatewayStats()
        self._latency_count = 0

    def record_request(self) -> None:
        """Record that a request entered the gateway."""
        with self._lock:
            self._stats.total_requests += 1

    def record_attempt(self, backend: str) -> None:
        """Record that a request was sent to a backend."""
        with self._lock:
            self._stats.requests_by_backend[backend] = (
                self._stats.requests_by_backend.get(backend, 0) + 1
            )

    def record_success(self, backend: str, cost: float, latency_ms: float) -> None:
        """Record a backend success and the cost committed for it."""
        with self._lock:
            self._stats.successes += 1
            self._stats.spend_by_backend[backend] = (
                self._stats.spend_by_backend.get(backend, 0.0) + cost
            )
            self._latency_count += 1
            self._stats.avg_latency_ms += (
                latency_ms - self._stats.avg_latency_ms
            ) / self._latency_count

    def record_backend_failure(self, backend: str) -> None:
        """Record a single backend failure during failover."""
        with self._lock:
            self._stats.failures_by_backend[backend] = (
                self._stats.failures_by_backend.get(backend, 0) + 1
            )

    def record_exhausted(self) -> None:
        """Record a request that failed on every backend."""
        with self._lock:
            self._stats.failures += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self._stats.cache_hits += 1

    def record_budget_rejection(self) -> None:
        with self._lock:
            self._stats.budget_rejections += 1

    def record_unavailable(self) -> None:
        with self._lock:
            self._stats.unavailable_skips += 1

    def get_stats(self) -> dict[str, Any]:
        """Get a snapshot of current statistics as a dictionary."""
        with self._lock:
            served = self._stats.successes + self._stats.cache_hits
            return {
                "total_requests": self._stats.total_requests,
                "successes": self._stats.successes,
                "failures": self._stats.failures,
                "success_rate": served / max(self._stats.total_requests, 1),
                "cache_hits": self._stats.cache_hits,
                "budget_rejections": self._stats.budget_rejections,
                "unavailable_skips": self._stats.unavailable_skips,
                "requests_by_backend": dict(self._stats.requests_by_backend),
                "failures_by_backend": dict(self._stats.failures_by_backend),
                "spend_by_backend": dict(self._stats.spend_by_backend),
                "avg_latency_ms": round(self._stats.avg_latency_ms, 1),
            }

    def reset(self) -> None:
        """Reset all statistics to zero."""
        with self._lock:
            self._stats = GatewayStats()
            self._latency_count = 0
