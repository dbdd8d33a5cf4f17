"""
llm-gateway: RequestOrchestrator, the request pipeline.

Wires together the response cache, prompt compressor, budget ledger, alert
dispatcher, and backend registry into complete() and stream().

Pipeline for complete():
1. Check the response cache (original prompt) → return on hit
2. Compress the prompt
3. Select candidates: the whole registry, or only one kind if forced
4. For each candidate, in registry order:
   a. Skip (recording an error) if the backend reports unavailable
   b. Estimate cost on the compressed prompt and check the budget;
      a budget failure aborts the request immediately
   c. Send the compressed prompt to the backend
   d. On success: commit the actual cost, cache the result, return the text
   e. On failure: record the error and try the next candidate
5. If every candidate failed, raise an aggregate PROVIDER_UNAVAILABLE error

stream() follows the same selection and budget logic, drains the backend in a
producer task, commits the pre-call estimate once that call ends cleanly, and
never caches.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from llm_gateway.alerts import AlertDispatcher, AlertListener, AlertThresholds
from llm_gateway.backends.ollama import OllamaBackend
from llm_gateway.budget import BudgetLedger
from llm_gateway.cache import ResponseCache
from llm_gateway.compressor import compress
from llm_gateway.config import GatewayConfig
from llm_gateway.errors import BackendFailure, ErrorKind, GatewayError
from llm_gateway.registry import BackendRegistry
from llm_gateway.stats import StatsTracker
from llm_gateway.webhooks import WebhookNotifier

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Iterable

    from llm_gateway.backends.base import Backend
    from llm_gateway.models import BudgetStatus, CompletionOptions, CompletionResult

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Provider not available (check API key or service status)"


def _describe(error: Exception) -> str:
    if isinstance(error, GatewayError):
        return error.message
    return str(error) or type(error).__name__


async def _aclose(source: AsyncIterator[str] | None) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.warning(f"Error closing backend stream: {e}")


class RequestOrchestrator:
    """Budget-aware, caching, failover completion gateway.

    Quickstart::

        gateway = RequestOrchestrator(GatewayConfig(
            daily_budget=5.0,
            remote_providers={"openai": ProviderConfig(api_key="sk-...")},
            local_fallback=LocalFallbackConfig(enabled=True),
        ))

        async with gateway:
            text = await gateway.complete("Explain quantum computing")

            async for chunk in gateway.stream("Write a story"):
                print(chunk, end="")

            print(gateway.get_budget_status())

    Custom backends::

        gateway = RequestOrchestrator(GatewayConfig(), backends=[MyBackend(), OllamaBackend()])
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        backends: Iterable[Backend] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create the gateway.

        Args:
            config: Validated gateway configuration (defaults to GatewayConfig()).
            backends: Explicit backends in failover order. When omitted, the
                registry is built from ``config``.
            clock: Time source for cache TTLs and budget resets.

        Raises:
            GatewayError: kind CONFIGURATION for invalid configuration.
        """
        self._config = config or GatewayConfig()
        self._alerts = AlertDispatcher(AlertThresholds(*self._config.alert_thresholds))
        self._ledger = BudgetLedger(self._config.daily_budget, self._alerts, clock=clock)
        self._cache = ResponseCache(
            enabled=self._config.cache_enabled,
            semantic=self._config.semantic_caching,
            similarity_threshold=self._config.similarity_threshold,
            max_size=self._config.cache_max_size,
            ttl_seconds=self._config.cache_ttl_seconds,
            clock=clock,
        )
        if backends is not None:
            self._registry = BackendRegistry(backends)
        else:
            self._registry = BackendRegistry.from_config(self._config)

        self._webhooks: WebhookNotifier | None = None
        if self._config.alert_webhooks:
            self._webhooks = WebhookNotifier(self._config.alert_webhooks)
            self._alerts.on(self._webhooks.as_listener())

        self._stats = StatsTracker()
        self._streams: set[asyncio.Task[None]] = set()
        self._started = False
        logger.info(
            f"RequestOrchestrator ready with {len(self._registry)} backend(s): "
            f"{', '.join(self._registry.names)}"
        )

    # ──────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Warm up local Ollama models. Optional; requests work without it."""
        if self._started:
            return
        for backend in self._registry:
            if isinstance(backend, OllamaBackend) and await backend.is_available():
                await backend.warmup()
        self._started = True

    async def stop(self) -> None:
        """Let open streams drain, then close backends and finish webhook deliveries."""
        if self._streams:
            await asyncio.gather(*self._streams, return_exceptions=True)
        await self._registry.close_all()
        if self._webhooks is not None:
            await self._webhooks.close()
        self._started = False
        logger.info("RequestOrchestrator stopped")

    async def __aenter__(self) -> RequestOrchestrator:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    # ──────────────────────────────────────────────────────────────────────
    # Core API
    # ──────────────────────────────────────────────────────────────────────

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        """Complete a prompt, failing over across backends.

        Args:
            prompt: The prompt text.
            options: Per-request options.

        Returns:
            The completion text.

        Raises:
            GatewayError: kind BUDGET_EXCEEDED if the request would exceed the
                daily budget; kind PROVIDER_UNAVAILABLE if no backend succeeded.
        """
        self._stats.record_request()

        cached = self._cache_lookup(prompt, options)
        if cached is not None:
            self._stats.record_cache_hit()
            logger.debug(f"Cache hit ({cached.backend_name})")
            return cached.text

        compressed = compress(prompt, self._config.compression_level)
        failures: list[BackendFailure] = []

        for backend in self._candidates(options):
            if not await self._is_available(backend):
                failures.append(BackendFailure(backend.name, UNAVAILABLE_MESSAGE))
                continue

            started = time.monotonic()
            try:
                estimate = backend.estimate_cost(compressed)
                self._check_budget(estimate)
                self._stats.record_attempt(backend.name)
                result = await backend.complete(compressed, options)
            except GatewayError as e:
                if e.kind is ErrorKind.BUDGET_EXCEEDED:
                    raise
                self._record_failure(failures, backend, e)
                continue
            except Exception as e:
                self._record_failure(failures, backend, e)
                continue

            self._ledger.record_spending(result.cost)
            self._stats.record_success(
                backend.name, result.cost, (time.monotonic() - started) * 1000
            )
            self._cache_store(prompt, options, result)
            return result.text

        self._stats.record_exhausted()
        raise GatewayError.provider_unavailable("all", failures=failures)

    def stream(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionStream:
        """Stream a completion.

        Backend selection and the budget check happen on the first pull, so
        errors surface from the first ``async for`` iteration.

        Example::

            async for chunk in gateway.stream("Write a story"):
                print(chunk, end="")
        """
        return CompletionStream(self, prompt, options)

    # ──────────────────────────────────────────────────────────────────────
    # Observability and management
    # ──────────────────────────────────────────────────────────────────────

    def get_budget_status(self) -> BudgetStatus:
        """Current daily budget status."""
        return self._ledger.status()

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()
        logger.info("Response cache cleared")

    def get_config(self) -> GatewayConfig:
        """Read-only configuration snapshot."""
        return self._config

    def get_stats(self) -> dict[str, Any]:
        """Request statistics plus cache statistics."""
        stats = self._stats.get_stats()
        stats["backends"] = self._registry.names
        stats["cache"] = self._cache.get_stats()
        return stats

    def on_alert(self, listener: AlertListener) -> None:
        """Subscribe to budget alerts."""
        self._alerts.on(listener)

    def off_alert(self, listener: AlertListener) -> None:
        """Unsubscribe from budget alerts."""
        self._alerts.off(listener)

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def ledger(self) -> BudgetLedger:
        return self._ledger

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    # ──────────────────────────────────────────────────────────────────────
    # Internal
    # ──────────────────────────────────────────────────────────────────────

    def _candidates(self, options: CompletionOptions | None) -> list[Backend]:
        kind = options.force_backend if options is not None else None
        candidates = self._registry.filter(kind)
        if not candidates:
            raise GatewayError.provider_unavailable(
                "none configured",
                "No providers configured. Add at least one cloud provider "
                "or enable local fallback.",
            )
        return candidates

    async def _is_available(self, backend: Backend) -> bool:
        try:
            available = await backend.is_available()
        except Exception as e:
            logger.warning(f"Availability check failed for '{backend.name}': {e}")
            available = False
        if not available:
            self._stats.record_unavailable()
            logger.debug(f"Skipping unavailable backend '{backend.name}'")
        return available

    def _check_budget(self, estimate: float) -> None:
        try:
            self._ledger.check_budget(estimate)
        except GatewayError:
            self._stats.record_budget_rejection()
            raise

    def _record_failure(
        self, failures: list[BackendFailure], backend: Backend, error: Exception
    ) -> None:
        message = _describe(error)
        failures.append(BackendFailure(backend.name, message))
        self._stats.record_backend_failure(backend.name)
        logger.warning(f"Backend '{backend.name}' failed, trying next: {message}")

    def _track(self, producer: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(producer)
        self._streams.add(task)
        task.add_done_callback(self._streams.discard)
        return task

    def _cache_lookup(
        self, prompt: str, options: CompletionOptions | None
    ) -> CompletionResult | None:
        try:
            return self._cache.lookup(prompt, options)
        except GatewayError as e:
            logger.warning(f"{e.message}; treating as a miss")
            return None

    def _cache_store(
        self, prompt: str, options: CompletionOptions | None, result: CompletionResult
    ) -> None:
        try:
            self._cache.store(prompt, options, result)
        except GatewayError as e:
            logger.warning(f"{e.message}; result not cached")


_END = object()


class CompletionStream:
    """Pull-based stream of completion chunks.

    Iterate with ``async for``, or pull explicitly with next_chunk(), which
    returns None at end-of-stream. Errors are raised from the pull that
    observes them. cancel() is a stop signal checked between chunks.

    Once a backend is opened, a producer task drains it into a queue that
    the consumer reads from. The producer keeps draining after the consumer
    walks away (for example with ``break``), and commits the pre-call
    estimate to the budget exactly once when the backend call ends without
    error. A stream that fails partway through is not charged. Streamed
    results are never cached.

    Example::

        async with gateway.stream("Write a story") as stream:
            async for chunk in stream:
                print(chunk, end="")
                if too_long():
                    stream.cancel()
    """

    def __init__(
        self,
        gateway: RequestOrchestrator,
        prompt: str,
        options: CompletionOptions | None = None,
    ) -> None:
        self._gateway = gateway
        self._prompt = prompt
        self._options = options
        self._backend: Backend | None = None
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._producer: asyncio.Task[None] | None = None
        self._error: Exception | None = None
        self._estimate = 0.0
        self._started_at = 0.0
        self._stop_requested = False
        self._finished = False
        self.chunks_delivered = 0

    @property
    def backend_name(self) -> str | None:
        """Backend serving the stream, once opened."""
        return self._backend.name if self._backend is not None else None

    @property
    def finished(self) -> bool:
        return self._finished

    def cancel(self) -> None:
        """Ask the stream to stop at the next chunk boundary."""
        self._stop_requested = True

    async def next_chunk(self) -> str | None:
        """Pull the next chunk, or None at end-of-stream."""
        if self._finished:
            return None
        if self._stop_requested:
            await self.aclose()
            return None
        if self._backend is None:
            try:
                await self._open()
            except GatewayError:
                self._finished = True
                raise

        item = await self._queue.get()
        if item is _END:
            self._finished = True
            if self._error is not None:
                raise GatewayError.provider_unavailable(
                    self.backend_name or "unknown",
                    f"Stream interrupted: {_describe(self._error)}",
                ) from self._error
            return None

        self.chunks_delivered += 1
        return item

    async def aclose(self) -> None:
        """Stop the stream and wait for the backend call to wind down."""
        self.cancel()
        self._finished = True
        if self._producer is not None:
            await self._producer

    def __aiter__(self) -> CompletionStream:
        return self

    async def __anext__(self) -> str:
        chunk = await self.next_chunk()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def __aenter__(self) -> CompletionStream:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _open(self) -> None:
        """Select a backend and pull its first chunk, failing over before any delivery."""
        gateway = self._gateway
        gateway._stats.record_request()
        compressed = compress(self._prompt, gateway._config.compression_level)
        failures: list[BackendFailure] = []

        for backend in gateway._candidates(self._options):
            if not await gateway._is_available(backend):
                failures.append(BackendFailure(backend.name, UNAVAILABLE_MESSAGE))
                continue

            source: AsyncIterator[str] | None = None
            started = time.monotonic()
            try:
                estimate = backend.estimate_cost(compressed)
                gateway._check_budget(estimate)
                gateway._stats.record_attempt(backend.name)
                source = aiter(backend.stream(compressed, self._options))
                try:
                    first: str | None = await anext(source)
                except StopAsyncIteration:
                    first = None
            except GatewayError as e:
                if e.kind is ErrorKind.BUDGET_EXCEEDED:
                    raise
                await _aclose(source)
                gateway._record_failure(failures, backend, e)
                continue
            except Exception as e:
                await _aclose(source)
                gateway._record_failure(failures, backend, e)
                continue

            self._backend = backend
            self._estimate = estimate
            self._started_at = started
            self._producer = gateway._track(self._produce(source, first))
            return

        gateway._stats.record_exhausted()
        raise GatewayError.provider_unavailable("all", failures=failures)

    async def _produce(self, source: AsyncIterator[str], first: str | None) -> None:
        """Drain the backend into the queue, then settle the cost."""
        name = self.backend_name or "unknown"
        try:
            if first is not None:
                self._queue.put_nowait(first)
                while not self._stop_requested:
                    try:
                        chunk = await anext(source)
                    except StopAsyncIteration:
                        break
                    if not self._finished:
                        self._queue.put_nowait(chunk)
        except Exception as e:
            self._error = e
            logger.warning(f"Stream from '{name}' interrupted: {_describe(e)}")
        finally:
            await _aclose(source)
            stats = self._gateway._stats
            if self._error is None:
                self._gateway._ledger.record_spending(self._estimate)
                stats.record_success(
                    name, self._estimate, (time.monotonic() - self._started_at) * 1000
                )
            else:
                stats.record_backend_failure(name)
            self._queue.put_nowait(_END)
