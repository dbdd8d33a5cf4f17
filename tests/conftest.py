"""Shared test fixtures and mock backends for llm-gateway tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timezone

import pytest

from llm_gateway.errors import GatewayError
from llm_gateway.models import BackendKind, CompletionOptions, CompletionResult


class MockBackend:
    """Configurable mock backend for testing.

    By default, returns successful responses. Can be configured to fail,
    report unavailable, delay, or stream custom chunks.
    """

    def __init__(
        self,
        name: str = "mock",
        kind: BackendKind = BackendKind.REMOTE,
        response_text: str = "Mock response",
        cost: float = 0.01,
        estimate: float | None = None,
        should_fail: bool = False,
        error: Exception | None = None,
        available: bool = True,
        chunks: list[str] | None = None,
        fail_after_chunks: int | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.name = name
        self.kind = kind
        self.response_text = response_text
        self.cost = cost
        self.estimate = estimate
        self.should_fail = should_fail
        self.error = error
        self.available = available
        self.chunks = chunks
        self.fail_after_chunks = fail_after_chunks
        self.delay_seconds = delay_seconds
        self.call_count = 0
        self.stream_count = 0
        self.chunks_sent = 0
        self.last_prompt: str | None = None
        self.last_options: CompletionOptions | None = None
        self.closed = False

    def _failure(self) -> Exception:
        return self.error or GatewayError.provider_unavailable(self.name, "Mock error")

    async def is_available(self) -> bool:
        return self.available

    def estimate_cost(self, prompt: str) -> float:
        return self.cost if self.estimate is None else self.estimate

    async def complete(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionResult:
        self.call_count += 1
        self.last_prompt = prompt
        self.last_options = options

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if self.should_fail:
            raise self._failure()

        return CompletionResult(
            text=self.response_text,
            token_count=len(prompt.split()) * 2,
            cost=self.cost,
            backend_name=self.name,
        )

    async def stream(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> AsyncIterator[str]:
        self.stream_count += 1
        self.last_prompt = prompt
        self.last_options = options

        if self.should_fail:
            raise self._failure()

        for i, chunk in enumerate(self.chunks or [self.response_text]):
            if self.fail_after_chunks is not None and i >= self.fail_after_chunks:
                raise self._failure()
            if self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            self.chunks_sent += 1
            yield chunk

    async def close(self) -> None:
        self.closed = True


class FailNTimesBackend(MockBackend):
    """Backend that fails the first N completions, then succeeds."""

    def __init__(self, fail_count: int = 3, **kwargs) -> None:
        super().__init__(**kwargs)
        self.fail_count = fail_count

    async def complete(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionResult:
        if self.call_count < self.fail_count:
            self.call_count += 1
            raise GatewayError.provider_unavailable(
                self.name, f"Failure {self.call_count}/{self.fail_count}"
            )
        return await super().complete(prompt, options)


class FakeClock:
    """Manually advanced time source (seconds since the epoch)."""

    def __init__(self, start: float | None = None) -> None:
        if start is None:
            start = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc).timestamp()
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mock_backend() -> MockBackend:
    """A successful remote mock backend."""
    return MockBackend()


@pytest.fixture
def failing_backend() -> MockBackend:
    """A consistently failing mock backend."""
    return MockBackend(name="failing", should_fail=True)


@pytest.fixture
def local_backend() -> MockBackend:
    """A free local mock backend."""
    return MockBackend(name="local", kind=BackendKind.LOCAL, response_text="Local response", cost=0.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
