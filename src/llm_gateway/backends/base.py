"""
llm-gateway: Backend protocol and shared base class.

Any completion provider can be plugged into the gateway by implementing the
Backend protocol. Built-in implementations exist for OpenAI-compatible APIs,
Ollama, and LM Studio.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from llm_gateway.models import BackendKind

if TYPE_CHECKING:
    from llm_gateway.models import CompletionOptions, CompletionResult


@runtime_checkable
class Backend(Protocol):
    """Protocol defining the interface for completion backends.

    Implement this to add support for a custom provider.

    Example::

        class MyBackend(BaseBackend):
            name = "my-provider"
            kind = BackendKind.REMOTE

            async def is_available(self) -> bool:
                return await my_api.ping()

            def estimate_cost(self, prompt: str) -> float:
                return self.estimate_tokens(prompt) * 2 * 0.5 / 1_000_000

            async def complete(self, prompt, options) -> CompletionResult:
                reply = await my_api.complete(prompt)
                return CompletionResult(
                    text=reply.text,
                    token_count=reply.tokens,
                    cost=reply.tokens * 0.5 / 1_000_000,
                    backend_name=self.name,
                )
    """

    name: str
    kind: BackendKind

    async def is_available(self) -> bool:
        """Check if the backend can take requests right now."""
        ...

    def estimate_cost(self, prompt: str) -> float:
        """Estimate the USD cost of completing ``prompt`` before sending it."""
        ...

    async def complete(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionResult:
        """Complete a prompt.

        Raises:
            GatewayError: kind PROVIDER_UNAVAILABLE on any backend failure.
        """
        ...

    def stream(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> AsyncIterator[str]:
        """Stream a completion as text chunks."""
        ...

    async def close(self) -> None:
        """Clean up resources (HTTP sessions, connections, etc.)."""
        ...


class BaseBackend:
    """Convenience base class with token estimation and simulated streaming.

    Subclasses set ``name``/``kind`` and implement is_available(),
    estimate_cost() and complete(). Providers with native streaming should
    override stream().
    """

    name: str = "base"
    kind: BackendKind = BackendKind.REMOTE

    # Simulated streaming: chunk size in characters and delay between chunks
    stream_chunk_size: int = 5
    stream_delay: float = 0.01

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough token estimate: 1 token per 4 characters."""
        return math.ceil(len(text) / 4)

    async def complete(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionResult:
        raise NotImplementedError

    async def stream(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> AsyncIterator[str]:
        """Stream by chunking the complete() response."""
        result = await self.complete(prompt, options)
        text = result.text
        for i in range(0, len(text), self.stream_chunk_size):
            yield text[i : i + self.stream_chunk_size]
            if self.stream_delay > 0:
                await asyncio.sleep(self.stream_delay)

    async def close(self) -> None:
        """Nothing to release by default."""
