"""
llm-gateway: Ollama backend using the native /api/chat endpoint.

Talks to the native Ollama API rather than its OpenAI-compatible shim, which
is the only way to pass keep_alive (model residency) and per-request runtime
options such as num_gpu and num_thread.

Local models are free, so cost is always zero.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from llm_gateway.backends.base import BaseBackend
from llm_gateway.errors import GatewayError
from llm_gateway.models import BackendKind, CompletionOptions, CompletionResult

logger = logging.getLogger(__name__)


class OllamaBackend(BaseBackend):
    """Native Ollama API backend.

    Completions and streams go through /api/chat on a local or remote server.

    Example::

        backend = OllamaBackend(models=["llama3:8b"])
        await backend.warmup()
        result = await backend.complete("Hello")
        await backend.close()
    """

    name = "ollama"
    kind = BackendKind.LOCAL

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        models: list[str] | tuple[str, ...] = ("llama2", "codellama", "mistral"),
        default_options: dict[str, Any] | None = None,
        keep_alive: int = -1,
        timeout: float = 120.0,
    ) -> None:
        """Initialize the Ollama backend.

        Args:
            base_url: Ollama server URL (without /api path).
            models: Models in order of preference; the first is the default.
            default_options: Ollama options applied to every request
                (e.g., {"num_gpu": 0, "num_thread": 4} for CPU-only mode).
            keep_alive: Model residency time in seconds. -1 = permanent.
            timeout: Request timeout in seconds.
        """
        if not models:
            raise ValueError("at least one model is required")
        self.base_url = base_url.rstrip("/")
        self.models = list(models)
        self.default_options = default_options or {}
        self.keep_alive = keep_alive
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazily create and return the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def estimate_cost(self, prompt: str) -> float:
        return 0.0

    def _payload(self, prompt: str, options: CompletionOptions, stream: bool) -> dict[str, Any]:
        # defaults < per-request options
        ollama_options: dict[str, Any] = dict(self.default_options)
        ollama_options["temperature"] = (
            options.temperature if options.temperature is not None else 0.7
        )
        if options.max_tokens:
            ollama_options["num_predict"] = options.max_tokens

        return {
            "model": options.model or self.models[0],
            "messages": [{"role": "user", "content": prompt}],
            "options": ollama_options,
            "keep_alive": self.keep_alive,
            "stream": stream,
        }

    async def complete(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionResult:
        """Complete via Ollama's native /api/chat endpoint.

        Raises:
            GatewayError: kind PROVIDER_UNAVAILABLE on HTTP, timeout, or connection errors.
        """
        payload = self._payload(prompt, options or CompletionOptions(), stream=False)
        session = await self._get_session()

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.post(
                f"{self.base_url}/api/chat", json=payload, timeout=timeout
            ) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise GatewayError.provider_unavailable(
                        self.name, f"API error ({resp.status}): {error_text[:200]}"
                    )
                data = await resp.json()
        except asyncio.TimeoutError:
            raise GatewayError.provider_unavailable(
                self.name, f"Timeout after {self.timeout}s"
            ) from None
        except aiohttp.ClientError as e:
            raise GatewayError.provider_unavailable(
                self.name,
                f"Connection error: {e}. Make sure Ollama is running at {self.base_url}",
            ) from e

        text = (data.get("message") or {}).get("content", "")
        tokens = (data.get("eval_count", 0) + data.get("prompt_eval_count", 0)) or (
            self.estimate_tokens(prompt + text)
        )
        return CompletionResult(text=text, token_count=tokens, cost=0.0, backend_name=self.name)

    async def stream(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> AsyncIterator[str]:
        """Stream newline-delimited JSON chunks from /api/chat."""
        payload = self._payload(prompt, options or CompletionOptions(), stream=True)
        session = await self._get_session()

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.post(
                f"{self.base_url}/api/chat", json=payload, timeout=timeout
            ) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise GatewayError.provider_unavailable(
                        self.name, f"API error ({resp.status}): {error_text[:200]}"
                    )
                async for raw in resp.content:
                    line = raw.decode("utf-8").strip()
                    if not line:
                        continue
                    data = json.loads(line)
                    content = (data.get("message") or {}).get("content")
                    if content:
                        yield content
                    if data.get("done"):
                        break
        except asyncio.TimeoutError:
            raise GatewayError.provider_unavailable(
                self.name, f"Timeout after {self.timeout}s"
            ) from None
        except aiohttp.ClientError as e:
            raise GatewayError.provider_unavailable(self.name, f"Connection error: {e}") from e

    async def warmup(self, model: str | None = None, keep_alive: int | None = None) -> bool:
        """Load ``model`` ahead of the first request.

        Generates a single token through /api/generate so Ollama loads the
        weights, with keep_alive controlling how long they stay resident.

        Returns:
            True if warmup succeeded.
        """
        model = model or self.models[0]
        payload = {
            "model": model,
            "prompt": "hi",
            "keep_alive": keep_alive if keep_alive is not None else self.keep_alive,
            "options": {"num_predict": 1, **self.default_options},
            "stream": False,
        }

        session = await self._get_session()
        try:
            timeout = aiohttp.ClientTimeout(total=180)
            async with session.post(
                f"{self.base_url}/api/generate", json=payload, timeout=timeout
            ) as resp:
                if resp.status == 200:
                    logger.info(f"Ollama model loaded: {model}")
                    return True
                text = await resp.text()
                logger.warning(f"Ollama could not load {model} (HTTP {resp.status}): {text[:100]}")
                return False
        except Exception as e:
            logger.warning(f"Ollama load request for {model} failed: {e}")
            return False

    async def is_available(self) -> bool:
        """True when GET /api/tags answers 200."""
        session = await self._get_session()
        try:
            timeout = aiohttp.ClientTimeout(total=5)
            async with session.get(f"{self.base_url}/api/tags", timeout=timeout) as resp:
                return resp.status == 200
        except Exception:
            return False

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
