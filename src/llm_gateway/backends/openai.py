"""
llm-gateway: OpenAI-compatible API backends.

Works with any provider that exposes a /chat/completions endpoint. Presets
cover OpenAI, xAI, DeepSeek, Mistral, and Together AI (base URL, default
models, and per-model pricing). LM Studio serves the same API locally and
for free.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

import aiohttp

from llm_gateway.backends.base import BaseBackend
from llm_gateway.errors import GatewayError
from llm_gateway.models import BackendKind, CompletionOptions, CompletionResult

logger = logging.getLogger(__name__)


class ModelPricing(NamedTuple):
    """USD per 1M tokens."""

    input: float
    output: float


FREE = ModelPricing(0.0, 0.0)


@dataclass(frozen=True)
class ProviderPreset:
    """Defaults for a known OpenAI-compatible provider."""

    name: str
    base_url: str
    models: tuple[str, ...]
    pricing: Mapping[str, ModelPricing] = field(default_factory=dict)
    default_pricing: ModelPricing = FREE


# Pricing as of 2025, per 1M tokens
PRESETS: dict[str, ProviderPreset] = {
    "openai": ProviderPreset(
        name="openai",
        base_url="https://api.openai.com/v1",
        models=("gpt-4o-mini", "gpt-4o"),
        pricing={
            "gpt-4o-mini": ModelPricing(0.15, 0.60),
            "gpt-4o": ModelPricing(2.50, 10.00),
            "gpt-4-turbo": ModelPricing(10.00, 30.00),
            "gpt-4": ModelPricing(30.00, 60.00),
        },
        default_pricing=ModelPricing(0.15, 0.60),
    ),
    "xai": ProviderPreset(
        name="xai",
        base_url="https://api.x.ai/v1",
        models=("grok-2", "grok-2-mini"),
        pricing={
            "grok-2": ModelPricing(2.00, 10.00),
            "grok-2-mini": ModelPricing(0.20, 1.00),
            "grok-3": ModelPricing(3.00, 15.00),
            "grok-3-mini": ModelPricing(0.30, 1.50),
        },
        default_pricing=ModelPricing(2.00, 10.00),
    ),
    "deepseek": ProviderPreset(
        name="deepseek",
        base_url="https://api.deepseek.com/v1",
        models=("deepseek-chat", "deepseek-coder"),
        pricing={
            "deepseek-chat": ModelPricing(0.14, 0.28),
            "deepseek-coder": ModelPricing(0.14, 0.28),
            "deepseek-reasoner": ModelPricing(0.55, 2.19),
        },
        default_pricing=ModelPricing(0.14, 0.28),
    ),
    "mistral": ProviderPreset(
        name="mistral",
        base_url="https://api.mistral.ai/v1",
        models=("mistral-small-latest", "mistral-large-latest"),
        pricing={
            "mistral-small-latest": ModelPricing(0.20, 0.60),
            "mistral-medium-latest": ModelPricing(2.70, 8.10),
            "mistral-large-latest": ModelPricing(2.00, 6.00),
            "codestral-latest": ModelPricing(0.20, 0.60),
        },
        default_pricing=ModelPricing(0.20, 0.60),
    ),
    "together": ProviderPreset(
        name="together",
        base_url="https://api.together.xyz/v1",
        models=("meta-llama/Llama-3.3-70B-Instruct-Turbo",),
        pricing={
            "meta-llama/Llama-3.3-70B-Instruct-Turbo": ModelPricing(0.88, 0.88),
            "meta-llama/Llama-3.1-8B-Instruct-Turbo": ModelPricing(0.18, 0.18),
            "Qwen/Qwen2.5-72B-Instruct-Turbo": ModelPricing(1.20, 1.20),
            "deepseek-ai/DeepSeek-V3": ModelPricing(0.90, 0.90),
        },
        default_pricing=ModelPricing(0.60, 0.60),
    ),
}


class OpenAICompatibleBackend(BaseBackend):
    """Remote backend for /chat/completions-compatible APIs.

    Handles bearer authentication, error responses, token counting, and
    cost calculation from a per-model pricing table.

    Example::

        # OpenAI with defaults
        backend = OpenAICompatibleBackend.from_preset("openai", api_key="sk-...")

        # Any compatible endpoint
        backend = OpenAICompatibleBackend(
            name="proxy",
            api_key="key",
            base_url="https://proxy.example.com/v1",
            models=["gpt-4o-mini"],
            pricing={"gpt-4o-mini": ModelPricing(0.15, 0.60)},
        )

        result = await backend.complete("Hello")
        await backend.close()
    """

    kind = BackendKind.REMOTE

    def __init__(
        self,
        name: str,
        api_key: str = "",
        base_url: str = "https://api.openai.com/v1",
        models: list[str] | tuple[str, ...] = ("gpt-4o-mini",),
        pricing: Mapping[str, ModelPricing] | None = None,
        default_pricing: ModelPricing = FREE,
        default_headers: dict[str, str] | None = None,
        timeout: float = 120.0,
    ) -> None:
        """Initialize the backend.

        Args:
            name: Backend name reported in results and errors.
            api_key: API key for authentication.
            base_url: API base URL (including /v1).
            models: Models in order of preference; the first is the default.
            pricing: Per-model pricing in USD per 1M tokens.
            default_pricing: Pricing for models missing from ``pricing``.
            default_headers: Additional headers for every request.
            timeout: Request timeout in seconds.
        """
        if not models:
            raise ValueError("at least one model is required")
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.models = list(models)
        self.pricing = dict(pricing or {})
        self.default_pricing = default_pricing
        self.timeout = timeout
        self._api_key = api_key
        self._default_headers = default_headers or {}
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_preset(
        cls,
        preset: str,
        api_key: str = "",
        base_url: str | None = None,
        models: list[str] | tuple[str, ...] | None = None,
        **kwargs: Any,
    ) -> OpenAICompatibleBackend:
        """Build a backend from a known provider preset."""
        p = PRESETS[preset]
        return cls(
            name=p.name,
            api_key=api_key,
            base_url=base_url or p.base_url,
            models=models or p.models,
            pricing=p.pricing,
            default_pricing=p.default_pricing,
            **kwargs,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazily create and return the aiohttp session."""
        if self._session is None or self._session.closed:
            headers = {
                "Content-Type": "application/json",
                **self._default_headers,
            }
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._session = aiohttp.ClientSession(headers=headers)
        return self._session

    # ──────────────────────────────────────────────────────────────────────
    # Cost
    # ──────────────────────────────────────────────────────────────────────

    def calculate_cost(self, input_tokens: int, output_tokens: int, model: str) -> float:
        rate = self.pricing.get(model, self.default_pricing)
        return (input_tokens * rate.input + output_tokens * rate.output) / 1_000_000

    def estimate_cost(self, prompt: str) -> float:
        """Estimate assuming the reply is as long as the prompt."""
        tokens = self.estimate_tokens(prompt)
        return self.calculate_cost(tokens, tokens, self.models[0])

    # ──────────────────────────────────────────────────────────────────────
    # Requests
    # ──────────────────────────────────────────────────────────────────────

    async def is_available(self) -> bool:
        """Remote providers are usable whenever an API key is configured."""
        return bool(self._api_key)

    def _require_credentials(self) -> None:
        if not self._api_key:
            raise GatewayError.provider_unavailable(self.name, "API key is missing or invalid")

    def _payload(self, prompt: str, options: CompletionOptions, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": options.model or self.models[0],
            "messages": [{"role": "user", "content": prompt}],
            "temperature": options.temperature if options.temperature is not None else 0.7,
            "max_tokens": options.max_tokens or 1000,
        }
        if stream:
            payload["stream"] = True
        return payload

    async def complete(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> CompletionResult:
        """Complete via the /chat/completions endpoint.

        Raises:
            GatewayError: kind PROVIDER_UNAVAILABLE on HTTP, timeout, or connection errors.
        """
        self._require_credentials()
        options = options or CompletionOptions()
        payload = self._payload(prompt, options, stream=False)
        url = f"{self.base_url}/chat/completions"
        session = await self._get_session()

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.post(url, json=payload, timeout=timeout) as resp:
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
            raise GatewayError.provider_unavailable(self.name, f"Connection error: {e}") from e

        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        usage = data.get("usage") or {}
        input_tokens = usage.get("prompt_tokens") or self.estimate_tokens(prompt)
        output_tokens = usage.get("completion_tokens") or self.estimate_tokens(text)
        total = usage.get("total_tokens") or input_tokens + output_tokens

        return CompletionResult(
            text=text,
            token_count=total,
            cost=self.calculate_cost(input_tokens, output_tokens, payload["model"]),
            backend_name=self.name,
        )

    async def stream(
        self, prompt: str, options: CompletionOptions | None = None
    ) -> AsyncIterator[str]:
        """Stream server-sent events from /chat/completions."""
        self._require_credentials()
        options = options or CompletionOptions()
        payload = self._payload(prompt, options, stream=True)
        url = f"{self.base_url}/chat/completions"
        session = await self._get_session()

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with session.post(url, json=payload, timeout=timeout) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise GatewayError.provider_unavailable(
                        self.name, f"API error ({resp.status}): {error_text[:200]}"
                    )
                async for raw in resp.content:
                    line = raw.decode("utf-8").strip()
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    choices = json.loads(data).get("choices") or []
                    delta = (choices[0].get("delta") or {}).get("content") if choices else None
                    if delta:
                        yield delta
        except asyncio.TimeoutError:
            raise GatewayError.provider_unavailable(
                self.name, f"Timeout after {self.timeout}s"
            ) from None
        except aiohttp.ClientError as e:
            raise GatewayError.provider_unavailable(self.name, f"Connection error: {e}") from e

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class LMStudioBackend(OpenAICompatibleBackend):
    """Local LM Studio server speaking the OpenAI API. Always free.

    Example::

        backend = LMStudioBackend()
        if await backend.is_available():
            result = await backend.complete("Hello")
    """

    kind = BackendKind.LOCAL

    def __init__(
        self,
        base_url: str = "http://localhost:1234/v1",
        models: list[str] | tuple[str, ...] = ("local-model",),
        timeout: float = 120.0,
    ) -> None:
        super().__init__(
            name="lmstudio",
            base_url=base_url,
            models=models,
            timeout=timeout,
        )

    def _require_credentials(self) -> None:
        """LM Studio needs no API key."""

    def estimate_cost(self, prompt: str) -> float:
        return 0.0

    async def is_available(self) -> bool:
        """Check if the LM Studio server answers GET /models."""
        session = await self._get_session()
        try:
            timeout = aiohttp.ClientTimeout(total=5)
            async with session.get(f"{self.base_url}/models", timeout=timeout) as resp:
                return resp.status == 200
        except Exception:
            return False
