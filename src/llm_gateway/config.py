"""
llm-gateway: Gateway configuration.

Typed, frozen configuration validated once at construction. Invalid values
raise GatewayError with kind CONFIGURATION.

Example::

    config = GatewayConfig(
        daily_budget=10.0,
        semantic_caching=True,
        remote_providers={"openai": ProviderConfig(api_key="sk-...")},
        local_fallback=LocalFallbackConfig(enabled=True, providers=("ollama",)),
        alert_webhooks={"ops": "https://hooks.example.com/budget"},
    )

    # Or from a plain mapping (snake_case or camelCase keys)
    config = GatewayConfig.from_dict({"dailyBudget": 5, "compressionLevel": "high"})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from llm_gateway.alerts import AlertThresholds
from llm_gateway.errors import GatewayError
from llm_gateway.models import CompressionLevel

DEFAULT_LOCAL_PROVIDERS: tuple[str, ...] = ("ollama", "lmstudio")


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for one remote provider.

    Attributes:
        api_key: API key for the provider. Backends without a key are unavailable.
        base_url: Override the provider's default API base URL.
        models: Models in order of preference; the first is the default.
    """

    api_key: str = ""
    base_url: str | None = None
    models: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProviderConfig:
        return cls(
            api_key=data.get("api_key", data.get("apiKey", "")) or "",
            base_url=data.get("base_url", data.get("baseUrl")),
            models=tuple(data.get("models") or ()),
        )


@dataclass(frozen=True)
class LocalFallbackConfig:
    """Free local backends tried after every remote backend.

    Attributes:
        enabled: Whether local backends are registered at all.
        providers: Local provider names, in the order they are tried.
    """

    enabled: bool = True
    providers: tuple[str, ...] = DEFAULT_LOCAL_PROVIDERS

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LocalFallbackConfig:
        return cls(
            enabled=bool(data.get("enabled", True)),
            providers=tuple(data.get("providers") or DEFAULT_LOCAL_PROVIDERS),
        )


@dataclass(frozen=True)
class GatewayConfig:
    """Configuration for the request orchestrator.

    Attributes:
        daily_budget: Daily spend limit in USD (0 = unlimited).
        cache_enabled: Cache completion results.
        semantic_caching: Also match near-duplicate prompts on exact-match misses.
        similarity_threshold: Minimum similarity (0-1) for a near-duplicate hit.
        compression_level: "low", "medium", or "high".
        cache_max_size: Maximum cached results before LRU eviction.
        cache_ttl_seconds: Cached result time-to-live.
        local_fallback: Local backends. Defaults to enabled only when no
            remote provider is configured.
        remote_providers: Provider name -> ProviderConfig, tried in key order.
        alert_webhooks: Webhook name -> URL receiving budget alert payloads.
        alert_thresholds: Warning/urgent/critical percentages.
    """

    daily_budget: float = 0.0
    cache_enabled: bool = True
    semantic_caching: bool = False
    similarity_threshold: float = 0.9
    compression_level: CompressionLevel = CompressionLevel.MEDIUM
    cache_max_size: int = 100
    cache_ttl_seconds: float = 3600.0
    local_fallback: LocalFallbackConfig | None = None
    remote_providers: Mapping[str, ProviderConfig] = field(default_factory=dict)
    alert_webhooks: Mapping[str, str] = field(default_factory=dict)
    alert_thresholds: tuple[float, float, float] = (50.0, 80.0, 100.0)

    def __post_init__(self) -> None:
        if self.daily_budget < 0:
            raise GatewayError.configuration("dailyBudget must be >= 0 (0 = unlimited)")

        try:
            level = CompressionLevel(self.compression_level)
        except ValueError:
            valid = ", ".join(lvl.value for lvl in CompressionLevel)
            raise GatewayError.configuration(
                f"compressionLevel must be one of: {valid}"
            ) from None
        object.__setattr__(self, "compression_level", level)

        if not 0 <= self.similarity_threshold <= 1:
            raise GatewayError.configuration("similarityThreshold must be between 0 and 1")
        if self.cache_max_size < 1:
            raise GatewayError.configuration("cache_max_size must be >= 1")
        if self.cache_ttl_seconds <= 0:
            raise GatewayError.configuration("cache_ttl_seconds must be > 0")
        try:
            AlertThresholds(*self.alert_thresholds)
        except (TypeError, ValueError) as e:
            raise GatewayError.configuration(str(e)) from None

        # Read-only views so get_config() snapshots cannot be mutated
        object.__setattr__(
            self, "remote_providers", MappingProxyType(dict(self.remote_providers))
        )
        object.__setattr__(self, "alert_webhooks", MappingProxyType(dict(self.alert_webhooks)))

        if self.local_fallback is None:
            object.__setattr__(
                self,
                "local_fallback",
                LocalFallbackConfig(enabled=not self.remote_providers),
            )

        if not self.remote_providers and not self.local_fallback.enabled:
            raise GatewayError.configuration(
                "At least one cloud provider or local fallback must be enabled"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GatewayConfig:
        """Build a config from a plain mapping with snake_case or camelCase keys."""

        def pick(snake: str, camel: str, default: Any) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        local = pick("local_fallback", "localFallback", None)
        remote = pick("remote_providers", "remoteProviders", None) or {}
        kwargs: dict[str, Any] = {
            "daily_budget": pick("daily_budget", "dailyBudget", 0.0),
            "cache_enabled": pick("cache_enabled", "cacheEnabled", True),
            "semantic_caching": pick("semantic_caching", "semanticCaching", False),
            "similarity_threshold": pick("similarity_threshold", "similarityThreshold", 0.9),
            "compression_level": pick("compression_level", "compressionLevel", "medium"),
            "cache_max_size": pick("cache_max_size", "cacheMaxSize", 100),
            "cache_ttl_seconds": pick("cache_ttl_seconds", "cacheTtlSeconds", 3600.0),
            "local_fallback": (
                LocalFallbackConfig.from_dict(local) if isinstance(local, Mapping) else local
            ),
            "remote_providers": {
                name: cfg if isinstance(cfg, ProviderConfig) else ProviderConfig.from_dict(cfg)
                for name, cfg in remote.items()
            },
            "alert_webhooks": dict(pick("alert_webhooks", "alertWebhooks", None) or {}),
            "alert_thresholds": tuple(
                pick("alert_thresholds", "alertThresholds", (50.0, 80.0, 100.0))
            ),
        }
        return cls(**kwargs)
