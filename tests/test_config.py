"""Tests for gateway configuration and validation."""

import dataclasses

import pytest

from llm_gateway.config import GatewayConfig, LocalFallbackConfig, ProviderConfig
from llm_gateway.errors import ErrorKind, GatewayError
from llm_gateway.models import CompressionLevel


def assert_config_error(**kwargs) -> GatewayError:
    with pytest.raises(GatewayError) as exc_info:
        GatewayConfig(**kwargs)
    assert exc_info.value.kind is ErrorKind.CONFIGURATION
    return exc_info.value


class TestDefaults:
    """Default values and derived settings."""

    def test_defaults(self) -> None:
        config = GatewayConfig()
        assert config.daily_budget == 0.0
        assert config.cache_enabled is True
        assert config.semantic_caching is False
        assert config.similarity_threshold == 0.9
        assert config.compression_level is CompressionLevel.MEDIUM
        assert config.alert_thresholds == (50.0, 80.0, 100.0)

    def test_local_fallback_enabled_without_remote_providers(self) -> None:
        assert GatewayConfig().local_fallback.enabled is True

    def test_local_fallback_disabled_when_remote_configured(self) -> None:
        config = GatewayConfig(remote_providers={"openai": ProviderConfig(api_key="k")})
        assert config.local_fallback.enabled is False

    def test_explicit_local_fallback_kept(self) -> None:
        config = GatewayConfig(
            remote_providers={"openai": ProviderConfig(api_key="k")},
            local_fallback=LocalFallbackConfig(providers=("lmstudio",)),
        )
        assert config.local_fallback.enabled is True
        assert config.local_fallback.providers == ("lmstudio",)

    def test_compression_level_string_coerced(self) -> None:
        assert GatewayConfig(compression_level="high").compression_level is CompressionLevel.HIGH


class TestValidation:
    """Invalid values raise CONFIGURATION errors."""

    def test_negative_budget(self) -> None:
        err = assert_config_error(daily_budget=-1)
        assert "dailyBudget" in err.message

    def test_unknown_compression_level(self) -> None:
        err = assert_config_error(compression_level="extreme")
        assert "low, medium, high" in err.message

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_similarity_threshold_out_of_range(self, threshold) -> None:
        assert_config_error(similarity_threshold=threshold)

    def test_threshold_bounds_are_inclusive(self) -> None:
        GatewayConfig(similarity_threshold=0)
        GatewayConfig(similarity_threshold=1)

    def test_no_providers_at_all(self) -> None:
        err = assert_config_error(local_fallback=LocalFallbackConfig(enabled=False))
        assert "At least one" in err.message

    def test_bad_alert_thresholds(self) -> None:
        assert_config_error(alert_thresholds=(80, 50, 100))

    def test_bad_cache_limits(self) -> None:
        assert_config_error(cache_max_size=0)
        assert_config_error(cache_ttl_seconds=0)


class TestImmutability:
    """Configuration snapshots cannot be changed."""

    def test_frozen(self) -> None:
        config = GatewayConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.daily_budget = 100.0

    def test_provider_mapping_is_read_only(self) -> None:
        providers = {"openai": ProviderConfig(api_key="k")}
        config = GatewayConfig(remote_providers=providers)

        with pytest.raises(TypeError):
            config.remote_providers["xai"] = ProviderConfig(api_key="x")

        providers["deepseek"] = ProviderConfig(api_key="d")
        assert list(config.remote_providers) == ["openai"]


class TestFromDict:
    """Building configuration from plain mappings."""

    def test_camel_case_keys(self) -> None:
        config = GatewayConfig.from_dict({
            "dailyBudget": 5,
            "semanticCaching": True,
            "similarityThreshold": 0.8,
            "compressionLevel": "low",
            "remoteProviders": {"openai": {"apiKey": "sk-test", "models": ["gpt-4o"]}},
            "localFallback": {"enabled": True, "providers": ["ollama"]},
            "alertWebhooks": {"ops": "https://hooks.example.com/a"},
        })

        assert config.daily_budget == 5
        assert config.semantic_caching is True
        assert config.compression_level is CompressionLevel.LOW
        assert config.remote_providers["openai"] == ProviderConfig(
            api_key="sk-test", models=("gpt-4o",)
        )
        assert config.local_fallback.providers == ("ollama",)
        assert config.alert_webhooks["ops"] == "https://hooks.example.com/a"

    def test_snake_case_keys(self) -> None:
        config = GatewayConfig.from_dict({"daily_budget": 2.5, "cache_enabled": False})
        assert config.daily_budget == 2.5
        assert config.cache_enabled is False

    def test_invalid_mapping_raises(self) -> None:
        with pytest.raises(GatewayError):
            GatewayConfig.from_dict({"dailyBudget": -3})
