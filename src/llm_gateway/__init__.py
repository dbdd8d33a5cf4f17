"""
llm-gateway: Budget-aware LLM completion gateway.

Daily spending limits with threshold alerts, response caching with
similarity matching, prompt compression, and ordered failover across
remote and local backends.

Quickstart::

    from llm_gateway import GatewayConfig, ProviderConfig, RequestOrchestrator

    config = GatewayConfig(
        daily_budget=5.0,
        remote_providers={"openai": ProviderConfig(api_key="sk-...")},
    )

    async with RequestOrchestrator(config) as gateway:
        gateway.on_alert(lambda alert: print(alert.event, alert.data.percentage))
        text = await gateway.complete("Explain quantum computing")
        print(text)
        print(gateway.get_budget_status())
"""

from llm_gateway.alerts import AlertDispatcher, AlertListener, AlertThresholds
from llm_gateway.backends.base import Backend, BaseBackend
from llm_gateway.backends.ollama import OllamaBackend
from llm_gateway.backends.openai import PRESETS, LMStudioBackend, OpenAICompatibleBackend
from llm_gateway.budget import BudgetLedger
from llm_gateway.cache import ResponseCache
from llm_gateway.compressor import compress, compression_ratio
from llm_gateway.config import GatewayConfig, LocalFallbackConfig, ProviderConfig
from llm_gateway.errors import BackendFailure, ErrorKind, GatewayError
from llm_gateway.models import (
    AlertEvent,
    AlertSeverity,
    BackendKind,
    BudgetAlert,
    BudgetAlertData,
    BudgetStatus,
    CompletionOptions,
    CompletionResult,
    CompressionLevel,
)
from llm_gateway.orchestrator import CompletionStream, RequestOrchestrator
from llm_gateway.registry import BackendRegistry, register_backend
from llm_gateway.stats import StatsTracker
from llm_gateway.webhooks import WebhookNotifier, WebhookResult

__version__ = "0.1.0"

__all__ = [
    # Core
    "RequestOrchestrator",
    "CompletionStream",
    "CompletionOptions",
    "CompletionResult",
    "GatewayError",
    "ErrorKind",
    "BackendFailure",
    # Configuration
    "GatewayConfig",
    "ProviderConfig",
    "LocalFallbackConfig",
    "CompressionLevel",
    # Backends
    "Backend",
    "BaseBackend",
    "BackendKind",
    "BackendRegistry",
    "OpenAICompatibleBackend",
    "LMStudioBackend",
    "OllamaBackend",
    "PRESETS",
    "register_backend",
    # Budget and alerts
    "BudgetLedger",
    "BudgetStatus",
    "AlertDispatcher",
    "AlertListener",
    "AlertThresholds",
    "AlertEvent",
    "AlertSeverity",
    "BudgetAlert",
    "BudgetAlertData",
    "WebhookNotifier",
    "WebhookResult",
    # Features
    "ResponseCache",
    "StatsTracker",
    "compress",
    "compression_ratio",
]
