"""
llm-gateway budget and alerts example.

Caps daily spend on a remote provider, falls back to local models, and
reports budget alerts to the console and to a webhook.

Prerequisites:
    pip install llm-gateway
    export OPENAI_API_KEY=sk-...
    ollama pull llama2
"""

import asyncio
import os

from llm_gateway import (
    BackendKind,
    CompletionOptions,
    ErrorKind,
    GatewayConfig,
    GatewayError,
    LocalFallbackConfig,
    ProviderConfig,
    RequestOrchestrator,
)


def print_alert(alert):
    print(
        f"[{alert.severity.value.upper()}] {alert.event.value}: "
        f"{alert.data.percentage:.0f}% of ${alert.data.daily_limit:.2f} used"
    )


async def main():
    config = GatewayConfig(
        daily_budget=0.50,
        compression_level="high",
        remote_providers={
            "openai": ProviderConfig(api_key=os.environ.get("OPENAI_API_KEY", "")),
        },
        local_fallback=LocalFallbackConfig(enabled=True, providers=("ollama",)),
        alert_webhooks={"ops": "https://hooks.example.com/llm-budget"},
        alert_thresholds=(50, 80, 100),
    )
    gateway = RequestOrchestrator(config)
    gateway.on_alert(print_alert)

    async with gateway:
        for i in range(5):
            try:
                text = await gateway.complete(f"Summarize chapter {i + 1} of Moby Dick")
                print(f"Chapter {i + 1}: {text[:60]}...")
            except GatewayError as e:
                if e.kind is not ErrorKind.BUDGET_EXCEEDED:
                    raise
                print(f"Over budget, retrying locally: {e.message}")
                text = await gateway.complete(
                    f"Summarize chapter {i + 1} of Moby Dick",
                    CompletionOptions(force_backend=BackendKind.LOCAL),
                )
                print(f"Chapter {i + 1} (local): {text[:60]}...")

        status = gateway.get_budget_status()
        print(f"\nUsed ${status.used:.4f} of ${status.daily_limit:.2f}; resets {status.reset_at}")


if __name__ == "__main__":
    asyncio.run(main())
