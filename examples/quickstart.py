"""
llm-gateway quickstart: minimal example.

Prerequisites:
    pip install llm-gateway
    ollama pull llama2   # or start an LM Studio server
"""

import asyncio
import logging

from llm_gateway import GatewayConfig, GatewayError, RequestOrchestrator


async def main():
    logging.basicConfig(level=logging.INFO)

    # No remote providers: local fallback (Ollama, then LM Studio) is enabled
    gateway = RequestOrchestrator(GatewayConfig())

    async with gateway:
        try:
            text = await gateway.complete("What is the capital of France?")
            print(f"Response: {text}")
        except GatewayError as e:
            print(f"Error: {e}")

        print("\nStreaming:")
        async for chunk in gateway.stream("Write a haiku about the sea"):
            print(chunk, end="", flush=True)
        print()

        print(f"\nStats: {gateway.get_stats()}")


if __name__ == "__main__":
    asyncio.run(main())
