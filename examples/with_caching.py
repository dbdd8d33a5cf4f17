"""
llm-gateway response caching example.

Demonstrates how the response cache avoids redundant backend calls for
repeated and near-duplicate prompts. Near-duplicates are matched by word
overlap (term-frequency cosine similarity), only between requests with
identical options.

Prerequisites:
    pip install llm-gateway
    ollama pull llama2
"""

import asyncio

from llm_gateway import CompletionOptions, GatewayConfig, RequestOrchestrator


async def main():
    gateway = RequestOrchestrator(GatewayConfig(
        semantic_caching=True,
        similarity_threshold=0.6,
        cache_max_size=500,
        cache_ttl_seconds=24 * 3600,
    ))
    options = CompletionOptions(temperature=0.1)

    async with gateway:
        # First call: cache miss, calls the backend
        r1 = await gateway.complete("What is the capital of France?", options)
        print(f"First call:   {r1[:60]}...")

        # Same prompt and options: exact hit
        r2 = await gateway.complete("What is the capital of France?", options)
        print(f"Second call:  {r2[:60]}...")

        # Mostly the same words: similarity hit
        r3 = await gateway.complete("what is the capital of France", options)
        print(f"Similar call: {r3[:60]}...")

        # Different options never share cache entries
        r4 = await gateway.complete(
            "What is the capital of France?", CompletionOptions(temperature=0.9)
        )
        print(f"Other opts:   {r4[:60]}...")

        print(f"\nCache stats: {gateway.get_stats()['cache']}")


if __name__ == "__main__":
    asyncio.run(main())
