"""
llm-gateway: Read-only metrics API.

Small aiohttp.web application exposing a running gateway's budget, usage
and backends as JSON, for dashboards and health checks.

Endpoints:
- GET /api/budget     current daily budget status
- GET /api/usage      request, cache and spend statistics
- GET /api/providers  configured backends with per-backend usage
- GET /api/health     liveness check

Example::

    async with RequestOrchestrator(config) as gateway:
        runner = await serve(gateway, port=3001)
        try:
            ...
        finally:
            await runner.cleanup()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from aiohttp import web

from llm_gateway.orchestrator import RequestOrchestrator

logger = logging.getLogger(__name__)

GATEWAY_KEY = web.AppKey("gateway", RequestOrchestrator)
STARTED_KEY = web.AppKey("started", float)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _gateway(request: web.Request) -> RequestOrchestrator:
    return request.app[GATEWAY_KEY]


async def budget(request: web.Request) -> web.Response:
    status = _gateway(request).get_budget_status()
    percentage = status.used / status.daily_limit * 100 if status.daily_limit > 0 else 0.0
    return web.json_response({
        "limit": status.daily_limit,
        "used": status.used,
        "remaining": status.remaining,
        "percentage": round(percentage, 2),
        "reset_at": status.reset_at.isoformat(),
    })


async def usage(request: web.Request) -> web.Response:
    stats = _gateway(request).get_stats()
    cache = stats.pop("cache")
    total_cost = sum(stats["spend_by_backend"].values())
    served = stats["successes"]
    return web.json_response({
        **stats,
        "total_cost": total_cost,
        "avg_cost_per_request": total_cost / served if served else 0.0,
        "cache_misses": cache["cache_misses"],
        "cache_hit_rate": cache["hit_rate"],
    })


async def providers(request: web.Request) -> web.Response:
    gateway = _gateway(request)
    stats = gateway.get_stats()
    body: dict[str, Any] = {}
    for backend in gateway.registry:
        body[backend.name] = {
            "kind": backend.kind.value,
            "requests": stats["requests_by_backend"].get(backend.name, 0),
            "failures": stats["failures_by_backend"].get(backend.name, 0),
            "cost": stats["spend_by_backend"].get(backend.name, 0.0),
        }
    return web.json_response(body)


async def health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "healthy",
        "uptime": round(time.monotonic() - request.app[STARTED_KEY], 3),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


def _middleware(cors: bool) -> Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]:
    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        if request.method == "OPTIONS":
            response: web.StreamResponse = web.Response()
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                response = web.json_response({"error": e.reason}, status=e.status)
            except Exception as e:
                logger.error(f"Metrics request {request.path} failed: {e}")
                response = web.json_response(
                    {"error": str(e) or "Internal server error"}, status=500
                )
        if cors:
            response.headers.update(_CORS_HEADERS)
        return response

    return middleware


def create_app(gateway: RequestOrchestrator, cors: bool = True) -> web.Application:
    """Build the metrics application for ``gateway``."""
    app = web.Application(middlewares=[_middleware(cors)])
    app[GATEWAY_KEY] = gateway
    app[STARTED_KEY] = time.monotonic()
    app.router.add_get("/api/budget", budget)
    app.router.add_get("/api/usage", usage)
    app.router.add_get("/api/providers", providers)
    app.router.add_get("/api/health", health)
    return app


async def serve(
    gateway: RequestOrchestrator,
    host: str = "localhost",
    port: int = 3001,
    cors: bool = True,
) -> web.AppRunner:
    """Start serving the metrics API in the background.

    Returns:
        The running AppRunner; call ``await runner.cleanup()`` to stop it.
    """
    runner = web.AppRunner(create_app(gateway, cors=cors))
    await runner.setup()
    await web.TCPSite(runner, host, port).start()
    logger.info(f"Metrics API listening on http://{host}:{port}")
    return runner
