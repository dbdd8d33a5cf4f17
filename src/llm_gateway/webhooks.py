"""
llm-gateway: Budget alert delivery to webhooks.

POSTs the alert payload as JSON to every configured URL. Delivery failures
are collected and logged, never raised, so they cannot affect completions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass

import aiohttp

from llm_gateway.alerts import AlertListener
from llm_gateway.models import BudgetAlert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of delivering one alert to one webhook."""

    webhook: str
    success: bool
    error: str | None = None


class WebhookNotifier:
    """Sends budget alerts to a set of named webhook URLs.

    Example::

        notifier = WebhookNotifier({"ops": "https://hooks.example.com/budget"})
        alerts.on(notifier.as_listener())
        ...
        await notifier.close()
    """

    def __init__(self, webhooks: Mapping[str, str], timeout: float = 10.0) -> None:
        self.webhooks = dict(webhooks)
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None
        self._pending: set[asyncio.Task[list[WebhookResult]]] = set()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazily create and return the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def send_alert(self, alert: BudgetAlert) -> list[WebhookResult]:
        """Deliver ``alert`` to every configured webhook."""
        payload = alert.to_dict()
        results: list[WebhookResult] = []
        session = await self._get_session()

        for name, url in self.webhooks.items():
            try:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                async with session.post(url, json=payload, timeout=timeout) as resp:
                    if resp.status >= 400:
                        raise RuntimeError(f"Webhook failed: HTTP {resp.status}")
                results.append(WebhookResult(webhook=name, success=True))
            except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError) as e:
                logger.warning(f"Webhook '{name}' failed for {alert.event.value}: {e}")
                results.append(
                    WebhookResult(webhook=name, success=False, error=str(e) or type(e).__name__)
                )

        return results

    def as_listener(self) -> AlertListener:
        """An alert listener that schedules delivery on the running event loop."""

        def _listener(alert: BudgetAlert) -> None:
            if not self.webhooks:
                return
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(
                    f"No running event loop; webhook delivery skipped for {alert.event.value}"
                )
                return
            task = loop.create_task(self.send_alert(alert))
            self._pending.add(task)
            task.add_done_callback(self._on_done)

        return _listener

    def _on_done(self, task: asyncio.Task[list[WebhookResult]]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Webhook delivery crashed: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait for scheduled deliveries to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def close(self) -> None:
        """Finish pending deliveries and close the HTTP session."""
        await self.drain()
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
