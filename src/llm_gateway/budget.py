"""
llm-gateway: Daily budget ledger.

Tracks spend against a daily limit that resets at midnight UTC. The reset is
lazy: every public method first checks whether the period has ended.

check_budget() and record_spending() are separate calls with backend I/O in
between, so concurrent requests can both pass the check and jointly overshoot
the limit by at most the sum of their in-flight costs.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from llm_gateway.alerts import AlertDispatcher
from llm_gateway.errors import GatewayError
from llm_gateway.models import BudgetStatus

logger = logging.getLogger(__name__)


def next_utc_midnight(now: float) -> datetime:
    """The first UTC midnight strictly after ``now`` (seconds since the epoch)."""
    current = datetime.fromtimestamp(now, tz=timezone.utc)
    midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(days=1)


class BudgetLedger:
    """Spend tracker with a daily ceiling.

    Example::

        ledger = BudgetLedger(daily_limit=10.0)
        ledger.check_budget(estimate)      # raises GatewayError(BUDGET_EXCEEDED)
        result = await backend.complete(prompt, options)
        ledger.record_spending(result.cost)
    """

    def __init__(
        self,
        daily_limit: float = 0.0,
        alerts: AlertDispatcher | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the ledger.

        Args:
            daily_limit: Daily limit in USD. 0 means unlimited.
            alerts: Dispatcher consulted after every commit.
            clock: Time source returning seconds since the epoch.
        """
        if daily_limit < 0:
            raise ValueError("daily_limit must be >= 0 (0 = unlimited)")
        self._daily_limit = daily_limit
        self._alerts = alerts or AlertDispatcher()
        self._clock = clock
        self._used = 0.0
        self._reset_at = next_utc_midnight(clock())
        self._lock = threading.RLock()

    @property
    def daily_limit(self) -> float:
        return self._daily_limit

    @property
    def used(self) -> float:
        with self._lock:
            self._maybe_reset()
            return self._used

    @property
    def alerts(self) -> AlertDispatcher:
        return self._alerts

    def check_budget(self, estimated_cost: float) -> None:
        """Check whether a request costing ``estimated_cost`` fits in the budget.

        Does not reserve anything; call record_spending() after the request.

        Raises:
            GatewayError: kind BUDGET_EXCEEDED, carrying the attempted total
                (used + estimated_cost) and the limit.
        """
        with self._lock:
            self._maybe_reset()
            if self._daily_limit == 0:
                return
            attempted = self._used + estimated_cost
            if attempted > self._daily_limit:
                logger.warning(
                    f"Budget check failed: ${attempted:.4f} > ${self._daily_limit:.2f}"
                )
                raise GatewayError.budget_exceeded(attempted, self._daily_limit)

    def record_spending(self, actual_cost: float) -> None:
        """Add ``actual_cost`` to today's spend and evaluate alert thresholds.

        Never re-checks the limit: the cost has already been incurred.

        Raises:
            ValueError: If actual_cost is negative.
        """
        if actual_cost < 0:
            raise ValueError(f"cost must be >= 0, got {actual_cost}")

        with self._lock:
            self._maybe_reset()
            self._used += actual_cost
            used, reset_at = self._used, self._reset_at

        self._alerts.check_budget(self._daily_limit, used, reset_at)

    def status(self) -> BudgetStatus:
        """Current budget snapshot."""
        with self._lock:
            self._maybe_reset()
            return BudgetStatus(
                daily_limit=self._daily_limit,
                used=self._used,
                remaining=0.0 if self._daily_limit == 0 else self._daily_limit - self._used,
                reset_at=self._reset_at,
            )

    def _maybe_reset(self) -> None:
        """Start a new period if the reset instant has passed (caller holds the lock)."""
        now = self._clock()
        if now >= self._reset_at.timestamp():
            self._used = 0.0
            self._reset_at = next_utc_midnight(now)
            self._alerts.reset()
            logger.info(f"Daily budget reset; next reset at {self._reset_at.isoformat()}")
