"""
llm-gateway: Budget threshold alerts.

Watches spend against the daily limit and fires at most one alert per
threshold per budget period. Thresholds are evaluated from highest to lowest
and a single check fires at most one alert.

Thresholds (defaults):
    critical  >= 100%  -> budget_exceeded
    urgent    >=  80%  -> budget_urgent
    warning   >=  50%  -> budget_warning

Listeners are isolated: a listener that raises is logged and skipped, and
never affects other listeners or the caller of check_budget().
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from llm_gateway.models import AlertEvent, AlertSeverity, BudgetAlert, BudgetAlertData

logger = logging.getLogger(__name__)


class AlertListener(Protocol):
    """Callable invoked with every fired alert."""

    def __call__(self, alert: BudgetAlert) -> None: ...


@dataclass(frozen=True)
class AlertThresholds:
    """Budget usage percentages that trigger alerts.

    Attributes:
        warning: First alert level (default 50%).
        urgent: Second alert level (default 80%).
        critical: Budget exhausted (default 100%).
    """

    warning: float = 50.0
    urgent: float = 80.0
    critical: float = 100.0

    def __post_init__(self) -> None:
        if not 0 < self.warning < self.urgent <= self.critical:
            raise ValueError(
                "alert thresholds must satisfy 0 < warning < urgent <= critical, "
                f"got {self.warning}/{self.urgent}/{self.critical}"
            )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AlertDispatcher:
    """Threshold-crossing detector with at-most-once firing per period.

    Thread-safe: the fired set and listener list are guarded by a lock;
    listeners are called outside it.

    Example::

        alerts = AlertDispatcher()
        alerts.on(lambda alert: print(alert.event.value, alert.data.percentage))

        alerts.check_budget(limit=10.0, used=5.0, reset_at=reset_at)  # budget_warning
        alerts.check_budget(limit=10.0, used=6.0, reset_at=reset_at)  # nothing
        alerts.reset()  # new budget period
    """

    def __init__(
        self,
        thresholds: AlertThresholds | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.thresholds = thresholds or AlertThresholds()
        self._clock = clock
        self._fired: set[AlertSeverity] = set()
        self._listeners: list[AlertListener] = []
        self._lock = threading.Lock()

    @property
    def fired(self) -> frozenset[AlertSeverity]:
        """Thresholds that already fired in the current period."""
        with self._lock:
            return frozenset(self._fired)

    def on(self, listener: AlertListener) -> None:
        """Register a listener. Registering the same listener twice is a no-op."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def off(self, listener: AlertListener) -> None:
        """Remove a listener if registered."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def reset(self) -> None:
        """Re-arm every threshold (called when the budget period resets)."""
        with self._lock:
            self._fired.clear()

    def check_budget(
        self, limit: float, used: float, reset_at: datetime
    ) -> BudgetAlert | None:
        """Fire the highest crossed threshold that has not fired yet.

        Args:
            limit: Daily limit. 0 means unlimited and never alerts.
            used: Amount spent so far this period.
            reset_at: When the current period ends.

        Returns:
            The fired alert, or None if nothing fired.
        """
        if limit == 0:
            return None

        percentage = used / limit * 100

        with self._lock:
            levels = (
                (self.thresholds.critical, AlertSeverity.CRITICAL, AlertEvent.EXCEEDED),
                (self.thresholds.urgent, AlertSeverity.URGENT, AlertEvent.URGENT),
                (self.thresholds.warning, AlertSeverity.WARNING, AlertEvent.WARNING),
            )
            for threshold, severity, event in levels:
                if percentage >= threshold and severity not in self._fired:
                    self._fired.add(severity)
                    break
            else:
                return None
            listeners = list(self._listeners)

        alert = BudgetAlert(
            event=event,
            severity=severity,
            timestamp=self._clock().isoformat(),
            data=BudgetAlertData(
                daily_limit=limit,
                used=used,
                remaining=limit - used,
                percentage=percentage,
                reset_at=reset_at.isoformat(),
            ),
        )
        logger.info(
            f"Budget alert {event.value}: {percentage:.1f}% of ${limit:.2f} used"
        )
        self._dispatch(alert, listeners)
        return alert

    @staticmethod
    def _dispatch(alert: BudgetAlert, listeners: list[AlertListener]) -> None:
        for listener in listeners:
            try:
                listener(alert)
            except Exception:
                logger.exception(f"Alert listener failed for {alert.event.value}")
