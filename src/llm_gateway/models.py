"""
llm-gateway: Data models for requests, results, budget state, and alerts.

All public value types used throughout the library are defined here.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class BackendKind(str, Enum):
    """Where a backend runs. Remote backends cost money, local ones are free."""

    REMOTE = "remote"
    LOCAL = "local"


class CompressionLevel(str, Enum):
    """How aggressively prompts are rewritten before being sent to a backend."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class CompletionOptions:
    """Per-request options.

    Attributes:
        model: Model identifier, overriding the backend's default model.
        temperature: Sampling temperature.
        max_tokens: Maximum tokens to generate.
        force_backend: Restrict the request to remote or local backends.

    Example::

        text = await gateway.complete(
            "Write a haiku",
            CompletionOptions(temperature=0.9, force_backend=BackendKind.LOCAL),
        )
    """

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    force_backend: BackendKind | None = None

    def cache_key(self) -> str:
        """Canonical serialization used to compare option sets in the cache."""
        data: dict[str, Any] = asdict(self)
        if self.force_backend is not None:
            data["force_backend"] = BackendKind(self.force_backend).value
        return json.dumps(data, sort_keys=True)


@dataclass(frozen=True)
class CompletionResult:
    """Result of a completion.

    Attributes:
        text: The generated text.
        token_count: Tokens used (prompt + completion), reported or estimated.
        cost: Cost in USD. Zero for local backends.
        backend_name: Name of the backend that produced the text.
        was_cached: True when the result was served from the response cache.
    """

    text: str
    token_count: int
    cost: float
    backend_name: str
    was_cached: bool = False


@dataclass(frozen=True)
class BudgetStatus:
    """Snapshot of the daily budget.

    Attributes:
        daily_limit: Daily limit in USD. 0 means unlimited.
        used: Amount spent since the last reset.
        remaining: ``daily_limit - used``, or 0 when the budget is unlimited.
        reset_at: Next reset instant (UTC midnight).
    """

    daily_limit: float
    used: float
    remaining: float
    reset_at: datetime


class AlertEvent(str, Enum):
    """Budget alert events, one per threshold."""

    WARNING = "budget_warning"
    URGENT = "budget_urgent"
    EXCEEDED = "budget_exceeded"


class AlertSeverity(str, Enum):
    """Alert severities, matching the thresholds that produce them."""

    WARNING = "warning"
    URGENT = "urgent"
    CRITICAL = "critical"


@dataclass(frozen=True)
class BudgetAlertData:
    """Budget numbers at the moment an alert fired."""

    daily_limit: float
    used: float
    remaining: float
    percentage: float
    reset_at: str


@dataclass(frozen=True)
class BudgetAlert:
    """A fired budget alert.

    ``to_dict()`` produces the JSON payload delivered to webhooks.
    """

    event: AlertEvent
    severity: AlertSeverity
    timestamp: str
    data: BudgetAlertData

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event.value,
            "timestamp": self.timestamp,
            "severity": self.severity.value,
            "data": {
                "dailyLimit": self.data.daily_limit,
                "used": self.data.used,
                "remaining": self.data.remaining,
                "percentage": self.data.percentage,
                "resetAt": self.data.reset_at,
            },
        }
