"""
llm-gateway: Error type shared by every component.

A single exception class carries a ``kind`` tag plus the fields that matter
for that kind, so callers branch on ``err.kind`` instead of on subclasses::

    try:
        text = await gateway.complete("Summarize this")
    except GatewayError as err:
        if err.kind is ErrorKind.BUDGET_EXCEEDED:
            print(f"Over budget: {err.attempted:.2f} / {err.limit:.2f}")
        elif err.kind is ErrorKind.PROVIDER_UNAVAILABLE:
            for failure in err.failures:
                print(failure.backend, failure.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """What went wrong."""

    CONFIGURATION = "configuration"  # Fatal, raised at construction time
    BUDGET_EXCEEDED = "budget_exceeded"  # Aborts the request, never retried
    PROVIDER_UNAVAILABLE = "provider_unavailable"  # Triggers failover
    CACHE = "cache"  # Degrades to a cache miss


@dataclass(frozen=True)
class BackendFailure:
    """One backend's failure while serving a request."""

    backend: str
    message: str

    def __str__(self) -> str:
        return f"{self.backend}: {self.message}"


class GatewayError(Exception):
    """Tagged gateway error.

    Attributes:
        kind: The error category.
        attempted: Spend total the request would have reached (budget errors).
        limit: The daily limit that would have been exceeded (budget errors).
        backend: Name of the failing backend, or "all" when every candidate failed.
        failures: Per-backend failures collected during failover.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        attempted: float | None = None,
        limit: float | None = None,
        backend: str | None = None,
        failures: list[BackendFailure] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.attempted = attempted
        self.limit = limit
        self.backend = backend
        self.failures: list[BackendFailure] = list(failures or [])

    def __repr__(self) -> str:
        return f"GatewayError(kind={self.kind.value!r}, message={self.message!r})"

    @classmethod
    def configuration(cls, detail: str) -> GatewayError:
        return cls(ErrorKind.CONFIGURATION, f"Configuration error: {detail}")

    @classmethod
    def budget_exceeded(cls, attempted: float, limit: float) -> GatewayError:
        return cls(
            ErrorKind.BUDGET_EXCEEDED,
            f"Daily budget exceeded: ${attempted:.2f} / ${limit:.2f}. "
            "Enable local fallback to continue with free local models, "
            "or increase your daily budget.",
            attempted=attempted,
            limit=limit,
        )

    @classmethod
    def provider_unavailable(
        cls,
        backend: str,
        detail: str | None = None,
        failures: list[BackendFailure] | None = None,
    ) -> GatewayError:
        if failures:
            details = "; ".join(str(f) for f in failures)
            message = f"Provider unavailable: {backend}. All providers failed. Errors: {details}"
        elif detail:
            message = f"Provider unavailable: {backend}. {detail}"
        else:
            message = (
                f"Provider unavailable: {backend}. "
                "Check your configuration and network connection."
            )
        return cls(
            ErrorKind.PROVIDER_UNAVAILABLE,
            message,
            backend=backend,
            failures=failures,
        )

    @classmethod
    def cache(cls, detail: str) -> GatewayError:
        return cls(ErrorKind.CACHE, f"Cache error: {detail}")
