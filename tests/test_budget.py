"""Tests for the daily budget ledger."""

from datetime import datetime, timezone

import pytest

from conftest import FakeClock
from llm_gateway.alerts import AlertDispatcher
from llm_gateway.budget import BudgetLedger, next_utc_midnight
from llm_gateway.errors import ErrorKind, GatewayError
from llm_gateway.models import AlertEvent


class TestBudgetChecks:
    """check_budget() and record_spending()."""

    def test_unlimited_budget_never_rejects(self) -> None:
        ledger = BudgetLedger(daily_limit=0)
        ledger.check_budget(1_000_000.0)
        ledger.record_spending(500.0)

        status = ledger.status()
        assert status.used == 500.0
        assert status.remaining == 0.0

    def test_check_does_not_reserve(self) -> None:
        ledger = BudgetLedger(daily_limit=10.0)
        ledger.check_budget(5.0)
        ledger.check_budget(5.0)
        assert ledger.used == 0.0

    def test_exceeding_limit_raises(self) -> None:
        ledger = BudgetLedger(daily_limit=10.0)
        ledger.record_spending(6.0)

        with pytest.raises(GatewayError) as exc_info:
            ledger.check_budget(5.0)

        err = exc_info.value
        assert err.kind is ErrorKind.BUDGET_EXCEEDED
        assert err.attempted == 11.0
        assert err.limit == 10.0
        assert "11.00" in str(err)

    def test_exactly_at_limit_is_allowed(self) -> None:
        ledger = BudgetLedger(daily_limit=10.0)
        ledger.record_spending(6.0)
        ledger.check_budget(4.0)

    def test_recording_may_overshoot(self) -> None:
        ledger = BudgetLedger(daily_limit=10.0)
        ledger.record_spending(12.0)

        status = ledger.status()
        assert status.used == 12.0
        assert status.remaining == -2.0

    def test_negative_cost_rejected(self) -> None:
        ledger = BudgetLedger(daily_limit=10.0)
        with pytest.raises(ValueError):
            ledger.record_spending(-1.0)

    def test_negative_limit_rejected(self) -> None:
        with pytest.raises(ValueError):
            BudgetLedger(daily_limit=-5.0)


class TestDailyReset:
    """Lazy reset at midnight UTC."""

    def test_next_utc_midnight(self) -> None:
        noon = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc).timestamp()
        assert next_utc_midnight(noon) == datetime(2026, 1, 16, tzinfo=timezone.utc)

    def test_midnight_itself_rolls_to_next_day(self) -> None:
        midnight = datetime(2026, 1, 16, tzinfo=timezone.utc).timestamp()
        assert next_utc_midnight(midnight) == datetime(2026, 1, 17, tzinfo=timezone.utc)

    def test_reset_at_is_next_midnight(self, clock: FakeClock) -> None:
        ledger = BudgetLedger(daily_limit=10.0, clock=clock)
        assert ledger.status().reset_at == datetime(2026, 1, 16, tzinfo=timezone.utc)

    def test_usage_resets_after_midnight(self, clock: FakeClock) -> None:
        ledger = BudgetLedger(daily_limit=10.0, clock=clock)
        ledger.record_spending(9.0)

        clock.advance(11 * 3600)
        assert ledger.used == 9.0

        clock.advance(3600)
        status = ledger.status()
        assert status.used == 0.0
        assert status.remaining == 10.0
        assert status.reset_at == datetime(2026, 1, 17, tzinfo=timezone.utc)

    def test_check_after_reset_passes(self, clock: FakeClock) -> None:
        ledger = BudgetLedger(daily_limit=10.0, clock=clock)
        ledger.record_spending(10.0)
        with pytest.raises(GatewayError):
            ledger.check_budget(1.0)

        clock.advance(24 * 3600)
        ledger.check_budget(1.0)

    def test_reset_rearms_alerts(self, clock: FakeClock) -> None:
        alerts = AlertDispatcher()
        received = []
        alerts.on(received.append)
        ledger = BudgetLedger(daily_limit=10.0, alerts=alerts, clock=clock)

        ledger.record_spending(5.0)
        clock.advance(24 * 3600)
        ledger.record_spending(5.0)

        assert [a.event for a in received] == [AlertEvent.WARNING, AlertEvent.WARNING]


class TestLedgerAlerts:
    """Alerts are evaluated after every commit."""

    def test_commit_fires_alert(self) -> None:
        alerts = AlertDispatcher()
        received = []
        alerts.on(received.append)
        ledger = BudgetLedger(daily_limit=10.0, alerts=alerts)

        ledger.record_spending(4.0)
        assert received == []

        ledger.record_spending(1.0)
        assert len(received) == 1
        assert received[0].event is AlertEvent.WARNING
        assert received[0].data.used == 5.0

    def test_unlimited_budget_never_alerts(self) -> None:
        alerts = AlertDispatcher()
        received = []
        alerts.on(received.append)
        ledger = BudgetLedger(daily_limit=0, alerts=alerts)

        ledger.record_spending(1000.0)
        assert received == []
