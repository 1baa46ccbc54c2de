from datetime import date, datetime, timezone

import pytest

from life_planner.models import CoachingSession
from life_planner.plans import get_plan
from life_planner.repositories import (
    add_coaching_session,
    add_recurring_expense,
    ensure_user_stats,
    list_open_priority_expenses,
    list_wallet_history,
    update_user_stats,
)
from life_planner.waterfall import compute_requirement
from life_planner.wealth_service import FloorBreach, InsufficientFunds, WealthService

AS_OF = datetime(2026, 3, 1, tzinfo=timezone.utc)
TODAY = date(2026, 3, 1)


@pytest.fixture()
def wealth(db):
    return WealthService(db, "u1")


def _set_balance(db, amount):
    stats = ensure_user_stats(db, "u1")
    stats.wallet_balance = amount
    update_user_stats(db, stats)


def test_payout_moves_surplus_above_floor(db, wealth):
    _set_balance(db, 65000)
    assert wealth.payout_to_fund(TODAY) == 45000
    stats = wealth.stats()
    assert stats.wallet_balance == 20000
    assert stats.wealth_uni_fund == 45000
    entry = list_wallet_history(db, "u1")[0]
    assert (entry.type, entry.amount, entry.description) == ("OUT", -45000, "Uni Fund Contribution")


def test_payout_at_floor_is_refused(db, wealth):
    _set_balance(db, 20000)
    with pytest.raises(InsufficientFunds):
        wealth.payout_to_fund(TODAY)
    assert wealth.stats().wealth_uni_fund == 0


def test_log_expense_guards_floor(db, wealth):
    _set_balance(db, 25000)
    with pytest.raises(FloorBreach) as exc:
        wealth.log_expense(6000, "Dinner", today=TODAY)
    assert exc.value.remaining == 19000
    assert wealth.stats().wallet_balance == 25000

    stats = wealth.log_expense(6000, "Dinner", allow_floor_breach=True, today=TODAY)
    assert stats.wallet_balance == 19000
    assert list_wallet_history(db, "u1")[0].amount == -6000


def test_log_expense_rejects_non_positive(wealth):
    with pytest.raises(ValueError):
        wealth.log_expense(0, "Nothing")


def test_external_funds_go_to_fund(db, wealth):
    stats = wealth.add_external_funds(100000, today=TODAY)
    assert stats.wealth_uni_fund == 100000
    assert stats.wallet_balance == 0
    assert list_wallet_history(db, "u1")[0].type == "IN"


def test_switch_plan(wealth):
    assert wealth.switch_plan("Plan 03").active_uni_plan == "Plan 03"
    assert wealth.stats().active_uni_plan == "Plan 03"
    with pytest.raises(KeyError):
        wealth.switch_plan("Plan 99")


def test_dashboard_matches_waterfall(wealth):
    dash = wealth.dashboard(AS_OF, 385.0)
    expected = compute_requirement(get_plan("Plan 02"), 385.0, 0, AS_OF)
    assert dash.active_plan == "Plan 02"
    assert dash.required_monthly_rate == pytest.approx(expected.required_monthly_rate)
    assert dash.binding_obligation == expected.binding_obligation
    assert dash.plan_total == pytest.approx(813000)
    assert dash.safe_to_spend_monthly == pytest.approx(46775 - expected.required_monthly_rate)
    assert dash.variable_income_needed == pytest.approx(-dash.safe_to_spend_monthly)


def test_recommendation_uses_recent_coaching_income(db, wealth):
    assert wealth.dashboard(AS_OF, 385.0).recommended_plan == "Plan 03"
    for client in ("Savinu", "Umar", "Piers"):
        add_coaching_session(db, CoachingSession(None, "u1", "2026-02-20", client, 10000))
    # Outside the 30 day window
    add_coaching_session(db, CoachingSession(None, "u1", "2026-01-02", "Old", 90000))
    dash = wealth.dashboard(AS_OF, 385.0)
    assert dash.recent_variable_income == 30000
    assert dash.recommended_plan == "Plan 02"


def test_recurring_expenses_reduce_safe_to_spend(db, wealth):
    base = wealth.dashboard(AS_OF, 385.0).safe_to_spend_monthly
    add_recurring_expense(db, "u1", "Phone", 2500)
    dash = wealth.dashboard(AS_OF, 385.0)
    assert dash.recurring_total == 2500
    assert dash.safe_to_spend_monthly == pytest.approx(base - 2500)


def test_priority_expense_risk_check(db, wealth):
    with pytest.raises(InsufficientFunds):
        wealth.add_priority_expense("Laptop", 300000, date(2026, 5, 1), 10000, as_of=TODAY)
    assert list_open_priority_expenses(db, "u1") == []

    expense, forecast = wealth.add_priority_expense("Shoes", 20000, date(2026, 6, 1), 10000, as_of=TODAY)
    assert expense.id is not None
    assert forecast.at_risk is False
    assert forecast.projected_date == date(2026, 5, 1)


def test_dashboard_forecasts_open_priorities(db, wealth):
    wealth.add_priority_expense("Laptop", 300000, date(2026, 11, 1), 0, as_of=TODAY, allow_risk=True)
    dash = wealth.dashboard(AS_OF, 385.0)
    [(expense, forecast)] = dash.priority_forecasts
    assert expense.title == "Laptop"
    # Salary alone cannot cover the plan, so nothing is left over
    assert dash.safe_to_spend_monthly < 0
    assert forecast.at_risk is True


def test_dashboard_requirement_counts_wallet_balance(db, wealth):
    _set_balance(db, 500000)
    dash = wealth.dashboard(AS_OF, 385.0)
    expected = compute_requirement(get_plan("Plan 02"), 385.0, 500000, AS_OF)
    assert dash.balance == 500000
    assert dash.required_monthly_rate == pytest.approx(expected.required_monthly_rate)
    assert dash.required_monthly_rate == pytest.approx(24492.85, abs=0.01)
    # Outstanding is measured against the earmarked fund only
    assert dash.plan_outstanding == pytest.approx(dash.plan_total)


def test_dashboard_balance_adds_fund(db, wealth):
    _set_balance(db, 300000)
    wealth.add_external_funds(200000, today=TODAY)
    dash = wealth.dashboard(AS_OF, 385.0)
    expected = compute_requirement(get_plan("Plan 02"), 385.0, 500000, AS_OF)
    assert dash.balance == 500000
    assert dash.required_monthly_rate == pytest.approx(expected.required_monthly_rate)
    assert dash.plan_outstanding == pytest.approx(dash.plan_total - 200000)


def _failing_history(*args, **kwargs):
    raise RuntimeError("disk full")


def test_payout_rolls_back_when_history_write_fails(db, wealth, monkeypatch):
    _set_balance(db, 65000)
    monkeypatch.setattr("life_planner.wealth_service.add_wallet_history", _failing_history)
    with pytest.raises(RuntimeError):
        wealth.payout_to_fund(TODAY)
    stats = wealth.stats()
    assert stats.wallet_balance == 65000
    assert stats.wealth_uni_fund == 0


def test_log_expense_rolls_back_when_history_write_fails(db, wealth, monkeypatch):
    _set_balance(db, 65000)
    monkeypatch.setattr("life_planner.wealth_service.add_wallet_history", _failing_history)
    with pytest.raises(RuntimeError):
        wealth.log_expense(5000, "Groceries", today=TODAY)
    assert wealth.stats().wallet_balance == 65000
    assert db.query_all("SELECT id FROM expenses") == []
    monkeypatch.undo()
    assert wealth.log_expense(5000, "Groceries", today=TODAY).wallet_balance == 60000


def test_external_funds_roll_back_when_history_write_fails(db, wealth, monkeypatch):
    monkeypatch.setattr("life_planner.wealth_service.add_wallet_history", _failing_history)
    with pytest.raises(RuntimeError):
        wealth.add_external_funds(100000, today=TODAY)
    assert wealth.stats().wealth_uni_fund == 0


def test_coaching_earnings_by_month(db, wealth):
    assert wealth.coaching_earnings() == (0, [])
    for day, amount in (("2026-01-10", 8000), ("2026-02-10", 8000), ("2026-02-21", 6000)):
        add_coaching_session(db, CoachingSession(None, "u1", day, "Savinu", amount))
    total, months = wealth.coaching_earnings()
    assert total == 22000
    assert [(m.month, m.total, m.sessions) for m in months] == [("2026-02", 14000, 2), ("2026-01", 8000, 1)]
