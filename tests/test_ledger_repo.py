import pytest

from life_planner.models import CoachingSession, PriorityExpense, WalletHistoryEntry
from life_planner.repositories import (
    add_coaching_session,
    add_expense,
    add_recurring_expense,
    add_wallet_history,
    create_priority_expense,
    ensure_user_stats,
    get_setting,
    get_user_stats,
    list_coaching_sessions,
    list_open_priority_expenses,
    list_wallet_history,
    mark_priority_expense_fulfilled,
    set_setting,
    sum_coaching_income_by_month,
    sum_coaching_income_since,
    sum_recurring_expenses,
    update_user_stats,
)


def test_init_idempotent(db):
    # Second call should not raise and should not duplicate migrations
    db.init_db()
    rows = db.query_all("SELECT COUNT(*) as c FROM schema_migrations")
    assert rows[0]["c"] == 4


def test_user_stats_defaults_and_update(db):
    assert get_user_stats(db, "u1") is None
    stats = ensure_user_stats(db, "u1")
    assert stats.wallet_salary == 46775
    assert stats.active_uni_plan == "Plan 02"
    stats.wallet_balance = 52000.5
    stats.wealth_uni_fund = 1000
    update_user_stats(db, stats)
    again = ensure_user_stats(db, "u1")
    assert again.wallet_balance == 52000.5
    assert again.wealth_uni_fund == 1000


def test_wallet_history(db):
    add_wallet_history(db, WalletHistoryEntry(None, "u1", "2026-02-01", 8000, "Coaching: Umar", "IN"))
    e = add_wallet_history(db, WalletHistoryEntry(None, "u1", "2026-02-03", -2500, "Groceries", "OUT"))
    assert e.id is not None and e.created_at
    history = list_wallet_history(db, "u1")
    assert [h.description for h in history] == ["Groceries", "Coaching: Umar"]


def test_coaching_income_window(db):
    for day, amount in (("2026-01-10", 8000), ("2026-02-10", 8000), ("2026-02-20", 6000)):
        add_coaching_session(db, CoachingSession(None, "u1", day, "Savinu", amount))
    assert sum_coaching_income_since(db, "u1", "2026-02-01") == 14000
    assert sum_coaching_income_since(db, "u2", "2026-01-01") == 0
    assert len(list_coaching_sessions(db, "u1")) == 3


def test_expenses_and_recurring(db):
    assert add_expense(db, "u1", "2026-02-01", 1200, "Lunch") > 0
    add_recurring_expense(db, "u1", "Phone", 1500)
    add_recurring_expense(db, "u1", "Internet", 4500.5)
    assert sum_recurring_expenses(db, "u1") == 6000.5
    assert sum_recurring_expenses(db, "nobody") == 0


def test_priority_expenses_ordered_and_fulfilled(db):
    late = create_priority_expense(db, PriorityExpense(None, "u1", "Laptop", 350000, "2026-11-01"))
    create_priority_expense(db, PriorityExpense(None, "u1", "Shoes", 30000, "2026-05-01"))
    assert [p.title for p in list_open_priority_expenses(db, "u1")] == ["Shoes", "Laptop"]
    mark_priority_expense_fulfilled(db, late.id)
    assert [p.title for p in list_open_priority_expenses(db, "u1")] == ["Shoes"]


def test_settings(db):
    assert get_setting(db, "k") is None
    set_setting(db, "k", "1")
    set_setting(db, "k", "2")
    assert get_setting(db, "k") == "2"


def test_coaching_income_by_month(db):
    for day, amount in (("2026-01-10", 8000), ("2026-03-02", 8000), ("2026-03-20", 6000), ("2026-02-10", 8000)):
        add_coaching_session(db, CoachingSession(None, "u1", day, "Umar", amount))
    add_coaching_session(db, CoachingSession(None, "u2", "2026-03-05", "Piers", 8000))
    months = sum_coaching_income_by_month(db, "u1")
    assert [m.month for m in months] == ["2026-03", "2026-02", "2026-01"]
    assert [(m.total, m.sessions) for m in months] == [(14000, 2), (8000, 1), (8000, 1)]
    assert sum_coaching_income_by_month(db, "nobody") == []


def test_nested_transaction_rolls_back_together(db):
    set_setting(db, "kept", "1")
    with pytest.raises(RuntimeError):
        with db.transaction():
            set_setting(db, "k", "1")
            with db.transaction():
                set_setting(db, "inner", "1")
            raise RuntimeError("abort")
    assert get_setting(db, "k") is None
    assert get_setting(db, "inner") is None
    assert get_setting(db, "kept") == "1"
    # Depth is reset, so later writes still commit on their own
    set_setting(db, "after", "1")
    assert get_setting(db, "after") == "1"
