from __future__ import annotations

"""Repository helper functions for schedule and ledger records."""

import json
import sqlite3
from typing import Sequence

from .database_manager import DatabaseManager
from .models import (
    CoachingSession,
    FitnessLog,
    GeneratedEventRecord,
    MonthlyEarnings,
    PriorityExpense,
    UserStats,
    WalletHistoryEntry,
)


# --- Generic helpers -------------------------------------------------------

def _last_row_id(cur: sqlite3.Cursor) -> int:
    return int(cur.lastrowid)  # type: ignore[arg-type]


def _row_to_event(r: sqlite3.Row) -> GeneratedEventRecord:
    return GeneratedEventRecord(
        id=r["id"],
        user_id=r["user_id"],
        series_id=r["series_id"],
        date=r["date"],
        activity=r["activity"],
        type=r["type"],
        time_range=r["time_range"],
        location=r["location"],
        is_priority=bool(r["is_priority"]),
        is_goal=bool(r["is_goal"]),
        meta=json.loads(r["meta"] or "{}"),
        end_date=r["end_date"],
        completed=bool(r["completed"]),
        created_at=r["created_at"],
    )


# --- Daily schedule ---------------------------------------------------------

_EVENT_COLUMNS = (
    "user_id, series_id, date, activity, type, time_range, location, "
    "is_priority, is_goal, meta, end_date, completed"
)


def _event_params(e: GeneratedEventRecord) -> tuple:
    return (
        e.user_id,
        e.series_id,
        e.date,
        e.activity,
        e.type,
        e.time_range,
        e.location,
        int(e.is_priority),
        int(e.is_goal),
        json.dumps(e.meta, ensure_ascii=False),
        e.end_date,
        int(e.completed),
    )


def insert_event_records(db: DatabaseManager, records: Sequence[GeneratedEventRecord]) -> list[GeneratedEventRecord]:
    """Insert a generated batch in one transaction and fill in ids."""
    if not records:
        return []
    with db.transaction() as conn:
        for e in records:
            cur = conn.execute(
                f"INSERT INTO daily_schedule ({_EVENT_COLUMNS}) VALUES (?,?,?,?,?,?,?,?,?,?,?,?)",
                _event_params(e),
            )
            e.id = _last_row_id(cur)
    ids = [e.id for e in records]
    placeholders = ",".join("?" for _ in ids)
    created = {
        r["id"]: r["created_at"]
        for r in db.query_all(f"SELECT id, created_at FROM daily_schedule WHERE id IN ({placeholders})", ids)
    }
    for e in records:
        e.created_at = created.get(e.id)
    return list(records)


def get_event(db: DatabaseManager, event_id: int) -> GeneratedEventRecord | None:
    row = db.query_one("SELECT * FROM daily_schedule WHERE id=?", (event_id,))
    if not row:
        return None
    return _row_to_event(row)


def list_events_for_date(db: DatabaseManager, user_id: str | None, date: str) -> list[GeneratedEventRecord]:
    rows = db.query_all(
        "SELECT * FROM daily_schedule WHERE user_id IS ? AND date=? ORDER BY time_range, id",
        (user_id, date),
    )
    return [_row_to_event(r) for r in rows]


def list_events_between(db: DatabaseManager, user_id: str | None, start: str, end: str) -> list[GeneratedEventRecord]:
    rows = db.query_all(
        "SELECT * FROM daily_schedule WHERE user_id IS ? AND date BETWEEN ? AND ? ORDER BY date, time_range, id",
        (user_id, start, end),
    )
    return [_row_to_event(r) for r in rows]


def list_series(db: DatabaseManager, series_id: str) -> list[GeneratedEventRecord]:
    rows = db.query_all(
        "SELECT * FROM daily_schedule WHERE series_id=? ORDER BY date, id", (series_id,)
    )
    return [_row_to_event(r) for r in rows]


def set_completed(db: DatabaseManager, event_id: int, completed: bool = True) -> None:
    db.execute("UPDATE daily_schedule SET completed=? WHERE id=?", (int(completed), event_id))


def update_event(db: DatabaseManager, event: GeneratedEventRecord) -> None:
    assert event.id is not None, "Event must have id to update"
    db.execute(
        """
        UPDATE daily_schedule
        SET date=?, activity=?, type=?, time_range=?, location=?, is_priority=?,
            is_goal=?, meta=?, end_date=?, completed=?
        WHERE id=?
        """,
        (
            event.date,
            event.activity,
            event.type,
            event.time_range,
            event.location,
            int(event.is_priority),
            int(event.is_goal),
            json.dumps(event.meta, ensure_ascii=False),
            event.end_date,
            int(event.completed),
            event.id,
        ),
    )


def update_series_from(db: DatabaseManager, event: GeneratedEventRecord) -> int:
    """Copy the template fields of ``event`` onto it and every later record of its series.

    Dates and completion flags are left alone. Returns the number of rows touched.
    """
    assert event.series_id is not None, "Event must belong to a series"
    cur = db.execute(
        """
        UPDATE daily_schedule
        SET activity=?, type=?, time_range=?, location=?, is_priority=?, is_goal=?, meta=?, end_date=?
        WHERE series_id=? AND date>=?
        """,
        (
            event.activity,
            event.type,
            event.time_range,
            event.location,
            int(event.is_priority),
            int(event.is_goal),
            json.dumps(event.meta, ensure_ascii=False),
            event.end_date,
            event.series_id,
            event.date,
        ),
    )
    return cur.rowcount


def delete_event(db: DatabaseManager, event_id: int) -> None:
    db.execute("DELETE FROM daily_schedule WHERE id=?", (event_id,))


def delete_series_from(db: DatabaseManager, series_id: str, date: str) -> int:
    cur = db.execute(
        "DELETE FROM daily_schedule WHERE series_id=? AND date>=?", (series_id, date)
    )
    return cur.rowcount


# --- User stats -------------------------------------------------------------

def get_user_stats(db: DatabaseManager, user_id: str) -> UserStats | None:
    row = db.query_one("SELECT * FROM user_stats WHERE user_id=?", (user_id,))
    if not row:
        return None
    return UserStats(
        user_id=row["user_id"],
        wallet_balance=row["wallet_balance"],
        wallet_salary=row["wallet_salary"],
        wealth_uni_fund=row["wealth_uni_fund"],
        active_uni_plan=row["active_uni_plan"],
    )


def ensure_user_stats(db: DatabaseManager, user_id: str) -> UserStats:
    stats = get_user_stats(db, user_id)
    if stats is not None:
        return stats
    stats = UserStats(user_id=user_id)
    db.execute(
        """
        INSERT INTO user_stats (user_id, wallet_balance, wallet_salary, wealth_uni_fund, active_uni_plan)
        VALUES (?,?,?,?,?)
        """,
        (stats.user_id, stats.wallet_balance, stats.wallet_salary, stats.wealth_uni_fund, stats.active_uni_plan),
    )
    return stats


def update_user_stats(db: DatabaseManager, stats: UserStats) -> None:
    db.execute(
        """
        UPDATE user_stats
        SET wallet_balance=?, wallet_salary=?, wealth_uni_fund=?, active_uni_plan=?
        WHERE user_id=?
        """,
        (stats.wallet_balance, stats.wallet_salary, stats.wealth_uni_fund, stats.active_uni_plan, stats.user_id),
    )


# --- Wallet history ---------------------------------------------------------

def add_wallet_history(db: DatabaseManager, entry: WalletHistoryEntry) -> WalletHistoryEntry:
    cur = db.execute(
        "INSERT INTO wallet_history (user_id, date, amount, description, type) VALUES (?,?,?,?,?)",
        (entry.user_id, entry.date, entry.amount, entry.description, entry.type),
    )
    entry.id = _last_row_id(cur)
    row = db.query_one("SELECT created_at FROM wallet_history WHERE id=?", (entry.id,))
    if row:
        entry.created_at = row["created_at"]
    return entry


def list_wallet_history(db: DatabaseManager, user_id: str) -> list[WalletHistoryEntry]:
    rows = db.query_all(
        "SELECT * FROM wallet_history WHERE user_id=? ORDER BY date DESC, id DESC", (user_id,)
    )
    return [
        WalletHistoryEntry(
            id=r["id"],
            user_id=r["user_id"],
            date=r["date"],
            amount=r["amount"],
            description=r["description"],
            type=r["type"],
            created_at=r["created_at"],
        )
        for r in rows
    ]


# --- Coaching sessions ------------------------------------------------------

def add_coaching_session(db: DatabaseManager, session: CoachingSession) -> CoachingSession:
    cur = db.execute(
        """
        INSERT INTO coaching_sessions (user_id, event_id, date, client_name, amount, location, paid)
        VALUES (?,?,?,?,?,?,?)
        """,
        (
            session.user_id,
            session.event_id,
            session.date,
            session.client_name,
            session.amount,
            session.location,
            int(session.paid),
        ),
    )
    session.id = _last_row_id(cur)
    return session


def list_coaching_sessions(db: DatabaseManager, user_id: str) -> list[CoachingSession]:
    rows = db.query_all(
        "SELECT * FROM coaching_sessions WHERE user_id=? ORDER BY date DESC, id DESC", (user_id,)
    )
    return [
        CoachingSession(
            id=r["id"],
            user_id=r["user_id"],
            date=r["date"],
            client_name=r["client_name"],
            amount=r["amount"],
            location=r["location"],
            paid=bool(r["paid"]),
            event_id=r["event_id"],
            created_at=r["created_at"],
        )
        for r in rows
    ]


def sum_coaching_income_since(db: DatabaseManager, user_id: str, since: str) -> float:
    row = db.query_one(
        "SELECT COALESCE(SUM(amount), 0) AS total FROM coaching_sessions WHERE user_id=? AND date>=?",
        (user_id, since),
    )
    return float(row["total"]) if row else 0.0


def sum_coaching_income_by_month(db: DatabaseManager, user_id: str) -> list[MonthlyEarnings]:
    """Earnings grouped by ``YYYY-MM``, newest month first."""
    rows = db.query_all(
        """
        SELECT substr(date, 1, 7) AS month, SUM(amount) AS total, COUNT(*) AS sessions
        FROM coaching_sessions
        WHERE user_id=?
        GROUP BY month
        ORDER BY month DESC
        """,
        (user_id,),
    )
    return [MonthlyEarnings(month=r["month"], total=float(r["total"]), sessions=r["sessions"]) for r in rows]


# --- Expenses ---------------------------------------------------------------

def add_expense(db: DatabaseManager, user_id: str, date: str, amount: float, reason: str) -> int:
    cur = db.execute(
        "INSERT INTO expenses (user_id, date, amount, reason) VALUES (?,?,?,?)",
        (user_id, date, amount, reason),
    )
    return _last_row_id(cur)


def add_recurring_expense(db: DatabaseManager, user_id: str, title: str, amount: float) -> int:
    cur = db.execute(
        "INSERT INTO recurring_expenses (user_id, title, amount) VALUES (?,?,?)",
        (user_id, title, amount),
    )
    return _last_row_id(cur)


def sum_recurring_expenses(db: DatabaseManager, user_id: str) -> float:
    row = db.query_one(
        "SELECT COALESCE(SUM(amount), 0) AS total FROM recurring_expenses WHERE user_id=?",
        (user_id,),
    )
    return float(row["total"]) if row else 0.0


def create_priority_expense(db: DatabaseManager, expense: PriorityExpense) -> PriorityExpense:
    cur = db.execute(
        "INSERT INTO priority_expenses (user_id, title, amount, target_date, is_fulfilled) VALUES (?,?,?,?,?)",
        (expense.user_id, expense.title, expense.amount, expense.target_date, int(expense.is_fulfilled)),
    )
    expense.id = _last_row_id(cur)
    row = db.query_one("SELECT created_at FROM priority_expenses WHERE id=?", (expense.id,))
    if row:
        expense.created_at = row["created_at"]
    return expense


def list_open_priority_expenses(db: DatabaseManager, user_id: str) -> list[PriorityExpense]:
    rows = db.query_all(
        "SELECT * FROM priority_expenses WHERE user_id=? AND is_fulfilled=0 ORDER BY target_date",
        (user_id,),
    )
    return [
        PriorityExpense(
            id=r["id"],
            user_id=r["user_id"],
            title=r["title"],
            amount=r["amount"],
            target_date=r["target_date"],
            is_fulfilled=bool(r["is_fulfilled"]),
            created_at=r["created_at"],
        )
        for r in rows
    ]


def mark_priority_expense_fulfilled(db: DatabaseManager, expense_id: int) -> None:
    db.execute("UPDATE priority_expenses SET is_fulfilled=1 WHERE id=?", (expense_id,))


# --- Fitness logs ---------------------------------------------------------

def _row_to_fitness_log(r: sqlite3.Row) -> FitnessLog:
    return FitnessLog(
        id=r["id"],
        user_id=r["user_id"],
        phase=r["phase"],
        date=r["date"],
        description=r["description"],
        distance=r["distance"],
        completed=bool(r["completed"]),
        created_at=r["created_at"],
    )


def insert_fitness_logs(db: DatabaseManager, logs: Sequence[FitnessLog]) -> list[FitnessLog]:
    with db.transaction() as conn:
        for log in logs:
            cur = conn.execute(
                "INSERT INTO fitness_logs (user_id, phase, date, description, distance, completed) VALUES (?,?,?,?,?,?)",
                (log.user_id, log.phase, log.date, log.description, log.distance, int(log.completed)),
            )
            log.id = _last_row_id(cur)
    return list(logs)


def get_fitness_log(db: DatabaseManager, log_id: int) -> FitnessLog | None:
    row = db.query_one("SELECT * FROM fitness_logs WHERE id=?", (log_id,))
    return _row_to_fitness_log(row) if row else None


def list_fitness_logs(db: DatabaseManager, user_id: str) -> list[FitnessLog]:
    rows = db.query_all("SELECT * FROM fitness_logs WHERE user_id=? ORDER BY date, id", (user_id,))
    return [_row_to_fitness_log(r) for r in rows]


def set_fitness_log_completed(db: DatabaseManager, log_id: int, completed: bool = True) -> None:
    db.execute("UPDATE fitness_logs SET completed=? WHERE id=?", (int(completed), log_id))


def complete_fitness_logs_on(db: DatabaseManager, user_id: str, date: str) -> int:
    cur = db.execute(
        "UPDATE fitness_logs SET completed=1 WHERE user_id=? AND date=?", (user_id, date)
    )
    return cur.rowcount


# --- Settings ---------------------------------------------------------------

def get_setting(db: DatabaseManager, key: str) -> str | None:
    row = db.query_one("SELECT value FROM settings WHERE key=?", (key,))
    return row["value"] if row else None


def set_setting(db: DatabaseManager, key: str, value: str) -> None:
    db.execute(
        "INSERT INTO settings(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
        (key, value),
    )


__all__ = [
    # Schedule
    "insert_event_records",
    "get_event",
    "list_events_for_date",
    "list_events_between",
    "list_series",
    "set_completed",
    "update_event",
    "update_series_from",
    "delete_event",
    "delete_series_from",
    # User stats
    "get_user_stats",
    "ensure_user_stats",
    "update_user_stats",
    # Ledger
    "add_wallet_history",
    "list_wallet_history",
    "add_coaching_session",
    "list_coaching_sessions",
    "sum_coaching_income_since",
    "sum_coaching_income_by_month",
    "add_expense",
    "add_recurring_expense",
    "sum_recurring_expenses",
    "create_priority_expense",
    "list_open_priority_expenses",
    "mark_priority_expense_fulfilled",
    # Fitness
    "insert_fitness_logs",
    "get_fitness_log",
    "list_fitness_logs",
    "set_fitness_log_completed",
    "complete_fitness_logs_on",
    # Settings
    "get_setting",
    "set_setting",
]
