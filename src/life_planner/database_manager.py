from __future__ import annotations

"""SQLite record store and migrations for the life planner.

Each schema change is a function in the MIGRATIONS list; applied versions are
tracked in the ``schema_migrations`` table so ``init_db`` is idempotent.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import sqlite3
from typing import Callable, Iterable, Iterator


@dataclass(slots=True)
class DBConfig:
    path: Path
    pragmas: tuple[tuple[str, str | int], ...] = (
        ("journal_mode", "WAL"),
        ("foreign_keys", 1),
        ("synchronous", "NORMAL"),
    )


class DatabaseManager:
    def __init__(self, config: DBConfig):
        self.config = config
        self._conn: sqlite3.Connection | None = None
        self._tx_depth = 0

    # --- Low level helpers -------------------------------------------------
    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self.config.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.config.path)
            self._conn.row_factory = sqlite3.Row
            self._apply_pragmas(self._conn)
        return self._conn

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        cur = conn.cursor()
        for key, value in self.config.pragmas:
            cur.execute(f"PRAGMA {key}={value}")
        cur.close()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # --- Migration system --------------------------------------------------
    def init_db(self) -> None:
        conn = self.connect()
        with conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
                )
                """
            )

        applied_versions = self._get_applied_versions()
        for version, migration_fn in enumerate(MIGRATIONS, start=1):
            if version in applied_versions:
                continue
            with conn:
                migration_fn(conn)
                conn.execute(
                    "INSERT INTO schema_migrations (version) VALUES (?)", (version,)
                )

    def _get_applied_versions(self) -> set[int]:
        conn = self.connect()
        cur = conn.execute("SELECT version FROM schema_migrations")
        return {row[0] for row in cur.fetchall()}

    # --- Convenience -------------------------------------------------------
    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on error.

        Nested calls join the outermost transaction, so repository helpers used
        inside a service-level ``transaction()`` commit or roll back together.
        """
        conn = self.connect()
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield conn
            finally:
                self._tx_depth -= 1
            return
        self._tx_depth = 1
        try:
            with conn:
                yield conn
        finally:
            self._tx_depth = 0

    def execute(self, sql: str, params: Iterable | None = None) -> sqlite3.Cursor:
        with self.transaction() as conn:
            return conn.execute(sql, tuple(params or ()))

    def executemany(self, sql: str, seq_of_params: Iterable[Iterable]) -> None:
        with self.transaction() as conn:
            conn.executemany(sql, seq_of_params)

    def query_all(self, sql: str, params: Iterable | None = None) -> list[sqlite3.Row]:
        cur = self.connect().execute(sql, tuple(params or ()))
        return cur.fetchall()

    def query_one(self, sql: str, params: Iterable | None = None) -> sqlite3.Row | None:
        cur = self.connect().execute(sql, tuple(params or ()))
        return cur.fetchone()


# --- Migration definitions --------------------------------------------------

def migration_001_create_schedule(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE daily_schedule (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT,
            series_id TEXT,
            date TEXT NOT NULL,
            activity TEXT NOT NULL,
            type TEXT NOT NULL,
            time_range TEXT NOT NULL DEFAULT 'Anytime',
            location TEXT NOT NULL DEFAULT '',
            is_priority INTEGER NOT NULL DEFAULT 0,
            is_goal INTEGER NOT NULL DEFAULT 0,
            meta TEXT NOT NULL DEFAULT '{}',
            end_date TEXT,
            completed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );

        CREATE INDEX idx_daily_schedule_user_date ON daily_schedule(user_id, date);
        CREATE INDEX idx_daily_schedule_series ON daily_schedule(series_id, date);
        """
    )


def migration_002_create_ledger(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE user_stats (
            user_id TEXT PRIMARY KEY,
            wallet_balance REAL NOT NULL DEFAULT 0,
            wallet_salary REAL NOT NULL DEFAULT 46775,
            wealth_uni_fund REAL NOT NULL DEFAULT 0,
            active_uni_plan TEXT NOT NULL DEFAULT 'Plan 02'
        );

        CREATE TABLE wallet_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            amount REAL NOT NULL,
            description TEXT NOT NULL,
            type TEXT NOT NULL CHECK (type IN ('IN', 'OUT')),
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );

        CREATE TABLE coaching_sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            event_id INTEGER REFERENCES daily_schedule(id) ON DELETE SET NULL,
            date TEXT NOT NULL,
            client_name TEXT NOT NULL,
            amount REAL NOT NULL,
            location TEXT NOT NULL DEFAULT '',
            paid INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );

        CREATE TABLE expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            amount REAL NOT NULL,
            reason TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );

        CREATE TABLE recurring_expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            amount REAL NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );

        CREATE TABLE priority_expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            amount REAL NOT NULL,
            target_date TEXT NOT NULL,
            is_fulfilled INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );

        CREATE INDEX idx_wallet_history_user ON wallet_history(user_id, date);
        CREATE INDEX idx_coaching_sessions_user_date ON coaching_sessions(user_id, date);
        CREATE INDEX idx_priority_expenses_target ON priority_expenses(user_id, target_date);
        """
    )


def migration_003_add_settings_table(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def migration_004_create_fitness_logs(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE fitness_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            phase TEXT NOT NULL,
            date TEXT NOT NULL,
            description TEXT NOT NULL,
            distance TEXT NOT NULL DEFAULT '',
            completed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        );

        CREATE INDEX idx_fitness_logs_user_date ON fitness_logs(user_id, date);
        """
    )


MIGRATIONS: list[Callable[[sqlite3.Connection], None]] = [
    migration_001_create_schedule,
    migration_002_create_ledger,
    migration_003_add_settings_table,
    migration_004_create_fitness_logs,
]

__all__ = [
    "DBConfig",
    "DatabaseManager",
]
