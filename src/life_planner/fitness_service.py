from __future__ import annotations

"""Half marathon training plan: seeding, run toggles and the next session.

The stored logs are the source of truth once a user has any; editing
TRAINING_PLAN later does not rewrite existing rows.
"""

from datetime import date
import logging
from typing import Optional

from .database_manager import DatabaseManager
from .models import FitnessLog, GeneratedEventRecord
from .repositories import (
    complete_fitness_logs_on,
    get_fitness_log,
    insert_fitness_logs,
    list_fitness_logs,
    set_fitness_log_completed,
)

logger = logging.getLogger(__name__)

PHYSICAL_TYPE = "PHYSICAL"
RUN_MARKER = "RUN"
RACE_DATE = date(2026, 4, 26)

# (phase, date, description, distance)
TRAINING_PLAN: tuple[tuple[str, str, str, str], ...] = (
    ("Base", "2026-02-17", "Easy Run", "3-4km"),
    ("Base", "2026-02-19", "Run/Walk", "3-4km"),
    ("Base", "2026-02-21", "Long Run", "5-8km"),
    ("Base", "2026-02-24", "Easy Run", "3-4km"),
    ("Base", "2026-02-26", "Run/Walk", "3-4km"),
    ("Base", "2026-02-28", "Long Run", "5-8km"),
    ("Base", "2026-03-03", "Easy Run", "3-4km"),
    ("Base", "2026-03-05", "Run/Walk", "3-4km"),
    ("Base", "2026-03-07", "Long Run", "5-8km"),
    ("Build", "2026-03-10", "Steady Run", "4-5km"),
    ("Build", "2026-03-12", "Mod Intensity", "5-6km"),
    ("Build", "2026-03-14", "Long Run", "10-12km"),
    ("Build", "2026-03-17", "Steady Run", "4-5km"),
    ("Build", "2026-03-19", "Mod Intensity", "5-6km"),
    ("Build", "2026-03-21", "Long Run", "10-12km"),
    ("Build", "2026-03-24", "Steady Run", "4-5km"),
    ("Build", "2026-03-26", "Mod Intensity", "5-6km"),
    ("Build", "2026-03-28", "Long Run", "10-12km"),
    ("Peak", "2026-03-31", "Tempo", "5-6km"),
    ("Peak", "2026-04-02", "Intervals", "7km"),
    ("Peak", "2026-04-04", "Race Sim", "15-18km"),
    ("Peak", "2026-04-07", "Tempo", "5-6km"),
    ("Peak", "2026-04-09", "Intervals", "7km"),
    ("Peak", "2026-04-11", "Race Sim", "15-18km"),
    ("Taper", "2026-04-14", "Easy", "5km"),
    ("Taper", "2026-04-16", "Easy", "4km"),
    ("Taper", "2026-04-18", "Short", "3km"),
    ("RACE", RACE_DATE.isoformat(), "HALF MARATHON", "21.1km"),
)


def is_run_block(event: GeneratedEventRecord) -> bool:
    """Schedule blocks whose completion also ticks off that day's training run."""
    return event.type.upper() == PHYSICAL_TYPE and RUN_MARKER in event.activity


class FitnessError(Exception):
    pass


class FitnessService:
    def __init__(self, db: DatabaseManager, user_id: str):
        self._db = db
        self._user_id = user_id

    def sync_plan(self) -> list[FitnessLog]:
        """Return the user's logs, inserting the training plan when there are none."""
        existing = list_fitness_logs(self._db, self._user_id)
        if existing:
            return existing
        logs = [
            FitnessLog(
                id=None,
                user_id=self._user_id,
                phase=phase,
                date=day,
                description=description,
                distance=distance,
            )
            for phase, day, description, distance in TRAINING_PLAN
        ]
        inserted = insert_fitness_logs(self._db, logs)
        logger.info("training plan seeded", extra={"_json_runs": len(inserted)})
        return inserted

    def toggle_run(self, log_id: int) -> FitnessLog:
        log = get_fitness_log(self._db, log_id)
        if log is None or log.user_id != self._user_id:
            raise FitnessError(f"fitness log {log_id} not found")
        log.completed = not log.completed
        set_fitness_log_completed(self._db, log_id, log.completed)
        return log

    def mark_run_done(self, day: str) -> int:
        """Complete every planned run on ``day``; 0 when the plan has none that day."""
        return complete_fitness_logs_on(self._db, self._user_id, day)

    def next_run(self, today: date) -> Optional[FitnessLog]:
        """Earliest incomplete run on or after ``today``."""
        iso = today.isoformat()
        for log in list_fitness_logs(self._db, self._user_id):
            if not log.completed and log.date >= iso:
                return log
        return None


__all__ = [
    "TRAINING_PLAN",
    "RACE_DATE",
    "FitnessError",
    "FitnessService",
    "is_run_block",
]
