from __future__ import annotations

"""Schedule service: creating series, completing blocks and series edits.

Completion of a COACHING block books the flat session fee into the ledger
and credits the wallet. Completing a PHYSICAL "RUN" block ticks off
the training run planned for that date.
"""

from datetime import date
import logging
from typing import Optional, Sequence

from .database_manager import DatabaseManager
from .fitness_service import FitnessService, is_run_block
from .holidays import Holiday, merge_schedule_with_holidays
from .models import (
    CoachingSession,
    EventTemplate,
    GeneratedEventRecord,
    RecurrenceRule,
    WalletHistoryEntry,
)
from .recurrence import expand
from .repositories import (
    add_coaching_session,
    add_wallet_history,
    delete_event,
    delete_series_from,
    ensure_user_stats,
    get_event,
    insert_event_records,
    list_events_for_date,
    set_completed,
    update_event,
    update_series_from,
    update_user_stats,
)

logger = logging.getLogger(__name__)

COACHING_TYPE = "COACHING"
COACHING_SESSION_FEE = 8000.0
UNKNOWN_CLIENT = "Unknown Client"

SCOPE_SINGLE = "single"
SCOPE_FUTURE = "future"


class ScheduleError(Exception):
    pass


def _check_scope(scope: str) -> None:
    if scope not in (SCOPE_SINGLE, SCOPE_FUTURE):
        raise ScheduleError(f"unknown scope: {scope}")


class ScheduleService:
    def __init__(self, db: DatabaseManager, user_id: str):
        self._db = db
        self._user_id = user_id
        self._fitness = FitnessService(db, user_id)

    # --- Creation -------------------------------------------------------
    def add_event(
        self,
        template: EventTemplate,
        rule: RecurrenceRule,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> list[GeneratedEventRecord]:
        records = expand(template, rule, start_date, end_date, user_id=self._user_id)
        inserted = insert_event_records(self._db, records)
        logger.info(
            "event series created", extra={
                "_json_rule": rule.kind,
                "_json_count": len(inserted),
                "_json_series_id": inserted[0].series_id if inserted else None,
            },
        )
        return inserted

    # --- Completion -----------------------------------------------------
    def complete_event(self, event_id: int) -> Optional[CoachingSession]:
        """Mark a block done; returns the booked session for coaching blocks.

        The completion flag, the fitness log tick and the coaching ledger rows
        are written in one transaction, so a failure leaves the block open.
        """
        event = self._require(event_id)
        if event.completed:
            return None
        with self._db.transaction():
            set_completed(self._db, event_id, True)
            if is_run_block(event):
                ticked = self._fitness.mark_run_done(event.date)
                logger.info("run completed", extra={"_json_date": event.date, "_json_logs": ticked})
            if event.type.upper() != COACHING_TYPE:
                return None
            session = self._book_coaching(event)
        logger.info("coaching session booked", extra={"_json_client": session.client_name, "_json_event_id": event_id})
        return session

    def _book_coaching(self, event: GeneratedEventRecord) -> CoachingSession:
        client = event.meta.get("client") or UNKNOWN_CLIENT
        session = add_coaching_session(
            self._db,
            CoachingSession(
                id=None,
                user_id=self._user_id,
                date=event.date,
                client_name=client,
                amount=COACHING_SESSION_FEE,
                location=event.location,
                paid=False,
                event_id=event.id,
            ),
        )
        stats = ensure_user_stats(self._db, self._user_id)
        stats.wallet_balance += COACHING_SESSION_FEE
        update_user_stats(self._db, stats)
        add_wallet_history(
            self._db,
            WalletHistoryEntry(
                id=None,
                user_id=self._user_id,
                date=event.date,
                amount=COACHING_SESSION_FEE,
                description=f"Coaching: {client}",
                type="IN",
            ),
        )
        return session

    # --- Edit / delete --------------------------------------------------
    def edit_event(self, event: GeneratedEventRecord, scope: str = SCOPE_SINGLE) -> int:
        """Persist edits; ``future`` applies template fields to the rest of the series."""
        _check_scope(scope)
        if event.id is None:
            raise ScheduleError("Event has no id")
        if scope == SCOPE_FUTURE and event.series_id:
            return update_series_from(self._db, event)
        update_event(self._db, event)
        return 1

    def delete_event(self, event_id: int, scope: str = SCOPE_SINGLE) -> int:
        _check_scope(scope)
        event = self._require(event_id)
        if scope == SCOPE_FUTURE and event.series_id:
            return delete_series_from(self._db, event.series_id, event.date)
        delete_event(self._db, event_id)
        return 1

    # --- Views ----------------------------------------------------------
    def day_view(self, day: date, holidays: Sequence[Holiday] = ()) -> list[GeneratedEventRecord]:
        iso = day.isoformat()
        return merge_schedule_with_holidays(list_events_for_date(self._db, self._user_id, iso), holidays, iso)

    def _require(self, event_id: int) -> GeneratedEventRecord:
        event = get_event(self._db, event_id)
        if event is None:
            raise ScheduleError(f"event {event_id} not found")
        return event


__all__ = [
    "ScheduleService",
    "ScheduleError",
    "COACHING_SESSION_FEE",
    "SCOPE_SINGLE",
    "SCOPE_FUTURE",
]
