"""Seed data helper: the standing weekly schedule as weekday series."""

from datetime import date
from typing import Optional

from .database_manager import DatabaseManager
from .models import EventTemplate, GeneratedEventRecord, RecurrenceRule
from .recurrence import expand
from .repositories import ensure_user_stats, insert_event_records

# 0=Sunday .. 6=Saturday
WEEKLY_TEMPLATES: dict[int, list[EventTemplate]] = {
    1: [
        EventTemplate("Office Work", "WORK", "08:30-17:30"),
        EventTemplate("IFTAAR", "SPIRITUAL", "18:20-19:00"),
        EventTemplate("Tharaweeh", "SPIRITUAL", "20:30-22:00"),
        EventTemplate("Gym (Upper Body)", "PHYSICAL", "22:15-23:00"),
        EventTemplate("Study Block (Assign 1)", "STUDY", "23:00-00:00"),
    ],
    2: [
        EventTemplate("Uni Lecture (Mobile App Dev)", "STUDY", "10:30-12:30"),
        EventTemplate("Rest (Anime / Reading)", "REST", "12:30-15:30"),
        EventTemplate("Uni Tutorial", "STUDY", "15:30-17:30"),
        EventTemplate("IFTAAR", "SPIRITUAL", "18:20-19:00"),
        EventTemplate("Tharaweeh", "SPIRITUAL", "20:30-22:00"),
        EventTemplate("RUN #1", "PHYSICAL", "22:15-23:00", meta={"link": "fitness"}),
    ],
    3: [
        EventTemplate("Office Work", "WORK", "08:30-17:30"),
        EventTemplate("IFTAAR", "SPIRITUAL", "18:20-19:00"),
        EventTemplate("Tharaweeh", "SPIRITUAL", "20:30-22:00"),
        EventTemplate("Study Block (Android Dev)", "STUDY", "22:15-23:45"),
    ],
    4: [
        EventTemplate("Office Work", "WORK", "08:30-17:30"),
        EventTemplate("IFTAAR", "SPIRITUAL", "18:20-19:00"),
        EventTemplate("Tharaweeh", "SPIRITUAL", "20:30-22:00"),
        EventTemplate("RUN #2", "PHYSICAL", "22:15-23:00", meta={"link": "fitness"}),
    ],
    5: [
        EventTemplate("Office Work", "WORK", "08:30-17:00"),
        EventTemplate("Transit to Port City", "TRANSIT", "17:00-18:00"),
        EventTemplate("Coaching: Savinu", "COACHING", "18:00-21:00", "Port City", meta={"client": "Savinu"}),
        EventTemplate("IFTAAR on track", "SPIRITUAL", "18:20"),
        EventTemplate("CHAOS HOUR", "CHAOS", "20:00-21:00"),
        EventTemplate("Coaching: Umar", "COACHING", "21:00-22:00", "Port City", meta={"client": "Umar"}),
        EventTemplate("Track Closed/Home", "TRANSIT", "22:00"),
    ],
    6: [
        EventTemplate("Sleep In/Recovery", "REST", "10:00"),
        EventTemplate("Study & Reading", "STUDY", "10:30-14:00"),
        EventTemplate("Coaching: Savinu", "COACHING", "14:00-17:00", meta={"client": "Savinu"}),
        EventTemplate("Date Night w/ Anali", "REST", "18:00-20:00"),
        EventTemplate("IFTAAR", "SPIRITUAL", "18:20"),
        EventTemplate("RUN #3", "PHYSICAL", "20:00-22:00", meta={"link": "fitness"}),
    ],
    0: [
        EventTemplate("Downtime", "REST", "10:00-13:00"),
        EventTemplate("Prep", "OTHER", "13:00-14:00"),
        EventTemplate("Transit to Bandaragama", "TRANSIT", "14:00-15:00"),
        EventTemplate("Coaching: Piers", "COACHING", "15:00-18:00", "Bandaragama", meta={"client": "Piers"}),
        EventTemplate("Transit to Port City", "TRANSIT", "18:00-20:00"),
        EventTemplate("Coaching: Umar", "COACHING", "20:00-22:00", "Port City", meta={"client": "Umar"}),
        EventTemplate("Weekly Review", "STUDY", "22:00"),
    ],
}


def seed_weekly_schedule(
    db: DatabaseManager,
    user_id: str,
    start: date,
    end: Optional[date] = None,
) -> list[GeneratedEventRecord]:
    """Expand every weekday template into its own series; skipped if the user has rows."""
    if db.query_one("SELECT id FROM daily_schedule WHERE user_id=? LIMIT 1", (user_id,)):
        return []  # Already seeded
    ensure_user_stats(db, user_id)
    records: list[GeneratedEventRecord] = []
    for weekday, templates in sorted(WEEKLY_TEMPLATES.items()):
        for template in templates:
            records.extend(
                expand(template, RecurrenceRule.on_weekdays({weekday}), start, end, user_id=user_id)
            )
    return insert_event_records(db, records)


__all__ = ["WEEKLY_TEMPLATES", "seed_weekly_schedule"]
