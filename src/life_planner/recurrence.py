from __future__ import annotations

"""Expand a single event template into a bounded series of dated records.

The expander is pure: it never touches the database. Callers persist the
returned batch with ``repositories.insert_event_records``.

Rules:
 - NONE: exactly one record on the start date, without a series id.
 - DAILY / CUSTOM_WEEKDAYS: step one day; CUSTOM_WEEKDAYS keeps only the
   selected weekdays (0=Sunday).
 - WEEKLY: step seven days.
 - MONTHLY: same day-of-month, clamped to the month end (31st -> 30th/28th).
 - CUSTOM_INTERVAL: step ``interval`` days (values below 1 act as 1).

Without an explicit end date the series stops twelve months after the start.
"""

import calendar
import logging
import uuid
from datetime import date, timedelta
from typing import Callable, Optional

from .models import (
    CUSTOM_INTERVAL,
    CUSTOM_WEEKDAYS,
    DAILY,
    MONTHLY,
    NONE,
    WEEKLY,
    EventTemplate,
    GeneratedEventRecord,
    RecurrenceRule,
)

logger = logging.getLogger(__name__)

MAX_SPAN_MONTHS = 12

SeriesIdFactory = Callable[[], str]


def _new_series_id() -> str:
    return str(uuid.uuid4())


def add_months(d: date, n: int) -> date:
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def sunday_weekday(d: date) -> int:
    """Weekday index with Sunday=0 .. Saturday=6."""
    return (d.weekday() + 1) % 7


def effective_end(start_date: date, end_date: Optional[date]) -> date:
    if end_date is not None:
        return end_date
    return add_months(start_date, MAX_SPAN_MONTHS)


def _step_days(rule: RecurrenceRule) -> int:
    if rule.kind in (DAILY, CUSTOM_WEEKDAYS):
        return 1
    if rule.kind == WEEKLY:
        return 7
    if rule.interval < 1:
        logger.warning(
            "custom interval %s clamped to 1 day", rule.interval,
            extra={"_json_interval": rule.interval},
        )
        return 1
    return rule.interval


def occurrence_dates(rule: RecurrenceRule, start_date: date, end_date: Optional[date] = None) -> list[date]:
    """Dates a rule produces in ``[start_date, end]``, ascending."""
    if rule.kind == NONE:
        return [start_date]
    end = effective_end(start_date, end_date)
    out: list[date] = []
    if end < start_date:
        return out

    if rule.kind == MONTHLY:
        # Offsets are taken from the start so a clamped month does not drift the series.
        k = 0
        cursor = start_date
        while cursor <= end:
            out.append(cursor)
            k += 1
            cursor = add_months(start_date, k)
        return out

    step = timedelta(days=_step_days(rule))
    cursor = start_date
    while cursor <= end:
        if rule.kind != CUSTOM_WEEKDAYS or sunday_weekday(cursor) in rule.weekdays:
            out.append(cursor)
        cursor += step
    return out


def expand(
    template: EventTemplate,
    rule: RecurrenceRule,
    start_date: date,
    end_date: Optional[date] = None,
    *,
    user_id: Optional[str] = None,
    series_id_factory: SeriesIdFactory = _new_series_id,
) -> list[GeneratedEventRecord]:
    """Return the records for one user-authored event, in date order.

    All records share one fresh series id, except for ``NONE`` where the
    single record carries ``series_id=None``.
    """
    dates = occurrence_dates(rule, start_date, end_date)
    if not dates:
        return []
    series_id = None if rule.kind == NONE else series_id_factory()
    records = [
        GeneratedEventRecord(
            id=None,
            user_id=user_id,
            series_id=series_id,
            date=d.isoformat(),
            activity=template.activity,
            type=template.type,
            time_range=template.time_range,
            location=template.location,
            is_priority=template.is_priority,
            is_goal=template.is_goal,
            meta=dict(template.meta),
            end_date=template.end_date,
            completed=False,
        )
        for d in dates
    ]
    logger.debug(
        "expanded %s rule into %d records", rule.kind, len(records),
        extra={"_json_series_id": series_id},
    )
    return records


__all__ = [
    "MAX_SPAN_MONTHS",
    "add_months",
    "sunday_weekday",
    "effective_end",
    "occurrence_dates",
    "expand",
]
