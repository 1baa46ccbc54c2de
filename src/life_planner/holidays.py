from __future__ import annotations

"""Sri Lanka public holiday feed and schedule merging."""

from dataclasses import dataclass
from datetime import date
import logging
import time
from typing import Iterable, Sequence

import httpx

from .models import ANYTIME, GeneratedEventRecord

logger = logging.getLogger(__name__)

HOLIDAYS_ENDPOINT = "https://raw.githubusercontent.com/Dilshan-H/srilanka-holidays/main/json/{year}.json"
PRIORITY_CATEGORIES = frozenset({"Mercantile", "Poya"})
HOLIDAY_TYPE = "HOLIDAY"


class HolidayFetchError(Exception):
    pass


@dataclass(slots=True, frozen=True)
class Holiday:
    uid: str
    summary: str
    categories: tuple[str, ...]
    start: str  # YYYY-MM-DD
    end: str

    @property
    def is_priority(self) -> bool:
        return any(c in PRIORITY_CATEGORIES for c in self.categories)


@dataclass(slots=True)
class HolidayClientConfig:
    url_template: str = HOLIDAYS_ENDPOINT
    timeout: float = 10.0
    max_retries: int = 2
    backoff_base: float = 0.5


class HolidayClient:
    """Fetches one JSON document per year and keeps it for the process lifetime."""

    def __init__(self, config: HolidayClientConfig | None = None, transport: httpx.BaseTransport | None = None):
        self._config = config or HolidayClientConfig()
        self._client = httpx.Client(timeout=self._config.timeout, transport=transport)
        self._cache: dict[int, list[Holiday]] = {}

    def close(self):  # pragma: no cover simple
        self._client.close()

    def fetch_year(self, year: int) -> list[Holiday]:
        cached = self._cache.get(year)
        if cached is not None:
            return list(cached)
        url = self._config.url_template.format(year=year)
        attempt = 0
        while True:
            try:
                resp = self._client.get(url)
                if resp.status_code == 404:
                    holidays: list[Holiday] = []
                elif resp.status_code >= 400:
                    raise HolidayFetchError(f"Failed to fetch holidays for {year}: HTTP {resp.status_code}")
                else:
                    holidays = [_parse_holiday(item) for item in resp.json()]
                break
            except HolidayFetchError:
                attempt += 1
                if attempt > self._config.max_retries:
                    raise
                time.sleep(self._config.backoff_base * (2 ** (attempt - 1)))
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                attempt += 1
                if attempt > self._config.max_retries:
                    raise HolidayFetchError(f"Failed to fetch holidays for {year}: {e}") from e
                time.sleep(self._config.backoff_base * (2 ** (attempt - 1)))
        self._cache[year] = holidays
        logger.debug("loaded %d holidays for %d", len(holidays), year)
        return list(holidays)

    def fetch_for_month_view(self, day: date) -> list[Holiday]:
        out: list[Holiday] = []
        for year in years_for_month_view(day):
            out.extend(self.fetch_year(year))
        return out


def _parse_holiday(item: dict) -> Holiday:
    return Holiday(
        uid=str(item["uid"]),
        summary=str(item["summary"]),
        categories=tuple(item.get("categories") or ()),
        start=str(item["start"]),
        end=str(item.get("end") or item["start"]),
    )


def years_for_month_view(day: date) -> list[int]:
    """Years a month grid around ``day`` can show (neighbours at year edges)."""
    years = [day.year]
    if day.month == 12:
        years.append(day.year + 1)
    elif day.month == 1:
        years.insert(0, day.year - 1)
    return years


def holiday_block(h: Holiday) -> GeneratedEventRecord:
    return GeneratedEventRecord(
        id=None,
        user_id=None,
        series_id=None,
        date=h.start,
        activity=h.summary,
        type=HOLIDAY_TYPE,
        time_range=ANYTIME,
        is_priority=h.is_priority,
        is_goal=False,
        meta={"isSriLankaHoliday": True, "holiday_uid": h.uid, "categories": list(h.categories)},
        completed=False,
    )


def merge_schedule_with_holidays(
    events: Iterable[GeneratedEventRecord],
    holidays: Sequence[Holiday],
    date_filter: str | None = None,
) -> list[GeneratedEventRecord]:
    """Holiday blocks first, then ``events`` untouched.

    ``date_filter`` narrows the holidays only; events are always kept.
    """
    relevant = [h for h in holidays if date_filter is None or h.start == date_filter]
    return [holiday_block(h) for h in relevant] + list(events)


__all__ = [
    "Holiday",
    "HolidayClient",
    "HolidayClientConfig",
    "HolidayFetchError",
    "HOLIDAY_TYPE",
    "years_for_month_view",
    "holiday_block",
    "merge_schedule_with_holidays",
]
