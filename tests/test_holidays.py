from datetime import date

import httpx
import pytest

from life_planner.holidays import (
    Holiday,
    HolidayClient,
    HolidayClientConfig,
    HolidayFetchError,
    merge_schedule_with_holidays,
    years_for_month_view,
)
from life_planner.models import GeneratedEventRecord

SAMPLE = [
    {"uid": "h1", "summary": "Public Holiday Only", "categories": ["Public"], "start": "2026-01-01", "end": "2026-01-02"},
    {"uid": "h2", "summary": "Mercantile Holiday", "categories": ["Public", "Bank", "Mercantile"], "start": "2026-01-02", "end": "2026-01-03"},
    {"uid": "h3", "summary": "Poya Day", "categories": ["Public", "Bank", "Poya"], "start": "2026-01-03", "end": "2026-01-04"},
]

HOLIDAYS = [
    Holiday(uid=h["uid"], summary=h["summary"], categories=tuple(h["categories"]), start=h["start"], end=h["end"])
    for h in SAMPLE
]

WORK = GeneratedEventRecord(
    id=1, user_id="u", series_id=None, date="2026-01-02", activity="Work", type="WORK", time_range="08:30-17:30"
)


def test_priority_only_for_mercantile_and_poya():
    merged = {r.meta["holiday_uid"]: r for r in merge_schedule_with_holidays([], HOLIDAYS)}
    assert merged["h1"].is_priority is False
    assert merged["h2"].is_priority is True
    assert merged["h3"].is_priority is True
    assert merged["h1"].type == "HOLIDAY" and merged["h1"].time_range == "Anytime"
    assert merged["h1"].completed is False


def test_date_filter_narrows_holidays_only():
    merged = merge_schedule_with_holidays([WORK], HOLIDAYS, "2026-01-02")
    assert len(merged) == 2
    assert merged[0].meta["holiday_uid"] == "h2"
    assert merged[1] is WORK

    other_day = merge_schedule_with_holidays([WORK], HOLIDAYS, "2026-01-01")
    assert [r.activity for r in other_day] == ["Public Holiday Only", "Work"]


def test_years_for_month_view():
    assert years_for_month_view(date(2026, 6, 10)) == [2026]
    assert years_for_month_view(date(2026, 12, 1)) == [2026, 2027]
    assert years_for_month_view(date(2026, 1, 1)) == [2025, 2026]


def test_fetch_year_parses_and_caches():
    calls = {"n": 0}

    def handler(request: httpx.Request):
        calls["n"] += 1
        assert request.url.path.endswith("/2026.json")
        return httpx.Response(200, json=SAMPLE)

    client = HolidayClient(transport=httpx.MockTransport(handler))
    first = client.fetch_year(2026)
    second = client.fetch_year(2026)
    assert [h.uid for h in first] == ["h1", "h2", "h3"]
    assert first == second
    assert calls["n"] == 1


def test_missing_year_is_empty():
    client = HolidayClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    assert client.fetch_year(2099) == []


def test_server_error_raises():
    client = HolidayClient(
        HolidayClientConfig(max_retries=0),
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    with pytest.raises(HolidayFetchError):
        client.fetch_year(2026)


def test_fetch_for_month_view_spans_years():
    def handler(request: httpx.Request):
        year = request.url.path.rsplit("/", 1)[-1].split(".")[0]
        return httpx.Response(200, json=[{"uid": f"ny-{year}", "summary": "New Year", "categories": ["Public"], "start": f"{year}-01-01"}])

    client = HolidayClient(transport=httpx.MockTransport(handler))
    holidays = client.fetch_for_month_view(date(2026, 12, 15))
    assert [h.uid for h in holidays] == ["ny-2026", "ny-2027"]
    assert holidays[0].end == "2026-01-01"
