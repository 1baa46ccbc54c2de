import json
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from pathlib import Path

import pytest

from life_planner.app import AppConfig, DEFAULT_USER_ID, get_app_state
from life_planner.logging_setup import JsonFormatter, UserContextFilter, parse_level
from life_planner.plans import FALLBACK_GBP_LKR_RATE


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    level = root.level
    yield
    # Only the handlers configure_logging installs; pytest manages its own
    for h in list(root.handlers):
        if type(h) in (RotatingFileHandler, logging.StreamHandler):
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def test_config_defaults():
    cfg = AppConfig.from_env({})
    assert cfg.user_id == DEFAULT_USER_ID
    assert cfg.fallback_rate == FALLBACK_GBP_LKR_RATE
    assert cfg.rate_url is None and cfg.offline is False
    assert cfg.log_level == logging.INFO


def test_config_from_env(tmp_path: Path):
    cfg = AppConfig.from_env({
        "LIFE_PLANNER_DATA_DIR": str(tmp_path),
        "LIFE_PLANNER_USER_ID": "kasun",
        "LIFE_PLANNER_FALLBACK_GBP_RATE": "372.5",
        "LIFE_PLANNER_RATE_URL": "http://localhost:9/rates",
        "LIFE_PLANNER_OFFLINE": "1",
        "LIFE_PLANNER_LOG_LEVEL": "debug",
    })
    assert cfg.data_dir == tmp_path
    assert cfg.user_id == "kasun"
    assert cfg.fallback_rate == 372.5
    assert cfg.rate_url == "http://localhost:9/rates"
    assert cfg.offline is True
    assert cfg.log_level == logging.DEBUG


def test_offline_state_uses_fallback_rate(tmp_path: Path, restore_root_logging):
    state = get_app_state(AppConfig(data_dir=tmp_path, user_id="u1", fallback_rate=390.0, offline=True))
    try:
        assert state.rate_client is None
        assert state.current_rate() == 390.0
        dash = state.dashboard(datetime(2026, 3, 1, tzinfo=timezone.utc))
        assert dash.conversion_rate == 390.0
        assert dash.active_plan == "Plan 02"
        assert state.fitness.next_run(datetime(2026, 3, 1).date()) is None  # not seeded yet
        assert len(state.fitness.sync_plan()) == 28
    finally:
        state.close()
    assert (tmp_path / "life_planner.sqlite").exists()
    assert (tmp_path / "logs" / "app.log").exists()


def test_json_formatter_extras():
    record = logging.LogRecord("life_planner.test", logging.INFO, __file__, 1, "rate %s", ("ok",), None)
    record._json_rate = 391.25
    record._json_when = datetime(2026, 3, 1)
    record.ignored = "x"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "rate ok"
    assert payload["level"] == "INFO"
    assert payload["rate"] == 391.25
    assert payload["when"] == "2026-03-01 00:00:00"
    assert "ignored" not in payload


@pytest.mark.parametrize(
    "value,expected",
    [(None, logging.INFO), ("", logging.INFO), ("warning", logging.WARNING), ("10", 10), ("chatty", logging.INFO)],
)
def test_parse_level(value, expected):
    assert parse_level(value) == expected


def test_user_filter_does_not_override_explicit_user():
    f = UserContextFilter("u1")
    plain = logging.LogRecord("x", logging.INFO, __file__, 1, "m", None, None)
    tagged = logging.LogRecord("x", logging.INFO, __file__, 1, "m", None, None)
    tagged._json_user = "u2"
    assert f.filter(plain) and f.filter(tagged)
    assert json.loads(JsonFormatter().format(plain))["user"] == "u1"
    assert json.loads(JsonFormatter().format(tagged))["user"] == "u2"


def test_log_file_lines_are_json(tmp_path: Path, restore_root_logging):
    state = get_app_state(AppConfig(data_dir=tmp_path, user_id="u1", offline=True))
    state.close()
    for h in logging.getLogger().handlers:
        h.flush()
    lines = (tmp_path / "logs" / "app.log").read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    assert any(r["msg"] == "app_state_created" for r in records)
    assert all(r["user"] == "u1" for r in records)
