from __future__ import annotations

"""Logging for the planner: a JSON lines file plus a short console stream.

Structured fields ride on the record as ``extra={"_json_<name>": value}`` and
land in the file payload under ``<name>``. Every record written by the file
handler also carries the active ``user`` so one log can hold several users.
"""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOG_DIR_NAME = "logs"
LOG_FILE_BASENAME = "app.log"
LOG_MAX_BYTES = 512_000
LOG_BACKUPS = 5
JSON_EXTRA_PREFIX = "_json_"
# Per-request INFO lines from the HTTP stack drown out planner events.
NOISY_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k.startswith(JSON_EXTRA_PREFIX):
                payload[k[len(JSON_EXTRA_PREFIX):]] = v
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class UserContextFilter(logging.Filter):
    """Stamps ``_json_user`` onto records that do not already name one."""

    def __init__(self, user_id: str):
        super().__init__()
        self.user_id = user_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, JSON_EXTRA_PREFIX + "user"):
            setattr(record, JSON_EXTRA_PREFIX + "user", self.user_id)
        return True


def parse_level(value: Optional[str], default: int = logging.INFO) -> int:
    """Map ``"debug"``/``"WARNING"``/``"10"`` style strings to a level number."""
    if not value:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


def configure_logging(
    data_dir: Path,
    level: int = logging.INFO,
    user_id: Optional[str] = None,
) -> Path:
    log_dir = data_dir / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    logfile = log_dir / LOG_FILE_BASENAME

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    file_handler = RotatingFileHandler(logfile, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")
    file_handler.setFormatter(JsonFormatter())
    if user_id:
        file_handler.addFilter(UserContextFilter(user_id))
    root.addHandler(file_handler)

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root.addHandler(console)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).info(
        "logging configured", extra={"_json_logfile": str(logfile), "_json_level": logging.getLevelName(level)}
    )
    return logfile


__all__ = ["JsonFormatter", "UserContextFilter", "parse_level", "configure_logging"]
