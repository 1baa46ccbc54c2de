from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

from .database_manager import DBConfig, DatabaseManager
from .exchange_rates import ExchangeRateClient, ExchangeRateConfig, resolve_rate
from .fitness_service import FitnessService
from .holidays import HolidayClient
from .logging_setup import configure_logging, parse_level
from .plans import FALLBACK_GBP_LKR_RATE
from .schedule_service import ScheduleService
from .wealth_service import WealthDashboard, WealthService


APP_NAME = "Life Planner"
DEFAULT_USER_ID = "local"


@dataclass(slots=True)
class AppConfig:
    data_dir: Path
    user_id: str = DEFAULT_USER_ID
    fallback_rate: float = FALLBACK_GBP_LKR_RATE
    rate_url: Optional[str] = None
    offline: bool = False
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        env = os.environ if environ is None else environ
        default_dir = Path(__file__).resolve().parent.parent.parent / "data"
        fallback = env.get("LIFE_PLANNER_FALLBACK_GBP_RATE")
        return cls(
            data_dir=Path(env.get("LIFE_PLANNER_DATA_DIR") or default_dir),
            user_id=env.get("LIFE_PLANNER_USER_ID") or DEFAULT_USER_ID,
            fallback_rate=float(fallback) if fallback else FALLBACK_GBP_LKR_RATE,
            rate_url=env.get("LIFE_PLANNER_RATE_URL") or None,
            offline=env.get("LIFE_PLANNER_OFFLINE", "").lower() in {"1", "true", "yes"},
            log_level=parse_level(env.get("LIFE_PLANNER_LOG_LEVEL")),
        )


@dataclass(slots=True)
class AppState:
    config: AppConfig
    db: DatabaseManager
    rate_client: ExchangeRateClient | None
    holiday_client: HolidayClient | None
    schedule: ScheduleService
    wealth: WealthService
    fitness: FitnessService

    def current_rate(self) -> float:
        return resolve_rate(self.rate_client, self.config.fallback_rate, self.db)

    def dashboard(self, as_of: datetime | None = None) -> WealthDashboard:
        return self.wealth.dashboard(as_of or datetime.now(timezone.utc), self.current_rate())

    def close(self) -> None:
        for client in (self.rate_client, self.holiday_client):
            if client is not None:
                client.close()
        self.db.close()


def get_app_state(config: AppConfig | None = None) -> AppState:
    config = config or AppConfig.from_env()
    config.data_dir.mkdir(parents=True, exist_ok=True)
    # Logging first
    configure_logging(config.data_dir, config.log_level, config.user_id)
    db = DatabaseManager(DBConfig(path=config.data_dir / "life_planner.sqlite"))
    db.init_db()
    rate_client = None
    holiday_client = None
    if not config.offline:
        rate_cfg = ExchangeRateConfig(base_url=config.rate_url) if config.rate_url else ExchangeRateConfig()
        rate_client = ExchangeRateClient(rate_cfg)
        holiday_client = HolidayClient()
    logging.getLogger(__name__).info(
        "app_state_created", extra={"_json_user": config.user_id, "_json_offline": config.offline}
    )
    return AppState(
        config=config,
        db=db,
        rate_client=rate_client,
        holiday_client=holiday_client,
        schedule=ScheduleService(db, config.user_id),
        wealth=WealthService(db, config.user_id),
        fitness=FitnessService(db, config.user_id),
    )


def main() -> int:  # pragma: no cover - wiring
    state = get_app_state()
    log = logging.getLogger(__name__)
    try:
        d = state.dashboard()
        log.info(
            "%s: plan %s needs %.0f LKR/mo (safe to spend %.0f/mo, recommended %s)",
            APP_NAME,
            d.active_plan,
            d.required_monthly_rate,
            d.safe_to_spend_monthly,
            d.recommended_plan,
        )
    finally:
        state.close()
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
