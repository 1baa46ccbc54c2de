from __future__ import annotations

"""Wealth service: dashboard figures and wallet/fund movements for one user."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
import logging
from typing import Optional

from .database_manager import DatabaseManager
from .models import MonthlyEarnings, Obligation, PriorityExpense, PriorityForecast, UserStats, WalletHistoryEntry
from .plans import DEFAULT_PLAN, UNIVERSITY_PLANS, get_plan, plans_in_recommendation_order
from .repositories import (
    add_expense,
    add_wallet_history,
    create_priority_expense,
    ensure_user_stats,
    list_open_priority_expenses,
    sum_coaching_income_by_month,
    sum_coaching_income_since,
    sum_recurring_expenses,
    update_user_stats,
)
from .waterfall import (
    EMERGENCY_FLOOR,
    forecast_priority_expense,
    liquid_balance,
    physical_safe_to_spend,
    recommend_plan,
    required_rate_for_goal,
    safe_to_spend_monthly,
    summarize_plan,
)

logger = logging.getLogger(__name__)

VARIABLE_INCOME_WINDOW_DAYS = 30


class InsufficientFunds(Exception):
    pass


class FloorBreach(Exception):
    def __init__(self, remaining: float):
        super().__init__(f"expense would leave {remaining:.2f}, below the {EMERGENCY_FLOOR:.0f} floor")
        self.remaining = remaining


@dataclass(slots=True)
class WealthDashboard:
    as_of: datetime
    conversion_rate: float
    stats: UserStats
    active_plan: str
    balance: float  # wallet plus fund
    required_monthly_rate: float
    binding_obligation: Optional[Obligation]
    plan_total: float
    plan_outstanding: float
    recurring_total: float
    recent_variable_income: float
    safe_to_spend_monthly: float
    physical_safe_to_spend: float
    recommended_plan: Optional[str]
    priority_forecasts: list[tuple[PriorityExpense, PriorityForecast]] = field(default_factory=list)

    @property
    def variable_income_needed(self) -> float:
        """Coaching income still needed each month to break even."""
        return max(0.0, -self.safe_to_spend_monthly)


class WealthService:
    def __init__(self, db: DatabaseManager, user_id: str):
        self._db = db
        self._user_id = user_id

    def stats(self) -> UserStats:
        return ensure_user_stats(self._db, self._user_id)

    # --- Dashboard ------------------------------------------------------
    def dashboard(self, as_of: datetime, conversion_rate: float) -> WealthDashboard:
        stats = self.stats()
        plan_name = stats.active_uni_plan if stats.active_uni_plan in UNIVERSITY_PLANS else DEFAULT_PLAN
        balance = liquid_balance(stats.wallet_balance, stats.wealth_uni_fund)
        summary = summarize_plan(get_plan(plan_name), conversion_rate, balance, stats.wealth_uni_fund, as_of)
        recurring_total = sum_recurring_expenses(self._db, self._user_id)
        since = (as_of.date() - timedelta(days=VARIABLE_INCOME_WINDOW_DAYS)).isoformat()
        recent_income = sum_coaching_income_since(self._db, self._user_id, since)

        safe_monthly = safe_to_spend_monthly(
            stats.wallet_salary, summary.requirement.required_monthly_rate, recurring_total
        )
        capacity = stats.wallet_salary + recent_income - recurring_total
        recommended = recommend_plan(
            plans_in_recommendation_order(), capacity, conversion_rate, balance, as_of
        )
        forecasts = [
            (
                exp,
                forecast_priority_expense(
                    exp.amount, date.fromisoformat(exp.target_date), safe_monthly, as_of.date()
                ),
            )
            for exp in list_open_priority_expenses(self._db, self._user_id)
        ]
        return WealthDashboard(
            as_of=as_of,
            conversion_rate=conversion_rate,
            stats=stats,
            active_plan=plan_name,
            balance=balance,
            required_monthly_rate=summary.requirement.required_monthly_rate,
            binding_obligation=summary.requirement.binding_obligation,
            plan_total=summary.total,
            plan_outstanding=summary.outstanding,
            recurring_total=recurring_total,
            recent_variable_income=recent_income,
            safe_to_spend_monthly=safe_monthly,
            physical_safe_to_spend=physical_safe_to_spend(stats.wallet_balance),
            recommended_plan=recommended.name if recommended else None,
            priority_forecasts=forecasts,
        )

    def coaching_earnings(self) -> tuple[float, list[MonthlyEarnings]]:
        """All-time coaching total and the per-month breakdown, newest first."""
        months = sum_coaching_income_by_month(self._db, self._user_id)
        return sum(m.total for m in months), months

    # --- Mutations ------------------------------------------------------
    def switch_plan(self, plan_name: str) -> UserStats:
        get_plan(plan_name)
        stats = self.stats()
        stats.active_uni_plan = plan_name
        update_user_stats(self._db, stats)
        logger.info("active plan switched", extra={"_json_plan": plan_name})
        return stats

    def payout_to_fund(self, today: date | None = None) -> float:
        """Move everything above the emergency floor into the fund."""
        with self._db.transaction():
            stats = self.stats()
            amount = stats.wallet_balance - EMERGENCY_FLOOR
            if amount <= 0:
                raise InsufficientFunds(f"No funds available above the {EMERGENCY_FLOOR:.0f} emergency floor")
            stats.wallet_balance = EMERGENCY_FLOOR
            stats.wealth_uni_fund += amount
            update_user_stats(self._db, stats)
            self._history(today, -amount, "Uni Fund Contribution", "OUT")
        return amount

    def add_external_funds(self, amount: float, description: str = "External Fund Deposit", today: date | None = None) -> UserStats:
        if amount <= 0:
            raise ValueError("deposit amount must be positive")
        with self._db.transaction():
            stats = self.stats()
            stats.wealth_uni_fund += amount
            update_user_stats(self._db, stats)
            self._history(today, amount, description, "IN")
        return stats

    def log_expense(
        self,
        amount: float,
        reason: str,
        allow_floor_breach: bool = False,
        today: date | None = None,
    ) -> UserStats:
        if amount <= 0:
            raise ValueError("expense amount must be positive")
        with self._db.transaction():
            stats = self.stats()
            remaining = stats.wallet_balance - amount
            if remaining < EMERGENCY_FLOOR and not allow_floor_breach:
                raise FloorBreach(remaining)
            day = (today or _today()).isoformat()
            add_expense(self._db, self._user_id, day, amount, reason)
            stats.wallet_balance = remaining
            update_user_stats(self._db, stats)
            self._history(today, -amount, reason, "OUT")
        if remaining < EMERGENCY_FLOOR:
            logger.warning("emergency floor breached", extra={"_json_remaining": remaining})
        return stats

    def add_priority_expense(
        self,
        title: str,
        amount: float,
        target_date: date,
        monthly_surplus: float,
        as_of: date | None = None,
        allow_risk: bool = False,
    ) -> tuple[PriorityExpense, PriorityForecast]:
        """Record a goal; refuses at-risk goals unless ``allow_risk``."""
        today = as_of or _today()
        forecast = forecast_priority_expense(amount, target_date, monthly_surplus, today)
        if forecast.at_risk and not allow_risk:
            needed = required_rate_for_goal(amount, target_date, today)
            raise InsufficientFunds(
                f"saving for {title} by {target_date.isoformat()} requires {needed:,.0f}/mo"
            )
        expense = create_priority_expense(
            self._db,
            PriorityExpense(
                id=None,
                user_id=self._user_id,
                title=title,
                amount=amount,
                target_date=target_date.isoformat(),
            ),
        )
        return expense, forecast

    def _history(self, today: date | None, amount: float, description: str, type_: str) -> None:
        add_wallet_history(
            self._db,
            WalletHistoryEntry(
                id=None,
                user_id=self._user_id,
                date=(today or _today()).isoformat(),
                amount=amount,
                description=description,
                type=type_,
            ),
        )


def _today() -> date:
    return datetime.now(timezone.utc).date()


__all__ = [
    "WealthService",
    "WealthDashboard",
    "InsufficientFunds",
    "FloorBreach",
]
