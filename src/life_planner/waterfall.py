from __future__ import annotations

"""Savings waterfall: the monthly rate needed to meet every future obligation.

Obligations are swept in due-date order. Each one raises the cumulative amount
that must exist by its due date; the liquid balance offsets that total and the
remaining deficit is spread over the months left. The highest of those rates
is the requirement, and the obligation that produced it is the binding one.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence

from .models import (
    Obligation,
    Plan,
    PriorityForecast,
    REPORTING_CURRENCY,
    WaterfallResult,
    as_utc_datetime,
)
from .recurrence import add_months

logger = logging.getLogger(__name__)

AVERAGE_MONTH_DAYS = 30.44
MIN_MONTHS_REMAINING = 0.5
EMERGENCY_FLOOR = 20000.0
RECOMMENDATION_MARGIN = 10000.0
SECONDS_PER_DAY = 86400.0


class InvalidRate(ValueError):
    """Conversion rate is zero or negative."""


def _check_rate(conversion_rate: float) -> None:
    if not conversion_rate > 0:
        raise InvalidRate(f"conversion rate must be positive, got {conversion_rate!r}")


def to_reporting(obligation: Obligation, conversion_rate: float) -> float:
    if obligation.currency == REPORTING_CURRENCY:
        return float(obligation.amount)
    return float(obligation.amount) * conversion_rate


def months_between(start: date | datetime, end: date | datetime) -> float:
    """Average-month distance, not calendar month counting."""
    seconds = (as_utc_datetime(end) - as_utc_datetime(start)).total_seconds()
    return seconds / SECONDS_PER_DAY / AVERAGE_MONTH_DAYS


def compute_requirement(
    plan: Plan,
    conversion_rate: float,
    balance: float,
    as_of: date | datetime,
) -> WaterfallResult:
    _check_rate(conversion_rate)
    now = as_utc_datetime(as_of)
    upcoming = [o for o in sorted(plan.obligations, key=lambda o: o.due) if o.due > now]

    best = WaterfallResult(required_monthly_rate=0.0)
    cumulative = 0.0
    for obligation in upcoming:
        cumulative += to_reporting(obligation, conversion_rate)
        net_deficit = max(0.0, cumulative - balance)
        months = max(MIN_MONTHS_REMAINING, months_between(now, obligation.due))
        rate = net_deficit / months
        # Strict comparison: on a tie the earlier obligation stays binding.
        if rate > best.required_monthly_rate:
            best = WaterfallResult(
                required_monthly_rate=rate,
                binding_obligation=obligation,
                binding_cumulative_required=cumulative,
                binding_months_remaining=months,
            )
    return best


# --- Dashboard helpers ------------------------------------------------------

def liquid_balance(spendable: float, earmarked: float) -> float:
    return float(spendable) + float(earmarked)


def plan_total(plan: Plan, conversion_rate: float) -> float:
    """Every obligation in reporting currency, past-due ones included."""
    _check_rate(conversion_rate)
    return sum(to_reporting(o, conversion_rate) for o in plan.obligations)


def plan_outstanding(plan: Plan, conversion_rate: float, fund: float) -> float:
    return max(0.0, plan_total(plan, conversion_rate) - fund)


def safe_to_spend_monthly(salary: float, required_rate: float, recurring_total: float) -> float:
    """Fixed salary left after the savings requirement and recurring debits.

    A negative value is the variable income still needed to break even.
    """
    return salary - required_rate - recurring_total


def physical_safe_to_spend(wallet_balance: float, floor: float = EMERGENCY_FLOOR) -> float:
    return max(0.0, wallet_balance - floor)


def recommend_plan(
    plans: Sequence[Plan],
    capacity: float,
    conversion_rate: float,
    balance: float,
    as_of: date | datetime,
    margin: float = RECOMMENDATION_MARGIN,
) -> Optional[Plan]:
    """Pick the most ambitious affordable plan.

    ``plans`` is in preference order with the fallback first. A later plan
    replaces the current pick when ``capacity`` exceeds its required rate plus
    ``margin``.
    """
    if not plans:
        return None
    chosen = plans[0]
    for plan in plans[1:]:
        required = compute_requirement(plan, conversion_rate, balance, as_of).required_monthly_rate
        if capacity > required + margin:
            chosen = plan
    return chosen


def required_rate_for_goal(amount: float, target_date: date | datetime, as_of: date | datetime) -> float:
    months = months_between(as_of, target_date)
    if months <= 0:
        return math.inf
    return amount / months


def forecast_priority_expense(
    amount: float,
    target_date: date,
    monthly_surplus: float,
    as_of: date,
) -> PriorityForecast:
    if monthly_surplus <= 0:
        return PriorityForecast(months_needed=math.inf, projected_date=None, at_risk=True)
    months_needed = amount / monthly_surplus
    projected = add_months(as_of, int(months_needed))
    return PriorityForecast(
        months_needed=months_needed,
        projected_date=projected,
        at_risk=projected > target_date,
    )


@dataclass(slots=True, frozen=True)
class PlanSummary:
    plan: Plan
    requirement: WaterfallResult
    total: float
    outstanding: float


def summarize_plan(
    plan: Plan,
    conversion_rate: float,
    balance: float,
    fund: float,
    as_of: date | datetime,
) -> PlanSummary:
    """Requirement uses the liquid ``balance``; outstanding uses the earmarked ``fund``."""
    requirement = compute_requirement(plan, conversion_rate, balance, as_of)
    total = plan_total(plan, conversion_rate)
    logger.debug(
        "plan %s requires %.2f/mo", plan.name, requirement.required_monthly_rate,
        extra={"_json_plan": plan.name},
    )
    return PlanSummary(
        plan=plan,
        requirement=requirement,
        total=total,
        outstanding=max(0.0, total - fund),
    )


__all__ = [
    "AVERAGE_MONTH_DAYS",
    "MIN_MONTHS_REMAINING",
    "EMERGENCY_FLOOR",
    "RECOMMENDATION_MARGIN",
    "InvalidRate",
    "to_reporting",
    "months_between",
    "compute_requirement",
    "liquid_balance",
    "plan_total",
    "plan_outstanding",
    "safe_to_spend_monthly",
    "physical_safe_to_spend",
    "recommend_plan",
    "required_rate_for_goal",
    "forecast_priority_expense",
    "PlanSummary",
    "summarize_plan",
]
