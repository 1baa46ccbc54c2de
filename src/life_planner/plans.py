"""Deployment-time university payment plans and rate defaults."""

from datetime import datetime, timezone

from .models import Obligation, Plan

FALLBACK_GBP_LKR_RATE = 385.0
DEFAULT_PLAN = "Plan 02"
# Fallback first, most ambitious last.
RECOMMENDATION_ORDER = ("Plan 03", "Plan 02", "Plan 01")


def _due(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


UNIVERSITY_PLANS: dict[str, Plan] = {
    "Plan 01": Plan("Plan 01", (
        Obligation.lkr(549000, _due(2026, 9, 25)),
        Obligation.gbp(600, _due(2026, 9, 25)),
    )),
    "Plan 02": Plan("Plan 02", (
        Obligation.lkr(194000, _due(2026, 9, 25)),
        Obligation.gbp(600, _due(2026, 9, 25)),
        Obligation.lkr(194000, _due(2027, 1, 25)),
        Obligation.lkr(194000, _due(2027, 3, 25)),
    )),
    "Plan 03": Plan("Plan 03", (
        Obligation.gbp(600, _due(2026, 9, 25)),
        *(Obligation.lkr(75000, _due(y, m, 25)) for y, m in (
            (2026, 9), (2026, 10), (2026, 11), (2026, 12),
            (2027, 1), (2027, 2), (2027, 3), (2027, 4),
        )),
    )),
}


def get_plan(name: str) -> Plan:
    try:
        return UNIVERSITY_PLANS[name]
    except KeyError:
        raise KeyError(f"unknown plan: {name}") from None


def plans_in_recommendation_order() -> list[Plan]:
    return [UNIVERSITY_PLANS[name] for name in RECOMMENDATION_ORDER]


__all__ = [
    "FALLBACK_GBP_LKR_RATE",
    "DEFAULT_PLAN",
    "RECOMMENDATION_ORDER",
    "UNIVERSITY_PLANS",
    "get_plan",
    "plans_in_recommendation_order",
]
