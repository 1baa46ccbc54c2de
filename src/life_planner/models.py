from __future__ import annotations

"""Dataclass models for schedule records, ledger rows and savings plans."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


# --- Recurrence -------------------------------------------------------------

NONE = "NONE"
DAILY = "DAILY"
WEEKLY = "WEEKLY"
MONTHLY = "MONTHLY"
CUSTOM_INTERVAL = "CUSTOM_INTERVAL"
CUSTOM_WEEKDAYS = "CUSTOM_WEEKDAYS"

RECURRENCE_KINDS = frozenset({NONE, DAILY, WEEKLY, MONTHLY, CUSTOM_INTERVAL, CUSTOM_WEEKDAYS})


@dataclass(slots=True, frozen=True)
class RecurrenceRule:
    kind: str
    interval: int = 1  # CUSTOM_INTERVAL only, in days
    weekdays: frozenset[int] = frozenset()  # CUSTOM_WEEKDAYS only, 0=Sunday..6=Saturday

    def __post_init__(self) -> None:
        if self.kind not in RECURRENCE_KINDS:
            raise ValueError(f"unknown recurrence kind: {self.kind}")
        bad = [d for d in self.weekdays if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"weekday indices must be 0-6, got {sorted(bad)}")

    @classmethod
    def none(cls) -> "RecurrenceRule":
        return cls(NONE)

    @classmethod
    def daily(cls) -> "RecurrenceRule":
        return cls(DAILY)

    @classmethod
    def weekly(cls) -> "RecurrenceRule":
        return cls(WEEKLY)

    @classmethod
    def monthly(cls) -> "RecurrenceRule":
        return cls(MONTHLY)

    @classmethod
    def every(cls, days: int) -> "RecurrenceRule":
        return cls(CUSTOM_INTERVAL, interval=days)

    @classmethod
    def on_weekdays(cls, weekdays: Iterable[int]) -> "RecurrenceRule":
        return cls(CUSTOM_WEEKDAYS, weekdays=frozenset(weekdays))


# --- Schedule ---------------------------------------------------------------

ANYTIME = "Anytime"


@dataclass(slots=True, frozen=True)
class EventTemplate:
    activity: str
    type: str  # category tag: GENERAL, FITNESS, COACHING, STUDY ...
    time_range: str = ANYTIME  # "HH:MM-HH:MM", "HH:MM" or "Anytime"
    location: str = ""
    is_priority: bool = False
    is_goal: bool = False
    meta: Mapping[str, Any] = field(default_factory=dict)
    end_date: Optional[str] = None


@dataclass(slots=True)
class GeneratedEventRecord:
    id: Optional[int]
    user_id: Optional[str]
    series_id: Optional[str]
    date: str  # YYYY-MM-DD
    activity: str
    type: str
    time_range: str
    location: str = ""
    is_priority: bool = False
    is_goal: bool = False
    meta: dict[str, Any] = field(default_factory=dict)
    end_date: Optional[str] = None
    completed: bool = False
    created_at: Optional[str] = None


# --- Money ------------------------------------------------------------------

class Currency(str, Enum):
    LKR = "LKR"  # reporting currency
    GBP = "GBP"


REPORTING_CURRENCY = Currency.LKR


def as_utc_datetime(value: date | datetime) -> datetime:
    """Normalise a due date / as-of value to an aware UTC datetime.

    Bare dates mean midnight UTC; naive datetimes are taken as UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


@dataclass(slots=True, frozen=True)
class Obligation:
    amount: float
    currency: Currency
    due: datetime

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("obligation amount must not be negative")
        object.__setattr__(self, "currency", Currency(self.currency))
        object.__setattr__(self, "due", as_utc_datetime(self.due))

    @classmethod
    def lkr(cls, amount: float, due: date | datetime) -> "Obligation":
        return cls(amount, Currency.LKR, due)

    @classmethod
    def gbp(cls, amount: float, due: date | datetime) -> "Obligation":
        return cls(amount, Currency.GBP, due)


@dataclass(slots=True, frozen=True)
class Plan:
    name: str
    obligations: tuple[Obligation, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "obligations", tuple(self.obligations))


@dataclass(slots=True, frozen=True)
class WaterfallResult:
    required_monthly_rate: float
    binding_obligation: Optional[Obligation] = None
    binding_cumulative_required: float = 0.0
    binding_months_remaining: Optional[float] = None


@dataclass(slots=True, frozen=True)
class PriorityForecast:
    months_needed: float
    projected_date: Optional[date]  # None when the surplus can never cover it
    at_risk: bool


# --- Ledger rows ------------------------------------------------------------

@dataclass(slots=True)
class UserStats:
    user_id: str
    wallet_balance: float = 0.0
    wallet_salary: float = 46775.0
    wealth_uni_fund: float = 0.0
    active_uni_plan: str = "Plan 02"


@dataclass(slots=True)
class WalletHistoryEntry:
    id: Optional[int]
    user_id: str
    date: str
    amount: float  # signed: positive IN, negative OUT
    description: str
    type: str  # IN or OUT
    created_at: Optional[str] = None


@dataclass(slots=True)
class CoachingSession:
    id: Optional[int]
    user_id: str
    date: str
    client_name: str
    amount: float
    location: str = ""
    paid: bool = False
    event_id: Optional[int] = None
    created_at: Optional[str] = None


@dataclass(slots=True)
class PriorityExpense:
    id: Optional[int]
    user_id: str
    title: str
    amount: float
    target_date: str  # ISO date
    is_fulfilled: bool = False
    created_at: Optional[str] = None


# --- Fitness ----------------------------------------------------------------

@dataclass(slots=True)
class FitnessLog:
    id: Optional[int]
    user_id: str
    phase: str  # Base, Build, Peak, Taper, RACE
    date: str  # YYYY-MM-DD
    description: str
    distance: str  # planned distance, e.g. "3-4km"
    completed: bool = False
    created_at: Optional[str] = None


@dataclass(slots=True, frozen=True)
class MonthlyEarnings:
    month: str  # YYYY-MM
    total: float
    sessions: int


__all__ = [
    "NONE",
    "DAILY",
    "WEEKLY",
    "MONTHLY",
    "CUSTOM_INTERVAL",
    "CUSTOM_WEEKDAYS",
    "RECURRENCE_KINDS",
    "RecurrenceRule",
    "ANYTIME",
    "EventTemplate",
    "GeneratedEventRecord",
    "Currency",
    "REPORTING_CURRENCY",
    "as_utc_datetime",
    "Obligation",
    "Plan",
    "WaterfallResult",
    "PriorityForecast",
    "UserStats",
    "WalletHistoryEntry",
    "CoachingSession",
    "PriorityExpense",
    "FitnessLog",
    "MonthlyEarnings",
    "utc_now_iso",
]
