# domain.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping

MAX_NOTES_LENGTH = 500


class ShiftValidationError(ValueError):
    """Raised by the editing boundary when a shift cannot be saved."""


class PayPeriod(str, Enum):
    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-Weekly"
    MONTHLY = "Monthly"


class Timeframe(str, Enum):
    THIS_WEEK = "This Week"
    THIS_MONTH = "This Month"
    THIS_YEAR = "This Year"
    BI_WEEKLY = "Bi-Weekly"
    ALL_TIME = "All Time"


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


@dataclass
class Shift:
    """Represents a single recorded work period."""
    id: int | None = None
    date: date | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str = ""
    name: str | None = None
    address: str | None = None

    @property
    def day(self) -> date | None:
        """Calendar day used for grouping and filtering: `date`, else the start's day."""
        if self.date is not None:
            return self.date
        if self.start_time is not None:
            return self.start_time.date()
        return None

    @property
    def iso_year_week(self) -> tuple[int, int] | None:
        """Returns (ISO year, ISO week number), or None when the shift has no day."""
        d = self.day
        if d is None:
            return None
        iso = d.isocalendar()
        return (iso[0], iso[1])

    def validate(self) -> None:
        """Checks the rules the shift form enforces before saving."""
        if self.start_time is None or self.end_time is None:
            raise ShiftValidationError("Start and end time are required.")
        if self.end_time <= self.start_time:
            raise ShiftValidationError("End time must be after start time.")
        if len(self.notes or "") > MAX_NOTES_LENGTH:
            raise ShiftValidationError(f"Notes are limited to {MAX_NOTES_LENGTH} characters.")


def _number(value: Any, cast, default):
    """Stored setting coerced to a number; unset, zero or unreadable values give the default."""
    try:
        number = cast(value)
    except (TypeError, ValueError):
        return default
    return number or default


@dataclass
class Preferences:
    """Snapshot of the user's settings, passed explicitly to every calculation."""
    pay_rate: float = 15.0
    default_shift_duration: float = 8.0
    currency: str = "USD"
    pay_period: PayPeriod = PayPeriod.BI_WEEKLY
    include_taxes: bool = False
    shift_reminders: bool = True
    reminder_time: int = 30
    week_start: int = 0  # Monday=0 ... Sunday=6

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "payRate": self.pay_rate,
            "defaultShiftDuration": self.default_shift_duration,
            "currency": self.currency,
            "payPeriod": self.pay_period.value,
            "includeTaxes": self.include_taxes,
            "shiftReminders": self.shift_reminders,
            "reminderTime": self.reminder_time,
            "weekStart": self.week_start,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Preferences":
        defaults = cls()
        # zero means "never set" for the numeric settings
        pay_rate = _number(data.get("payRate"), float, defaults.pay_rate)
        duration = _number(data.get("defaultShiftDuration"), float, defaults.default_shift_duration)
        reminder = _number(data.get("reminderTime"), int, defaults.reminder_time)
        try:
            pay_period = PayPeriod(data.get("payPeriod", defaults.pay_period.value))
        except (TypeError, ValueError):
            pay_period = defaults.pay_period
        try:
            week_start = int(data.get("weekStart", defaults.week_start))
        except (TypeError, ValueError):
            week_start = defaults.week_start
        if not 0 <= week_start <= 6:
            week_start = defaults.week_start
        currency = data.get("currency")
        return cls(
            pay_rate=pay_rate,
            default_shift_duration=duration,
            currency=currency if isinstance(currency, str) and currency else defaults.currency,
            pay_period=pay_period,
            include_taxes=bool(data.get("includeTaxes", defaults.include_taxes)),
            shift_reminders=bool(data.get("shiftReminders", defaults.shift_reminders)),
            reminder_time=reminder,
            week_start=week_start,
        )


@dataclass
class DayGroup:
    """Shifts sharing one calendar day; `day` is None for the undated bucket."""
    day: date | None
    shifts: List[Shift] = field(default_factory=list)


@dataclass
class ShiftSummary:
    total_shifts: int = 0
    total_hours: float = 0.0
    total_earnings: float = 0.0
    average_duration: float = 0.0  # seconds
    most_common_weekday: int | None = None  # Sunday=1 ... Saturday=7
    average_hourly_rate: float = 0.0


@dataclass
class SeriesPoint:
    """One bar of the weekly hours chart."""
    label: str
    day: date
    hours: float = 0.0


@dataclass
class DailyEarnings:
    day: date | None
    shifts: List[Shift]
    hours: float
    earnings: float
