# services.py
from __future__ import annotations
import calendar
import logging
from collections import Counter
from datetime import datetime, date, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from domain import (
    DailyEarnings,
    DayGroup,
    PayPeriod,
    Preferences,
    SeriesPoint,
    Shift,
    ShiftSummary,
    SortOrder,
    Timeframe,
)

logger = logging.getLogger(__name__)

TAX_FACTOR = 0.8  # flat 20% deduction, not a real tax model
OVERTIME_HOURS = 40.0
BUSY_WEEK_SHIFTS = 5
BI_WEEKLY_DAYS = 14

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

PAY_PERIOD_TIMEFRAMES = {
    PayPeriod.WEEKLY: Timeframe.THIS_WEEK,
    PayPeriod.BI_WEEKLY: Timeframe.BI_WEEKLY,
    PayPeriod.MONTHLY: Timeframe.THIS_MONTH,
}


# =========================
# Duration & earnings
# =========================
def _align(a: datetime, b: datetime) -> tuple[datetime, datetime]:
    """Makes a naive/aware pair comparable; the naive side is read in the other's zone."""
    if (a.tzinfo is None) == (b.tzinfo is None):
        return a, b
    if a.tzinfo is None:
        return a.replace(tzinfo=b.tzinfo), b
    return a, b.replace(tzinfo=a.tzinfo)


def duration_hours(shift: Shift) -> float:
    """Worked hours; 0 when a time is missing or the end is not after the start."""
    start, end = shift.start_time, shift.end_time
    if start is None or end is None:
        return 0.0
    start, end = _align(start, end)
    if end <= start:
        logger.debug("Shift %s ends before it starts; counted as 0 h", shift.id)
        return 0.0
    return (end - start).total_seconds() / 3600.0


def earnings(shift: Shift, pay_rate: float, include_taxes: bool = False) -> float:
    amount = duration_hours(shift) * pay_rate
    if include_taxes:
        amount *= TAX_FACTOR
    return amount


class EarningsCalculator:
    """Earnings rules bound to one preferences snapshot."""
    def __init__(self, preferences: Preferences):
        self.pay_rate = preferences.pay_rate
        self.include_taxes = preferences.include_taxes

    def earnings_for_hours(self, hours: float) -> float:
        amount = hours * self.pay_rate
        if self.include_taxes:
            amount *= TAX_FACTOR
        return amount

    def shift_earnings(self, shift: Shift) -> float:
        return earnings(shift, self.pay_rate, self.include_taxes)

    def total_earnings(self, shifts: Iterable[Shift]) -> float:
        return sum(self.shift_earnings(s) for s in shifts)

    def average_hourly_rate(self, shifts: Iterable[Shift]) -> float:
        """Total earnings over total hours; 0 when nothing was worked."""
        shifts = list(shifts)
        hours = sum(duration_hours(s) for s in shifts)
        if hours <= 0:
            return 0.0
        return self.total_earnings(shifts) / hours


# =========================
# Date-range filtering
# =========================
def week_start_for(day: date, week_start: int = 0) -> date:
    """First day of the week containing `day` (week_start: Monday=0 ... Sunday=6)."""
    offset = (day.weekday() - week_start) % 7
    return day - timedelta(days=offset)


def timeframe_start(timeframe: Timeframe, now: datetime, week_start: int = 0) -> date | None:
    today = now.date()
    if timeframe == Timeframe.THIS_WEEK:
        return week_start_for(today, week_start)
    if timeframe == Timeframe.THIS_MONTH:
        return today.replace(day=1)
    if timeframe == Timeframe.THIS_YEAR:
        return date(today.year, 1, 1)
    if timeframe == Timeframe.BI_WEEKLY:
        return (now - timedelta(days=BI_WEEKLY_DAYS)).date()
    return None


def filter_by_timeframe(
    shifts: Iterable[Shift], timeframe: Timeframe, now: datetime, week_start: int = 0
) -> List[Shift]:
    """
    Keeps shifts whose day lies in [start of timeframe, today].
    All Time keeps everything, including future and undated shifts.
    """
    if timeframe == Timeframe.ALL_TIME:
        return list(shifts)
    start = timeframe_start(timeframe, now, week_start)
    end = now.date()
    return [s for s in shifts if s.day is not None and start <= s.day <= end]


# =========================
# Grouping
# =========================
def group_by_day(shifts: Iterable[Shift], order: SortOrder = SortOrder.DESCENDING) -> List[DayGroup]:
    """
    Buckets shifts by calendar day, keeping input order inside each bucket.
    Undated shifts form a single trailing group with day=None.
    """
    buckets: dict[date, List[Shift]] = {}
    undated: List[Shift] = []
    for s in shifts:
        d = s.day
        if d is None:
            undated.append(s)
        else:
            buckets.setdefault(d, []).append(s)

    days = sorted(buckets, reverse=(order == SortOrder.DESCENDING))
    groups = [DayGroup(day=d, shifts=buckets[d]) for d in days]
    if undated:
        groups.append(DayGroup(day=None, shifts=undated))
    return groups


class DayGroupPager:
    """'Load more' over day-groups: the page grows by whole days, never shrinks."""
    def __init__(self, groups: List[DayGroup], page_size: int = 20):
        self.groups = groups
        self.page_size = max(1, page_size)
        self.limit = self.page_size

    @property
    def visible(self) -> List[DayGroup]:
        return self.groups[: self.limit]

    @property
    def has_more(self) -> bool:
        return self.limit < len(self.groups)

    def load_more(self) -> List[DayGroup]:
        if self.has_more:
            self.limit += self.page_size
        return self.visible


def shifts_on_day(shifts: Iterable[Shift], day: date) -> List[Shift]:
    return [s for s in shifts if s.day == day]


# =========================
# Summaries
# =========================
def weekday_number(day: date) -> int:
    """Sunday=1 ... Saturday=7."""
    return (day.weekday() + 1) % 7 + 1


def weekday_name(number: int | None) -> str:
    if number is None or not 1 <= number <= 7:
        return "N/A"
    return WEEKDAY_NAMES[number - 1]


def most_common_weekday(shifts: Iterable[Shift]) -> int | None:
    """Weekday with the most shifts; ties go to the lowest weekday number."""
    counts = Counter(weekday_number(s.day) for s in shifts if s.day is not None)
    if not counts:
        return None
    return min(counts, key=lambda wd: (-counts[wd], wd))


def summarize(shifts: Iterable[Shift], pay_rate: float, include_taxes: bool = False) -> ShiftSummary:
    shifts = list(shifts)
    if not shifts:
        return ShiftSummary()
    total_hours = sum(duration_hours(s) for s in shifts)
    total_earnings = sum(earnings(s, pay_rate, include_taxes) for s in shifts)
    return ShiftSummary(
        total_shifts=len(shifts),
        total_hours=total_hours,
        total_earnings=total_earnings,
        average_duration=total_hours * 3600 / len(shifts),
        most_common_weekday=most_common_weekday(shifts),
        average_hourly_rate=(total_earnings / total_hours) if total_hours > 0 else 0.0,
    )


def period_summary(
    shifts: Iterable[Shift], timeframe: Timeframe, now: datetime, preferences: Preferences
) -> ShiftSummary:
    subset = filter_by_timeframe(shifts, timeframe, now, preferences.week_start)
    return summarize(subset, preferences.pay_rate, preferences.include_taxes)


def pay_period_summary(shifts: Iterable[Shift], now: datetime, preferences: Preferences) -> ShiftSummary:
    timeframe = PAY_PERIOD_TIMEFRAMES.get(preferences.pay_period, Timeframe.BI_WEEKLY)
    return period_summary(shifts, timeframe, now, preferences)


def daily_earnings(
    shifts: Iterable[Shift], preferences: Preferences, order: SortOrder = SortOrder.DESCENDING
) -> List[DailyEarnings]:
    calc = EarningsCalculator(preferences)
    rows = []
    for g in group_by_day(shifts, order):
        rows.append(DailyEarnings(
            day=g.day,
            shifts=g.shifts,
            hours=sum(duration_hours(s) for s in g.shifts),
            earnings=calc.total_earnings(g.shifts),
        ))
    return rows


def hours_by_week(shifts: Iterable[Shift]) -> Dict[Tuple[int, int], float]:
    """
    Total hours per ISO week, newest week first.
    Returns dict {(year, week): hours}; undated shifts are left out.
    """
    totals: Dict[Tuple[int, int], float] = {}
    for s in shifts:
        key = s.iso_year_week
        if key is None:
            continue
        totals[key] = totals.get(key, 0.0) + duration_hours(s)
    return {k: totals[k] for k in sorted(totals, reverse=True)}


# =========================
# Home screen
# =========================
def _start_instant(shift: Shift) -> datetime | None:
    if shift.start_time is not None:
        return shift.start_time
    if shift.day is not None:
        return datetime.combine(shift.day, time.min)
    return None


def today_shift(shifts: Iterable[Shift], now: datetime) -> Optional[Shift]:
    matches = shifts_on_day(shifts, now.date())
    return matches[0] if matches else None


def next_shift(shifts: Iterable[Shift], now: datetime) -> Optional[Shift]:
    """Earliest shift starting after `now`; undated shifts never qualify."""
    upcoming = []
    for index, s in enumerate(shifts):
        start = _start_instant(s)
        if start is None:
            continue
        # compare in now's frame so every candidate is naive or every one is aware
        start = start.replace(tzinfo=now.tzinfo) if (start.tzinfo is None) != (now.tzinfo is None) else start
        if start > now:
            upcoming.append((start, index, s))
    if not upcoming:
        return None
    return min(upcoming, key=lambda item: (item[0], item[1]))[2]


# =========================
# Charts
# =========================
def weekly_series(shifts: Iterable[Shift], week_start_day: date, week_start: int = 0) -> List[SeriesPoint]:
    """Seven points, one per day of the week containing `week_start_day`."""
    first = week_start_for(week_start_day, week_start)
    days = [first + timedelta(days=i) for i in range(7)]
    points = [SeriesPoint(label=weekday_name(weekday_number(d))[:3], day=d) for d in days]
    index = {p.day: p for p in points}
    for s in shifts:
        point = index.get(s.day)
        if point is not None:
            point.hours += duration_hours(s)
    return points


# =========================
# Insight
# =========================
def insight(total_hours_this_week: float, shifts_count_this_week: int, formatted_earnings: str) -> str:
    if total_hours_this_week > OVERTIME_HOURS:
        return (f"You've worked {total_hours_this_week:.1f} hours this week. "
                "That's overtime, remember to rest.")
    if shifts_count_this_week > BUSY_WEEK_SHIFTS:
        return f"Busy week! {shifts_count_this_week} shifts so far."
    return f"You've earned {formatted_earnings} this week. Keep it up!"


# =========================
# Calendar & editing helpers
# =========================
def month_days(year: int, month: int, week_start: int = 0) -> List[date | None]:
    """Month grid cells: leading None padding, then every day of the month."""
    first = date(year, month, 1)
    padding = (first.weekday() - week_start) % 7
    n_days = calendar.monthrange(year, month)[1]
    return [None] * padding + [date(year, month, d) for d in range(1, n_days + 1)]


def default_end_time(start: datetime, preferences: Preferences) -> datetime:
    return start + timedelta(hours=preferences.default_shift_duration)


def reminder_at(shift: Shift, preferences: Preferences) -> datetime | None:
    if not preferences.shift_reminders or shift.start_time is None:
        return None
    return shift.start_time - timedelta(minutes=preferences.reminder_time)
