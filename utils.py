# utils.py
from __future__ import annotations
from datetime import datetime
from typing import Iterable

import pandas as pd

from domain import DayGroup, Preferences, SeriesPoint, Shift, Timeframe
from services import (
    EarningsCalculator,
    duration_hours,
    filter_by_timeframe,
    insight,
    summarize,
    weekday_name,
    weekday_number,
)

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "CAD": "CA$",
    "AUD": "A$",
    "JPY": "¥",
    "CNY": "CN¥",
}
ZERO_DECIMAL_CURRENCIES = {"JPY"}


def format_currency(amount: float, currency: str = "USD") -> str:
    code = (currency or "USD").upper()
    decimals = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
    sign = "-" if amount < 0 else ""
    body = f"{abs(amount):,.{decimals}f}"
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {body}"
    return f"{sign}{symbol}{body}"


def format_duration(seconds: float) -> str:
    """'8h 00m' style, as shown next to each shift."""
    total = max(0, int(seconds))
    h, rem = divmod(total, 3600)
    return f"{h}h {rem // 60:02d}m"


def format_shift_duration(shift: Shift) -> str:
    if shift.start_time is None or shift.end_time is None:
        return "N/A"
    return format_duration(duration_hours(shift) * 3600)


def format_hours(hours: float) -> str:
    return f"{hours:.1f}"


def week_insight(shifts: Iterable[Shift], now: datetime, preferences: Preferences) -> str:
    """Insight message for the week containing `now`."""
    week = filter_by_timeframe(shifts, Timeframe.THIS_WEEK, now, preferences.week_start)
    summary = summarize(week, preferences.pay_rate, preferences.include_taxes)
    return insight(
        summary.total_hours,
        summary.total_shifts,
        format_currency(summary.total_earnings, preferences.currency),
    )


def shifts_to_dataframe(shifts: Iterable[Shift], preferences: Preferences) -> pd.DataFrame:
    calc = EarningsCalculator(preferences)
    rows = []
    for s in shifts:
        d = s.day
        rows.append({
            "Date": d.isoformat() if d else "",
            "Weekday": weekday_name(weekday_number(d)) if d else "N/A",
            "Start": s.start_time.strftime("%H:%M") if s.start_time else "",
            "End": s.end_time.strftime("%H:%M") if s.end_time else "",
            "Hours": round(duration_hours(s), 2),
            "Earnings": round(calc.shift_earnings(s), 2),
            "Notes": s.notes or "",
        })
    df = pd.DataFrame(rows, columns=["Date", "Weekday", "Start", "End", "Hours", "Earnings", "Notes"])
    if not df.empty:
        df = df.sort_values(["Date"], ascending=False, kind="stable").reset_index(drop=True)
    return df


def series_to_dataframe(series: Iterable[SeriesPoint]) -> pd.DataFrame:
    rows = [{"Day": p.label, "Date": p.day.isoformat(), "Hours": round(p.hours, 2)} for p in series]
    return pd.DataFrame(rows, columns=["Day", "Date", "Hours"])


def day_groups_to_dataframe(groups: Iterable[DayGroup], preferences: Preferences) -> pd.DataFrame:
    calc = EarningsCalculator(preferences)
    rows = []
    for g in groups:
        hours = sum(duration_hours(s) for s in g.shifts)
        rows.append({
            "Date": g.day.isoformat() if g.day else "Unknown",
            "Shifts": len(g.shifts),
            "Hours": round(hours, 2),
            "Earnings": round(calc.total_earnings(g.shifts), 2),
        })
    return pd.DataFrame(rows, columns=["Date", "Shifts", "Hours", "Earnings"])
