"""
ISO-week / 13-period calendar.

Rides are booked per ISO week.  Payroll groups weeks into four-week
periods: weeks 1-4 are period 1, 5-8 period 2, ... 49-52 period 13.  In
years with an ISO week 53 it is folded into period 13 as its fourth week.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

WEEKS_PER_PERIOD = 4
PERIODS_PER_YEAR = 13


@dataclass(frozen=True)
class PeriodWeek:
    year: int
    week_nr: int
    period_nr: int
    week_in_period: int


def period_of(year: int, week_nr: int) -> PeriodWeek:
    if not 1 <= week_nr <= 53:
        raise ValueError(f"ISO week out of range: {week_nr}")
    period_nr = min((week_nr - 1) // WEEKS_PER_PERIOD + 1, PERIODS_PER_YEAR)
    week_in_period = min(week_nr - (period_nr - 1) * WEEKS_PER_PERIOD, WEEKS_PER_PERIOD)
    return PeriodWeek(year, week_nr, period_nr, week_in_period)


def period_for_date(day: date) -> PeriodWeek:
    iso = day.isocalendar()
    return period_of(iso.year, iso.week)
