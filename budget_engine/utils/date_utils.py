"""Date manipulation utilities"""

import calendar
from datetime import date, datetime
from typing import NamedTuple
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta


class MonthRange(NamedTuple):
    """First and last day of a calendar month (both inclusive)"""

    start: date
    end: date


def month_start(day: date) -> date:
    """First day of the month containing day"""
    return day.replace(day=1)


def month_end(day: date) -> date:
    """Last day of the month containing day"""
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def previous_month_range(today: date) -> MonthRange:
    """Inclusive date range of the calendar month before today's month"""
    start = month_start(today) - relativedelta(months=1)
    return MonthRange(start=start, end=month_end(start))


def is_same_month(day: date, other: date) -> bool:
    return day.year == other.year and day.month == other.month


def today_in(timezone: str) -> date:
    """Current calendar date in the given IANA timezone"""
    return datetime.now(ZoneInfo(timezone)).date()
