"""Date manipulation utilities"""

import calendar
from datetime import date, timedelta
from typing import List, Tuple


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]


def days_between(first: date, second: date) -> int:
    """Absolute number of calendar days separating two dates"""
    return abs((second - first).days)


def days_in_month(day: date) -> int:
    return calendar.monthrange(day.year, day.month)[1]


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month length"""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def previous_month_bounds(day: date) -> Tuple[date, date]:
    """First and last day of the calendar month before `day`"""
    end = day.replace(day=1) - timedelta(days=1)
    return end.replace(day=1), end


def is_month_end(day: date, last_days: int = 2) -> bool:
    """True when `day` is at most `last_days` days before the last day of its month"""
    return day.day >= days_in_month(day) - last_days


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def business_days_between(start: date, end: date) -> int:
    """
    Signed count of weekdays stepped over going from `start` to `end`.

    Forward, each business day after `start` up to `end` counts; backward,
    each business day from `start` down to (excluding) `end` counts negative.
    """
    count = 0
    current = start
    if end >= start:
        while current < end:
            current += timedelta(days=1)
            if is_business_day(current):
                count += 1
    else:
        while current > end:
            if is_business_day(current):
                count -= 1
            current -= timedelta(days=1)
    return count
