"""Rendering helpers for evidence values and recommendation text"""

from datetime import date
from typing import Optional

DEFAULT_CURRENCY = "FCFA"


def format_amount(amount: float, currency: str = DEFAULT_CURRENCY) -> str:
    """12345.6 -> '12 346 FCFA' (rounded, space-grouped thousands)"""
    return f"{round(amount):,} {currency}".replace(",", " ")


def format_percent(ratio: float, digits: int = 0) -> str:
    """0.1234 -> '12%'"""
    return f"{ratio * 100:.{digits}f}%"


def format_date(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def format_period(start: date, end: date) -> str:
    return f"{format_date(start)} - {format_date(end)}"


def plural(count: int, word: str, many: Optional[str] = None) -> str:
    if count == 1:
        return f"{count} {word}"
    return f"{count} {many or word + 's'}"
