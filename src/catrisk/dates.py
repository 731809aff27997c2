r"""
Calendar helpers used by the catastrophe simulators.

The simulators only need a small date contract: adding years and days,
the signed day count between two dates, ordering and the calendar year.
Dates are plain :class:`datetime.date` values. Year arithmetic goes
through :class:`dateutil.relativedelta.relativedelta`, so 29 February
rolls back to 28 February in non-leap years.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

import numpy as np
from dateutil.relativedelta import relativedelta

from .errors import InvalidInputError

__all__ = [
    "DAYS_PER_YEAR",
    "to_date",
    "add_years",
    "add_days",
    "anchor",
    "days_between",
    "year_fraction",
]

# Actual/365 Fixed
DAYS_PER_YEAR = 365.0


def to_date(value: Any) -> dt.date:
    r"""
    Coerce ``value`` to a :class:`datetime.date`.

    Parameters
    ----------
    value : date, datetime, numpy.datetime64 or str
        Strings must be ISO-8601 (``"2010-01-01"``).

    Returns
    -------
    datetime.date

    Raises
    ------
    InvalidInputError
        If ``value`` cannot be read as a calendar date.

    Examples
    --------
    >>> to_date("2010-03-15")
    datetime.date(2010, 3, 15)
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, np.datetime64):
        return value.astype("datetime64[D]").item()
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value)
        except ValueError as e:
            raise InvalidInputError(f"Invalid date string: {value!r}") from e
    raise InvalidInputError(f"Cannot interpret {type(value).__name__} as a date")


def add_years(d: dt.date, years: int) -> dt.date:
    """Shift ``d`` by a whole number of years."""
    return d + relativedelta(years=int(years))


def add_days(d: dt.date, days: int) -> dt.date:
    """Shift ``d`` by a whole number of days."""
    return d + relativedelta(days=int(days))


def anchor(year: int, month: int, day: int) -> dt.date:
    r"""
    Date in ``year`` with the given month and day.

    The day is clamped to the month end, so ``anchor(2001, 2, 29)`` is
    2001-02-28.
    """
    return dt.date(year, 1, 1) + relativedelta(month=month, day=day)


def days_between(start: dt.date, end: dt.date) -> int:
    """Signed number of days from ``start`` to ``end``."""
    return (end - start).days


def year_fraction(start: dt.date, end: dt.date) -> float:
    r"""
    Length of ``[start, end]`` in years under Actual/365 Fixed.

    Examples
    --------
    >>> year_fraction(dt.date(2010, 1, 1), dt.date(2014, 12, 31))
    5.0
    """
    return days_between(start, end) / DAYS_PER_YEAR
