"""Calendar-day normalisation.

Every date that enters the system (request bodies, server responses, local
storage, user input) passes through :func:`normalize_date` exactly once. Past
that boundary a day is always a ``YYYY-MM-DD`` string and is compared as one.
"""

import re
from datetime import date, datetime, timedelta

_DAY_PREFIX = re.compile(r"^\s*(\d{4}-\d{2}-\d{2})(?:$|[T\s])")


def normalize_date(value) -> str:
    """Return the canonical ``YYYY-MM-DD`` form of ``value``.

    Accepts ``date``/``datetime`` objects, plain day strings, ISO timestamps
    (the day portion is taken as written, no timezone shifting) and
    ``{"$date": ...}`` wrappers as produced by document stores.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        if "$date" in value:
            return normalize_date(value["$date"])
        if "date" in value:
            return normalize_date(value["date"])
        raise ValueError("Unsupported date object")
    if isinstance(value, str):
        match = _DAY_PREFIX.match(value)
        if not match:
            raise ValueError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")
        day = match.group(1)
        date.fromisoformat(day)
        return day
    raise ValueError(f"Unsupported date value: {value!r}")


def to_date(day: str) -> date:
    return date.fromisoformat(day)


def shift_day(day: str, days: int) -> str:
    return (date.fromisoformat(day) + timedelta(days=days)).isoformat()


def today_str() -> str:
    return date.today().isoformat()
