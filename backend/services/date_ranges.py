"""
Date range helpers: dashboard presets and custom range validation.
"""

from datetime import date, timedelta
from typing import Optional

# Dashboard shortcuts (the Graph API's own presets such as last_30d pass through untouched)
DATE_PRESETS = ("7d", "30d", "90d", "ytd", "lastMonth")

MAX_RANGE_DAYS = 90


class InvalidDateRange(ValueError):
    """A custom date range the dashboard refuses to query."""


def resolve_preset(preset: str, today: Optional[date] = None) -> dict:
    """
    Turn a dashboard preset into a {"since", "until"} range.

    Windows end yesterday, except lastMonth which covers the whole previous
    calendar month.
    """
    today = today or date.today()
    until = today - timedelta(days=1)

    if preset == "7d":
        since = until - timedelta(days=6)
    elif preset == "30d":
        since = until - timedelta(days=29)
    elif preset == "90d":
        since = until - timedelta(days=89)
    elif preset == "ytd":
        since = date(today.year, 1, 1)
    elif preset == "lastMonth":
        until = today.replace(day=1) - timedelta(days=1)
        since = until.replace(day=1)
    else:
        raise InvalidDateRange(f"Unknown date preset '{preset}'. Valid options: {list(DATE_PRESETS)}")

    return {"since": since.isoformat(), "until": until.isoformat()}


def validate_time_range(since: str, until: str, today: Optional[date] = None) -> dict:
    """Check a custom range and return it normalized to ISO dates."""
    today = today or date.today()

    try:
        since_date = date.fromisoformat(since)
        until_date = date.fromisoformat(until)
    except (TypeError, ValueError):
        raise InvalidDateRange("Invalid dates")

    if since_date > until_date:
        raise InvalidDateRange("Start date cannot be after end date")

    if until_date > today:
        raise InvalidDateRange("End date cannot be in the future")

    if (until_date - since_date).days > MAX_RANGE_DAYS:
        raise InvalidDateRange(f"Date range cannot exceed {MAX_RANGE_DAYS} days")

    return {"since": since_date.isoformat(), "until": until_date.isoformat()}
