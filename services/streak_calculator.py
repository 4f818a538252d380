"""
Streak calculation over a learner's activity record.

Pure functions only: no Flask, no storage access.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Set, Union

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def today_string(today: Optional[date] = None) -> str:
    """Return ``today`` (default: the current local date) as ``YYYY-MM-DD``."""
    return (today or date.today()).isoformat()


def calculate_streak(activity_dates: Iterable[DateLike], today: date) -> int:
    """
    Count consecutive active days ending at and including ``today``.

    The activity record is expected to already contain today's date when a
    quiz has just been finished. A record without ``today`` has a streak of 0,
    even when yesterday was active.

    Args:
        activity_dates: ISO date strings, dates or datetimes; duplicates are ignored
        today: The calendar day the streak must end on

    Returns:
        Number of consecutive days, 0 for an empty record
    """
    streak = 0
    for day in sorted(_normalize_all(activity_dates), reverse=True):
        if day > today:
            continue
        if day != today - timedelta(days=streak):
            break
        streak += 1
    return streak


def longest_streak(activity_dates: Iterable[DateLike]) -> int:
    """Return the longest run of consecutive active days anywhere in the record."""
    days = sorted(_normalize_all(activity_dates))
    if not days:
        return 0

    longest = 1
    run = 1
    for previous, current in zip(days, days[1:]):
        if current == previous + timedelta(days=1):
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    return max(longest, run)


def _normalize_all(values: Iterable[DateLike]) -> Set[date]:
    days: Set[date] = set()
    for value in values:
        normalized = _normalize_to_date(value)
        if normalized is None:
            logger.warning("Skipping unparsable activity date %r", value)
            continue
        days.add(normalized)
    return days


def _normalize_to_date(value: DateLike) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None
