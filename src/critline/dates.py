"""Calendar-date normalization anchored at UTC midnight."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _midnight(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def parse_as_utc_date(value: object) -> datetime | None:
    """Normalize *value* to an aware datetime at 00:00 UTC.

    Accepts ``YYYY-MM-DD`` strings, ISO timestamp strings, ``date`` and
    ``datetime`` objects.  Date-only input keeps its calendar day no matter
    what the local timezone is.  Aware timestamps are converted to UTC
    first; naive ones keep the day as written.  Returns None for anything
    that cannot be parsed.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return _midnight(value.date())

    if isinstance(value, date):
        return _midnight(value)

    if not isinstance(value, str):
        logger.debug("Ignoring non-date value %r", value)
        return None

    text = value.strip()
    if not text:
        return None

    try:
        if len(text) == 10:
            return _midnight(date.fromisoformat(text))
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable date %r treated as absent", value)
        return None

    return parse_as_utc_date(parsed)


def format_to_iso_date_string(value: date | datetime) -> str:
    """Format *value* as ``YYYY-MM-DD`` using its UTC components."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    return value.isoformat()


def days_between(start: object, end: object) -> float | None:
    """Signed number of 24h days from *start* to *end*, or None if either is unparseable."""
    s = parse_as_utc_date(start)
    e = parse_as_utc_date(end)
    if s is None or e is None:
        return None
    return (e - s).total_seconds() / SECONDS_PER_DAY
