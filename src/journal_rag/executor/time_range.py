# src/journal_rag/executor/time_range.py
"""Time range normalization.

Every bound handed to the store is a timezone-aware UTC instant. A range's
``timezone`` is carried for display only and never used in comparisons.

Precedence when resolving the range of a step:
    step-level range > range derived from the step's SQL > plan-level range > unbounded
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Mapping, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import MO, relativedelta

from journal_rag.executor.constants import CREATED_AT_COLUMN

logger = logging.getLogger(__name__)

_END_OF_DAY = time(23, 59, 59, 999999)


@dataclass(frozen=True)
class TimeRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    timezone: Optional[str] = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "timezone": self.timezone,
        }


UNBOUNDED = TimeRange()


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string, date or datetime into a UTC instant.

    Postgres renderings such as ``2025-08-01 00:00:00+00`` are accepted.
    Naive values are taken as UTC. Anything unparsable yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] == "z":
            text = text[:-1] + "Z"
        try:
            dt = isoparse(text)
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# -------------------------
# Shorthand directives
# -------------------------

_LAST_N_DAYS = re.compile(r"^(?:last|past)\s+(\d{1,4})\s+days?$")

_ALIASES = {
    "today": "today",
    "yesterday": "yesterday",
    "this week": "this_week",
    "current week": "this_week",
    "last week": "last_week",
    "last calendar week": "last_week",
    "previous week": "last_week",
    "this month": "this_month",
    "current month": "this_month",
    "last month": "last_month",
    "previous month": "last_month",
    "this year": "this_year",
    "last year": "last_year",
    "previous year": "last_year",
}


def _normalize_directive(text: str) -> str:
    text = re.sub(r"(?<=[a-z])(?=[A-Z])", " ", text.strip())
    text = re.sub(r"[_\-]+", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def _start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _end_of_day(d: date) -> datetime:
    return datetime.combine(d, _END_OF_DAY, tzinfo=timezone.utc)


def resolve_time_directive(directive: str, now: datetime) -> Optional[TimeRange]:
    """Resolve a shorthand such as "last calendar week" into absolute UTC bounds.

    Weeks are ISO weeks (Monday start). Calendar arithmetic is anchored on the
    UTC date of ``now``. Unknown directives return None.
    """
    now = parse_instant(now) or datetime.now(timezone.utc)
    today = now.date()
    key = _normalize_directive(directive)

    m = _LAST_N_DAYS.match(key)
    if m:
        return TimeRange(start=now - relativedelta(days=int(m.group(1))), end=now, timezone="UTC")

    kind = _ALIASES.get(key)
    if kind is None:
        return None

    monday = today + relativedelta(weekday=MO(-1))
    first_of_month = today + relativedelta(day=1)
    first_of_year = today + relativedelta(month=1, day=1)

    if kind == "today":
        return TimeRange(start=_start_of_day(today), end=now, timezone="UTC")
    if kind == "yesterday":
        y = today - relativedelta(days=1)
        return TimeRange(start=_start_of_day(y), end=_end_of_day(y), timezone="UTC")
    if kind == "this_week":
        return TimeRange(start=_start_of_day(monday), end=now, timezone="UTC")
    if kind == "last_week":
        prev_monday = monday - relativedelta(weeks=1)
        return TimeRange(
            start=_start_of_day(prev_monday),
            end=_end_of_day(prev_monday + relativedelta(days=6)),
            timezone="UTC",
        )
    if kind == "this_month":
        return TimeRange(start=_start_of_day(first_of_month), end=now, timezone="UTC")
    if kind == "last_month":
        return TimeRange(
            start=_start_of_day(first_of_month - relativedelta(months=1)),
            end=_end_of_day(first_of_month - relativedelta(days=1)),
            timezone="UTC",
        )
    if kind == "this_year":
        return TimeRange(start=_start_of_day(first_of_year), end=now, timezone="UTC")
    # last_year
    return TimeRange(
        start=_start_of_day(first_of_year - relativedelta(years=1)),
        end=_end_of_day(first_of_year - relativedelta(days=1)),
        timezone="UTC",
    )


def coerce_time_range(value: Any, *, now: Optional[datetime] = None) -> Optional[TimeRange]:
    """Turn an untrusted range (mapping, directive string, TimeRange or None) into a TimeRange.

    Returns None when nothing usable is present. Individual unparsable bounds become open.
    """
    if value is None or isinstance(value, TimeRange):
        return value
    if isinstance(value, str):
        resolved = resolve_time_directive(value, now or datetime.now(timezone.utc))
        if resolved is None:
            logger.warning(f"Ignoring unrecognized time directive: {value!r}")
        return resolved
    if isinstance(value, Mapping):
        tz = value.get("timezone")
        return TimeRange(
            start=parse_instant(value.get("start") or value.get("startDate")),
            end=parse_instant(value.get("end") or value.get("endDate")),
            timezone=tz if isinstance(tz, str) else None,
        )
    logger.warning(f"Ignoring time range of unsupported type {type(value).__name__}")
    return None


# -------------------------
# SQL-derived ranges
# -------------------------

CREATED_AT_PATTERN = rf'(?<![\w.])(?:(?:"[^"]+"|[A-Za-z_]\w*)\.)?"?{CREATED_AT_COLUMN}"?'
_LITERAL = (
    r"'([^']*)'"
    r"(?:\s*::\s*(?:timestamptz|timestamp(?:\s+with(?:out)?\s+time\s+zone)?|date))?"
)

_BETWEEN = re.compile(rf"{CREATED_AT_PATTERN}\s+BETWEEN\s+{_LITERAL}\s+AND\s+{_LITERAL}", re.IGNORECASE)
_GTE = re.compile(rf"{CREATED_AT_PATTERN}\s*>=\s*{_LITERAL}", re.IGNORECASE)
_LTE = re.compile(rf"{CREATED_AT_PATTERN}\s*<=\s*{_LITERAL}", re.IGNORECASE)


def derive_time_range_from_sql(sql: Optional[str]) -> Optional[TimeRange]:
    """Infer bounds from literal comparisons against the creation-time column.

    Recognizes ``BETWEEN 'a' AND 'b'``, ``>= 'a'`` and ``<= 'b'``. Literals that
    do not parse as instants are ignored.
    """
    if not sql:
        return None

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    m = _BETWEEN.search(sql)
    if m:
        start = parse_instant(m.group(1))
        end = parse_instant(m.group(2))

    if start is None:
        m = _GTE.search(sql)
        if m:
            start = parse_instant(m.group(1))
    if end is None:
        m = _LTE.search(sql)
        if m:
            end = parse_instant(m.group(1))

    if start is None and end is None:
        return None
    return TimeRange(start=start, end=end)


def resolve_time_range(
    step_range: Optional[TimeRange],
    sql: Optional[str],
    plan_range: Optional[TimeRange],
) -> TimeRange:
    for candidate in (step_range, derive_time_range_from_sql(sql), plan_range):
        if candidate is not None and candidate.is_bounded:
            return candidate
    return UNBOUNDED
