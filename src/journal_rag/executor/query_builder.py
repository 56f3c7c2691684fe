# src/journal_rag/executor/query_builder.py
"""Typed placeholder binding for sanitized SQL.

Placeholders are substituted only with values this module renders itself:
the caller identity (checked against a strict character class) and UTC
instants. Nothing from the request body ever reaches the SQL text here.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from journal_rag.executor.errors import InvalidCallerIdentityError
from journal_rag.executor.sql_validation import STRING_LITERAL, SanitizedSql
from journal_rag.executor.time_range import TimeRange

_IDENTITY_CHARS = re.compile(r"[A-Za-z0-9_\-.:@]+")


class Placeholder(str, Enum):
    AUTH_UID = "auth.uid()"
    USER_ID = "$user_id"
    START_DATE = "$start_date"
    END_DATE = "$end_date"


_IDENTITY_PATTERN = re.compile(
    rf"{re.escape(Placeholder.AUTH_UID.value)}|{re.escape(Placeholder.USER_ID.value)}\b", re.IGNORECASE
)
_START_PATTERN = re.compile(rf"{re.escape(Placeholder.START_DATE.value)}\b", re.IGNORECASE)
_END_PATTERN = re.compile(rf"{re.escape(Placeholder.END_DATE.value)}\b", re.IGNORECASE)


def validate_identity(owner_id: object) -> str:
    if not isinstance(owner_id, str) or not _IDENTITY_CHARS.fullmatch(owner_id):
        raise InvalidCallerIdentityError("Caller identity is missing or contains unsupported characters")
    return owner_id


def quote_identity(owner_id: str) -> str:
    return f"'{validate_identity(owner_id)}'"


def quote_instant(value: Optional[datetime]) -> str:
    if value is None:
        return "NULL"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return f"'{value.astimezone(timezone.utc).isoformat()}'"


def bind_placeholders(sanitized: SanitizedSql, *, owner_id: str, time_range: TimeRange) -> str:
    """Render the final SQL text for the store.

    The identity is always bound. ``$start_date``/``$end_date`` are bound only
    when present in the text; an open bound renders as ``NULL``. Text inside
    string literals is left untouched.
    """
    identity = quote_identity(owner_id)
    start = quote_instant(time_range.start)
    end = quote_instant(time_range.end)

    def bind(segment: str) -> str:
        segment = _IDENTITY_PATTERN.sub(lambda _: identity, segment)
        segment = _START_PATTERN.sub(lambda _: start, segment)
        return _END_PATTERN.sub(lambda _: end, segment)

    text = sanitized.text
    parts = []
    pos = 0
    for m in STRING_LITERAL.finditer(text):
        parts.append(bind(text[pos : m.start()]))
        parts.append(m.group(0))
        pos = m.end()
    parts.append(bind(text[pos:]))
    return "".join(parts)
