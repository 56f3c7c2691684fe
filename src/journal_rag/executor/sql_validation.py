# src/journal_rag/executor/sql_validation.py
"""Validation and sanitization of planner-generated SQL.

The upstream planner is an LLM, so every statement is untrusted. A statement is
either returned as SanitizedSql or rejected with a SqlValidationError subclass;
there is no partial output and no automatic repair. In particular the ownership
predicate is never injected: a statement without it is rejected.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from journal_rag.executor.errors import (
    MalformedTemporalExpressionError,
    MissingOwnershipPredicateError,
    UnsafeQueryError,
    WriteNotAllowedError,
)
from journal_rag.executor.time_range import CREATED_AT_PATTERN

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SanitizedSql:
    text: str


_TRAILING_TERMINATORS = re.compile(r"[\s;]+$")
STRING_LITERAL = re.compile(r"'(?:''|[^'])*'")

# --- unsafe patterns (checked on text with string literals blanked) ---
_UNSAFE_PATTERNS = [
    (re.compile(r";"), "multiple statements"),
    (re.compile(r"\bUNION\s+(?:ALL\s+|DISTINCT\s+)?\(?\s*SELECT\b", re.IGNORECASE), "UNION SELECT"),
    (re.compile(r"\b(?:EXEC|EXECUTE|CALL)\b", re.IGNORECASE), "procedure call"),
    (re.compile(r"\b(?:xp|sp)_\w+", re.IGNORECASE), "system procedure"),
    (
        re.compile(
            r"\bpg_(?:sleep|read_file|read_binary_file|ls_dir|stat_file|terminate_backend|cancel_backend|reload_conf)\b",
            re.IGNORECASE,
        ),
        "system procedure",
    ),
    (re.compile(r"--|/\*"), "SQL comment"),
]

# --- temporal literal checks (checked on the raw text) ---
_TEMPORAL_LITERALS = [
    re.compile(rf"{CREATED_AT_PATTERN}\s*(?:>=|<=|<>|!=|=|>|<)\s*'([^']*)'", re.IGNORECASE),
    re.compile(rf"{CREATED_AT_PATTERN}\s+BETWEEN\s+'([^']*)'\s+AND\s+'([^']*)'", re.IGNORECASE),
    re.compile(r"'([^']*)'\s*::\s*(?:timestamptz|timestamp|date)\b", re.IGNORECASE),
    re.compile(r"\b(?:TIMESTAMPTZ|TIMESTAMP|DATE)\s+'([^']*)'", re.IGNORECASE),
]
_NATURAL_LANGUAGE_TIME = re.compile(
    r"\b(?:today|yesterday|tomorrow|tonight|last|this|next|past|previous|ago|recent|recently"
    r"|days?|weeks?|months?|years?|start_date|end_date|start_time|end_time)\b"
    r"|[\[\]{}<>]",
    re.IGNORECASE,
)

# --- nested timezone conversions (checked on text with string literals blanked) ---
_TZ_CONVERSION = re.compile(r"\bAT\s+TIME\s+ZONE\b|\btimezone\s*\(", re.IGNORECASE)
_TIMEZONE_CALL = re.compile(r"\btimezone\s*\(", re.IGNORECASE)
_AT_TIME_ZONE = re.compile(r"\bAT\s+TIME\s+ZONE\s+(?:''|\"[^\"]*\"|\w+)", re.IGNORECASE)
_CHAINED_AT_TIME_ZONE = re.compile(r"[\s)]*AT\s+TIME\s+ZONE\b", re.IGNORECASE)

# --- read-only checks ---
_READ_KEYWORD = re.compile(r"^\(?\s*(?:SELECT|WITH)\b", re.IGNORECASE)
_MUTATION_KEYWORD = re.compile(
    r"\b(INSERT|UPDATE|DELETE|DROP|ALTER|CREATE|TRUNCATE|MERGE|GRANT|REVOKE|COPY|VACUUM|REINDEX|INTO)\b",
    re.IGNORECASE,
)

# --- ownership predicate ---
_OWNER_COLUMN = r'(?<![\w.])(?:(?:"[^"]+"|[A-Za-z_]\w*)\.)?"?user_id"?'
_IDENTITY_TOKEN = r"(?:auth\.uid\(\)|\$user_id\b)"
_OWNERSHIP_PREDICATE = re.compile(
    rf"{_OWNER_COLUMN}\s*=\s*{_IDENTITY_TOKEN}|{_IDENTITY_TOKEN}\s*=\s*{_OWNER_COLUMN}",
    re.IGNORECASE,
)


def _blank_literals(sql: str) -> str:
    return STRING_LITERAL.sub("''", sql)


def _check_unsafe(scan: str) -> None:
    for pattern, label in _UNSAFE_PATTERNS:
        if pattern.search(scan):
            raise UnsafeQueryError(f"Unsafe SQL rejected: {label}", details={"pattern": label})


def _group_end(scan: str, open_idx: int) -> int:
    depth = 0
    for i in range(open_idx, len(scan)):
        if scan[i] == "(":
            depth += 1
        elif scan[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return len(scan)


def _group_start(scan: str, close_idx: int) -> int:
    depth = 0
    for i in range(close_idx, -1, -1):
        if scan[i] == ")":
            depth += 1
        elif scan[i] == "(":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _has_nested_timezone(scan: str) -> bool:
    """True when a timezone conversion is applied to an already converted expression.

    Covers chained and parenthesized ``AT TIME ZONE`` as well as ``timezone(...)``
    wrapping another conversion, in either order.
    """
    for m in _TIMEZONE_CALL.finditer(scan):
        if _TZ_CONVERSION.search(scan, m.end(), _group_end(scan, m.end() - 1)):
            return True

    for m in _AT_TIME_ZONE.finditer(scan):
        if _CHAINED_AT_TIME_ZONE.match(scan, m.end()):
            return True
        operand = scan[: m.start()].rstrip()
        if operand.endswith(")"):
            close = len(operand) - 1
            if _TZ_CONVERSION.search(scan, _group_start(scan, close) + 1, close):
                return True
    return False


def _check_temporal(sql: str, scan: str) -> None:
    if _has_nested_timezone(scan):
        raise MalformedTemporalExpressionError("Doubled timezone conversion in SQL")

    for pattern in _TEMPORAL_LITERALS:
        for match in pattern.finditer(sql):
            for literal in match.groups():
                if literal and _NATURAL_LANGUAGE_TIME.search(literal):
                    raise MalformedTemporalExpressionError(
                        f"Non-instant temporal literal in SQL: {literal!r}",
                        details={"literal": literal},
                    )


def _check_read_only(scan: str) -> None:
    if not _READ_KEYWORD.match(scan):
        raise WriteNotAllowedError("Only SELECT/WITH statements are allowed")
    m = _MUTATION_KEYWORD.search(scan)
    if m:
        raise WriteNotAllowedError(
            f"Write keyword not allowed: {m.group(1).upper()}",
            details={"keyword": m.group(1).upper()},
        )


def validate_sql(sql: str) -> SanitizedSql:
    """Validate one planner statement and return its sanitized form.

    Raises:
        UnsafeQueryError, MalformedTemporalExpressionError,
        WriteNotAllowedError, MissingOwnershipPredicateError
    """
    text = _TRAILING_TERMINATORS.sub("", (sql or "").strip())
    if not text:
        raise WriteNotAllowedError("Empty SQL statement")

    scan = _blank_literals(text)

    _check_unsafe(scan)
    _check_temporal(text, scan)
    _check_read_only(scan)

    if not _OWNERSHIP_PREDICATE.search(scan):
        raise MissingOwnershipPredicateError("SQL lacks the user_id ownership predicate")

    logger.debug(f"SQL accepted ({len(text)} chars)")
    return SanitizedSql(text=text)
