# src/journal_rag/executor/sql_executor.py

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping

from journal_rag.executor.adapters import QueryStoreAdapter
from journal_rag.executor.errors import ErrorType, make_error
from journal_rag.executor.query_builder import bind_placeholders
from journal_rag.executor.sql_validation import SanitizedSql
from journal_rag.executor.state import SqlOutcome
from journal_rag.executor.time_range import TimeRange

logger = logging.getLogger(__name__)

NODE = "sql_executor"


def _normalize_rows(data: Any) -> List[Dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, Mapping):
        return [dict(data)]
    rows: List[Dict[str, Any]] = []
    for item in data:
        rows.append(dict(item) if isinstance(item, Mapping) else {"value": item})
    return rows


async def execute_sql(
    store: QueryStoreAdapter,
    sanitized: SanitizedSql,
    *,
    owner_id: str,
    time_range: TimeRange,
    timeout: float,
) -> SqlOutcome:
    """Bind placeholders and run a sanitized statement.

    Store failures are returned on the outcome, never raised. An identity that
    cannot be bound raises InvalidCallerIdentityError, the same hard rejection
    the orchestrator applies before any plan runs.
    """
    sql = bind_placeholders(sanitized, owner_id=owner_id, time_range=time_range)

    try:
        response = await asyncio.wait_for(store.execute(sql), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"SQL call timed out after {timeout}s")
        return SqlOutcome(
            ok=False,
            error=make_error(NODE, ErrorType.NETWORK_TIMEOUT, f"SQL call timed out after {timeout}s"),
        )
    except Exception as e:
        logger.warning(f"SQL call failed: {e}")
        return SqlOutcome(
            ok=False,
            error=make_error(
                NODE, ErrorType.STORE_ERROR, str(e) or type(e).__name__, details={"exception_type": type(e).__name__}
            ),
        )

    if not isinstance(response, Mapping) or not response.get("success", False):
        message = response.get("error") if isinstance(response, Mapping) else None
        return SqlOutcome(
            ok=False,
            error=make_error(NODE, ErrorType.STORE_ERROR, str(message or "Store reported failure")),
        )

    try:
        rows = _normalize_rows(response.get("data"))
    except TypeError as e:
        return SqlOutcome(ok=False, error=make_error(NODE, ErrorType.STORE_ERROR, f"Unexpected SQL payload: {e}"))
    return SqlOutcome(ok=True, rows=rows)
