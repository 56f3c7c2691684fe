# src/journal_rag/executor/step_runner.py

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from journal_rag.executor.errors import ErrorType, SqlValidationError, make_error
from journal_rag.executor.sql_executor import execute_sql
from journal_rag.executor.sql_validation import validate_sql
from journal_rag.executor.state import ExecutionContext, SqlOutcome, StepKind, StepOutcome, VectorOutcome
from journal_rag.executor.time_range import TimeRange, resolve_time_range
from journal_rag.executor.vector_search import execute_vector_search
from journal_rag.plan.state import AnalysisStep, SubQuestion

logger = logging.getLogger(__name__)

NODE = "step_runner"


def _kind_of(step: AnalysisStep) -> StepKind:
    if step.is_sql:
        return "sql"
    if step.is_vector:
        return "vector"
    if step.is_hybrid:
        return "hybrid"
    return "unknown"


async def _run_sql_half(sql: str, context: ExecutionContext, time_range: TimeRange) -> SqlOutcome:
    try:
        sanitized = validate_sql(sql)
    except SqlValidationError as e:
        logger.warning(f"[{context.request_id}] SQL rejected ({e.error_type.value}): {e.message}")
        return SqlOutcome(ok=False, error=e.to_record("sql_validation"))

    return await execute_sql(
        context.store,
        sanitized,
        owner_id=context.owner_id,
        time_range=time_range,
        timeout=context.config.call_timeout_seconds,
    )


def _vector_params(
    step: AnalysisStep, sub_question: SubQuestion, context: ExecutionContext
) -> Optional[Dict[str, Any]]:
    spec = step.vector_search
    if spec is not None:
        return {"query": spec.query, "threshold": spec.threshold, "limit": spec.limit}

    # No explicit search: fall back to the step description, then the question itself
    query = (step.description or sub_question.question or "").strip()
    if not query:
        return None
    return {
        "query": query,
        "threshold": context.config.default_vector_threshold,
        "limit": context.config.default_vector_limit,
    }


async def _run_vector_half(params: Dict[str, Any], context: ExecutionContext, time_range: TimeRange) -> VectorOutcome:
    return await execute_vector_search(
        context.store,
        context.embedder,
        query=params["query"],
        threshold=params["threshold"],
        limit=params["limit"],
        owner_id=context.owner_id,
        time_range=time_range,
        timeout=context.config.call_timeout_seconds,
    )


def _tag(error: Dict[str, Any], *, sub_question: SubQuestion, index: int, query_type: str) -> Dict[str, Any]:
    details = dict(error.get("details") or {})
    details.update({"subQuestionId": sub_question.id, "stepIndex": index, "queryType": query_type})
    return {**error, "details": details}


async def run_step(
    step: AnalysisStep,
    context: ExecutionContext,
    *,
    index: int,
    sub_question: SubQuestion,
) -> StepOutcome:
    """Run one analysis step. Failures are recorded on the outcome, not raised.

    An unbindable caller identity is the one exception and propagates.

    ``hybrid_search`` runs its SQL and vector halves concurrently; the step is
    ok only if every half that ran succeeded.
    """
    kind = _kind_of(step)
    time_range = resolve_time_range(step.time_range, step.sql_query, context.plan_time_range)
    outcome = StepOutcome(index=index, query_type=step.query_type, kind=kind, ok=False, time_range=time_range)

    def fail(error_type: ErrorType, message: str) -> StepOutcome:
        logger.warning(f"[{context.request_id}] {sub_question.id} step {index}: {message}")
        error = make_error(NODE, error_type, message)
        outcome.errors.append(_tag(error, sub_question=sub_question, index=index, query_type=step.query_type))
        return outcome

    if kind == "unknown":
        return fail(ErrorType.UNKNOWN_STEP_TYPE, f"Unknown queryType {step.query_type!r}")

    sql = (step.sql_query or "").strip() if kind in ("sql", "hybrid") else ""
    vector_params = None
    if kind == "vector" or (kind == "hybrid" and (step.vector_search is not None or not sql)):
        vector_params = _vector_params(step, sub_question, context)

    if kind == "sql" and not sql:
        return fail(ErrorType.PLAN_MALFORMED, f"{step.query_type} step has no sqlQuery")
    if not sql and vector_params is None:
        return fail(ErrorType.PLAN_MALFORMED, f"{step.query_type} step has nothing to search for")

    halves: List = []
    if sql:
        halves.append(_run_sql_half(sql, context, time_range))
    if vector_params is not None:
        halves.append(_run_vector_half(vector_params, context, time_range))

    results: List[Union[SqlOutcome, VectorOutcome]] = await asyncio.gather(*halves)

    ok = True
    for res in results:
        if not res.ok:
            ok = False
            if res.error is not None:
                outcome.errors.append(
                    _tag(res.error, sub_question=sub_question, index=index, query_type=step.query_type)
                )
            continue
        if isinstance(res, SqlOutcome):
            outcome.rows.extend(res.rows)
        else:
            outcome.entries.extend(res.entries)

    outcome.ok = ok
    return outcome
