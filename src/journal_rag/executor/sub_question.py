# src/journal_rag/executor/sub_question.py

from __future__ import annotations

import asyncio
import logging
from numbers import Real
from typing import Any, Dict, Iterable, List, Optional, Tuple

from journal_rag.executor.errors import ErrorType, make_error
from journal_rag.executor.state import CombinedMetrics, ExecutionContext, ExecutionResult, StepOutcome, VectorEntry
from journal_rag.executor.step_runner import run_step
from journal_rag.executor.time_range import TimeRange, resolve_time_range
from journal_rag.plan.state import AnalysisStep, SubQuestion

logger = logging.getLogger(__name__)

NODE = "sub_question"


def count_range_for(steps: List[AnalysisStep], plan_range: TimeRange) -> TimeRange:
    """Range used for the total-count call: first vector-bearing step's resolved range, else the plan range."""
    for step in steps:
        if step.is_vector or step.is_hybrid:
            return resolve_time_range(step.time_range, step.sql_query, plan_range)
    return plan_range


async def _total_count(
    context: ExecutionContext, time_range: TimeRange, sub_question_id: str
) -> Tuple[int, Optional[Dict[str, Any]]]:
    timeout = context.config.call_timeout_seconds
    try:
        total = await asyncio.wait_for(
            context.store.count(owner_id=context.owner_id, start=time_range.start, end=time_range.end),
            timeout=timeout,
        )
        return max(0, int(total or 0)), None
    except asyncio.TimeoutError:
        err = make_error(NODE, ErrorType.NETWORK_TIMEOUT, f"Count call timed out after {timeout}s")
    except Exception as e:
        err = make_error(NODE, ErrorType.STORE_ERROR, f"Count call failed: {e}")
    err["details"] = {"subQuestionId": sub_question_id}
    logger.warning(f"[{context.request_id}] {sub_question_id}: {err['message']}")
    return 0, err


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _store_value(rows: Iterable[Dict[str, Any]], key: str) -> Optional[float]:
    for row in rows:
        if _is_number(row.get(key)):
            return float(row[key])
    return None


def _distinct(ids: Iterable[Any]) -> List[str]:
    seen: Dict[str, None] = {}
    for i in ids:
        if i is not None:
            seen.setdefault(str(i), None)
    return list(seen)


def compute_metrics(rows: List[Dict[str, Any]], entries: List[VectorEntry], total_count: int) -> CombinedMetrics:
    """Combine SQL rows and vector entries into per-sub-question metrics.

    Store-computed ``count``/``percentage`` values found in any row take
    precedence over the derived ones.
    """
    vector_ids = _distinct(e.id for e in entries)

    store_count = _store_value(rows, "count")
    if store_count is not None:
        combined_count = int(store_count)
    else:
        combined_count = len(_distinct([r.get("id") for r in rows] + [e.id for e in entries]))

    store_pct = _store_value(rows, "percentage")
    if store_pct is not None:
        combined_percentage = store_pct
    elif total_count > 0:
        combined_percentage = round(len(vector_ids) / total_count * 100, 1)
    else:
        combined_percentage = 0.0

    return CombinedMetrics(
        sql_count=len(rows),
        vector_count=len(vector_ids),
        combined_count=combined_count,
        total_count=total_count,
        combined_percentage=combined_percentage,
    )


async def run_sub_question(sub_question: SubQuestion, context: ExecutionContext, *, index: int) -> ExecutionResult:
    """Run every step of a sub-question plus its total-count call concurrently.

    Step and count failures are recorded on the result; partial results are kept.
    """
    sq_id = sub_question.id or f"sq{index + 1}"
    steps = sub_question.analysis_steps
    count_range = count_range_for(steps, context.plan_time_range)

    gathered = await asyncio.gather(
        _total_count(context, count_range, sq_id),
        *[run_step(step, context, index=i, sub_question=sub_question) for i, step in enumerate(steps)],
    )
    (total_count, count_error), outcomes = gathered[0], list(gathered[1:])

    result = ExecutionResult(
        sub_question_id=sq_id,
        question=sub_question.question,
        purpose=sub_question.purpose,
        execution_stage=sub_question.execution_stage,
    )

    outcome: StepOutcome
    for outcome in outcomes:
        result.steps.append(outcome)
        result.sql_results.extend(outcome.rows)
        result.vector_results.extend(outcome.entries)
        result.errors.extend(outcome.errors)
    if count_error is not None:
        result.errors.append(count_error)

    result.metrics = compute_metrics(result.sql_results, result.vector_results, total_count)

    logger.info(
        f"[{context.request_id}] {sq_id}: {len(outcomes)} steps, "
        f"{result.metrics.sql_count} rows, {result.metrics.vector_count} entries, "
        f"{len(result.errors)} errors"
    )
    return result
