# src/journal_rag/executor/nodes/package_results.py

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from journal_rag.executor.constants import DEFAULT_PLAN_CONFIDENCE
from journal_rag.executor.state import ExecutionResult, ExecutorState
from journal_rag.executor.time_range import UNBOUNDED, TimeRange
from journal_rag.executor.utils import observe, with_error_handling


def build_response(
    *,
    results: Sequence[ExecutionResult],
    request_id: Optional[str],
    time_range: TimeRange,
    confidence: float,
    fallback_used: bool,
    errors: List[Dict[str, Any]],
) -> Dict[str, Any]:
    return {
        "results": [r.to_dict() for r in results],
        "requestId": request_id,
        "timeRange": time_range.to_dict(),
        "confidence": confidence,
        "fallbackUsed": fallback_used,
        "errors": list(errors),
    }


@observe
@with_error_handling("package_results")
def package_results(state: ExecutorState) -> Dict[str, Any]:
    response = build_response(
        results=state.get("results") or [],
        request_id=state.get("request_id"),
        time_range=state.get("effective_time_range") or UNBOUNDED,
        confidence=state.get("confidence", DEFAULT_PLAN_CONFIDENCE),
        fallback_used=bool(state.get("fallback_used", False)),
        errors=state.get("errors") or [],
    )
    return {"response": response}
