# src/journal_rag/executor/nodes/plan_gate.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from journal_rag.executor.constants import DEFAULT_PLAN_CONFIDENCE
from journal_rag.executor.errors import PlanMalformedError
from journal_rag.executor.state import ExecutorState
from journal_rag.executor.time_range import UNBOUNDED
from journal_rag.executor.utils import observe, with_error_handling
from journal_rag.plan.state import parse_plan

logger = logging.getLogger(__name__)


@observe
@with_error_handling("plan_gate")
def plan_gate(state: ExecutorState) -> Dict[str, Any]:
    request_id = state.get("request_id", "")
    now = state.get("now") or datetime.now(timezone.utc)

    try:
        plan = parse_plan(state.get("plan"), now=now)
    except PlanMalformedError as e:
        logger.warning(f"[{request_id}] Plan rejected: {e.message}")
        return {"plan_valid": False, "errors": [e.to_record("plan_gate")]}

    # An explicit request range overrides the plan's
    explicit = state.get("time_range")
    if explicit is not None and explicit.is_bounded:
        effective = explicit
    else:
        effective = plan.time_range or UNBOUNDED

    confidence = plan.confidence if plan.confidence is not None else DEFAULT_PLAN_CONFIDENCE

    logger.info(
        f"[{request_id}] Plan accepted: {len(plan.sub_questions)} sub-question(s), "
        f"range={effective.to_dict()}"
    )

    return {
        "plan": plan,
        "plan_valid": True,
        "effective_time_range": effective,
        "confidence": confidence,
        "fallback_used": False,
    }
