# src/journal_rag/executor/nodes/degrade_plan.py

from __future__ import annotations

import logging
from typing import Any, Dict

from journal_rag.executor.constants import FALLBACK_CONFIDENCE
from journal_rag.executor.state import ExecutorState
from journal_rag.executor.time_range import UNBOUNDED
from journal_rag.plan.state import build_fallback_plan

logger = logging.getLogger(__name__)


def degrade_plan(state: ExecutorState) -> Dict[str, Any]:
    """Swap in the fallback plan: one unbounded generic vector search at low confidence."""
    logger.warning(f"[{state.get('request_id', '')}] Using fallback plan")

    question = (state.get("question") or "").strip()
    plan = build_fallback_plan(question) if question else build_fallback_plan()

    return {
        "plan": plan,
        "effective_time_range": UNBOUNDED,
        "confidence": FALLBACK_CONFIDENCE,
        "fallback_used": True,
    }
