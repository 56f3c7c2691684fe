# src/journal_rag/executor/nodes/run_stages.py

from __future__ import annotations

import logging
from typing import Any, Dict

from journal_rag.config import ExecutorConfig
from journal_rag.executor.adapters import EmbeddingAdapter, QueryStoreAdapter
from journal_rag.executor.scheduler import run_stages
from journal_rag.executor.state import ExecutionContext, ExecutorState
from journal_rag.executor.time_range import UNBOUNDED
from journal_rag.executor.utils import observe

logger = logging.getLogger(__name__)


def make_run_stages_node(store: QueryStoreAdapter, embedder: EmbeddingAdapter, config: ExecutorConfig):
    # Not wrapped in with_error_handling: unexpected failures must reach the orchestrator fallback.
    @observe
    async def run_stages_node(state: ExecutorState) -> Dict[str, Any]:
        plan = state["plan"]
        context = ExecutionContext(
            store=store,
            embedder=embedder,
            owner_id=state["owner_id"],
            plan_time_range=state.get("effective_time_range") or UNBOUNDED,
            config=config,
            request_id=state.get("request_id", ""),
        )

        results = await run_stages(plan.sub_questions, context)

        failed = sum(1 for r in results if r.errors)
        logger.info(f"[{context.request_id}] Executed {len(results)} sub-question(s), {failed} with errors")

        return {"results": results}

    return run_stages_node
