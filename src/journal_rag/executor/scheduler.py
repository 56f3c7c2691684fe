# src/journal_rag/executor/scheduler.py

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from journal_rag.executor.errors import ErrorType, make_error
from journal_rag.executor.state import ExecutionContext, ExecutionResult
from journal_rag.executor.sub_question import run_sub_question
from journal_rag.plan.state import SubQuestion

logger = logging.getLogger(__name__)

NODE = "scheduler"


def group_by_stage(sub_questions: Sequence[SubQuestion]) -> Dict[int, List[int]]:
    """Map execution stage -> plan positions, in ascending stage order."""
    groups: Dict[int, List[int]] = defaultdict(list)
    for pos, sq in enumerate(sub_questions):
        groups[sq.execution_stage].append(pos)
    return {stage: groups[stage] for stage in sorted(groups)}


def _errored_result(sub_question: SubQuestion, index: int, exc: BaseException) -> ExecutionResult:
    sq_id = sub_question.id or f"sq{index + 1}"
    return ExecutionResult(
        sub_question_id=sq_id,
        question=sub_question.question,
        purpose=sub_question.purpose,
        execution_stage=sub_question.execution_stage,
        errors=[
            make_error(
                NODE,
                ErrorType.STORE_ERROR,
                f"Sub-question failed unexpectedly: {exc}",
                retryable=False,
                details={"subQuestionId": sq_id, "exception_type": type(exc).__name__},
            )
        ],
    )


async def run_stages(sub_questions: Sequence[SubQuestion], context: ExecutionContext) -> List[ExecutionResult]:
    """Run sub-questions stage by stage.

    Stages run in ascending order and each one fully settles before the next
    starts. Sub-questions within a stage run concurrently. Results come back in
    plan order. No data flows between stages.
    """
    results: List[Optional[ExecutionResult]] = [None] * len(sub_questions)

    for stage, positions in group_by_stage(sub_questions).items():
        logger.info(f"[{context.request_id}] Stage {stage}: {len(positions)} sub-question(s)")
        settled = await asyncio.gather(
            *[run_sub_question(sub_questions[pos], context, index=pos) for pos in positions],
            return_exceptions=True,
        )
        for pos, res in zip(positions, settled):
            if isinstance(res, asyncio.CancelledError):
                raise res
            if isinstance(res, BaseException):
                logger.error(f"[{context.request_id}] Sub-question at position {pos} raised: {res!r}")
                res = _errored_result(sub_questions[pos], pos, res)
            results[pos] = res

    return [r for r in results if r is not None]
