# src/journal_rag/orchestrator.py
"""Request entry point for plan execution.

Callers always get a well-formed envelope:

    {results, requestId, timeRange, confidence, fallbackUsed, errors}

Only two conditions raise: a request without a plan (PlanRequiredError) and a
caller identity that cannot be bound safely (InvalidCallerIdentityError).
Everything else, including failures deep in the executor, degrades to the
fallback plan at FALLBACK_CONFIDENCE.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from journal_rag.config import ExecutorConfig
from journal_rag.executor.adapters import EmbeddingAdapter, IdempotencyAdapter, QueryStoreAdapter
from journal_rag.executor.constants import FALLBACK_CONFIDENCE
from journal_rag.executor.errors import PlanRequiredError
from journal_rag.executor.graph import make_executor_graph
from journal_rag.executor.nodes.package_results import build_response
from journal_rag.executor.query_builder import validate_identity
from journal_rag.executor.scheduler import run_stages
from journal_rag.executor.state import ExecutionContext, ExecutionResult
from journal_rag.executor.time_range import UNBOUNDED, coerce_time_range, parse_instant
from journal_rag.executor.utils import observe, runtime_error
from journal_rag.plan.state import build_fallback_plan

logger = logging.getLogger(__name__)


class PlanOrchestrator:
    def __init__(
        self,
        *,
        store: QueryStoreAdapter,
        embedder: EmbeddingAdapter,
        config: Optional[ExecutorConfig] = None,
        idempotency: Optional[IdempotencyAdapter] = None,
    ):
        self.store = store
        self.embedder = embedder
        self.config = config or ExecutorConfig.from_env()
        self.idempotency = idempotency
        self.graph = make_executor_graph(store=store, embedder=embedder, config=self.config)

    @observe
    async def run(
        self,
        plan: Any,
        *,
        owner_id: str,
        time_range: Any = None,
        request_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        question: Optional[str] = None,
        now: Any = None,
    ) -> Dict[str, Any]:
        """Validate, schedule and execute one plan for ``owner_id``.

        Args:
            plan: QueryPlan, mapping or planner JSON text. Validated once here.
            owner_id: authenticated principal id, bound into every ownership predicate.
            time_range: explicit range (mapping or shorthand directive); overrides the plan's.
            request_id: echoed in the envelope; generated when absent.
            idempotency_key: duplicate keys within the TTL return the cached envelope.
            question: user question, used to label the fallback sub-question.
            now: anchor for shorthand directives (defaults to current UTC).

        Raises:
            PlanRequiredError, InvalidCallerIdentityError
        """
        if plan is None:
            raise PlanRequiredError("A query plan is required")
        validate_identity(owner_id)

        request_id = request_id or uuid.uuid4().hex
        now = parse_instant(now) or datetime.now(timezone.utc)
        explicit_range = coerce_time_range(time_range, now=now)

        if not idempotency_key or self.idempotency is None:
            return await self._execute(plan, owner_id, request_id, explicit_range, question, now)

        # Keys are scoped per caller
        key = f"{owner_id}:{idempotency_key}"
        async with self.idempotency.lock(key):
            cached = await self.idempotency.get(key)
            if cached is not None:
                logger.info(f"[{request_id}] Returning cached response for idempotency key {idempotency_key!r}")
                return cached
            response = await self._execute(plan, owner_id, request_id, explicit_range, question, now)
            await self.idempotency.set(key, response, ttl_seconds=self.config.idempotency_ttl_seconds)
            return response

    async def _execute(self, plan, owner_id, request_id, explicit_range, question, now) -> Dict[str, Any]:
        try:
            final = await self.graph.ainvoke(
                {
                    "plan": plan,
                    "owner_id": owner_id,
                    "request_id": request_id,
                    "time_range": explicit_range,
                    "now": now,
                    "question": question,
                    "errors": [],
                }
            )
            response = final.get("response")
            if response is None:
                raise RuntimeError("Executor graph produced no response")
            return response
        except Exception as e:
            logger.exception(f"[{request_id}] Plan execution failed, degrading to fallback: {e}")
            return await self._fallback(owner_id, request_id, question, e)

    async def _fallback(
        self, owner_id: str, request_id: str, question: Optional[str], cause: Exception
    ) -> Dict[str, Any]:
        plan = build_fallback_plan(question) if question else build_fallback_plan()
        context = ExecutionContext(
            store=self.store,
            embedder=self.embedder,
            owner_id=owner_id,
            plan_time_range=UNBOUNDED,
            config=self.config,
            request_id=request_id,
        )
        try:
            results = await run_stages(plan.sub_questions, context)
        except Exception as e:
            logger.exception(f"[{request_id}] Fallback plan failed: {e}")
            sq = plan.sub_questions[0]
            results = [
                ExecutionResult(
                    sub_question_id=sq.id,
                    question=sq.question,
                    purpose=sq.purpose,
                    errors=[runtime_error("orchestrator", e)],
                )
            ]

        return build_response(
            results=results,
            request_id=request_id,
            time_range=UNBOUNDED,
            confidence=FALLBACK_CONFIDENCE,
            fallback_used=True,
            errors=[runtime_error("orchestrator", cause)],
        )


async def handle_plan_request(
    body: Any,
    *,
    caller_id: str,
    orchestrator: PlanOrchestrator,
    now: Any = None,
) -> Dict[str, Any]:
    """Entry point for a decoded request body.

    ``caller_id`` comes from authentication. Any identity field in the body is ignored.
    """
    if not isinstance(body, Mapping):
        raise PlanRequiredError("Request body must be an object carrying a plan")

    plan = body.get("plan")
    if plan is None:
        plan = body.get("queryPlan")

    return await orchestrator.run(
        plan,
        owner_id=caller_id,
        time_range=body.get("timeRange"),
        request_id=body.get("requestId"),
        idempotency_key=body.get("idempotencyKey"),
        question=body.get("message") or body.get("question"),
        now=now,
    )
