# src/journal_rag/plan/state.py
"""Query plan schema.

This is the single validation boundary for planner output. Wire documents use
camelCase keys; attributes are snake_case. Unknown keys are ignored.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    confloat,
    conint,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from journal_rag.executor.constants import (
    DEFAULT_EXECUTION_STAGE,
    DEFAULT_VECTOR_LIMIT,
    DEFAULT_VECTOR_THRESHOLD,
    FALLBACK_VECTOR_LIMIT,
    FALLBACK_VECTOR_QUERY,
    FALLBACK_VECTOR_THRESHOLD,
)
from journal_rag.executor.errors import PlanMalformedError
from journal_rag.executor.time_range import TimeRange, coerce_time_range
from journal_rag.plan.decoder import decode_plan_json

SQL_QUERY_TYPES = frozenset({"sql_analysis", "sql_count", "sql_calculation"})
VECTOR_QUERY_TYPE = "vector_search"
HYBRID_QUERY_TYPE = "hybrid_search"


def _coerce_range(value: Any, info: ValidationInfo) -> Optional[TimeRange]:
    now = (info.context or {}).get("now") if info is not None else None
    return coerce_time_range(value, now=now)


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class VectorSearchSpec(_WireModel):
    query: str = Field(..., min_length=1)
    threshold: confloat(ge=0.0, le=1.0) = DEFAULT_VECTOR_THRESHOLD
    limit: conint(ge=1) = DEFAULT_VECTOR_LIMIT

    @field_validator("threshold", "limit", mode="before")
    @classmethod
    def _null_means_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return DEFAULT_VECTOR_THRESHOLD if info.field_name == "threshold" else DEFAULT_VECTOR_LIMIT
        return v


class AnalysisStep(_WireModel):
    query_type: str = ""
    sql_query: Optional[str] = None
    vector_search: Optional[VectorSearchSpec] = None
    time_range: Optional[TimeRange] = None
    description: Optional[str] = None

    @field_validator("time_range", mode="plain")
    @classmethod
    def _time_range(cls, v: Any, info: ValidationInfo) -> Optional[TimeRange]:
        return _coerce_range(v, info)

    @field_validator("query_type", mode="before")
    @classmethod
    def _normalize_query_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else ("" if v is None else v)

    @property
    def is_sql(self) -> bool:
        return self.query_type in SQL_QUERY_TYPES

    @property
    def is_vector(self) -> bool:
        return self.query_type == VECTOR_QUERY_TYPE

    @property
    def is_hybrid(self) -> bool:
        return self.query_type == HYBRID_QUERY_TYPE


class SubQuestion(_WireModel):
    id: Optional[str] = None
    question: str = ""
    purpose: Optional[str] = None
    execution_stage: int = DEFAULT_EXECUTION_STAGE
    analysis_steps: List[AnalysisStep] = Field(default_factory=list)

    @field_validator("execution_stage", mode="before")
    @classmethod
    def _default_stage(cls, v: Any) -> Any:
        # null and 0 both mean "first stage"
        return v or DEFAULT_EXECUTION_STAGE

    @field_validator("analysis_steps", mode="before")
    @classmethod
    def _null_steps(cls, v: Any) -> Any:
        return [] if v is None else v


class QueryPlan(_WireModel):
    sub_questions: List[SubQuestion] = Field(..., min_length=1)
    strategy: Optional[str] = None
    reasoning: Optional[str] = None
    time_range: Optional[TimeRange] = None
    confidence: Optional[confloat(ge=0.0, le=1.0)] = None

    @field_validator("time_range", mode="plain")
    @classmethod
    def _time_range(cls, v: Any, info: ValidationInfo) -> Optional[TimeRange]:
        return _coerce_range(v, info)

    @model_validator(mode="after")
    def _assign_ids(self) -> "QueryPlan":
        for i, sq in enumerate(self.sub_questions, start=1):
            if not sq.id:
                sq.id = f"sq{i}"
        return self


def parse_plan(raw: Any, *, now: Optional[datetime] = None) -> QueryPlan:
    """Validate untrusted planner output into a QueryPlan.

    Accepts a QueryPlan, a mapping, or a JSON string (see journal_rag.plan.decoder).
    Shorthand time directives are resolved against ``now`` (defaults to current UTC).

    Raises:
        PlanMalformedError: when the input cannot be turned into a plan.
    """
    if isinstance(raw, QueryPlan):
        return raw
    if isinstance(raw, (str, bytes)):
        raw = decode_plan_json(raw)
    if not isinstance(raw, Mapping):
        raise PlanMalformedError(f"Plan must be an object, got {type(raw).__name__}")

    context = {"now": now or datetime.now(timezone.utc)}
    try:
        return QueryPlan.model_validate(dict(raw), context=context)
    except ValidationError as e:
        raise PlanMalformedError(
            f"Plan failed schema validation: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
        ) from e


def build_fallback_plan(question: str = "General journal search") -> QueryPlan:
    """The degraded plan: one unbounded generic vector search."""
    return QueryPlan(
        strategy="fallback",
        reasoning="Fallback plan due to planning error",
        confidence=None,
        sub_questions=[
            SubQuestion(
                id="sq1",
                question=question,
                purpose="Fallback search",
                execution_stage=DEFAULT_EXECUTION_STAGE,
                analysis_steps=[
                    AnalysisStep(
                        query_type=VECTOR_QUERY_TYPE,
                        vector_search=VectorSearchSpec(
                            query=FALLBACK_VECTOR_QUERY,
                            threshold=FALLBACK_VECTOR_THRESHOLD,
                            limit=FALLBACK_VECTOR_LIMIT,
                        ),
                        description="Fallback vector search",
                    )
                ],
            )
        ],
    )
