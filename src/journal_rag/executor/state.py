# src/journal_rag/executor/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Any, Dict, List, Literal, Optional

from typing_extensions import TypedDict

from journal_rag.config import ExecutorConfig
from journal_rag.executor.time_range import UNBOUNDED, TimeRange

if TYPE_CHECKING:
    from journal_rag.executor.adapters import EmbeddingAdapter, QueryStoreAdapter

StepKind = Literal["sql", "vector", "hybrid", "unknown"]


def add_errors(existing: Optional[List[Dict[str, Any]]], new: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    if not existing:
        existing = []
    if not new:
        return existing
    return existing + new


# -------------------------
# Store outputs
# -------------------------


@dataclass(frozen=True)
class VectorEntry:
    id: Any
    content: str
    similarity: float
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "similarity": self.similarity,
            "createdAt": self.created_at,
            "metadata": dict(self.metadata),
        }


@dataclass
class SqlOutcome:
    ok: bool
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None


@dataclass
class VectorOutcome:
    ok: bool
    entries: List[VectorEntry] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None


# -------------------------
# Per-step / per-sub-question results
# -------------------------


@dataclass
class StepOutcome:
    index: int
    query_type: str
    kind: StepKind
    ok: bool
    rows: List[Dict[str, Any]] = field(default_factory=list)
    entries: List[VectorEntry] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    time_range: TimeRange = UNBOUNDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "queryType": self.query_type,
            "kind": self.kind,
            "ok": self.ok,
            "rowCount": len(self.rows),
            "entryCount": len(self.entries),
            "errors": list(self.errors),
            "timeRange": self.time_range.to_dict(),
        }


@dataclass
class CombinedMetrics:
    sql_count: int = 0
    vector_count: int = 0
    combined_count: int = 0
    total_count: int = 0
    combined_percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sqlCount": self.sql_count,
            "vectorCount": self.vector_count,
            "combinedCount": self.combined_count,
            "totalCount": self.total_count,
            "combinedPercentage": self.combined_percentage,
        }


@dataclass
class ExecutionResult:
    sub_question_id: str
    question: str
    purpose: Optional[str] = None
    execution_stage: int = 1
    sql_results: List[Dict[str, Any]] = field(default_factory=list)
    vector_results: List[VectorEntry] = field(default_factory=list)
    steps: List[StepOutcome] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    metrics: CombinedMetrics = field(default_factory=CombinedMetrics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subQuestionId": self.sub_question_id,
            "question": self.question,
            "purpose": self.purpose,
            "executionStage": self.execution_stage,
            "sqlResults": list(self.sql_results),
            "vectorResults": [e.to_dict() for e in self.vector_results],
            "steps": [s.to_dict() for s in self.steps],
            "errors": list(self.errors),
            "combinedMetrics": self.metrics.to_dict(),
        }


# -------------------------
# Execution context
# -------------------------


@dataclass(frozen=True)
class ExecutionContext:
    """Everything a sub-question needs to run. Built once per request, never mutated."""

    store: "QueryStoreAdapter"
    embedder: "EmbeddingAdapter"
    owner_id: str
    plan_time_range: TimeRange = UNBOUNDED
    config: ExecutorConfig = field(default_factory=ExecutorConfig)
    request_id: str = ""


# -------------------------
# Executor state (graph)
# -------------------------


class ExecutorState(TypedDict, total=False):
    # Inputs
    plan: Any  # QueryPlan, validated at the request boundary
    owner_id: str
    request_id: str
    time_range: Optional[TimeRange]  # explicit request range, overrides the plan's
    now: datetime  # anchor for shorthand time directives
    question: Optional[str]  # user question, used to label the fallback sub-question

    # Gate outputs
    effective_time_range: TimeRange
    plan_valid: bool
    confidence: float
    fallback_used: bool

    # Execution
    results: List[ExecutionResult]

    # Output
    response: Dict[str, Any]

    # Errors
    errors: Annotated[List[Dict[str, Any]], add_errors]
