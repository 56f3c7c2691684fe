"""Plan schema boundary and planner-output decoding."""

from journal_rag.plan.decoder import decode_plan_json
from journal_rag.plan.state import (
    AnalysisStep,
    QueryPlan,
    SubQuestion,
    VectorSearchSpec,
    build_fallback_plan,
    parse_plan,
)

__all__ = [
    "AnalysisStep",
    "QueryPlan",
    "SubQuestion",
    "VectorSearchSpec",
    "build_fallback_plan",
    "decode_plan_json",
    "parse_plan",
]
