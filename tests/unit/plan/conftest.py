# tests/unit/plan/conftest.py
"""Shared fixtures for plan schema unit tests."""

import os
from datetime import datetime, timezone
from typing import Any, Dict

import pytest

# Disable Langfuse for unit tests
os.environ["LANGFUSE_ENABLED"] = "0"


@pytest.fixture
def now() -> datetime:
    """A fixed Wednesday afternoon, UTC."""
    return datetime(2025, 8, 13, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_plan() -> Dict[str, Any]:
    """A two-stage planner document in wire (camelCase) form."""
    return {
        "subQuestions": [
            {
                "id": "mood",
                "question": "How did I feel last week?",
                "purpose": "Baseline mood",
                "executionStage": 1,
                "analysisSteps": [
                    {
                        "queryType": "vector_search",
                        "vectorSearch": {"query": "mood feelings", "threshold": 0.2, "limit": 15},
                        "timeRange": "last week",
                    },
                    {
                        "queryType": "sql_count",
                        "sqlQuery": "SELECT COUNT(*) AS count FROM entries WHERE user_id = auth.uid()",
                        "description": "How many entries",
                        "unexpectedField": "ignored",
                    },
                ],
            },
            {
                "question": "Which days stood out?",
                "executionStage": 2,
                "analysisSteps": [{"queryType": "hybrid_search", "description": "stand-out days"}],
            },
        ],
        "strategy": "staged",
        "reasoning": "Mood first, then outliers",
        "timeRange": {"startDate": "2025-08-01T00:00:00Z", "endDate": None},
        "confidence": 0.85,
    }
