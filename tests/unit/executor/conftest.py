# tests/unit/executor/conftest.py
"""Shared fixtures for executor module unit tests."""

import os
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from journal_rag.config import ExecutorConfig
from journal_rag.executor.state import ExecutionContext
from journal_rag.plan.state import AnalysisStep, SubQuestion

# Disable Langfuse for unit tests
os.environ["LANGFUSE_ENABLED"] = "0"

OWNER_ID = "11111111-2222-4333-8444-555555555555"


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def mock_store():
    """Mock QueryStoreAdapter. Every call succeeds with no data."""
    store = MagicMock()
    store.execute = AsyncMock(return_value={"success": True, "data": []})
    store.search = AsyncMock(return_value=[])
    store.search_with_date = AsyncMock(return_value=[])
    store.count = AsyncMock(return_value=0)
    return store


@pytest.fixture
def mock_embedder():
    """Mock EmbeddingAdapter returning a fixed vector."""
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return embedder


@pytest.fixture
def config() -> ExecutorConfig:
    return ExecutorConfig(call_timeout_seconds=0.5)


@pytest.fixture
def context(mock_store, mock_embedder, config, owner_id) -> ExecutionContext:
    return ExecutionContext(
        store=mock_store,
        embedder=mock_embedder,
        owner_id=owner_id,
        config=config,
        request_id="test-req",
    )


@pytest.fixture
def sample_entries() -> List[Dict[str, Any]]:
    """Three store rows as returned by the similarity procedures."""
    return [
        {"id": 1, "content": "Felt anxious before the meeting.", "similarity": 0.81, "created_at": "2025-08-05T09:00:00Z"},
        {"id": 2, "content": "Calm evening walk.", "similarity": 0.44, "created_at": "2025-08-06T19:00:00Z", "emotions": {"calm": 0.9}},
        {"id": 3, "content": "Worried about money.", "similarity": 0.39, "created_at": "2025-08-08T22:15:00Z"},
    ]


@pytest.fixture
def make_step():
    """Build an AnalysisStep from wire-format keyword arguments."""

    def _make(**wire: Any) -> AnalysisStep:
        return AnalysisStep.model_validate(wire)

    return _make


@pytest.fixture
def make_sub_question():
    """Build a SubQuestion from a question and wire-format steps."""

    def _make(question: str = "How did I feel?", *, steps=None, stage=None, sq_id="sq1") -> SubQuestion:
        return SubQuestion.model_validate(
            {"id": sq_id, "question": question, "executionStage": stage, "analysisSteps": steps or []}
        )

    return _make
