# tests/unit/orchestrator/conftest.py
"""Shared fixtures for orchestrator unit tests."""

import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

# Disable Langfuse before the orchestrator pulls in the tracing decorator
os.environ["LANGFUSE_ENABLED"] = "0"

from journal_rag.config import ExecutorConfig  # noqa: E402
from journal_rag.executor.adapters import InMemoryIdempotencyCache  # noqa: E402
from journal_rag.orchestrator import PlanOrchestrator  # noqa: E402

OWNER_ID = "11111111-2222-4333-8444-555555555555"


@pytest.fixture
def owner_id() -> str:
    return OWNER_ID


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 8, 13, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.execute = AsyncMock(return_value={"success": True, "data": []})
    store.search = AsyncMock(return_value=[])
    store.search_with_date = AsyncMock(return_value=[])
    store.count = AsyncMock(return_value=0)
    return store


@pytest.fixture
def mock_embedder():
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    return embedder


@pytest.fixture
def config() -> ExecutorConfig:
    return ExecutorConfig(call_timeout_seconds=0.5, idempotency_ttl_seconds=30)


@pytest.fixture
def orchestrator(mock_store, mock_embedder, config) -> PlanOrchestrator:
    return PlanOrchestrator(
        store=mock_store,
        embedder=mock_embedder,
        config=config,
        idempotency=InMemoryIdempotencyCache(),
    )


@pytest.fixture
def vector_plan():
    return {
        "subQuestions": [
            {
                "question": "When did I feel anxious?",
                "analysisSteps": [{"queryType": "vector_search", "vectorSearch": {"query": "anxious"}}],
            }
        ],
        "confidence": 0.9,
    }
