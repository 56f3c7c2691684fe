# tests/unit/executor/test_sub_question.py
"""Unit tests for sub-question execution and metrics."""

from datetime import datetime, timezone

import pytest

from journal_rag.executor.state import VectorEntry
from journal_rag.executor.sub_question import compute_metrics, count_range_for, run_sub_question
from journal_rag.executor.time_range import TimeRange

UTC = timezone.utc


def _entries(*ids):
    return [VectorEntry(id=i, content=f"entry {i}", similarity=0.5) for i in ids]


class TestComputeMetrics:
    """Tests for compute_metrics."""

    def test_derived_values(self):
        rows = [{"id": 1}, {"id": 4}]
        metrics = compute_metrics(rows, _entries(1, 2, 3), total_count=8)

        assert metrics.sql_count == 2
        assert metrics.vector_count == 3
        assert metrics.combined_count == 4
        assert metrics.total_count == 8
        assert metrics.combined_percentage == 37.5

    def test_store_values_take_precedence(self):
        rows = [{"count": 12, "percentage": 40.0}]
        metrics = compute_metrics(rows, _entries(1, 2), total_count=100)

        assert metrics.combined_count == 12
        assert metrics.combined_percentage == 40.0
        assert metrics.vector_count == 2

    def test_zero_total_count(self):
        metrics = compute_metrics([], _entries(1), total_count=0)
        assert metrics.combined_percentage == 0.0

    def test_duplicate_ids_counted_once(self):
        metrics = compute_metrics([], _entries(1, 1, "1", 2), total_count=3)
        assert metrics.vector_count == 2
        assert metrics.combined_percentage == 66.7

    def test_non_numeric_store_values_ignored(self):
        rows = [{"count": "many", "percentage": True, "id": 7}]
        metrics = compute_metrics(rows, [], total_count=0)
        assert metrics.combined_count == 1
        assert metrics.combined_percentage == 0.0


class TestCountRange:
    """Tests for count_range_for."""

    def test_first_vector_step_range(self, make_step):
        plan_range = TimeRange(start=datetime(2025, 1, 1, tzinfo=UTC))
        steps = [
            make_step(queryType="sql_count", sqlQuery="SELECT 1"),
            make_step(queryType="vector_search", timeRange={"start": "2025-08-01"}),
        ]
        assert count_range_for(steps, plan_range).start == datetime(2025, 8, 1, tzinfo=UTC)

    def test_plan_range_when_no_vector_step(self, make_step):
        plan_range = TimeRange(start=datetime(2025, 1, 1, tzinfo=UTC))
        steps = [make_step(queryType="sql_count", sqlQuery="SELECT 1")]
        assert count_range_for(steps, plan_range) is plan_range


class TestRunSubQuestion:
    """Tests for run_sub_question."""

    @pytest.mark.asyncio
    async def test_vector_step_with_count(self, context, mock_store, make_sub_question, sample_entries):
        """Entries, total count and percentage are combined into one result."""
        mock_store.search.return_value = sample_entries
        mock_store.count.return_value = 10
        sq = make_sub_question("Anxious days?", steps=[{"queryType": "vector_search", "vectorSearch": {"query": "anxious"}}])

        result = await run_sub_question(sq, context, index=0)

        assert result.sub_question_id == "sq1"
        assert result.metrics.vector_count == 3
        assert result.metrics.total_count == 10
        assert result.metrics.combined_percentage == 30.0
        assert result.errors == []
        assert len(result.steps) == 1
        mock_store.count.assert_awaited_once_with(owner_id=context.owner_id, start=None, end=None)

    @pytest.mark.asyncio
    async def test_failed_step_keeps_partial_results(self, context, mock_store, make_sub_question, sample_entries):
        mock_store.search.return_value = sample_entries
        sq = make_sub_question(
            steps=[
                {"queryType": "sql_analysis", "sqlQuery": "SELECT * FROM entries"},
                {"queryType": "vector_search", "vectorSearch": {"query": "x"}},
            ]
        )

        result = await run_sub_question(sq, context, index=0)

        assert len(result.vector_results) == 3
        assert [e["type"] for e in result.errors] == ["MissingOwnershipPredicate"]
        assert result.steps[0].ok is False
        assert result.steps[1].ok is True

    @pytest.mark.asyncio
    async def test_count_failure_recorded(self, context, mock_store, make_sub_question):
        mock_store.count.side_effect = RuntimeError("count rpc missing")
        sq = make_sub_question(steps=[{"queryType": "vector_search", "vectorSearch": {"query": "x"}}], sq_id="sq7")

        result = await run_sub_question(sq, context, index=6)

        assert result.metrics.total_count == 0
        assert result.errors[-1]["type"] == "StoreError"
        assert result.errors[-1]["details"] == {"subQuestionId": "sq7"}

    @pytest.mark.asyncio
    async def test_no_steps(self, context, make_sub_question):
        result = await run_sub_question(make_sub_question(), context, index=0)

        assert result.steps == []
        assert result.sql_results == []
        assert result.vector_results == []
        assert result.metrics.combined_count == 0
