# tests/unit/plan/test_decoder.py
"""Unit tests for planner-output decoding."""

import pytest

from journal_rag.executor.errors import PlanMalformedError
from journal_rag.plan.decoder import STRATEGIES, decode_plan_json


class TestDecodePlanJson:
    """Tests for decode_plan_json."""

    def test_plain_json(self):
        assert decode_plan_json('{"a": 1}') == {"a": 1}

    def test_bytes(self):
        assert decode_plan_json(b'{"a": 1}') == {"a": 1}

    def test_fenced_block_with_prose(self):
        text = 'Sure! Here is the plan:\n```json\n{"a": {"b": [1, 2]}}\n```\nLet me know.'
        assert decode_plan_json(text) == {"a": {"b": [1, 2]}}

    def test_bare_fence(self):
        assert decode_plan_json('```\n{"a": 1}\n```') == {"a": 1}

    def test_object_embedded_in_prose(self):
        assert decode_plan_json('The plan is {"a": 1} as requested.') == {"a": 1}

    def test_trailing_commas(self):
        assert decode_plan_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    @pytest.mark.parametrize("text", ["", "no json at all", "[1, 2, 3]", "{broken", '"just a string"'])
    def test_nothing_decodes(self, text):
        with pytest.raises(PlanMalformedError) as exc:
            decode_plan_json(text)
        assert exc.value.details["preview"] == text[:120]


class TestStrategies:
    """Each strategy is a pure text -> object-or-None function."""

    def test_order(self):
        assert [s.__name__ for s in STRATEGIES] == ["_direct", "_fenced_block", "_braces", "_trailing_comma_repair"]

    @pytest.mark.parametrize("strategy", STRATEGIES)
    def test_none_on_garbage(self, strategy):
        assert strategy("garbage") is None
