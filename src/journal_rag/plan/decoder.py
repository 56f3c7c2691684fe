# src/journal_rag/plan/decoder.py
"""Decode planner text into a JSON object.

Planner output is often wrapped in prose or a markdown fence, or carries a
trailing comma. Each strategy below is a pure function of the text; they are
tried in order and the first one yielding an object wins.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Union

from journal_rag.executor.errors import PlanMalformedError

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def _as_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def _direct(text: str) -> Optional[Dict[str, Any]]:
    return _as_object(text.strip())


def _fenced_block(text: str) -> Optional[Dict[str, Any]]:
    m = _FENCE.search(text)
    return _as_object(m.group(1).strip()) if m else None


def _outermost_braces(text: str) -> Optional[str]:
    i = text.find("{")
    j = text.rfind("}")
    if i == -1 or j <= i:
        return None
    return text[i : j + 1]


def _braces(text: str) -> Optional[Dict[str, Any]]:
    body = _outermost_braces(text)
    return _as_object(body) if body else None


def _trailing_comma_repair(text: str) -> Optional[Dict[str, Any]]:
    m = _FENCE.search(text)
    body = _outermost_braces(m.group(1) if m else text)
    if not body:
        return None
    return _as_object(_TRAILING_COMMA.sub(r"\1", body))


STRATEGIES: List[Callable[[str], Optional[Dict[str, Any]]]] = [
    _direct,
    _fenced_block,
    _braces,
    _trailing_comma_repair,
]


def decode_plan_json(raw: Union[str, bytes]) -> Dict[str, Any]:
    """Return the first JSON object any strategy can extract from ``raw``.

    Raises:
        PlanMalformedError: when no strategy yields an object.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    for strategy in STRATEGIES:
        obj = strategy(text)
        if obj is not None:
            if strategy is not _direct:
                logger.debug(f"Plan JSON decoded via {strategy.__name__}")
            return obj

    preview = text[:120]
    raise PlanMalformedError("Planner output contains no JSON object", details={"preview": preview})
