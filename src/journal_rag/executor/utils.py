# src/journal_rag/executor/utils.py
"""Node helpers: Langfuse tracing toggle and structured error capture."""

import functools
import inspect
import logging
import os
from typing import Any, Callable, Dict

# Tracing is on unless LANGFUSE_ENABLED=0
OBSERVE_ENABLED = os.getenv("LANGFUSE_ENABLED", "1") == "1"

if OBSERVE_ENABLED:
    from langfuse import observe
else:

    def observe(fn=None, **kwargs):
        def _wrap(f):
            return f

        return _wrap(fn) if fn else _wrap


def runtime_error(node_name: str, e: BaseException) -> Dict[str, Any]:
    """Error record for an exception nobody expected (retryable by default)."""
    return {
        "node": node_name,
        "type": "runtime_error",
        "message": str(e),
        "retryable": True,
        "details": {"exception_type": type(e).__name__},
    }


def with_error_handling(node_name: str) -> Callable:
    """Turn exceptions raised by a graph node into an ``errors`` state update.

    Works for plain and coroutine nodes. The node's own return value passes
    through untouched; on failure the traceback is logged and the node
    contributes ``{"errors": [runtime_error(...)]}`` instead, so the graph keeps
    running to packaging.

    Example:
        @observe
        @with_error_handling("plan_gate")
        def plan_gate(state: ExecutorState) -> Dict[str, Any]:
            ...
    """

    def decorator(func: Callable) -> Callable:
        logger = logging.getLogger(func.__module__)

        def _failed(e: Exception) -> Dict[str, Any]:
            logger.exception(f"Error in {node_name}: {e}")
            return {"errors": [runtime_error(node_name, e)]}

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
                logger.debug(f"Starting {node_name}")
                try:
                    result = await func(state)
                except Exception as e:
                    return _failed(e)
                logger.debug(f"Completed {node_name}: {sorted(result)}")
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            logger.debug(f"Starting {node_name}")
            try:
                result = func(state)
            except Exception as e:
                return _failed(e)
            logger.debug(f"Completed {node_name}: {sorted(result)}")
            return result

        return wrapper

    return decorator
