# src/journal_rag/config.py

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from journal_rag.executor.constants import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_IDEMPOTENCY_TTL_SECONDS,
    DEFAULT_VECTOR_LIMIT,
    DEFAULT_VECTOR_THRESHOLD,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENV_PREFIX = "JOURNAL_RAG_"


def _env(name: str, cast: Callable[[str], T], default: T) -> T:
    raw: Optional[str] = os.getenv(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning(f"Invalid value for {ENV_PREFIX}{name}={raw!r}; using default {default!r}")
        return default


@dataclass(frozen=True)
class ExecutorConfig:
    call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS
    default_vector_threshold: float = DEFAULT_VECTOR_THRESHOLD
    default_vector_limit: int = DEFAULT_VECTOR_LIMIT
    idempotency_ttl_seconds: float = DEFAULT_IDEMPOTENCY_TTL_SECONDS
    embedding_model: str = DEFAULT_EMBEDDING_MODEL

    @classmethod
    def from_env(cls) -> "ExecutorConfig":
        """Build a config from JOURNAL_RAG_* environment variables, falling back to defaults."""
        return cls(
            call_timeout_seconds=_env("CALL_TIMEOUT_SECONDS", float, DEFAULT_CALL_TIMEOUT_SECONDS),
            default_vector_threshold=_env("DEFAULT_VECTOR_THRESHOLD", float, DEFAULT_VECTOR_THRESHOLD),
            default_vector_limit=_env("DEFAULT_VECTOR_LIMIT", int, DEFAULT_VECTOR_LIMIT),
            idempotency_ttl_seconds=_env("IDEMPOTENCY_TTL_SECONDS", float, DEFAULT_IDEMPOTENCY_TTL_SECONDS),
            embedding_model=_env("EMBEDDING_MODEL", str, DEFAULT_EMBEDDING_MODEL),
        )
