# src/journal_rag/executor/vector_search.py

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional

from journal_rag.executor.adapters import EmbeddingAdapter, QueryStoreAdapter
from journal_rag.executor.errors import ErrorType, make_error
from journal_rag.executor.state import VectorEntry, VectorOutcome
from journal_rag.executor.time_range import TimeRange

logger = logging.getLogger(__name__)

NODE = "vector_search"

_CORE_FIELDS = ("id", "content", "similarity", "created_at")


def to_vector_entry(raw: Mapping[str, Any]) -> Optional[VectorEntry]:
    """Normalize one store row. Rows without an id are dropped."""
    entry_id = raw.get("id")
    if entry_id is None:
        return None
    content = raw.get("content")
    if content is None:
        content = raw.get("refined text") or raw.get("text") or ""
    try:
        similarity = float(raw.get("similarity") or 0.0)
    except (TypeError, ValueError):
        similarity = 0.0
    created_at = raw.get("created_at")
    return VectorEntry(
        id=entry_id,
        content=str(content),
        similarity=similarity,
        created_at=str(created_at) if created_at is not None else None,
        metadata={k: v for k, v in raw.items() if k not in _CORE_FIELDS},
    )


async def execute_vector_search(
    store: QueryStoreAdapter,
    embedder: EmbeddingAdapter,
    *,
    query: str,
    threshold: float,
    limit: int,
    owner_id: str,
    time_range: TimeRange,
    timeout: float,
) -> VectorOutcome:
    """Embed the query and run the similarity search. Never raises.

    The date-bounded procedure is used iff the range has at least one bound;
    threshold and limit are passed through unchanged.
    """
    try:
        embedding = await asyncio.wait_for(embedder.embed(query), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Embedding call timed out after {timeout}s")
        return VectorOutcome(
            ok=False,
            error=make_error(NODE, ErrorType.NETWORK_TIMEOUT, f"Embedding call timed out after {timeout}s"),
        )
    except Exception as e:
        logger.warning(f"Embedding failed: {e}")
        return VectorOutcome(
            ok=False,
            error=make_error(
                NODE,
                ErrorType.EMBEDDING_ERROR,
                str(e) or type(e).__name__,
                details={"exception_type": type(e).__name__},
            ),
        )

    try:
        if time_range.is_bounded:
            call = store.search_with_date(
                embedding=embedding,
                threshold=threshold,
                limit=limit,
                owner_id=owner_id,
                start=time_range.start,
                end=time_range.end,
            )
        else:
            call = store.search(embedding=embedding, threshold=threshold, limit=limit, owner_id=owner_id)
        hits = await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Vector search timed out after {timeout}s")
        return VectorOutcome(
            ok=False,
            error=make_error(NODE, ErrorType.NETWORK_TIMEOUT, f"Vector search timed out after {timeout}s"),
        )
    except Exception as e:
        logger.warning(f"Vector search failed: {e}")
        return VectorOutcome(
            ok=False,
            error=make_error(
                NODE, ErrorType.STORE_ERROR, str(e) or type(e).__name__, details={"exception_type": type(e).__name__}
            ),
        )

    entries: List[VectorEntry] = []
    for raw in hits or []:
        if isinstance(raw, Mapping):
            entry = to_vector_entry(raw)
            if entry is not None:
                entries.append(entry)

    dropped = len(hits or []) - len(entries)
    if dropped:
        logger.debug(f"Dropped {dropped} malformed vector hits")
    return VectorOutcome(ok=True, entries=entries)
