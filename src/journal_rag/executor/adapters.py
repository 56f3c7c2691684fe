# src/journal_rag/executor/adapters.py

from __future__ import annotations

import asyncio
import math
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from langchain_core.embeddings import Embeddings

from journal_rag.executor.time_range import parse_instant


class QueryStoreAdapter(Protocol):
    """Adapter for the journal store (Supabase/Postgres, a SQL gateway, etc.).

    Example implementation for Supabase RPC procedures:

        from supabase import AsyncClient

        class SupabaseStore:
            def __init__(self, client: AsyncClient):
                self.client = client

            async def execute(self, sql):
                res = await self.client.rpc("execute_dynamic_query", {"query_text": sql}).execute()
                return res.data

            async def search(self, *, embedding, threshold, limit, owner_id):
                res = await self.client.rpc("match_journal_entries", {
                    "query_embedding": embedding,
                    "match_threshold": threshold,
                    "match_count": limit,
                    "user_id_filter": owner_id,
                }).execute()
                return res.data or []

            async def search_with_date(self, *, embedding, threshold, limit, owner_id, start, end):
                res = await self.client.rpc("match_journal_entries_with_date", {
                    "query_embedding": embedding,
                    "match_threshold": threshold,
                    "match_count": limit,
                    "user_id_filter": owner_id,
                    "start_date": start.isoformat() if start else None,
                    "end_date": end.isoformat() if end else None,
                }).execute()
                return res.data or []

            async def count(self, *, owner_id, start=None, end=None):
                q = self.client.table("Journal Entries").select("id", count="exact").eq("user_id", owner_id)
                if start:
                    q = q.gte("created_at", start.isoformat())
                if end:
                    q = q.lte("created_at", end.isoformat())
                return (await q.execute()).count or 0
    """

    async def execute(self, sql: str) -> Dict[str, Any]:
        """Run a read-only statement. Returns {"success": bool, "data": rows, "error": str?}."""
        raise NotImplementedError

    async def search(
        self,
        *,
        embedding: Sequence[float],
        threshold: float,
        limit: int,
        owner_id: str,
    ) -> List[Dict[str, Any]]:
        """Return entries with at least id, content and similarity."""
        raise NotImplementedError

    async def search_with_date(
        self,
        *,
        embedding: Sequence[float],
        threshold: float,
        limit: int,
        owner_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def count(
        self,
        *,
        owner_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> int:
        """Number of entries owned by owner_id within the optional bounds."""
        raise NotImplementedError


class EmbeddingAdapter(Protocol):
    """Adapter for the text-embedding service."""

    async def embed(self, text: str) -> List[float]:
        raise NotImplementedError


class IdempotencyAdapter(Protocol):
    """Key-value cache with TTL plus a per-key lock, used to collapse duplicate requests.

    Example implementation for Redis:

        class RedisIdempotency:
            def __init__(self, redis):
                self.redis = redis

            async def get(self, key):
                raw = await self.redis.get(f"plan:{key}")
                return json.loads(raw) if raw else None

            async def set(self, key, value, *, ttl_seconds):
                await self.redis.set(f"plan:{key}", json.dumps(value), ex=int(ttl_seconds))

            def lock(self, key):
                return self.redis.lock(f"plan-lock:{key}", timeout=60)
    """

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def set(self, key: str, value: Dict[str, Any], *, ttl_seconds: float) -> None:
        raise NotImplementedError

    def lock(self, key: str):
        """Return an async context manager serializing work for ``key``."""
        raise NotImplementedError


# -------------------------
# Simple defaults (placeholders)
# -------------------------


class NotImplementedStore:
    async def execute(self, sql: str) -> Dict[str, Any]:
        raise NotImplementedError("Provide a QueryStoreAdapter implementation")

    async def search(self, *, embedding, threshold, limit, owner_id) -> List[Dict[str, Any]]:
        raise NotImplementedError("Provide a QueryStoreAdapter implementation")

    async def search_with_date(self, *, embedding, threshold, limit, owner_id, start, end) -> List[Dict[str, Any]]:
        raise NotImplementedError("Provide a QueryStoreAdapter implementation")

    async def count(self, *, owner_id, start=None, end=None) -> int:
        raise NotImplementedError("Provide a QueryStoreAdapter implementation")


class NotImplementedEmbedder:
    async def embed(self, text: str) -> List[float]:
        raise NotImplementedError("Provide an EmbeddingAdapter implementation")


class LangChainEmbedder:
    """EmbeddingAdapter backed by any LangChain ``Embeddings`` (see journal_rag.model)."""

    def __init__(self, embeddings: Embeddings):
        self.embeddings = embeddings

    async def embed(self, text: str) -> List[float]:
        vector = await self.embeddings.aembed_query(text)
        return [float(x) for x in vector]


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return dot / (na * nb)


class StaticStore:
    """Deterministic fixture-backed store for offline case runs.

    ``entries`` are journal rows ({id, content, created_at, user_id?, embedding?,
    similarity?}). Similarity is the cosine against ``embedding`` when present,
    else the fixed ``similarity`` value. ``sql_results`` maps a case-insensitive
    substring of the statement to the rows it returns (or to {"error": "..."}).
    Every executed statement is recorded in ``executed``.
    """

    def __init__(
        self,
        entries: Optional[List[Dict[str, Any]]] = None,
        sql_results: Optional[Mapping[str, Any]] = None,
    ):
        self.entries = list(entries or [])
        self.sql_results = dict(sql_results or {})
        self.executed: List[str] = []

    async def execute(self, sql: str) -> Dict[str, Any]:
        self.executed.append(sql)
        lowered = sql.lower()
        for needle, result in self.sql_results.items():
            if needle.lower() in lowered:
                if isinstance(result, Mapping) and "error" in result:
                    return {"success": False, "error": str(result["error"])}
                return {"success": True, "data": list(result or [])}
        return {"success": True, "data": []}

    def _owned(self, owner_id: str) -> List[Dict[str, Any]]:
        return [e for e in self.entries if e.get("user_id") in (None, owner_id)]

    @staticmethod
    def _in_range(entry: Dict[str, Any], start: Optional[datetime], end: Optional[datetime]) -> bool:
        created = parse_instant(entry.get("created_at"))
        if created is None:
            return start is None and end is None
        if start is not None and created < start:
            return False
        if end is not None and created > end:
            return False
        return True

    def _rank(self, entries: List[Dict[str, Any]], embedding: Sequence[float], threshold: float, limit: int):
        scored: List[Tuple[float, Dict[str, Any]]] = []
        for e in entries:
            if e.get("embedding"):
                sim = _cosine(embedding, e["embedding"])
            else:
                sim = float(e.get("similarity", 0.0))
            if sim >= threshold:
                row = {k: v for k, v in e.items() if k != "embedding"}
                row["similarity"] = sim
                scored.append((sim, row))
        scored.sort(key=lambda t: t[0], reverse=True)
        return [row for _, row in scored[:limit]]

    async def search(self, *, embedding, threshold, limit, owner_id) -> List[Dict[str, Any]]:
        return self._rank(self._owned(owner_id), embedding, threshold, limit)

    async def search_with_date(self, *, embedding, threshold, limit, owner_id, start, end) -> List[Dict[str, Any]]:
        pool = [e for e in self._owned(owner_id) if self._in_range(e, start, end)]
        return self._rank(pool, embedding, threshold, limit)

    async def count(self, *, owner_id, start=None, end=None) -> int:
        return sum(1 for e in self._owned(owner_id) if self._in_range(e, start, end))


class InMemoryIdempotencyCache:
    """Process-local IdempotencyAdapter. Safe default until you swap an adapter.

    Expired values are pruned on every ``set`` and a key's lock is dropped once
    its last holder or waiter leaves, so both maps stay bounded by live keys.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._values: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _prune(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._values.items() if now >= expires_at]
        for k in expired:
            del self._values[k]

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        hit = self._values.get(key)
        if hit is None:
            return None
        expires_at, value = hit
        if self._clock() >= expires_at:
            self._values.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Dict[str, Any], *, ttl_seconds: float) -> None:
        now = self._clock()
        self._prune(now)
        self._values[key] = (now + ttl_seconds, value)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]
