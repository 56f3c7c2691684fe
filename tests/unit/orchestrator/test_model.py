# tests/unit/orchestrator/test_model.py
"""Unit tests for default embedder construction."""

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from journal_rag import model
from journal_rag.config import ExecutorConfig
from journal_rag.executor.adapters import LangChainEmbedder


class TestDefaultEmbedder:
    @pytest.mark.asyncio
    async def test_uses_configured_model(self, monkeypatch):
        """The configured model id is handed to init_embeddings."""
        seen = []

        def fake_init(model_id):
            seen.append(model_id)
            return DeterministicFakeEmbedding(size=4)

        monkeypatch.setattr(model, "init_embeddings", fake_init)

        embedder = model.get_default_embedder(ExecutorConfig(embedding_model="openai:text-embedding-3-large"))

        assert seen == ["openai:text-embedding-3-large"]
        assert isinstance(embedder, LangChainEmbedder)
        assert len(await embedder.embed("hello")) == 4
