# src/journal_rag/model.py

import logging
from typing import Optional

from langchain.embeddings import init_embeddings

from journal_rag.config import ExecutorConfig
from journal_rag.executor.adapters import LangChainEmbedder

logger = logging.getLogger(__name__)


def get_default_embeddings(config: Optional[ExecutorConfig] = None):
    config = config or ExecutorConfig.from_env()
    logger.info(f"Initializing embeddings model {config.embedding_model}")
    return init_embeddings(config.embedding_model)


def get_default_embedder(config: Optional[ExecutorConfig] = None) -> LangChainEmbedder:
    return LangChainEmbedder(get_default_embeddings(config))
