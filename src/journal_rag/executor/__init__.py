"""Executor subgraph: plan gate, staged sub-question execution, result packaging.

No eager imports here: journal_rag.config reads its defaults from
journal_rag.executor.constants.
"""

__all__ = []
