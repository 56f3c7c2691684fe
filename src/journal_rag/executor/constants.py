# src/journal_rag/executor/constants.py
"""Constants for executor configuration.

These defaults can be overridden via ExecutorConfig (see journal_rag.config).
"""

# Stage scheduling
DEFAULT_EXECUTION_STAGE = 1  # Stage for sub-questions that omit executionStage

# Vector search parameters (used when a step omits them)
DEFAULT_VECTOR_THRESHOLD = 0.15
DEFAULT_VECTOR_LIMIT = 25

# Fallback plan (orchestrator degraded path)
FALLBACK_VECTOR_QUERY = "personal journal experiences thoughts feelings"
FALLBACK_VECTOR_THRESHOLD = 0.3
FALLBACK_VECTOR_LIMIT = 10
FALLBACK_CONFIDENCE = 0.5

# Confidence reported when the plan carries none
DEFAULT_PLAN_CONFIDENCE = 0.8

# Per-call timeout for SQL, embedding, search and count calls
DEFAULT_CALL_TIMEOUT_SECONDS = 20.0

# Idempotency cache entry lifetime
DEFAULT_IDEMPOTENCY_TTL_SECONDS = 30.0

# Embedding model used by the default LangChain embedder
DEFAULT_EMBEDDING_MODEL = "openai:text-embedding-3-small"

# Column holding the entry creation instant
CREATED_AT_COLUMN = "created_at"
