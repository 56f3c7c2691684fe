"""Query-plan execution core for a journaling assistant.

This package validates, schedules and executes structured query plans:
- Plan: schema boundary and JSON decoding of planner output
- Executor: time normalization, SQL validation, SQL/vector execution, stage scheduling
- Orchestrator: request entry point with degraded fallback and idempotency
"""

__version__ = "0.1.0"
