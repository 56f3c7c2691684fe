# src/journal_rag/executor/errors.py
"""Error taxonomy for plan execution.

Validation errors are fatal to a step but not to its sub-question. Execution
errors are recorded per step. Only PlanMalformed (and truly unexpected
failures) reach the orchestrator's fallback path.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    # validation-time
    UNSAFE_QUERY = "UnsafeQuery"
    MALFORMED_TEMPORAL_EXPRESSION = "MalformedTemporalExpression"
    WRITE_NOT_ALLOWED = "WriteNotAllowed"
    MISSING_OWNERSHIP_PREDICATE = "MissingOwnershipPredicate"
    # execution-time
    STORE_ERROR = "StoreError"
    EMBEDDING_ERROR = "EmbeddingError"
    NETWORK_TIMEOUT = "NetworkTimeout"
    UNKNOWN_STEP_TYPE = "UnknownStepType"
    # top-level
    PLAN_MALFORMED = "PlanMalformed"


RETRYABLE = {ErrorType.STORE_ERROR, ErrorType.EMBEDDING_ERROR, ErrorType.NETWORK_TIMEOUT}


class ExecutionError(Exception):
    error_type: ErrorType = ErrorType.STORE_ERROR

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_record(self, node: str) -> Dict[str, Any]:
        return make_error(node, self.error_type, self.message, details=self.details)


class SqlValidationError(ExecutionError):
    """Base for statements rejected before they reach the store."""


class UnsafeQueryError(SqlValidationError):
    error_type = ErrorType.UNSAFE_QUERY


class MalformedTemporalExpressionError(SqlValidationError):
    error_type = ErrorType.MALFORMED_TEMPORAL_EXPRESSION


class WriteNotAllowedError(SqlValidationError):
    error_type = ErrorType.WRITE_NOT_ALLOWED


class MissingOwnershipPredicateError(SqlValidationError):
    error_type = ErrorType.MISSING_OWNERSHIP_PREDICATE


class StoreError(ExecutionError):
    error_type = ErrorType.STORE_ERROR


class EmbeddingError(ExecutionError):
    error_type = ErrorType.EMBEDDING_ERROR


class PlanMalformedError(ExecutionError):
    error_type = ErrorType.PLAN_MALFORMED


class PlanRequiredError(ValueError):
    """Raised when a request carries no plan at all. Never degraded."""


class InvalidCallerIdentityError(ValueError):
    """Raised when the authenticated principal id cannot be bound safely."""


def make_error(
    node: str,
    error_type: ErrorType,
    message: str,
    *,
    retryable: Optional[bool] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "node": node,
        "type": error_type.value,
        "message": message,
        "retryable": (error_type in RETRYABLE) if retryable is None else retryable,
        "details": details,
    }
