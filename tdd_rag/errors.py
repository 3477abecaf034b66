"""Error types raised by the indexing pipeline.

Backend and embedding failures are classified into a small set of
categories so that callers can react to auth, quota and missing-resource
problems without inspecting provider-specific exception types.
"""

from __future__ import annotations

import re
from enum import Enum


class ErrorCategory(Enum):
    """Categories of backend failures."""

    NOT_FOUND = "not_found"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    OTHER = "other"


class TddRagError(Exception):
    """Base class for all package errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message} ({self.suggestion})"
        return self.message


class ConfigurationError(TddRagError):
    """Invalid or missing configuration."""


class PersistenceError(TddRagError):
    """Index state could not be loaded or saved."""


class VectorStoreError(TddRagError):
    """Unclassified failure talking to the vector backend or embedder."""

    category = ErrorCategory.OTHER


class NotFoundError(VectorStoreError):
    category = ErrorCategory.NOT_FOUND


class AuthenticationError(VectorStoreError):
    category = ErrorCategory.AUTHENTICATION


class RateLimitError(VectorStoreError):
    category = ErrorCategory.RATE_LIMIT


class DimensionMismatchError(VectorStoreError):
    """Existing collection was created with a different vector size."""

    def __init__(self, collection_name: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Collection '{collection_name}' has dimension {actual}, "
            f"but the embedding model produces {expected}",
            suggestion="recreate the collection or adapt vectors to its size",
        )
        self.collection_name = collection_name
        self.expected = expected
        self.actual = actual


_STATUS_PATTERN = re.compile(r"\b(401|403|404|429)\b")


def _status_code(error: Exception) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    match = _STATUS_PATTERN.search(str(error))
    return int(match.group(1)) if match else None


def classify_error(error: Exception) -> ErrorCategory:
    """Classify a provider exception by status code or message."""
    if isinstance(error, VectorStoreError):
        return error.category

    status = _status_code(error)
    message = str(error).lower()
    if status == 404 or "not found" in message:
        return ErrorCategory.NOT_FOUND
    if status in (401, 403) or "unauthorized" in message or "forbidden" in message:
        return ErrorCategory.AUTHENTICATION
    if status == 429 or "rate limit" in message:
        return ErrorCategory.RATE_LIMIT
    return ErrorCategory.OTHER


def wrap_backend_error(error: Exception, context: str) -> VectorStoreError:
    """Re-raise-ready error with a clearer message for the given context."""
    if isinstance(error, VectorStoreError):
        return error

    category = classify_error(error)
    if category is ErrorCategory.NOT_FOUND:
        return NotFoundError(
            f"{context}: resource not found ({error})",
            suggestion="check the collection name and backend URL",
        )
    if category is ErrorCategory.AUTHENTICATION:
        return AuthenticationError(
            f"{context}: authentication failed ({error})",
            suggestion="verify the configured API key",
        )
    if category is ErrorCategory.RATE_LIMIT:
        return RateLimitError(
            f"{context}: rate limit exceeded ({error})",
            suggestion="reduce batch_size or increase batch_delay_seconds",
        )
    return VectorStoreError(f"{context}: {error}")
