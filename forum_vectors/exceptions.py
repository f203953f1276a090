"""Exception hierarchy for the vector subsystem.

All custom exceptions inherit from ForumVectorError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "FV-1000"
    CONFIGURATION_ERROR = "FV-1001"
    BAD_REQUEST = "FV-1002"
    DIMENSION_MISMATCH = "FV-1003"
    INVALID_FILTER = "FV-1004"

    # Embedding errors (3xxx)
    EMBEDDING_UNAVAILABLE = "FV-3000"
    EMBEDDING_PROVIDER_ERROR = "FV-3001"
    EMBEDDING_RATE_LIMITED = "FV-3002"

    # Vector store errors (4xxx)
    STORE_UNAVAILABLE = "FV-4000"
    COLLECTION_NOT_FOUND = "FV-4001"
    POINT_NOT_FOUND = "FV-4002"

    # Indexing errors (5xxx)
    INDEXING_FAILURE = "FV-5000"

    # Search errors (6xxx)
    SEARCH_UNAVAILABLE = "FV-6000"

    # Recommendation errors (7xxx)
    PROFILE_UNAVAILABLE = "FV-7000"


class ForumVectorError(Exception):
    """Base exception for all vector subsystem errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(ForumVectorError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class BadRequestError(ForumVectorError):
    """Caller bug such as a dimension mismatch or a malformed filter.

    Never retried.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.BAD_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class EmbeddingProviderError(ForumVectorError):
    """A single embedding provider failed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_PROVIDER_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ProviderRateLimitedError(EmbeddingProviderError):
    """A provider answered with a rate-limit response."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMBEDDING_RATE_LIMITED, details)


class EmbeddingUnavailableError(ForumVectorError):
    """Every configured embedding provider failed or is backed off."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMBEDDING_UNAVAILABLE, details)


class StoreUnavailableError(ForumVectorError):
    """Vector store unreachable or not ready. Callers fall back."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STORE_UNAVAILABLE,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class SearchUnavailableError(StoreUnavailableError):
    """Vector search cannot run; callers use a non-vector search path."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.SEARCH_UNAVAILABLE, details)


class IndexingFailureError(ForumVectorError):
    """Indexing an entity failed. Logged, never raised into the write path."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INDEXING_FAILURE, details)


class ProfileUnavailableError(ForumVectorError):
    """No interaction signal and no content fallback for a user."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.PROFILE_UNAVAILABLE, details)
