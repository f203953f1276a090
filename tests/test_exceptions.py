"""Tests for application exceptions."""

from forum_vectors.exceptions import (
    BadRequestError,
    ConfigurationError,
    EmbeddingProviderError,
    EmbeddingUnavailableError,
    ErrorCode,
    ForumVectorError,
    IndexingFailureError,
    ProfileUnavailableError,
    ProviderRateLimitedError,
    SearchUnavailableError,
    StoreUnavailableError,
)


class TestErrorCode:
    """Tests for error codes."""

    def test_error_code_format(self) -> None:
        """Error codes follow FV-XXXX format."""
        for code in ErrorCode:
            assert code.value.startswith("FV-")
            assert len(code.value) == 7

    def test_error_code_uniqueness(self) -> None:
        """All error codes are unique."""
        codes = [code.value for code in ErrorCode]
        assert len(codes) == len(set(codes))


class TestForumVectorError:
    """Tests for base exception."""

    def test_basic_exception(self) -> None:
        """Base exception stores message and code."""
        error = ForumVectorError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {}

    def test_to_dict(self) -> None:
        """Exception converts to API response dict."""
        error = ForumVectorError(
            "Something went wrong",
            details={"trace_id": "abc123"},
        )
        assert error.to_dict() == {
            "error": {
                "code": "FV-1000",
                "message": "Something went wrong",
                "details": {"trace_id": "abc123"},
            }
        }

    def test_str_representation(self) -> None:
        """Exception string is the message."""
        assert str(ForumVectorError("Test error")) == "Test error"


class TestBadRequestError:
    """Tests for caller errors."""

    def test_default_code(self) -> None:
        """BadRequestError defaults to BAD_REQUEST."""
        assert BadRequestError("nope").code == ErrorCode.BAD_REQUEST

    def test_dimension_mismatch_code(self) -> None:
        """BadRequestError carries specific codes."""
        error = BadRequestError("wrong size", code=ErrorCode.DIMENSION_MISMATCH)
        assert error.code == ErrorCode.DIMENSION_MISMATCH


class TestEmbeddingErrors:
    """Tests for embedding exceptions."""

    def test_rate_limited_is_provider_error(self) -> None:
        """A rate-limited provider is a provider failure."""
        error = ProviderRateLimitedError("429", details={"retry_after": 2.0})
        assert isinstance(error, EmbeddingProviderError)
        assert error.code == ErrorCode.EMBEDDING_RATE_LIMITED
        assert error.details["retry_after"] == 2.0

    def test_unavailable_code(self) -> None:
        """EmbeddingUnavailableError has its own code."""
        error = EmbeddingUnavailableError("all failed")
        assert error.code == ErrorCode.EMBEDDING_UNAVAILABLE


class TestStoreErrors:
    """Tests for store and search exceptions."""

    def test_search_unavailable_is_store_unavailable(self) -> None:
        """Callers catching StoreUnavailableError also catch search failures."""
        error = SearchUnavailableError("down")
        assert isinstance(error, StoreUnavailableError)
        assert error.code == ErrorCode.SEARCH_UNAVAILABLE

    def test_store_unavailable_code(self) -> None:
        """StoreUnavailableError has correct default code."""
        assert StoreUnavailableError("down").code == ErrorCode.STORE_UNAVAILABLE


class TestOtherErrors:
    """Tests for the remaining exceptions."""

    def test_configuration_error(self) -> None:
        """ConfigurationError has correct code and base."""
        error = ConfigurationError("Missing env var")
        assert error.code == ErrorCode.CONFIGURATION_ERROR
        assert isinstance(error, ForumVectorError)

    def test_indexing_failure(self) -> None:
        """IndexingFailureError has correct code."""
        assert IndexingFailureError("x").code == ErrorCode.INDEXING_FAILURE

    def test_profile_unavailable(self) -> None:
        """ProfileUnavailableError has correct code."""
        assert ProfileUnavailableError("x").code == ErrorCode.PROFILE_UNAVAILABLE
