"""Embedding data models."""

from enum import Enum

from pydantic import BaseModel, Field


class EmbeddingPurpose(str, Enum):
    """What a piece of text is embedded for.

    Asymmetric models (E5) prefix queries and documents differently.
    """

    DOCUMENT = "document"
    QUERY = "query"


class EmbeddingResult(BaseModel):
    """Result of an embedding operation.

    Attributes:
        text: The original text that was embedded.
        embedding: The embedding vector.
        model: The model used to generate the embedding.
        provider: Name of the provider that answered.
        dimensions: Number of dimensions in the embedding.
    """

    text: str = Field(description="Original text")
    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used for embedding")
    provider: str = Field(default="", description="Provider that produced it")
    dimensions: int = Field(description="Vector dimensions")

    def model_post_init(self, __context: object) -> None:
        """Validate dimensions match embedding length."""
        if self.dimensions != len(self.embedding):
            raise ValueError(
                f"dimensions ({self.dimensions}) does not match "
                f"embedding length ({len(self.embedding)})"
            )


class ProviderState(BaseModel):
    """Mutable rate-limit and backoff state of one provider.

    Times are monotonic-clock seconds.
    """

    requests_in_window: int = 0
    window_start: float = 0.0
    consecutive_failures: int = 0
    backoff_until: float = 0.0


class ProviderStatus(BaseModel):
    """Point-in-time view of a provider for diagnostics.

    Attributes:
        name: Provider name.
        available: Whether the next call would try this provider.
        requests_in_window: Requests counted in the current window.
        request_limit: Requests allowed per window.
        reset_in: Seconds until the current window resets.
        backoff_in: Seconds of backoff remaining.
        consecutive_failures: Failures since the last success.
    """

    name: str = Field(description="Provider name")
    available: bool = Field(description="Whether the provider would be tried")
    requests_in_window: int = Field(description="Requests in current window")
    request_limit: int = Field(description="Requests allowed per window")
    reset_in: float = Field(description="Seconds until the window resets")
    backoff_in: float = Field(description="Seconds of backoff remaining")
    consecutive_failures: int = Field(description="Failures since last success")
