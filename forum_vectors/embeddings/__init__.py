"""Embedding service module."""

from forum_vectors.embeddings.models import (
    EmbeddingPurpose,
    EmbeddingResult,
    ProviderStatus,
)
from forum_vectors.embeddings.providers import (
    DeterministicEmbeddingProvider,
    EmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    OpenAICompatibleEmbeddingProvider,
)
from forum_vectors.embeddings.rate_limit import AttemptOutcome, ProviderStateRegistry
from forum_vectors.embeddings.service import (
    EmbeddingService,
    FailoverEmbeddingService,
    build_embedding_service,
)

__all__ = [
    "AttemptOutcome",
    "DeterministicEmbeddingProvider",
    "EmbeddingProvider",
    "EmbeddingPurpose",
    "EmbeddingResult",
    "EmbeddingService",
    "FailoverEmbeddingService",
    "HuggingFaceEmbeddingProvider",
    "OpenAICompatibleEmbeddingProvider",
    "ProviderStateRegistry",
    "ProviderStatus",
    "build_embedding_service",
]
