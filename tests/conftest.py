"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from forum_vectors.api.app import create_app
from forum_vectors.config import Settings
from forum_vectors.embeddings.providers import DeterministicEmbeddingProvider
from forum_vectors.embeddings.service import FailoverEmbeddingService
from forum_vectors.indexing.models import PostEntity
from forum_vectors.service import SemanticService
from forum_vectors.vectorstore.collections import default_collection_specs
from forum_vectors.vectorstore.memory import InMemoryVectorStore

DIMENSIONS = 1024


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only."""
    return Settings()


@pytest.fixture
def embeddings() -> FailoverEmbeddingService:
    """Embedding service backed by the deterministic local provider."""
    return FailoverEmbeddingService([DeterministicEmbeddingProvider(DIMENSIONS)])


@pytest.fixture
async def store(settings: Settings) -> InMemoryVectorStore:
    """In-memory store with every collection created."""
    store = InMemoryVectorStore()
    await store.ensure_collections(default_collection_specs(settings.qdrant))
    return store


@pytest.fixture
def make_post() -> Callable[..., PostEntity]:
    """Factory for post entities with sensible defaults."""

    def factory(post_id: str, title: str, content: str = "", **kwargs: Any) -> PostEntity:
        fields: dict[str, Any] = {
            "id": post_id,
            "title": title,
            "content": content or title,
            "author_id": "author-1",
            "author_username": "alice",
            "category_id": "cat-1",
            "category_name": "General",
            "created_at": datetime(2024, 1, 1, tzinfo=UTC),
        }
        fields.update(kwargs)
        return PostEntity(**fields)

    return factory


@pytest.fixture
def service(
    settings: Settings,
    embeddings: FailoverEmbeddingService,
    store: InMemoryVectorStore,
) -> SemanticService:
    """Semantic service wired to in-memory parts."""
    return SemanticService(embeddings, store, settings=settings)


@pytest.fixture
async def client(service: SemanticService) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    app = create_app(service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
