"""Semantic service facade.

The single entry point the forum's route layer uses: readiness, indexing
hooks, search, recommendations and provider diagnostics.
"""

from typing import Any

from forum_vectors.config import Settings, get_settings
from forum_vectors.embeddings.models import ProviderStatus
from forum_vectors.embeddings.service import EmbeddingService, build_embedding_service
from forum_vectors.indexing.hooks import IndexingHooks
from forum_vectors.indexing.models import (
    EntityType,
    IndexResult,
    Modality,
    MultiModalContent,
    UserInteractionProfile,
)
from forum_vectors.indexing.pipeline import IndexingPipeline
from forum_vectors.indexing.points import AnyEntity
from forum_vectors.logging_config import get_logger
from forum_vectors.recommendations.engine import RecommendationEngine
from forum_vectors.recommendations.models import RecommendOptions
from forum_vectors.recommendations.profile import InteractionSource
from forum_vectors.search.hybrid import HybridSearchEngine
from forum_vectors.search.models import MultiStageOptions, RankedResult, SearchOptions
from forum_vectors.search.multistage import MultiStageSearch
from forum_vectors.sparse.generator import SparseVectorGenerator
from forum_vectors.vectorstore import collections
from forum_vectors.vectorstore.collections import default_collection_specs
from forum_vectors.vectorstore.models import CollectionSpec
from forum_vectors.vectorstore.service import QdrantVectorStore, VectorStore

logger = get_logger(__name__)


class SemanticService:
    """Facade over the embedding, indexing, search and recommendation parts."""

    def __init__(
        self,
        embeddings: EmbeddingService,
        store: VectorStore,
        settings: Settings | None = None,
        interaction_source: InteractionSource | None = None,
        specs: list[CollectionSpec] | None = None,
        multimodal_embeddings: EmbeddingService | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            embeddings: Dense embedding service.
            store: Vector store gateway.
            settings: Application settings.
            interaction_source: Interaction log for recommendations.
            specs: Collection specs (defaults from settings).
            multimodal_embeddings: Embedding service sized for the multimodal
                collection (defaults to ``embeddings``).
        """
        self._settings = settings or get_settings()
        self._embeddings = embeddings
        self._multimodal_embeddings = multimodal_embeddings
        self._store = store
        self._specs = specs or default_collection_specs(self._settings.qdrant)

        sparse = SparseVectorGenerator(self._settings.search.sparse_dimensions)
        self.pipeline = IndexingPipeline(
            embeddings, store, sparse, multimodal_embeddings
        )
        self.hooks = IndexingHooks(self.pipeline)
        self.search = HybridSearchEngine(
            embeddings, store, sparse, self._settings.search, multimodal_embeddings
        )
        self.multi_stage = MultiStageSearch(
            embeddings, store, sparse, self._settings.search
        )
        self.recommendations = RecommendationEngine(
            embeddings,
            store,
            interaction_source=interaction_source,
            sparse=sparse,
            settings=self._settings.recommendation,
            search_settings=self._settings.search,
        )

    @property
    def store(self) -> VectorStore:
        return self._store

    @property
    def embeddings(self) -> EmbeddingService:
        return self._embeddings

    @property
    def multimodal_embeddings(self) -> EmbeddingService:
        return self._multimodal_embeddings or self._embeddings

    @property
    def specs(self) -> list[CollectionSpec]:
        return list(self._specs)

    async def is_ready(self) -> bool:
        """Whether vector features can be relied on."""
        return await self._store.is_ready()

    async def ensure_collections(self) -> list[str]:
        """Create missing collections. Returns the names created."""
        created = await self._store.ensure_collections(self._specs)
        if created:
            logger.info(f"Created collections: {', '.join(created)}")
        return created

    async def force_reset(self) -> None:
        """Drop and recreate every collection.

        Must not run concurrently with indexing.
        """
        await self._store.force_reset(self._specs)

    async def index_entity(self, entity: AnyEntity) -> IndexResult:
        return await self.hooks.on_saved(entity)

    async def delete_entity(
        self,
        entity_id: str,
        entity_type: EntityType | str,
    ) -> IndexResult:
        return await self.hooks.on_deleted(entity_id, entity_type)

    async def refresh_signals(self, entity: AnyEntity) -> IndexResult:
        return await self.hooks.on_signals_changed(entity)

    async def index_user_interactions(self, user_id: str) -> IndexResult:
        """Rebuild and store a user's interaction profile from the source."""
        profile = await self.recommendations.build_profile(user_id)
        return await self.hooks.on_interactions_changed(profile)

    async def batch_update_profiles(
        self,
        profiles: list[UserInteractionProfile],
    ) -> list[IndexResult]:
        return await self.pipeline.batch_update_profiles(profiles)

    async def hybrid_search(
        self,
        query: str,
        scope: str | list[str] = collections.POSTS,
        options: SearchOptions | None = None,
    ) -> list[RankedResult]:
        return await self.search.hybrid_search(query, scope, options)

    async def multi_stage_search(
        self,
        query: str,
        options: MultiStageOptions | None = None,
        collection: str = collections.POSTS,
    ) -> list[RankedResult]:
        return await self.multi_stage.multi_stage_search(query, options, collection)

    async def find_similar(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        limit: int = 4,
        filters: dict[str, Any] | None = None,
    ) -> list[RankedResult]:
        return await self.search.find_similar(entity_type, entity_id, limit, filters)

    async def index_multimodal(self, content: MultiModalContent) -> IndexResult:
        return await self.pipeline.index_multimodal(content)

    async def cross_modal_search(
        self,
        query: str | list[float],
        target_modality: Modality | str,
        limit: int = 10,
        score_threshold: float | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[RankedResult]:
        return await self.search.cross_modal_search(
            query, target_modality, limit, score_threshold, filters
        )

    async def recommend(
        self,
        user_id: str,
        options: RecommendOptions | None = None,
        profile: UserInteractionProfile | None = None,
    ) -> list[RankedResult]:
        return await self.recommendations.recommend(user_id, options, profile)

    async def recommend_for_category(
        self,
        slug: str,
        limit: int = 6,
    ) -> list[RankedResult]:
        return await self.recommendations.recommend_for_category(slug, limit)

    def get_provider_status(self) -> dict[str, ProviderStatus]:
        """Per-provider rate-limit and backoff status."""
        return self._embeddings.get_provider_status()

    async def close(self) -> None:
        """Release clients."""
        await self._embeddings.close()
        if self._multimodal_embeddings is not None:
            await self._multimodal_embeddings.close()
        await self._store.close()


def build_semantic_service(
    settings: Settings | None = None,
    interaction_source: InteractionSource | None = None,
) -> SemanticService:
    """Create the service with Qdrant and the failover embedding service."""
    settings = settings or get_settings()
    specs = default_collection_specs(settings.qdrant)
    multimodal_embeddings = None
    if settings.qdrant.enable_multimodal:
        multimodal_embeddings = build_embedding_service(
            settings.embedding.model_copy(
                update={"dimensions": settings.qdrant.multimodal_dimensions}
            )
        )
    return SemanticService(
        embeddings=build_embedding_service(settings.embedding),
        store=QdrantVectorStore(settings.qdrant, specs=specs),
        settings=settings,
        interaction_source=interaction_source,
        specs=specs,
        multimodal_embeddings=multimodal_embeddings,
    )
