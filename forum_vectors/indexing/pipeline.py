"""Indexing pipeline.

Keeps the vector store in step with primary-store mutations. Every public
method returns an IndexResult; failures are captured in the result and never
raised, so a write to the primary store can not fail because of indexing.
"""

import time
from collections.abc import Awaitable, Callable, Iterable

from forum_vectors.embeddings.models import EmbeddingPurpose
from forum_vectors.embeddings.service import EmbeddingService
from forum_vectors.exceptions import (
    BadRequestError,
    ForumVectorError,
    IndexingFailureError,
)
from forum_vectors.indexing.models import (
    EntityType,
    IndexOperation,
    IndexResult,
    InteractionPayload,
    Modality,
    MultiModalContent,
    MultiModalPayload,
    UserInteractionProfile,
)
from forum_vectors.indexing.points import (
    AnyEntity,
    build_payload,
    collection_for,
    embedding_text,
    multimodal_point_id,
    point_id,
    signal_payload,
)
from forum_vectors.logging_config import get_logger
from forum_vectors.observability.metrics import track_indexing_operation
from forum_vectors.sparse.generator import SparseVectorGenerator
from forum_vectors.vectorstore import collections
from forum_vectors.vectorstore.models import Point
from forum_vectors.vectorstore.service import VectorStore

logger = get_logger(__name__)


class IndexingPipeline:
    """Converts entities into points and writes them to their collection."""

    def __init__(
        self,
        embeddings: EmbeddingService,
        store: VectorStore,
        sparse: SparseVectorGenerator | None = None,
        multimodal_embeddings: EmbeddingService | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            embeddings: Dense embedding service.
            store: Vector store gateway.
            sparse: Sparse vector generator for term vectors.
            multimodal_embeddings: Embedding service sized for the multimodal
                collection (defaults to ``embeddings``).
        """
        self._embeddings = embeddings
        self._store = store
        self._sparse = sparse or SparseVectorGenerator()
        self._multimodal_embeddings = multimodal_embeddings or embeddings

    def _fail(self, result: IndexResult, cause: Exception) -> IndexResult:
        error = IndexingFailureError(
            f"Failed to {result.operation.value} {result.entity_type} "
            f"{result.entity_id}: {cause}",
            details={
                "entity_type": result.entity_type,
                "entity_id": result.entity_id,
                "collection": result.collection,
                "cause": cause.code.value if isinstance(cause, ForumVectorError) else None,
            },
        )
        error.__cause__ = cause
        logger.error(
            error.message,
            extra={
                "operation": result.operation.value,
                "entity_type": result.entity_type,
                "entity_id": result.entity_id,
            },
        )
        track_indexing_operation(result.operation.value, result.entity_type, success=False)
        return result.model_copy(update={"error": error})

    async def _run(
        self,
        result: IndexResult,
        action: Callable[[], Awaitable[None]],
    ) -> IndexResult:
        if not result.ok:
            return result
        start = time.perf_counter()
        try:
            await action()
        except Exception as e:
            return self._fail(result, e)

        track_indexing_operation(result.operation.value, result.entity_type)
        logger.debug(
            f"Indexing {result.operation.value} completed",
            extra={
                "entity_type": result.entity_type,
                "entity_id": result.entity_id,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return result

    def _result(
        self,
        operation: IndexOperation,
        entity_type: EntityType | str | None,
        entity_id: str,
    ) -> IndexResult:
        try:
            kind = EntityType(entity_type)
        except ValueError:
            # Unknown types come back as a failed result with no target.
            failed = IndexResult(
                operation=operation,
                entity_type="unknown",
                entity_id=str(entity_id),
                point_id="",
                collection="",
            )
            return self._fail(
                failed,
                BadRequestError(
                    f"Unknown entity type: {entity_type!r}",
                    details={"entity_type": str(entity_type)},
                ),
            )
        return IndexResult(
            operation=operation,
            entity_type=kind.value,
            entity_id=entity_id,
            point_id=point_id(kind, entity_id),
            collection=collection_for(kind),
        )

    async def _build_point(self, entity: AnyEntity) -> Point:
        text = embedding_text(entity)
        embedding = await self._embeddings.embed(text, EmbeddingPurpose.DOCUMENT)
        sparse = self._sparse.from_text(text)
        return Point(
            id=point_id(entity.entity_type, entity.id),
            dense=embedding.embedding,
            sparse=None if sparse.is_empty else sparse,
            payload=build_payload(entity).model_dump(),
        )

    async def index_entity(self, entity: AnyEntity) -> IndexResult:
        """Embed an entity and upsert its point.

        Re-indexing the same entity overwrites the same point.
        """
        result = self._result(
            IndexOperation.INDEX,
            getattr(entity, "entity_type", None),
            getattr(entity, "id", ""),
        )

        async def action() -> None:
            point = await self._build_point(entity)
            await self._store.upsert(result.collection, [point])

        return await self._run(result, action)

    async def delete_entity(
        self,
        entity_id: str,
        entity_type: EntityType | str,
    ) -> IndexResult:
        """Delete the point of an entity. Deleting a missing point succeeds."""
        result = self._result(IndexOperation.DELETE, entity_type, entity_id)

        async def action() -> None:
            await self._store.delete(result.collection, [result.point_id])

        return await self._run(result, action)

    async def refresh_signals(self, entity: AnyEntity) -> IndexResult:
        """Patch the engagement counters of an indexed entity.

        Only payload fields change; the text is not re-embedded. When the
        point does not exist yet the entity is indexed in full.
        """
        result = self._result(
            IndexOperation.REFRESH,
            getattr(entity, "entity_type", None),
            getattr(entity, "id", ""),
        )
        reindexed = False

        async def action() -> None:
            nonlocal reindexed
            existing = await self._store.retrieve(result.collection, [result.point_id])
            if not existing:
                reindexed = True
                point = await self._build_point(entity)
                await self._store.upsert(result.collection, [point])
                return
            await self._store.set_payload(
                result.collection,
                result.point_id,
                signal_payload(entity),
            )

        outcome = await self._run(result, action)
        if reindexed and outcome.ok:
            logger.info(
                f"Signals refresh indexed missing {result.entity_type} {result.entity_id}",
            )
        return outcome

    async def index_user_profile(self, profile: UserInteractionProfile) -> IndexResult:
        """Write a user's sparse interaction profile.

        An empty profile removes the stored one.
        """
        result = IndexResult(
            operation=IndexOperation.PROFILE,
            entity_type=collections.INTERACTIONS,
            entity_id=profile.user_id,
            point_id=point_id(EntityType.USER, profile.user_id),
            collection=collections.INTERACTIONS,
        )

        async def action() -> None:
            if profile.is_empty:
                await self._store.delete(result.collection, [result.point_id])
                return
            payload = InteractionPayload(
                entity_id=profile.user_id,
                ratings=dict(profile.weights),
                total_interactions=profile.total_interactions,
                category_preferences=dict(profile.category_preferences),
                created_at_ts=int(time.time()),
            )
            point = Point(
                id=result.point_id,
                sparse=self._sparse.from_ratings(profile.weights),
                payload=payload.model_dump(),
            )
            await self._store.upsert(result.collection, [point])

        return await self._run(result, action)

    async def batch_update_profiles(
        self,
        profiles: Iterable[UserInteractionProfile],
    ) -> list[IndexResult]:
        """Write many interaction profiles, one result per profile."""
        results = [await self.index_user_profile(p) for p in profiles]
        failed = sum(1 for r in results if not r.ok)
        logger.info(
            f"Updated {len(results) - failed} of {len(results)} interaction profiles",
            extra={"failed": failed},
        )
        return results

    async def index_multimodal(self, content: MultiModalContent) -> IndexResult:
        """Write the named text, image and document vectors of some content.

        Only the modalities present on the content are stored. Content with
        none of them fails with a BadRequestError cause.
        """
        result = IndexResult(
            operation=IndexOperation.MULTIMODAL,
            entity_type=content.content_type,
            entity_id=content.id,
            point_id=multimodal_point_id(content.id),
            collection=collections.MULTIMODAL,
        )

        async def action() -> None:
            texts = {
                modality: text
                for modality, text in (
                    (Modality.TEXT, content.text),
                    (Modality.DOCUMENT, content.document_text),
                )
                if text
            }
            vectors: dict[str, list[float]] = {}
            if texts:
                embedded = await self._multimodal_embeddings.embed_batch(
                    list(texts.values()), EmbeddingPurpose.DOCUMENT
                )
                for modality, embedding in zip(texts, embedded):
                    vectors[modality.value] = embedding.embedding
            if content.image_embedding:
                vectors[Modality.IMAGE.value] = list(content.image_embedding)
            if not vectors:
                raise BadRequestError(
                    f"Content {content.id} has no text, document text or image vector",
                    details={"content_id": content.id},
                )

            payload = MultiModalPayload(
                entity_id=content.id,
                content_type=content.content_type,
                text=content.text,
                image_url=content.image_url,
                document_url=content.document_url,
                modalities=sorted(vectors),
                created_at_ts=int(time.time()),
                metadata=dict(content.metadata),
            )
            point = Point(
                id=result.point_id,
                named_vectors=vectors,
                payload=payload.model_dump(),
            )
            await self._store.upsert(result.collection, [point])

        return await self._run(result, action)
