"""Tests for the indexing pipeline and hooks."""

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from forum_vectors.config import QdrantSettings
from forum_vectors.embeddings.service import FailoverEmbeddingService
from forum_vectors.exceptions import ErrorCode, IndexingFailureError
from forum_vectors.indexing.hooks import IndexingHooks
from forum_vectors.indexing.models import (
    CategoryEntity,
    CommentEntity,
    EntityType,
    MultiModalContent,
    MultiModalPayload,
    PostEntity,
    PostPayload,
    UserEntity,
    UserInteractionProfile,
    parse_entity,
    parse_payload,
)
from forum_vectors.indexing.pipeline import IndexingPipeline
from forum_vectors.indexing.points import embedding_text, multimodal_point_id, point_id
from forum_vectors.vectorstore.collections import default_collection_specs
from forum_vectors.vectorstore.memory import InMemoryVectorStore

CREATED = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def pipeline(
    embeddings: FailoverEmbeddingService,
    store: InMemoryVectorStore,
) -> IndexingPipeline:
    return IndexingPipeline(embeddings, store)


class TestPointIds:
    """Tests for deterministic point ids."""

    def test_stable(self) -> None:
        """Same entity gives the same id."""
        assert point_id(EntityType.POST, "42") == point_id("post", "42")

    def test_type_scoped(self) -> None:
        """Ids of different entity types never collide."""
        assert point_id(EntityType.POST, "42") != point_id(EntityType.COMMENT, "42")


class TestEmbeddingText:
    """Tests for the text embedded per entity."""

    def test_post(self, make_post: Callable[..., PostEntity]) -> None:
        """Posts embed title, body, author and category."""
        post = make_post("1", "Quantum basics", "Qubits explained")
        assert embedding_text(post) == "Quantum basics Qubits explained alice General"

    def test_comment(self) -> None:
        """Comments mention their parent post."""
        comment = CommentEntity(
            id="c1",
            content="Great read",
            author_id="u2",
            author_username="bob",
            post_id="1",
            post_title="Quantum basics",
            created_at=CREATED,
        )
        assert embedding_text(comment) == "Great read bob comment on post: Quantum basics"

    def test_user(self) -> None:
        """Users embed their bio and recent writing."""
        user = UserEntity(
            id="u1",
            username="alice",
            bio="Physicist",
            created_at=CREATED,
            recent_posts=["Quantum basics"],
        )
        text = embedding_text(user)

        assert "Physicist" in text
        assert "Quantum basics" in text
        assert text.endswith("interests: alice alice")


class TestPayloadModels:
    """Tests for payload and entity parsing."""

    def test_parse_payload_discriminates(self) -> None:
        """Payload dicts validate to the model named by type."""
        payload = parse_payload(
            {
                "type": "post",
                "entity_id": "1",
                "title": "t",
                "content": "c",
                "author_id": "a",
                "author_username": "alice",
                "category_id": "c1",
                "category_name": "General",
                "created_at": CREATED.isoformat(),
                "created_at_ts": int(CREATED.timestamp()),
            }
        )
        assert isinstance(payload, PostPayload)

    def test_parse_entity(self) -> None:
        """Entity dicts validate by entity_type."""
        entity = parse_entity(
            {"entity_type": "category", "id": "c1", "name": "General", "slug": "general"}
        )
        assert isinstance(entity, CategoryEntity)


class TestIndexingPipeline:
    """Tests for IndexingPipeline."""

    async def test_index_entity(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """A post is stored with dense, sparse and payload."""
        result = await pipeline.index_entity(
            make_post("1", "Quantum basics", upvotes=5, downvotes=2)
        )

        assert result.ok
        points = await store.retrieve("posts", [result.point_id], with_vectors=True)
        point = points[0]
        assert point.dense is not None and len(point.dense) == 1024
        assert point.sparse is not None and not point.sparse.is_empty
        assert point.payload["type"] == "post"
        assert point.payload["vote_score"] == 3
        assert point.payload["created_at_ts"] == int(
            datetime(2024, 1, 1, tzinfo=UTC).timestamp()
        )

    async def test_reindex_is_idempotent(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """Indexing twice leaves one point with the latest content."""
        await pipeline.index_entity(make_post("1", "First title"))
        await pipeline.index_entity(make_post("1", "Second title"))

        assert store.count("posts") == 1
        point = (await store.retrieve("posts", [point_id("post", "1")]))[0]
        assert point.payload["title"] == "Second title"

    async def test_index_each_type(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
    ) -> None:
        """Every entity type lands in its own collection."""
        await pipeline.index_entity(
            CategoryEntity(id="c1", name="Physics", slug="physics")
        )
        await pipeline.index_entity(
            UserEntity(id="u1", username="alice", created_at=CREATED)
        )

        assert store.count("categories") == 1
        assert store.count("users") == 1

    async def test_delete_entity(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """Deleting removes the point; deleting again still succeeds."""
        await pipeline.index_entity(make_post("1", "Quantum basics"))

        first = await pipeline.delete_entity("1", EntityType.POST)
        second = await pipeline.delete_entity("1", "post")

        assert first.ok and second.ok
        assert store.count("posts") == 0

    async def test_refresh_signals_patches_payload(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """Signal refresh updates counters without touching the vector."""
        await pipeline.index_entity(make_post("1", "Quantum basics"))
        before = (await store.retrieve("posts", [point_id("post", "1")], True))[0]

        result = await pipeline.refresh_signals(
            make_post("1", "Edited title", upvotes=10, bookmark_count=2)
        )

        after = (await store.retrieve("posts", [point_id("post", "1")], True))[0]
        assert result.ok
        assert after.payload["upvotes"] == 10
        assert after.payload["vote_score"] == 10
        assert after.payload["bookmark_count"] == 2
        assert after.payload["title"] == "Quantum basics"
        assert after.dense == before.dense

    async def test_refresh_signals_indexes_missing(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """Refreshing an entity that was never indexed indexes it."""
        result = await pipeline.refresh_signals(make_post("9", "Late arrival"))

        assert result.ok
        assert store.count("posts") == 1

    async def test_failure_is_captured(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """Store outages become failed results, never exceptions."""
        store.available = False

        result = await pipeline.index_entity(make_post("1", "Quantum basics"))

        assert not result.ok
        assert isinstance(result.error, IndexingFailureError)
        assert result.error.details["cause"] == ErrorCode.STORE_UNAVAILABLE.value

    async def test_index_user_profile(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
    ) -> None:
        """Profiles are stored as sparse points with their ratings."""
        profile = UserInteractionProfile(
            user_id="u1",
            weights={"1": 1.0, "2": 0.5},
            total_interactions=2,
        )

        result = await pipeline.index_user_profile(profile)

        assert result.ok
        point = (await store.retrieve("interactions", [result.point_id], True))[0]
        assert point.dense is None
        assert point.sparse is not None
        assert point.payload["ratings"] == {"1": 1.0, "2": 0.5}
        assert point.payload["entity_id"] == "u1"

    async def test_empty_profile_removes_point(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
    ) -> None:
        """An empty profile deletes the stored one."""
        await pipeline.index_user_profile(
            UserInteractionProfile(user_id="u1", weights={"1": 1.0})
        )

        result = await pipeline.index_user_profile(UserInteractionProfile(user_id="u1"))

        assert result.ok
        assert store.count("interactions") == 0

    async def test_batch_update_profiles(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
    ) -> None:
        """Batch updates return one result per profile."""
        profiles = [
            UserInteractionProfile(user_id=f"u{i}", weights={"1": float(i)})
            for i in range(1, 4)
        ]

        results = await pipeline.batch_update_profiles(profiles)

        assert [r.entity_id for r in results] == ["u1", "u2", "u3"]
        assert store.count("interactions") == 3


class TestIndexingHooks:
    """Tests for IndexingHooks."""

    async def test_hooks_never_raise(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """Every hook returns a failed result when the store is down."""
        hooks = IndexingHooks(pipeline)
        store.available = False
        post = make_post("1", "Quantum basics")

        results = [
            await hooks.on_saved(post),
            await hooks.on_signals_changed(post),
            await hooks.on_deleted("1", EntityType.POST),
            await hooks.on_interactions_changed(
                UserInteractionProfile(user_id="u1", weights={"1": 1.0})
            ),
        ]

        assert all(not r.ok for r in results)

    async def test_hook_success(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
        make_post: Callable[..., PostEntity],
    ) -> None:
        """Successful hooks pass the result through."""
        result = await IndexingHooks(pipeline).on_saved(make_post("1", "Quantum"))

        assert result.ok
        assert store.count("posts") == 1

    async def test_unknown_entity_type(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
    ) -> None:
        """An unknown entity type is reported as a failed result."""
        result = await IndexingHooks(pipeline).on_deleted("42", "thread")

        assert not result.ok
        assert isinstance(result.error, IndexingFailureError)
        assert result.error.details["cause"] == ErrorCode.BAD_REQUEST.value
        assert result.entity_id == "42"
        assert store.count("posts") == 0

    async def test_foreign_object_is_not_indexed(
        self,
        pipeline: IndexingPipeline,
        store: InMemoryVectorStore,
    ) -> None:
        """Objects without an entity type fail without touching the store."""
        results = [
            await pipeline.index_entity(object()),  # type: ignore[arg-type]
            await pipeline.refresh_signals(object()),  # type: ignore[arg-type]
        ]

        assert all(not r.ok for r in results)
        assert store.count("posts") == 0


@pytest.fixture
async def multimodal_store() -> InMemoryVectorStore:
    """Store with the multimodal collection sized like the test embeddings."""
    store = InMemoryVectorStore()
    await store.ensure_collections(
        default_collection_specs(
            QdrantSettings(enable_multimodal=True, multimodal_dimensions=1024)
        )
    )
    return store


class TestMultiModalIndexing:
    """Tests for IndexingPipeline.index_multimodal."""

    async def test_stores_present_modalities(
        self,
        embeddings: FailoverEmbeddingService,
        multimodal_store: InMemoryVectorStore,
    ) -> None:
        """Text and document text are embedded, image vectors kept as given."""
        pipeline = IndexingPipeline(embeddings, multimodal_store)
        image = [1.0] + [0.0] * 1023
        content = MultiModalContent(
            id="m1",
            text="Qubits on a chip",
            document_text="Lab notes on superconducting qubits",
            document_url="https://example.org/notes.pdf",
            image_embedding=image,
            metadata={"author_id": "u1"},
        )

        result = await pipeline.index_multimodal(content)

        assert result.ok
        assert result.point_id == multimodal_point_id("m1")
        point = (await multimodal_store.retrieve("multimodal", [result.point_id], True))[0]
        assert set(point.named_vectors) == {"text", "image", "document"}
        assert point.named_vectors["image"] == image
        payload = MultiModalPayload(**point.payload)
        assert payload.modalities == ["document", "image", "text"]
        assert payload.metadata == {"author_id": "u1"}

    async def test_text_only(
        self,
        embeddings: FailoverEmbeddingService,
        multimodal_store: InMemoryVectorStore,
    ) -> None:
        """Only the modalities present are written."""
        pipeline = IndexingPipeline(embeddings, multimodal_store)

        result = await pipeline.index_multimodal(MultiModalContent(id="m2", text="Hello"))

        point = (await multimodal_store.retrieve("multimodal", [result.point_id], True))[0]
        assert list(point.named_vectors) == ["text"]

    async def test_empty_content_fails(
        self,
        embeddings: FailoverEmbeddingService,
        multimodal_store: InMemoryVectorStore,
    ) -> None:
        """Content without any modality is a failed result."""
        pipeline = IndexingPipeline(embeddings, multimodal_store)

        result = await pipeline.index_multimodal(MultiModalContent(id="m3"))

        assert not result.ok
        assert result.error is not None
        assert result.error.details["cause"] == ErrorCode.BAD_REQUEST.value
        assert multimodal_store.count("multimodal") == 0

    async def test_collection_disabled(self, pipeline: IndexingPipeline) -> None:
        """Without the multimodal collection indexing fails without raising."""
        result = await pipeline.index_multimodal(MultiModalContent(id="m4", text="Hi"))

        assert not result.ok
        assert result.error is not None
        assert result.error.details["cause"] == ErrorCode.COLLECTION_NOT_FOUND.value
