"""Tests for the in-memory vector store."""

import pytest

from forum_vectors.exceptions import (
    BadRequestError,
    ErrorCode,
    StoreUnavailableError,
)
from forum_vectors.sparse.models import SparseVector
from forum_vectors.vectorstore.memory import InMemoryVectorStore
from forum_vectors.vectorstore.models import CollectionSpec, Point

SPEC = CollectionSpec(name="posts", dense_size=2, sparse=True)


@pytest.fixture
async def memory_store() -> InMemoryVectorStore:
    """Store with one two-dimensional collection."""
    store = InMemoryVectorStore()
    await store.ensure_collections([SPEC])
    await store.upsert(
        "posts",
        [
            Point(
                id="a",
                dense=[1.0, 0.0],
                sparse=SparseVector(indices=[1], weights=[1.0]),
                payload={"category_id": "c1", "created_at_ts": 10},
            ),
            Point(
                id="b",
                dense=[0.7, 0.7],
                sparse=SparseVector(indices=[1, 2], weights=[0.5, 1.0]),
                payload={"category_id": "c2", "created_at_ts": 20},
            ),
            Point(
                id="c",
                dense=[0.0, 1.0],
                payload={"category_id": "c2", "created_at_ts": 30},
            ),
        ],
    )
    return store


class TestInMemoryVectorStore:
    """Tests for InMemoryVectorStore."""

    async def test_ensure_collections_is_idempotent(
        self,
        memory_store: InMemoryVectorStore,
    ) -> None:
        """Existing collections keep their points."""
        created = await memory_store.ensure_collections([SPEC])

        assert created == []
        assert memory_store.count("posts") == 3

    async def test_force_reset_empties(self, memory_store: InMemoryVectorStore) -> None:
        """force_reset drops every point."""
        await memory_store.force_reset([SPEC])
        assert memory_store.count("posts") == 0

    async def test_upsert_replaces(self, memory_store: InMemoryVectorStore) -> None:
        """Upserting an existing id replaces the point."""
        await memory_store.upsert("posts", [Point(id="a", dense=[0.0, 1.0])])

        assert memory_store.count("posts") == 3
        points = await memory_store.retrieve("posts", ["a"], with_vectors=True)
        assert points[0].dense == [0.0, 1.0]

    async def test_dense_search_orders_by_score(
        self,
        memory_store: InMemoryVectorStore,
    ) -> None:
        """Dense search ranks by cosine similarity."""
        results = await memory_store.search("posts", [1.0, 0.0], limit=3)

        assert [r.id for r in results] == ["a", "b", "c"]
        assert results[0].score == pytest.approx(1.0)

    async def test_sparse_search_skips_points_without_sparse(
        self,
        memory_store: InMemoryVectorStore,
    ) -> None:
        """Sparse search scores by dot product over sparse points only."""
        results = await memory_store.search(
            "posts",
            SparseVector(indices=[2], weights=[1.0]),
            using="sparse",
        )

        assert [r.id for r in results] == ["b"]

    async def test_search_filters_and_ids(
        self,
        memory_store: InMemoryVectorStore,
    ) -> None:
        """Filters and id restrictions narrow the candidates."""
        by_filter = await memory_store.search(
            "posts",
            [1.0, 0.0],
            filters={"category_id": "c2", "created_at_ts": {"gte": 25}},
        )
        by_ids = await memory_store.search("posts", [1.0, 0.0], ids=["b"])

        assert [r.id for r in by_filter] == ["c"]
        assert [r.id for r in by_ids] == ["b"]

    async def test_search_dimension_mismatch(
        self,
        memory_store: InMemoryVectorStore,
    ) -> None:
        """Wrong-sized query vectors are caller errors."""
        with pytest.raises(BadRequestError) as exc_info:
            await memory_store.search("posts", [1.0, 0.0, 0.0])

        assert exc_info.value.code == ErrorCode.DIMENSION_MISMATCH

    async def test_scroll_pages(self, memory_store: InMemoryVectorStore) -> None:
        """Scrolling walks every point once."""
        first = await memory_store.scroll("posts", limit=2)
        second = await memory_store.scroll("posts", limit=2, offset=first.next_offset)

        ids = [p.id for p in first.points + second.points]
        assert sorted(ids) == ["a", "b", "c"]
        assert second.next_offset is None

    async def test_set_payload_missing_point(
        self,
        memory_store: InMemoryVectorStore,
    ) -> None:
        """Patching a missing point is reported."""
        with pytest.raises(BadRequestError) as exc_info:
            await memory_store.set_payload("posts", "zzz", {"upvotes": 1})

        assert exc_info.value.code == ErrorCode.POINT_NOT_FOUND

    async def test_unknown_collection(self, memory_store: InMemoryVectorStore) -> None:
        """Unknown collections raise COLLECTION_NOT_FOUND."""
        with pytest.raises(BadRequestError) as exc_info:
            await memory_store.retrieve("nope", ["a"])

        assert exc_info.value.code == ErrorCode.COLLECTION_NOT_FOUND

    async def test_unavailable(self, memory_store: InMemoryVectorStore) -> None:
        """An unavailable store is not ready and refuses calls."""
        memory_store.available = False

        assert await memory_store.is_ready() is False
        with pytest.raises(StoreUnavailableError):
            await memory_store.search("posts", [1.0, 0.0])

    async def test_named_vector_search(self) -> None:
        """Named vectors are searched by name with their own size."""
        store = InMemoryVectorStore()
        spec = CollectionSpec(
            name="multimodal",
            named_vectors={"text": 2, "image": 3},
        )
        await store.ensure_collections([spec])
        await store.upsert(
            "multimodal",
            [
                Point(id="x", named_vectors={"text": [1.0, 0.0]}),
                Point(id="y", named_vectors={"image": [0.0, 0.0, 1.0]}),
            ],
        )

        results = await store.search("multimodal", [0.0, 0.0, 1.0], using="image")

        assert [r.id for r in results] == ["y"]
        with pytest.raises(BadRequestError):
            await store.search("multimodal", [1.0, 0.0], using="document")
