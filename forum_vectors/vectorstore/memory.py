"""
In-memory vector store implementation.

Keeps points in dictionaries and scores them exhaustively, suitable for
tests and development. Setting ``available`` to False simulates an
unreachable store: ``is_ready`` returns False and every other call raises
StoreUnavailableError.
"""

from typing import Any

from forum_vectors.exceptions import (
    BadRequestError,
    ErrorCode,
    StoreUnavailableError,
)
from forum_vectors.logging_config import get_logger
from forum_vectors.sparse.models import SparseVector
from forum_vectors.vectorstore.filters import parse_filters
from forum_vectors.vectorstore.models import (
    DENSE_VECTOR,
    SPARSE_VECTOR,
    CollectionSpec,
    Point,
    ScrollPage,
    SearchResult,
)
from forum_vectors.vectorstore.service import QueryVector, VectorStore
from forum_vectors.vectorstore.similarity import (
    cosine_similarity,
    dot_product,
    negative_euclidean,
)

logger = get_logger(__name__)

_SCORERS = {
    "Cosine": cosine_similarity,
    "Dot": dot_product,
    "Euclid": negative_euclidean,
}


class InMemoryVectorStore(VectorStore):
    """Dictionary-backed VectorStore with exhaustive scoring."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self._specs: dict[str, CollectionSpec] = {}
        self._points: dict[str, dict[str, Point]] = {}

    def _check_available(self, operation: str) -> None:
        if not self.available:
            raise StoreUnavailableError(
                f"Vector store unavailable during {operation}",
                details={"operation": operation},
            )

    def _collection(self, name: str) -> dict[str, Point]:
        if name not in self._points:
            raise BadRequestError(
                f"Collection not found: {name}",
                code=ErrorCode.COLLECTION_NOT_FOUND,
                details={"collection": name},
            )
        return self._points[name]

    def count(self, collection: str) -> int:
        """Number of points in a collection."""
        return len(self._collection(collection))

    async def is_ready(self) -> bool:
        return self.available

    async def ensure_collections(self, specs: list[CollectionSpec]) -> list[str]:
        self._check_available("ensure_collection")
        created = []
        for spec in specs:
            self._specs[spec.name] = spec
            if spec.name not in self._points:
                self._points[spec.name] = {}
                created.append(spec.name)
        return created

    async def force_reset(self, specs: list[CollectionSpec]) -> None:
        self._check_available("force_reset")
        for spec in specs:
            self._specs[spec.name] = spec
            self._points[spec.name] = {}
        logger.warning(f"Reset {len(specs)} in-memory collections")

    async def upsert(self, collection: str, points: list[Point]) -> int:
        self._check_available("upsert")
        store = self._collection(collection)
        spec = self._specs[collection]
        for point in points:
            spec.check_point(point)
        for point in points:
            store[point.id] = point.model_copy(deep=True)
        return len(points)

    async def delete(self, collection: str, ids: list[str]) -> int:
        self._check_available("delete")
        store = self._collection(collection)
        for point_id in ids:
            store.pop(point_id, None)
        return len(ids)

    def _score(
        self,
        spec: CollectionSpec,
        point: Point,
        vector: QueryVector,
        using: str,
    ) -> float | None:
        if isinstance(vector, SparseVector):
            if using != SPARSE_VECTOR or point.sparse is None:
                return None
            # Points sharing no index are not candidates at all.
            if not set(point.sparse.indices) & set(vector.indices):
                return None
            return point.sparse.dot(vector)

        stored = point.dense if using == DENSE_VECTOR else point.named_vectors.get(using)
        if stored is None:
            return None
        return _SCORERS[spec.distance](vector, stored)

    async def search(
        self,
        collection: str,
        vector: QueryVector,
        using: str = DENSE_VECTOR,
        limit: int = 10,
        filters: dict[str, Any] | None = None,
        score_threshold: float | None = None,
        ids: list[str] | None = None,
        with_vectors: bool = False,
    ) -> list[SearchResult]:
        self._check_available("search")
        store = self._collection(collection)
        spec = self._specs[collection]
        parsed = parse_filters(filters)

        if isinstance(vector, SparseVector):
            if vector.is_empty:
                return []
        else:
            spec.check_vector(using, vector)

        allowed = set(ids) if ids is not None else None
        hits: list[tuple[float, Point]] = []
        for point in store.values():
            if allowed is not None and point.id not in allowed:
                continue
            if not parsed.matches(point.payload):
                continue
            score = self._score(spec, point, vector, using)
            if score is None:
                continue
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append((score, point))

        hits.sort(key=lambda hit: (-hit[0], hit[1].id))
        return [
            SearchResult(
                id=point.id,
                score=score,
                payload=dict(point.payload),
                vector=list(point.dense) if with_vectors and point.dense else None,
            )
            for score, point in hits[:limit]
        ]

    async def scroll(
        self,
        collection: str,
        limit: int = 100,
        offset: str | None = None,
        filters: dict[str, Any] | None = None,
        with_vectors: bool = False,
    ) -> ScrollPage:
        self._check_available("scroll")
        store = self._collection(collection)
        parsed = parse_filters(filters)

        ordered = sorted(
            (p for p in store.values() if parsed.matches(p.payload)),
            key=lambda p: p.id,
        )
        if offset is not None:
            ordered = [p for p in ordered if p.id >= offset]

        page = ordered[:limit]
        next_offset = ordered[limit].id if len(ordered) > limit else None
        return ScrollPage(
            points=[self._copy(p, with_vectors) for p in page],
            next_offset=next_offset,
        )

    async def retrieve(
        self,
        collection: str,
        ids: list[str],
        with_vectors: bool = False,
    ) -> list[Point]:
        self._check_available("retrieve")
        store = self._collection(collection)
        return [self._copy(store[i], with_vectors) for i in ids if i in store]

    async def set_payload(
        self,
        collection: str,
        point_id: str,
        payload: dict[str, Any],
    ) -> None:
        self._check_available("set_payload")
        store = self._collection(collection)
        point = store.get(point_id)
        if point is None:
            raise BadRequestError(
                f"Point not found: {point_id}",
                code=ErrorCode.POINT_NOT_FOUND,
                details={"collection": collection, "point_id": point_id},
            )
        point.payload.update(payload)

    @staticmethod
    def _copy(point: Point, with_vectors: bool) -> Point:
        if with_vectors:
            return point.model_copy(deep=True)
        return Point(id=point.id, payload=dict(point.payload))
