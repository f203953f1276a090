"""Vector store interface and Qdrant implementation."""

import math
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    BinaryQuantization,
    BinaryQuantizationConfig,
    Distance,
    PayloadSchemaType,
    PointIdsList,
    PointStruct,
    SparseVectorParams,
    VectorParams,
)
from qdrant_client.models import SparseVector as QdrantSparseVector

from forum_vectors.config import QdrantSettings, get_settings
from forum_vectors.exceptions import (
    BadRequestError,
    ErrorCode,
    ForumVectorError,
    StoreUnavailableError,
)
from forum_vectors.logging_config import get_logger
from forum_vectors.observability.metrics import track_vectorstore_operation
from forum_vectors.sparse.models import SparseVector
from forum_vectors.vectorstore.filters import build_qdrant_filter
from forum_vectors.vectorstore.models import (
    DENSE_VECTOR,
    SPARSE_VECTOR,
    CollectionSpec,
    Point,
    ScrollPage,
    SearchResult,
)

logger = get_logger(__name__)

QueryVector = list[float] | SparseVector


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Every method except ``is_ready`` raises StoreUnavailableError when the
    store cannot be reached and BadRequestError for caller mistakes. Nothing
    is retried here.
    """

    @abstractmethod
    async def is_ready(self) -> bool:
        """Single readiness check. Never raises."""
        ...

    @abstractmethod
    async def ensure_collections(self, specs: list[CollectionSpec]) -> list[str]:
        """Create missing collections.

        Args:
            specs: Declared collection configurations.

        Returns:
            Names of the collections that were created.
        """
        ...

    @abstractmethod
    async def force_reset(self, specs: list[CollectionSpec]) -> None:
        """Drop and recreate every collection in ``specs``.

        Destructive. Callers must make sure no indexing runs concurrently.
        """
        ...

    @abstractmethod
    async def upsert(self, collection: str, points: list[Point]) -> int:
        """Insert or update points.

        Returns:
            Number of points upserted.

        Raises:
            BadRequestError: If a vector does not match the collection.
        """
        ...

    @abstractmethod
    async def delete(self, collection: str, ids: list[str]) -> int:
        """Delete points by id.

        Returns:
            Number of ids submitted for deletion.
        """
        ...

    @abstractmethod
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
        """Search for the nearest points.

        Args:
            collection: Collection name.
            vector: Dense query vector or sparse vector.
            using: Name of the vector to search.
            limit: Maximum results to return.
            filters: Optional payload filters.
            score_threshold: Drop results scoring below this.
            ids: Restrict the search to these point ids.
            with_vectors: Return the dense vector of each hit.

        Returns:
            Results ordered by score descending.
        """
        ...

    @abstractmethod
    async def scroll(
        self,
        collection: str,
        limit: int = 100,
        offset: str | None = None,
        filters: dict[str, Any] | None = None,
        with_vectors: bool = False,
    ) -> ScrollPage:
        """Read one unordered page of points."""
        ...

    @abstractmethod
    async def retrieve(
        self,
        collection: str,
        ids: list[str],
        with_vectors: bool = False,
    ) -> list[Point]:
        """Fetch points by id. Missing ids are skipped."""
        ...

    @abstractmethod
    async def set_payload(
        self,
        collection: str,
        point_id: str,
        payload: dict[str, Any],
    ) -> None:
        """Merge ``payload`` into the payload of an existing point."""
        ...

    async def close(self) -> None:
        """Release resources."""
        return None


def _dense_from(vector: Any, using: str = DENSE_VECTOR) -> list[float] | None:
    if isinstance(vector, dict):
        value = vector.get(using)
        return list(value) if isinstance(value, list) else None
    if isinstance(vector, list):
        return list(vector)
    return None


def _point_from_record(record: Any) -> Point:
    vector = record.vector
    named: dict[str, list[float]] = {}
    sparse = None
    dense = _dense_from(vector)

    if isinstance(vector, dict):
        for name, value in vector.items():
            if name == SPARSE_VECTOR and value is not None:
                sparse = SparseVector(
                    indices=list(value.indices),
                    weights=list(value.values),
                )
            elif name != DENSE_VECTOR and isinstance(value, list):
                named[name] = list(value)

    return Point(
        id=str(record.id),
        dense=dense,
        sparse=sparse,
        named_vectors=named,
        payload=dict(record.payload) if record.payload else {},
    )


class QdrantVectorStore(VectorStore):
    """Qdrant vector store implementation.

    Collections use named vectors: ``dense`` for the main embedding,
    ``sparse`` for the term or interaction vector, and any extra named dense
    vectors a spec declares.
    """

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
        http_client: httpx.AsyncClient | None = None,
        specs: list[CollectionSpec] | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
            http_client: HTTP client for the readiness check (for testing).
            specs: Known collection specs used to validate vectors.
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._specs: dict[str, CollectionSpec] = {s.name: s for s in specs or []}

    def _api_key(self) -> str | None:
        if self._settings.api_key:
            return self._settings.api_key.get_secret_value()
        return None

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=self._api_key(),
                # The client takes whole seconds; round sub-second values up.
                timeout=math.ceil(self._settings.timeout),
            )
        return self._client

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._settings.ready_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the Qdrant client and the readiness client if we own them."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    @contextmanager
    def _operation(self, operation: str, collection: str) -> Iterator[None]:
        """Time an operation and map client errors to the store taxonomy."""
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        except ForumVectorError:
            raise
        except UnexpectedResponse as e:
            details = {
                "collection": collection,
                "operation": operation,
                "status_code": e.status_code,
            }
            if e.status_code is not None and 400 <= e.status_code < 500:
                code = (
                    ErrorCode.COLLECTION_NOT_FOUND
                    if e.status_code == 404
                    else ErrorCode.BAD_REQUEST
                )
                raise BadRequestError(
                    f"Vector store rejected {operation}: {e}",
                    code=code,
                    details=details,
                ) from e
            raise StoreUnavailableError(
                f"Vector store failed during {operation}: {e}",
                details=details,
            ) from e
        except Exception as e:
            raise StoreUnavailableError(
                f"Vector store unavailable during {operation}: {e}",
                details={"collection": collection, "operation": operation},
            ) from e
        finally:
            track_vectorstore_operation(
                operation, time.perf_counter() - start, success=success
            )

    async def is_ready(self) -> bool:
        """Check ``/readyz`` with a short timeout."""
        client = await self._get_http_client()
        headers = {}
        api_key = self._api_key()
        if api_key:
            headers["api-key"] = api_key

        try:
            response = await client.get(
                f"{self._settings.url.rstrip('/')}/readyz",
                headers=headers,
                timeout=self._settings.ready_timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Vector store readiness check failed: {e}")
            return False
        return response.status_code == 200

    async def _create(self, client: AsyncQdrantClient, spec: CollectionSpec) -> None:
        distance = Distance(spec.distance)
        vectors_config: dict[str, VectorParams] = {}
        if spec.dense_size is not None:
            vectors_config[DENSE_VECTOR] = VectorParams(
                size=spec.dense_size,
                distance=distance,
            )
        for name, size in spec.named_vectors.items():
            vectors_config[name] = VectorParams(size=size, distance=distance)

        sparse_config = {SPARSE_VECTOR: SparseVectorParams()} if spec.sparse else None
        quantization = None
        if spec.quantization and vectors_config:
            quantization = BinaryQuantization(
                binary=BinaryQuantizationConfig(always_ram=True)
            )

        await client.create_collection(
            collection_name=spec.name,
            vectors_config=vectors_config,
            sparse_vectors_config=sparse_config,
            quantization_config=quantization,
        )
        for field, schema in spec.payload_indexes.items():
            await client.create_payload_index(
                collection_name=spec.name,
                field_name=field,
                field_schema=PayloadSchemaType(schema),
            )
        logger.info(
            f"Created collection: {spec.name}",
            extra={"dense_size": spec.dense_size, "sparse": spec.sparse},
        )

    async def ensure_collections(self, specs: list[CollectionSpec]) -> list[str]:
        client = await self._get_client()
        created: list[str] = []

        for spec in specs:
            self._specs[spec.name] = spec
            with self._operation("ensure_collection", spec.name):
                if await client.collection_exists(spec.name):
                    continue
                await self._create(client, spec)
                created.append(spec.name)

        return created

    async def force_reset(self, specs: list[CollectionSpec]) -> None:
        client = await self._get_client()
        logger.warning(
            "Resetting vector collections",
            extra={"collections": [s.name for s in specs]},
        )

        for spec in specs:
            self._specs[spec.name] = spec
            with self._operation("force_reset", spec.name):
                if await client.collection_exists(spec.name):
                    await client.delete_collection(spec.name)
                await self._create(client, spec)

    def _to_point_struct(self, point: Point) -> PointStruct:
        vector: dict[str, Any] = dict(point.named_vectors)
        if point.dense is not None:
            vector[DENSE_VECTOR] = point.dense
        if point.sparse is not None and not point.sparse.is_empty:
            vector[SPARSE_VECTOR] = QdrantSparseVector(
                indices=point.sparse.indices,
                values=point.sparse.weights,
            )
        return PointStruct(id=point.id, vector=vector, payload=point.payload)

    async def upsert(self, collection: str, points: list[Point]) -> int:
        if not points:
            return 0

        spec = self._specs.get(collection)
        if spec is not None:
            for point in points:
                spec.check_point(point)

        client = await self._get_client()
        with self._operation("upsert", collection):
            await client.upsert(
                collection_name=collection,
                points=[self._to_point_struct(p) for p in points],
            )

        logger.debug(
            f"Upserted {len(points)} points",
            extra={"collection": collection},
        )
        return len(points)

    async def delete(self, collection: str, ids: list[str]) -> int:
        if not ids:
            return 0

        client = await self._get_client()
        with self._operation("delete", collection):
            await client.delete(
                collection_name=collection,
                points_selector=PointIdsList(points=ids),  # type: ignore[arg-type]
            )

        logger.debug(
            f"Deleted {len(ids)} points",
            extra={"collection": collection},
        )
        return len(ids)

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
        if ids is not None and not ids:
            return []

        query: Any
        if isinstance(vector, SparseVector):
            if vector.is_empty:
                return []
            query = QdrantSparseVector(indices=vector.indices, values=vector.weights)
        else:
            spec = self._specs.get(collection)
            if spec is not None:
                spec.check_vector(using, vector)
            query = vector

        query_filter = build_qdrant_filter(filters, ids)
        client = await self._get_client()

        with self._operation("search", collection):
            response = await client.query_points(
                collection_name=collection,
                query=query,
                using=using,
                limit=limit,
                query_filter=query_filter,
                score_threshold=score_threshold,
                with_payload=True,
                with_vectors=[DENSE_VECTOR] if with_vectors else False,
            )

        return [
            SearchResult(
                id=str(point.id),
                score=point.score if point.score is not None else 0.0,
                payload=dict(point.payload) if point.payload else {},
                vector=_dense_from(point.vector) if with_vectors else None,
            )
            for point in response.points
        ]

    async def scroll(
        self,
        collection: str,
        limit: int = 100,
        offset: str | None = None,
        filters: dict[str, Any] | None = None,
        with_vectors: bool = False,
    ) -> ScrollPage:
        scroll_filter = build_qdrant_filter(filters)
        client = await self._get_client()

        with self._operation("scroll", collection):
            records, next_offset = await client.scroll(
                collection_name=collection,
                scroll_filter=scroll_filter,
                limit=limit,
                offset=offset,
                with_payload=True,
                with_vectors=with_vectors,
            )

        return ScrollPage(
            points=[_point_from_record(r) for r in records],
            next_offset=str(next_offset) if next_offset is not None else None,
        )

    async def retrieve(
        self,
        collection: str,
        ids: list[str],
        with_vectors: bool = False,
    ) -> list[Point]:
        if not ids:
            return []

        client = await self._get_client()
        with self._operation("retrieve", collection):
            records = await client.retrieve(
                collection_name=collection,
                ids=ids,
                with_payload=True,
                with_vectors=with_vectors,
            )
        return [_point_from_record(r) for r in records]

    async def set_payload(
        self,
        collection: str,
        point_id: str,
        payload: dict[str, Any],
    ) -> None:
        client = await self._get_client()
        with self._operation("set_payload", collection):
            await client.set_payload(
                collection_name=collection,
                payload=payload,
                points=[point_id],
            )
