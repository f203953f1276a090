"""Hybrid dense + sparse search."""

import asyncio
from typing import Any

from forum_vectors.config import SearchSettings, get_settings
from forum_vectors.embeddings.models import EmbeddingPurpose
from forum_vectors.embeddings.service import EmbeddingService
from forum_vectors.exceptions import (
    BadRequestError,
    EmbeddingUnavailableError,
    ForumVectorError,
    SearchUnavailableError,
    StoreUnavailableError,
)
from forum_vectors.indexing.models import EntityType, Modality
from forum_vectors.indexing.points import collection_for, point_id
from forum_vectors.logging_config import get_logger
from forum_vectors.observability.metrics import track_search_request
from forum_vectors.search.fusion import fuse
from forum_vectors.search.models import (
    FusedResult,
    MatchType,
    RankedList,
    RankedResult,
    SearchOptions,
)
from forum_vectors.sparse.generator import SparseVectorGenerator
from forum_vectors.sparse.models import SparseVector
from forum_vectors.vectorstore import collections
from forum_vectors.vectorstore.models import DENSE_VECTOR, SPARSE_VECTOR, SearchResult
from forum_vectors.vectorstore.service import VectorStore

logger = get_logger(__name__)

ALL_SCOPE = "all"


def resolve_scope(scope: str | list[str]) -> list[str]:
    """Collections a search scope covers.

    ``"all"`` means every content collection.

    Raises:
        BadRequestError: On an unknown or empty scope.
    """
    names = [scope] if isinstance(scope, str) else list(scope)
    if names == [ALL_SCOPE]:
        return list(collections.CONTENT_COLLECTIONS)
    unknown = [n for n in names if n not in collections.CONTENT_COLLECTIONS]
    if not names or unknown:
        raise BadRequestError(
            f"Unknown search scope: {unknown or names}",
            details={"allowed": [*collections.CONTENT_COLLECTIONS, ALL_SCOPE]},
        )
    return list(dict.fromkeys(names))


def match_type_for(sources: list[str]) -> MatchType:
    """Match type from list sources such as ``posts:dense`` or ``content``."""
    kinds = {source.rsplit(":", 1)[-1] for source in sources}
    if len(kinds) > 1:
        return MatchType.HYBRID
    kind = kinds.pop() if kinds else DENSE_VECTOR
    if kind in {m.value for m in MatchType}:
        return MatchType(kind)
    return MatchType.DENSE


def to_ranked_results(
    items: list[FusedResult],
    limit: int,
    score_threshold: float | None = None,
    match_type: MatchType | None = None,
) -> list[RankedResult]:
    """Apply threshold, then limit, then assign 1-based ranks."""
    kept = [i for i in items if score_threshold is None or i.score >= score_threshold]
    results = []
    for rank, item in enumerate(kept[:limit], start=1):
        results.append(
            RankedResult(
                id=item.id,
                entity_id=item.payload.get("entity_id"),
                score=item.score,
                payload=item.payload,
                rank=rank,
                match_type=match_type or match_type_for(item.sources),
                collection=_collection_of(item.payload),
            )
        )
    return results


def _collection_of(payload: dict[str, Any]) -> str | None:
    kind = payload.get("type")
    if kind in {t.value for t in EntityType}:
        return collection_for(kind)
    if kind == collections.MULTIMODAL:
        return collections.MULTIMODAL
    return None


def native_results(results: list[SearchResult], source: str) -> list[FusedResult]:
    """Wrap native search results without fusing them."""
    return [
        FusedResult(
            id=r.id,
            score=r.score,
            payload=r.payload,
            vector=r.vector,
            sources=[source],
        )
        for r in results
    ]


def search_unavailable(e: StoreUnavailableError, operation: str) -> SearchUnavailableError:
    error = SearchUnavailableError(
        f"Vector search unavailable: {e.message}",
        details={"operation": operation, **e.details},
    )
    error.__cause__ = e
    return error


class HybridSearchEngine:
    """Runs dense and sparse searches and fuses the ranked lists."""

    def __init__(
        self,
        embeddings: EmbeddingService,
        store: VectorStore,
        sparse: SparseVectorGenerator | None = None,
        settings: SearchSettings | None = None,
        multimodal_embeddings: EmbeddingService | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            embeddings: Dense embedding service.
            store: Vector store gateway.
            sparse: Generator for query term vectors.
            settings: Search defaults.
            multimodal_embeddings: Embedding service sized for the multimodal
                collection (defaults to ``embeddings``).
        """
        self._settings = settings or get_settings().search
        self._embeddings = embeddings
        self._multimodal_embeddings = multimodal_embeddings or embeddings
        self._store = store
        self._sparse = sparse or SparseVectorGenerator(self._settings.sparse_dimensions)

    async def _ensure_ready(self, mode: str) -> None:
        if not await self._store.is_ready():
            track_search_request(mode, 0, success=False)
            raise SearchUnavailableError(
                "Vector store is not ready",
                details={"mode": mode},
            )

    async def _dense_query(self, query: str, required: bool) -> list[float] | None:
        try:
            result = await self._embeddings.embed(query, EmbeddingPurpose.QUERY)
        except EmbeddingUnavailableError:
            if required:
                raise
            logger.warning("Dense query embedding unavailable, using sparse only")
            return None
        return result.embedding

    async def _search_lists(
        self,
        targets: list[str],
        dense: list[float] | None,
        sparse: SparseVector | None,
        fetch_limit: int,
        filters: dict[str, Any] | None,
    ) -> list[RankedList]:
        jobs: list[tuple[str, Any]] = []
        for collection in targets:
            if dense is not None:
                jobs.append(
                    (
                        f"{collection}:{DENSE_VECTOR}",
                        self._store.search(
                            collection,
                            dense,
                            using=DENSE_VECTOR,
                            limit=fetch_limit,
                            filters=filters,
                        ),
                    )
                )
            if sparse is not None:
                jobs.append(
                    (
                        f"{collection}:{SPARSE_VECTOR}",
                        self._store.search(
                            collection,
                            sparse,
                            using=SPARSE_VECTOR,
                            limit=fetch_limit,
                            filters=filters,
                        ),
                    )
                )

        outcomes = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)

        lists: list[RankedList] = []
        for (source, _), outcome in zip(jobs, outcomes):
            if isinstance(outcome, StoreUnavailableError):
                raise search_unavailable(outcome, source)
            if isinstance(outcome, BaseException):
                raise outcome
            lists.append(RankedList(source=source, results=outcome))
        return lists

    async def hybrid_search(
        self,
        query: str,
        scope: str | list[str] = collections.POSTS,
        options: SearchOptions | None = None,
    ) -> list[RankedResult]:
        """Search one or more collections with dense and sparse vectors.

        Args:
            query: Free-text query.
            scope: Collection name, list of names, or ``"all"``.
            options: Search options.

        Returns:
            Results ordered by fused score.

        Raises:
            SearchUnavailableError: If the vector store is not ready.
            EmbeddingUnavailableError: If dense is the only enabled signal
                and no provider answered.
            BadRequestError: On invalid options or filters.
        """
        options = options or SearchOptions(limit=self._settings.default_limit)
        if not options.enable_dense and not options.enable_sparse:
            raise BadRequestError("At least one of dense or sparse search is required")

        targets = resolve_scope(scope)
        await self._ensure_ready("hybrid")

        try:
            sparse = None
            if options.enable_sparse:
                sparse = self._sparse.from_text(query)
                if sparse.is_empty:
                    sparse = None

            dense = None
            if options.enable_dense:
                dense = await self._dense_query(query, required=sparse is None)

            if dense is None and sparse is None:
                results: list[RankedResult] = []
            else:
                fetch_limit = options.limit * max(1, self._settings.prefetch_multiplier)
                lists = await self._search_lists(
                    targets, dense, sparse, fetch_limit, options.filters
                )
                results = self._combine(lists, options)
        except ForumVectorError:
            track_search_request("hybrid", 0, success=False)
            raise

        track_search_request("hybrid", len(results))
        logger.info(
            f"Hybrid search returned {len(results)} results",
            extra={
                "collections": targets,
                "fusion": options.fusion_method.value,
                "dense": dense is not None,
                "sparse": sparse is not None,
            },
        )
        return results

    def _combine(
        self,
        lists: list[RankedList],
        options: SearchOptions,
    ) -> list[RankedResult]:
        if len(lists) == 1:
            ranked = lists[0]
            threshold = options.score_threshold
            if threshold is None and ranked.source.endswith(DENSE_VECTOR):
                threshold = self._settings.dense_score_threshold
            return to_ranked_results(
                native_results(ranked.results, ranked.source),
                options.limit,
                threshold,
            )

        fused = fuse(
            lists,
            method=options.fusion_method,
            k=options.rrf_k or self._settings.rrf_k,
        )
        threshold = options.score_threshold
        if threshold is None:
            threshold = self._settings.hybrid_score_threshold
        return to_ranked_results(fused, options.limit, threshold)

    async def find_similar(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        limit: int = 4,
        filters: dict[str, Any] | None = None,
    ) -> list[RankedResult]:
        """Nearest neighbours of an indexed entity, excluding itself.

        Returns an empty list when the entity has not been indexed.
        """
        collection = collection_for(entity_type)
        await self._ensure_ready("similar")

        try:
            points = await self._store.retrieve(
                collection,
                [point_id(entity_type, entity_id)],
                with_vectors=True,
            )
            if not points or points[0].dense is None:
                track_search_request("similar", 0)
                return []

            combined = dict(filters or {})
            combined["must_not"] = {
                **combined.get("must_not", {}),
                "entity_id": entity_id,
            }
            hits = await self._store.search(
                collection,
                points[0].dense,
                using=DENSE_VECTOR,
                limit=limit,
                filters=combined,
            )
        except StoreUnavailableError as e:
            track_search_request("similar", 0, success=False)
            raise search_unavailable(e, "similar") from e

        results = to_ranked_results(
            native_results(hits, f"{collection}:{DENSE_VECTOR}"),
            limit,
        )
        track_search_request("similar", len(results))
        return results

    async def cross_modal_search(
        self,
        query: str | list[float],
        target_modality: Modality | str,
        limit: int = 10,
        score_threshold: float | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[RankedResult]:
        """Search one named vector of the multimodal collection.

        A text query is embedded; a list of floats is used as the query
        vector as-is, e.g. an image vector from a vision model.

        Raises:
            SearchUnavailableError: If the vector store is not ready.
            BadRequestError: On an unknown modality or a vector of the
                wrong size.
        """
        try:
            modality = Modality(target_modality)
        except ValueError:
            raise BadRequestError(
                f"Unknown modality: {target_modality!r}",
                details={"allowed": [m.value for m in Modality]},
            ) from None

        await self._ensure_ready("cross_modal")

        try:
            if isinstance(query, str):
                embedded = await self._multimodal_embeddings.embed(
                    query, EmbeddingPurpose.QUERY
                )
                vector = embedded.embedding
            else:
                vector = list(query)
            hits = await self._store.search(
                collections.MULTIMODAL,
                vector,
                using=modality.value,
                limit=limit,
                filters=filters,
                score_threshold=score_threshold,
            )
        except StoreUnavailableError as e:
            track_search_request("cross_modal", 0, success=False)
            raise search_unavailable(e, "cross_modal") from e
        except ForumVectorError:
            track_search_request("cross_modal", 0, success=False)
            raise

        results = to_ranked_results(
            native_results(hits, f"{collections.MULTIMODAL}:{modality.value}"),
            limit,
            match_type=MatchType.DENSE,
        )
        track_search_request("cross_modal", len(results))
        return results
