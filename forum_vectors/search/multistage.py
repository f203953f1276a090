"""Two-stage search: cheap candidate generation, then precise rescoring.

Stage one pulls ``candidate_limit`` candidates with the sparse term vector
(or the dense vector when the query has no indexable terms). Stage two
rescores only those candidates with the full dense embedding, either inside
the store (``dense``) or in process over the retrieved vectors (``exact``).
"""

from typing import Any

from forum_vectors.config import SearchSettings, get_settings
from forum_vectors.embeddings.models import EmbeddingPurpose
from forum_vectors.embeddings.service import EmbeddingService
from forum_vectors.exceptions import (
    EmbeddingUnavailableError,
    ForumVectorError,
    SearchUnavailableError,
    StoreUnavailableError,
)
from forum_vectors.logging_config import get_logger
from forum_vectors.observability.metrics import track_search_request
from forum_vectors.search.hybrid import (
    native_results,
    search_unavailable,
    to_ranked_results,
)
from forum_vectors.search.models import (
    FusedResult,
    MatchType,
    MultiStageOptions,
    RankedResult,
)
from forum_vectors.sparse.generator import SparseVectorGenerator
from forum_vectors.vectorstore import collections
from forum_vectors.vectorstore.models import DENSE_VECTOR, SPARSE_VECTOR, SearchResult
from forum_vectors.vectorstore.service import VectorStore
from forum_vectors.vectorstore.similarity import cosine_similarity

logger = get_logger(__name__)


class MultiStageSearch:
    """Candidate generation followed by dense rescoring."""

    def __init__(
        self,
        embeddings: EmbeddingService,
        store: VectorStore,
        sparse: SparseVectorGenerator | None = None,
        settings: SearchSettings | None = None,
    ) -> None:
        self._settings = settings or get_settings().search
        self._embeddings = embeddings
        self._store = store
        self._sparse = sparse or SparseVectorGenerator(self._settings.sparse_dimensions)

    async def multi_stage_search(
        self,
        query: str,
        options: MultiStageOptions | None = None,
        collection: str = collections.POSTS,
    ) -> list[RankedResult]:
        """Run both stages and return the top ``limit`` rescored results.

        Raises:
            SearchUnavailableError: If the vector store is not ready.
            EmbeddingUnavailableError: If stage one needs a dense vector and
                no provider answered.
        """
        options = options or MultiStageOptions(
            limit=self._settings.default_limit,
            candidate_limit=self._settings.candidate_limit,
        )
        if not await self._store.is_ready():
            track_search_request("multi_stage", 0, success=False)
            raise SearchUnavailableError(
                "Vector store is not ready",
                details={"mode": "multi_stage"},
            )

        try:
            results = await self._run(query, options, collection)
        except StoreUnavailableError as e:
            track_search_request("multi_stage", 0, success=False)
            if isinstance(e, SearchUnavailableError):
                raise
            raise search_unavailable(e, "multi_stage") from e
        except ForumVectorError:
            track_search_request("multi_stage", 0, success=False)
            raise

        track_search_request("multi_stage", len(results))
        return results

    async def _run(
        self,
        query: str,
        options: MultiStageOptions,
        collection: str,
    ) -> list[RankedResult]:
        candidate_limit = max(options.candidate_limit, options.limit)
        threshold = options.score_threshold
        if threshold is None:
            threshold = self._settings.multi_stage_score_threshold

        sparse = self._sparse.from_text(query)
        if sparse.is_empty:
            # No terms to match on; the dense candidates are already final.
            dense = await self._embed(query)
            candidates = await self._store.search(
                collection,
                dense,
                using=DENSE_VECTOR,
                limit=candidate_limit,
                filters=options.filters,
            )
            return to_ranked_results(
                native_results(candidates, DENSE_VECTOR),
                options.limit,
                threshold,
                match_type=MatchType.DENSE,
            )

        candidates = await self._store.search(
            collection,
            sparse,
            using=SPARSE_VECTOR,
            limit=candidate_limit,
            filters=options.filters,
        )
        logger.debug(
            f"Stage one produced {len(candidates)} candidates",
            extra={"collection": collection, "candidate_limit": candidate_limit},
        )
        if not candidates:
            return []

        try:
            dense = await self._embed(query)
        except EmbeddingUnavailableError:
            logger.warning("Rescoring skipped, dense embedding unavailable")
            return to_ranked_results(
                native_results(candidates, SPARSE_VECTOR),
                options.limit,
                match_type=MatchType.SPARSE,
            )

        if options.rescore_model == "exact":
            rescored = await self._rescore_exact(collection, candidates, dense)
        else:
            hits = await self._store.search(
                collection,
                dense,
                using=DENSE_VECTOR,
                limit=options.limit,
                filters=options.filters,
                ids=[c.id for c in candidates],
            )
            rescored = native_results(hits, DENSE_VECTOR)

        return to_ranked_results(
            rescored,
            options.limit,
            threshold,
            match_type=MatchType.HYBRID,
        )

    async def _embed(self, query: str) -> list[float]:
        result = await self._embeddings.embed(query, EmbeddingPurpose.QUERY)
        return result.embedding

    async def _rescore_exact(
        self,
        collection: str,
        candidates: list[SearchResult],
        dense: list[float],
    ) -> list[FusedResult]:
        stage_rank = {c.id: rank for rank, c in enumerate(candidates)}
        points = await self._store.retrieve(
            collection,
            [c.id for c in candidates],
            with_vectors=True,
        )

        scored: list[tuple[float, int, str, dict[str, Any]]] = []
        for point in points:
            if point.dense is None or len(point.dense) != len(dense):
                continue
            scored.append(
                (
                    cosine_similarity(dense, point.dense),
                    stage_rank[point.id],
                    point.id,
                    point.payload,
                )
            )
        scored.sort(key=lambda s: (-s[0], s[1], s[2]))

        return [
            FusedResult(id=pid, score=score, payload=payload, sources=[DENSE_VECTOR])
            for score, _, pid, payload in scored
        ]
