"""Rank fusion.

Both methods sum per-list contributions by id. Ties on the fused score are
broken by first appearance (list order, then rank within the list) and then
by id, so identical queries always paginate identically.
"""

import statistics
from collections.abc import Callable, Sequence

from forum_vectors.search.models import FusedResult, FusionMethod, RankedList

DEFAULT_RRF_K = 60
DBSF_SIGMAS = 3.0


def _fuse(
    ranked_lists: Sequence[RankedList],
    contribution: Callable[[RankedList], list[float]],
) -> list[FusedResult]:
    fused: dict[str, FusedResult] = {}
    first_seen: dict[str, tuple[int, int]] = {}

    for list_index, ranked in enumerate(ranked_lists):
        scores = contribution(ranked)
        for rank, (result, score) in enumerate(zip(ranked.results, scores)):
            item = fused.get(result.id)
            if item is None:
                fused[result.id] = FusedResult(
                    id=result.id,
                    score=score,
                    payload=dict(result.payload),
                    vector=result.vector,
                    sources=[ranked.source],
                )
                first_seen[result.id] = (list_index, rank)
                continue
            item.score += score
            if ranked.source not in item.sources:
                item.sources.append(ranked.source)
            if item.vector is None and result.vector is not None:
                item.vector = result.vector

    return sorted(
        fused.values(),
        key=lambda item: (-item.score, first_seen[item.id], item.id),
    )


def rrf_fuse(
    ranked_lists: Sequence[RankedList],
    k: int = DEFAULT_RRF_K,
) -> list[FusedResult]:
    """Reciprocal rank fusion: each list adds ``1 / (k + rank)``, rank from 1."""

    def contribution(ranked: RankedList) -> list[float]:
        return [1.0 / (k + rank) for rank in range(1, len(ranked.results) + 1)]

    return _fuse(ranked_lists, contribution)


def dbsf_normalize(scores: list[float]) -> list[float]:
    """Scale scores into [0, 1] using mean +- 3 standard deviations.

    A list without spread maps every score to 0.5.
    """
    if not scores:
        return []
    mean = statistics.fmean(scores)
    std = statistics.pstdev(scores)
    if std == 0:
        return [0.5] * len(scores)

    low = mean - DBSF_SIGMAS * std
    high = mean + DBSF_SIGMAS * std
    return [min(1.0, max(0.0, (s - low) / (high - low))) for s in scores]


def dbsf_fuse(ranked_lists: Sequence[RankedList]) -> list[FusedResult]:
    """Distribution-based score fusion: normalize each list, then sum."""

    def contribution(ranked: RankedList) -> list[float]:
        return dbsf_normalize([r.score for r in ranked.results])

    return _fuse(ranked_lists, contribution)


def fuse(
    ranked_lists: Sequence[RankedList],
    method: FusionMethod = FusionMethod.RRF,
    k: int = DEFAULT_RRF_K,
) -> list[FusedResult]:
    """Fuse ranked lists with the selected method."""
    if method is FusionMethod.DBSF:
        return dbsf_fuse(ranked_lists)
    return rrf_fuse(ranked_lists, k=k)
