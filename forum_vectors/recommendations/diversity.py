"""Greedy diversity filtering."""

from collections.abc import Sequence

from forum_vectors.search.models import FusedResult
from forum_vectors.vectorstore.similarity import cosine_similarity


def diversity_filter(
    candidates: Sequence[FusedResult],
    limit: int,
    threshold: float,
) -> list[FusedResult]:
    """Walk candidates in order, keeping those unlike everything kept so far.

    A candidate is rejected when its cosine similarity to any accepted item
    is at or above ``threshold``. Candidates without a vector cannot be
    compared and are accepted.
    """
    accepted: list[FusedResult] = []
    for candidate in candidates:
        if len(accepted) >= limit:
            break
        if candidate.vector is not None and any(
            item.vector is not None
            and len(item.vector) == len(candidate.vector)
            and cosine_similarity(candidate.vector, item.vector) >= threshold
            for item in accepted
        ):
            continue
        accepted.append(candidate)
    return accepted
