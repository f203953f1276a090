"""Vector similarity helpers shared by the in-process scoring paths."""

import math


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 for zero vectors)."""
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length ({len(a)} != {len(b)})")

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def dot_product(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length ({len(a)} != {len(b)})")
    return sum(x * y for x, y in zip(a, b))


def negative_euclidean(a: list[float], b: list[float]) -> float:
    """Euclidean distance negated so that higher means closer."""
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length ({len(a)} != {len(b)})")
    return -math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def mean_vector(
    vectors: list[list[float]],
    weights: list[float] | None = None,
) -> list[float]:
    """Weighted mean of vectors. Equal weights when none are given."""
    if not vectors:
        return []
    if weights is None:
        weights = [1.0] * len(vectors)
    total = sum(weights)
    if total == 0:
        return []

    dims = len(vectors[0])
    acc = [0.0] * dims
    for vector, weight in zip(vectors, weights):
        for i in range(dims):
            acc[i] += vector[i] * weight
    return [v / total for v in acc]
