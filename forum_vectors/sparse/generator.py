"""Sparse vector generation.

Keys (terms, entity ids) are mapped to integer indices either through a
registered vocabulary or a stable CRC32 hash, so the same key always lands on
the same index in every process.
"""

import math
import re
import statistics
import zlib
from collections import Counter
from collections.abc import Mapping

from forum_vectors.sparse.models import SparseVector

DEFAULT_SPARSE_DIMENSIONS = 30000

TOKEN_PATTERN = re.compile(r"[^\W_]+", re.UNICODE)

STOP_WORDS = frozenset(
    {
        "and", "are", "but", "can", "for", "from", "has", "have", "how",
        "into", "its", "not", "our", "out", "that", "the", "their", "them",
        "then", "there", "these", "this", "was", "were", "what", "when",
        "where", "which", "who", "why", "will", "with", "you", "your",
    }
)


def tokenize(text: str, min_length: int = 3) -> list[str]:
    """Lowercase word tokens, minus stop words and short tokens."""
    return [
        token
        for token in TOKEN_PATTERN.findall(text.lower())
        if len(token) >= min_length and token not in STOP_WORDS
    ]


def stable_hash(key: str) -> int:
    """Process-independent hash of a string key."""
    return zlib.crc32(key.encode("utf-8"))


class SparseVectorGenerator:
    """Builds sparse vectors from weighted keys.

    Example:
        >>> generator = SparseVectorGenerator(vocabulary={"a": 0, "b": 1})
        >>> generator.sparsify({"b": 2, "a": 5})
        SparseVector(indices=[0, 1], weights=[5.0, 2.0])
    """

    def __init__(
        self,
        dimensions: int = DEFAULT_SPARSE_DIMENSIONS,
        vocabulary: Mapping[str, int] | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            dimensions: Size of the hashed index space.
            vocabulary: Optional fixed key to index mapping, checked first.
        """
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions
        self._vocabulary = dict(vocabulary or {})

    @property
    def dimensions(self) -> int:
        """Size of the hashed index space."""
        return self._dimensions

    def register(self, key: str, index: int) -> None:
        """Pin a key to a fixed index."""
        if index < 0:
            raise ValueError("index must be non-negative")
        self._vocabulary[key] = index

    def index_for(self, key: str | int) -> int:
        """Resolve the index a key maps to.

        Raises:
            ValueError: For negative integer keys.
        """
        if isinstance(key, int):
            if key < 0:
                raise ValueError(f"Sparse index must be non-negative, got {key}")
            return key
        if key in self._vocabulary:
            return self._vocabulary[key]
        return stable_hash(key) % self._dimensions

    def sparsify(self, weights: Mapping[str | int, float]) -> SparseVector:
        """Convert a key to weight mapping into a sparse vector.

        Keys colliding on the same index have their weights summed. The
        result is sorted by index with weights kept in matching positions.

        Args:
            weights: Mapping of key to weight.

        Returns:
            SparseVector, empty for empty input.
        """
        merged: dict[int, float] = {}
        for key, weight in weights.items():
            index = self.index_for(key)
            merged[index] = merged.get(index, 0.0) + float(weight)

        indices = sorted(i for i, w in merged.items() if w != 0.0)
        return SparseVector(indices=indices, weights=[merged[i] for i in indices])

    def from_text(self, text: str) -> SparseVector:
        """Term-weighted sparse vector for a piece of text.

        Each term is weighted ``1 + log(tf)``.
        """
        counts = Counter(tokenize(text))
        return self.sparsify(
            {term: 1.0 + math.log(count) for term, count in counts.items()}
        )

    def from_ratings(self, ratings: Mapping[str, float]) -> SparseVector:
        """Sparse vector from entity ratings, z-score normalized.

        Ratings with no spread are kept as-is so a user who only ever
        upvoted still has a non-empty profile.
        """
        if not ratings:
            return SparseVector()

        values = list(ratings.values())
        mean = statistics.fmean(values)
        std = statistics.pstdev(values)
        if std > 0:
            normalized = {key: (value - mean) / std for key, value in ratings.items()}
        else:
            normalized = dict(ratings)
        return self.sparsify(normalized)
