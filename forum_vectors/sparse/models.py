"""Sparse vector data models."""

from pydantic import BaseModel, Field, model_validator


class SparseVector(BaseModel):
    """Index to weight pairs, most entries implicitly zero.

    Attributes:
        indices: Strictly ascending vocabulary indices.
        weights: Weight for each index, aligned by position.
    """

    indices: list[int] = Field(default_factory=list, description="Sorted indices")
    weights: list[float] = Field(default_factory=list, description="Aligned weights")

    @model_validator(mode="after")
    def _check_alignment(self) -> "SparseVector":
        """Indices must be aligned with weights and strictly ascending."""
        if len(self.indices) != len(self.weights):
            raise ValueError(
                f"indices ({len(self.indices)}) and weights ({len(self.weights)}) "
                "must have the same length"
            )
        if any(a >= b for a, b in zip(self.indices, self.indices[1:])):
            raise ValueError("indices must be strictly ascending")
        return self

    @property
    def is_empty(self) -> bool:
        """True when the vector has no entries."""
        return not self.indices

    def as_dict(self) -> dict[int, float]:
        """Map of index to weight."""
        return dict(zip(self.indices, self.weights))

    def dot(self, other: "SparseVector") -> float:
        """Weighted overlap with another sparse vector."""
        mine = self.as_dict()
        return sum(mine.get(i, 0.0) * w for i, w in zip(other.indices, other.weights))
