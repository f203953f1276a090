"""Recommendation data models."""

from enum import Enum

from pydantic import BaseModel, Field

from forum_vectors.indexing.models import (
    Interaction,
    InteractionKind,
    UserInteractionProfile,
)

__all__ = [
    "Interaction",
    "InteractionKind",
    "RecommendOptions",
    "RecommendationAlgorithm",
    "UserInteractionProfile",
]


class RecommendationAlgorithm(str, Enum):
    """Recommendation strategy."""

    COLLABORATIVE = "collaborative"
    CONTENT = "content"
    HYBRID = "hybrid"


class RecommendOptions(BaseModel):
    """Options for a recommendation request.

    Attributes:
        limit: Maximum results.
        algorithm: Collaborative, content-based or both fused.
        diversity_threshold: Cosine similarity at which a candidate counts as
            a near-duplicate of an accepted one (configured default when None).
        enable_diversity_filtering: Apply greedy diversity filtering.
        score_threshold: Minimum score before diversity filtering.
    """

    limit: int = Field(default=10, ge=1, le=100)
    algorithm: RecommendationAlgorithm = Field(
        default=RecommendationAlgorithm.HYBRID
    )
    diversity_threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
    enable_diversity_filtering: bool = Field(default=True)
    score_threshold: float | None = Field(default=None)
