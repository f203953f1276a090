"""Recommendation engine module."""

from forum_vectors.recommendations.diversity import diversity_filter
from forum_vectors.recommendations.engine import RecommendationEngine
from forum_vectors.recommendations.models import (
    Interaction,
    InteractionKind,
    RecommendationAlgorithm,
    RecommendOptions,
    UserInteractionProfile,
)
from forum_vectors.recommendations.profile import InteractionSource, ProfileBuilder

__all__ = [
    "Interaction",
    "InteractionKind",
    "InteractionSource",
    "ProfileBuilder",
    "RecommendOptions",
    "RecommendationAlgorithm",
    "RecommendationEngine",
    "UserInteractionProfile",
    "diversity_filter",
]
