"""Indexing pipeline module."""

from forum_vectors.indexing.hooks import IndexingHooks
from forum_vectors.indexing.models import (
    CategoryEntity,
    CommentEntity,
    EntityType,
    IndexOperation,
    IndexResult,
    Interaction,
    InteractionKind,
    PostEntity,
    UserEntity,
    UserInteractionProfile,
)
from forum_vectors.indexing.pipeline import IndexingPipeline
from forum_vectors.indexing.points import collection_for, point_id

__all__ = [
    "CategoryEntity",
    "CommentEntity",
    "EntityType",
    "IndexOperation",
    "IndexResult",
    "IndexingHooks",
    "IndexingPipeline",
    "Interaction",
    "InteractionKind",
    "PostEntity",
    "UserEntity",
    "UserInteractionProfile",
    "collection_for",
    "point_id",
]
