"""Entity to point conversion.

Point ids are uuid5 values derived from ``"{entity_type}:{entity_id}"`` so
re-indexing an entity always overwrites the same point.
"""

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel

from forum_vectors.indexing.models import (
    CategoryEntity,
    CategoryPayload,
    CommentEntity,
    CommentPayload,
    EntityType,
    PostEntity,
    PostPayload,
    UserEntity,
    UserPayload,
)
from forum_vectors.vectorstore import collections

POINT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "forum-vectors")

AnyEntity = PostEntity | CommentEntity | CategoryEntity | UserEntity

COLLECTION_BY_TYPE = {
    EntityType.POST: collections.POSTS,
    EntityType.COMMENT: collections.COMMENTS,
    EntityType.CATEGORY: collections.CATEGORIES,
    EntityType.USER: collections.USERS,
}

# Payload fields that change with engagement and never affect the text.
SIGNAL_FIELDS = {
    EntityType.POST: (
        "upvotes",
        "downvotes",
        "vote_score",
        "comment_count",
        "bookmark_count",
    ),
    EntityType.COMMENT: ("like_count",),
    EntityType.CATEGORY: ("post_count",),
    EntityType.USER: ("post_count", "comment_count"),
}


def point_id(entity_type: EntityType | str, entity_id: str) -> str:
    """Deterministic point id for an entity."""
    kind = EntityType(entity_type).value
    return str(uuid.uuid5(POINT_NAMESPACE, f"{kind}:{entity_id}"))


def multimodal_point_id(content_id: str) -> str:
    """Deterministic point id for multimodal content."""
    return str(uuid.uuid5(POINT_NAMESPACE, f"multimodal:{content_id}"))


def collection_for(entity_type: EntityType | str) -> str:
    return COLLECTION_BY_TYPE[EntityType(entity_type)]


def _timestamp(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def embedding_text(entity: AnyEntity) -> str:
    """Text embedded for an entity."""
    if isinstance(entity, PostEntity):
        return " ".join(
            [entity.title, entity.content, entity.author_username, entity.category_name]
        )
    if isinstance(entity, CommentEntity):
        return (
            f"{entity.content} {entity.author_username} "
            f"comment on post: {entity.post_title}"
        )
    if isinstance(entity, CategoryEntity):
        return f"{entity.name} {entity.description or ''}".strip()

    display = entity.name or entity.username
    parts = [
        display,
        entity.bio or "",
        " ".join(entity.recent_posts),
        " ".join(entity.recent_comments),
        f"interests: {display} {entity.username}",
    ]
    return " ".join(p for p in parts if p)


def build_payload(entity: AnyEntity) -> BaseModel:
    """Denormalized payload for an entity."""
    if isinstance(entity, PostEntity):
        return PostPayload(
            entity_id=entity.id,
            title=entity.title,
            content=entity.content,
            author_id=entity.author_id,
            author_username=entity.author_username,
            author_name=entity.author_name,
            category_id=entity.category_id,
            category_name=entity.category_name,
            created_at=entity.created_at.isoformat(),
            created_at_ts=_timestamp(entity.created_at),
            upvotes=entity.upvotes,
            downvotes=entity.downvotes,
            vote_score=entity.upvotes - entity.downvotes,
            comment_count=entity.comment_count,
            bookmark_count=entity.bookmark_count,
        )
    if isinstance(entity, CommentEntity):
        return CommentPayload(
            entity_id=entity.id,
            content=entity.content,
            author_id=entity.author_id,
            author_username=entity.author_username,
            author_name=entity.author_name,
            post_id=entity.post_id,
            post_title=entity.post_title,
            created_at=entity.created_at.isoformat(),
            created_at_ts=_timestamp(entity.created_at),
            like_count=entity.like_count,
        )
    if isinstance(entity, CategoryEntity):
        return CategoryPayload(
            entity_id=entity.id,
            name=entity.name,
            slug=entity.slug,
            description=entity.description,
            created_at_ts=_timestamp(entity.created_at) if entity.created_at else None,
            post_count=entity.post_count,
        )
    return UserPayload(
        entity_id=entity.id,
        username=entity.username,
        name=entity.name,
        bio=entity.bio,
        image=entity.image,
        created_at=entity.created_at.isoformat(),
        created_at_ts=_timestamp(entity.created_at),
        post_count=entity.post_count,
        comment_count=entity.comment_count,
    )


def signal_payload(entity: AnyEntity) -> dict[str, int]:
    """Engagement fields of an entity's payload."""
    payload = build_payload(entity).model_dump()
    fields = SIGNAL_FIELDS[EntityType(entity.entity_type)]
    return {name: payload[name] for name in fields}
