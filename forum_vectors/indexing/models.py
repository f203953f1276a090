"""Indexing data models.

Entities are the joined rows the primary store hands to the indexer. Payloads
are what gets stored next to the vectors, one model per entity type,
discriminated by ``type``.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from forum_vectors.exceptions import IndexingFailureError


class EntityType(str, Enum):
    """Kinds of content entity that get indexed."""

    POST = "post"
    COMMENT = "comment"
    CATEGORY = "category"
    USER = "user"


class PostEntity(BaseModel):
    """A post joined with its author and category."""

    entity_type: Literal["post"] = "post"
    id: str = Field(description="Post id")
    title: str = Field(description="Post title")
    content: str = Field(description="Post body")
    author_id: str = Field(description="Author user id")
    author_username: str = Field(description="Author username")
    author_name: str | None = Field(default=None, description="Author display name")
    category_id: str = Field(description="Category id")
    category_name: str = Field(description="Category name")
    created_at: datetime = Field(description="Creation time")
    upvotes: int = Field(default=0, ge=0)
    downvotes: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    bookmark_count: int = Field(default=0, ge=0)


class CommentEntity(BaseModel):
    """A comment joined with its author and parent post."""

    entity_type: Literal["comment"] = "comment"
    id: str = Field(description="Comment id")
    content: str = Field(description="Comment body")
    author_id: str = Field(description="Author user id")
    author_username: str = Field(description="Author username")
    author_name: str | None = Field(default=None, description="Author display name")
    post_id: str = Field(description="Parent post id")
    post_title: str = Field(description="Parent post title")
    created_at: datetime = Field(description="Creation time")
    like_count: int = Field(default=0, ge=0)


class CategoryEntity(BaseModel):
    """A category."""

    entity_type: Literal["category"] = "category"
    id: str = Field(description="Category id")
    name: str = Field(description="Category name")
    slug: str = Field(description="URL slug")
    description: str | None = Field(default=None, description="Description")
    created_at: datetime | None = Field(default=None, description="Creation time")
    post_count: int = Field(default=0, ge=0)


class UserEntity(BaseModel):
    """A user with samples of their recent writing."""

    entity_type: Literal["user"] = "user"
    id: str = Field(description="User id")
    username: str = Field(description="Username")
    name: str | None = Field(default=None, description="Display name")
    bio: str | None = Field(default=None, description="Profile bio")
    image: str | None = Field(default=None, description="Avatar URL")
    created_at: datetime = Field(description="Registration time")
    recent_posts: list[str] = Field(
        default_factory=list,
        description="Title and body of recent posts",
    )
    recent_comments: list[str] = Field(
        default_factory=list,
        description="Bodies of recent comments",
    )
    post_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)


Entity = Annotated[
    PostEntity | CommentEntity | CategoryEntity | UserEntity,
    Field(discriminator="entity_type"),
]


class Modality(str, Enum):
    """Named vectors of the multimodal collection."""

    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"


class MultiModalContent(BaseModel):
    """Content indexed into the multimodal collection.

    Text and extracted document text are embedded here. Image vectors come
    from an external vision model and are passed in ready-made.

    Attributes:
        id: Content id.
        content_type: What the content belongs to.
        text: Body text.
        image_url: Location of the image.
        document_url: Location of the attached document.
        document_text: Text extracted from the document.
        image_embedding: Precomputed image vector.
        metadata: Extra payload fields.
    """

    id: str = Field(description="Content id")
    content_type: Literal["post", "comment", "document"] = "post"
    text: str | None = None
    image_url: str | None = None
    document_url: str | None = None
    document_text: str | None = None
    image_embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class PostPayload(BaseModel):
    """Payload stored with a post point."""

    type: Literal["post"] = "post"
    entity_id: str
    title: str
    content: str
    author_id: str
    author_username: str
    author_name: str | None = None
    category_id: str
    category_name: str
    created_at: str
    created_at_ts: int
    upvotes: int = 0
    downvotes: int = 0
    vote_score: int = 0
    comment_count: int = 0
    bookmark_count: int = 0


class CommentPayload(BaseModel):
    """Payload stored with a comment point."""

    type: Literal["comment"] = "comment"
    entity_id: str
    content: str
    author_id: str
    author_username: str
    author_name: str | None = None
    post_id: str
    post_title: str
    created_at: str
    created_at_ts: int
    like_count: int = 0


class CategoryPayload(BaseModel):
    """Payload stored with a category point."""

    type: Literal["category"] = "category"
    entity_id: str
    name: str
    slug: str
    description: str | None = None
    created_at_ts: int | None = None
    post_count: int = 0


class UserPayload(BaseModel):
    """Payload stored with a user point."""

    type: Literal["user"] = "user"
    entity_id: str
    username: str
    name: str | None = None
    bio: str | None = None
    image: str | None = None
    created_at: str
    created_at_ts: int
    post_count: int = 0
    comment_count: int = 0


class InteractionPayload(BaseModel):
    """Payload stored with a user's interaction profile point."""

    type: Literal["interactions"] = "interactions"
    entity_id: str = Field(description="User id")
    ratings: dict[str, float] = Field(
        default_factory=dict,
        description="Post id -> interaction weight",
    )
    total_interactions: int = 0
    category_preferences: dict[str, float] = Field(default_factory=dict)
    created_at_ts: int = Field(description="When the profile was written")


class MultiModalPayload(BaseModel):
    """Payload stored with a multimodal point."""

    type: Literal["multimodal"] = "multimodal"
    entity_id: str
    content_type: str
    text: str | None = None
    image_url: str | None = None
    document_url: str | None = None
    modalities: list[str] = Field(default_factory=list)
    created_at_ts: int
    metadata: dict[str, Any] = Field(default_factory=dict)


Payload = Annotated[
    PostPayload
    | CommentPayload
    | CategoryPayload
    | UserPayload
    | InteractionPayload
    | MultiModalPayload,
    Field(discriminator="type"),
]

_payload_adapter: TypeAdapter[Any] = TypeAdapter(Payload)
_entity_adapter: TypeAdapter[Any] = TypeAdapter(Entity)


def parse_payload(data: dict[str, Any]) -> BaseModel:
    """Validate a stored payload into its typed model."""
    return _payload_adapter.validate_python(data)


def parse_entity(data: dict[str, Any]) -> BaseModel:
    """Validate a raw entity dict (must carry ``entity_type``)."""
    return _entity_adapter.validate_python(data)


class InteractionKind(str, Enum):
    """Explicit interactions recorded by the forum."""

    VIEW = "view"
    LIKE = "like"
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"
    COMMENT = "comment"
    BOOKMARK = "bookmark"


class Interaction(BaseModel):
    """One user interaction with a post.

    Attributes:
        user_id: Acting user.
        entity_id: Post the interaction targets.
        kind: Interaction kind.
        timestamp: When it happened.
        weight: Override for the per-kind default weight.
        category_id: Category of the post, when known.
    """

    user_id: str = Field(description="Acting user id")
    entity_id: str = Field(description="Target post id")
    kind: InteractionKind = Field(description="Interaction kind")
    timestamp: datetime = Field(description="When the interaction happened")
    weight: float | None = Field(default=None, description="Explicit weight")
    category_id: str | None = Field(default=None, description="Post category id")


class UserInteractionProfile(BaseModel):
    """Sparse interaction profile of one user.

    Attributes:
        user_id: Profile owner.
        weights: Post id -> decayed interaction weight (negative for dislikes).
        category_preferences: Category id -> summed weight.
        total_interactions: Number of interactions the profile was built from.
    """

    user_id: str = Field(description="Profile owner")
    weights: dict[str, float] = Field(default_factory=dict)
    category_preferences: dict[str, float] = Field(default_factory=dict)
    total_interactions: int = Field(default=0, ge=0)

    @property
    def is_empty(self) -> bool:
        return not any(self.weights.values())

    def positive_ids(self) -> list[str]:
        """Post ids with positive weight, strongest first."""
        return [
            entity_id
            for entity_id, weight in sorted(
                self.weights.items(),
                key=lambda item: (-item[1], item[0]),
            )
            if weight > 0
        ]


class IndexOperation(str, Enum):
    INDEX = "index"
    DELETE = "delete"
    REFRESH = "refresh"
    PROFILE = "profile"
    MULTIMODAL = "multimodal"


class IndexResult(BaseModel):
    """Outcome of one indexing call.

    Failures carry the error instead of raising it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    operation: IndexOperation = Field(description="What was attempted")
    entity_type: str = Field(description="Entity type or collection kind")
    entity_id: str = Field(description="Entity id")
    point_id: str = Field(description="Deterministic point id")
    collection: str = Field(description="Target collection")
    error: IndexingFailureError | None = Field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None
