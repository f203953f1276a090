"""Collection names and their declared configurations."""

from forum_vectors.config import QdrantSettings, get_settings
from forum_vectors.vectorstore.models import CollectionSpec

POSTS = "posts"
COMMENTS = "comments"
CATEGORIES = "categories"
USERS = "users"
INTERACTIONS = "interactions"
MULTIMODAL = "multimodal"

CONTENT_COLLECTIONS = (POSTS, COMMENTS, CATEGORIES, USERS)

MULTIMODAL_VECTORS = ("text", "image", "document")

CONTENT_PAYLOAD_INDEXES = {
    "type": "keyword",
    "category_id": "keyword",
    "author_id": "keyword",
    "created_at_ts": "integer",
}


def default_collection_specs(
    settings: QdrantSettings | None = None,
) -> list[CollectionSpec]:
    """Specs of every collection the subsystem writes to."""
    settings = settings or get_settings().qdrant
    sizes = {
        POSTS: settings.posts_dimensions,
        COMMENTS: settings.comments_dimensions,
        CATEGORIES: settings.categories_dimensions,
        USERS: settings.users_dimensions,
    }

    specs = [
        CollectionSpec(
            name=name,
            dense_size=size,
            sparse=True,
            payload_indexes=dict(CONTENT_PAYLOAD_INDEXES),
            quantization=settings.enable_binary_quantization,
        )
        for name, size in sizes.items()
    ]
    specs.append(
        CollectionSpec(
            name=INTERACTIONS,
            sparse=True,
            payload_indexes={"type": "keyword", "entity_id": "keyword"},
        )
    )
    if settings.enable_multimodal:
        specs.append(
            CollectionSpec(
                name=MULTIMODAL,
                named_vectors={
                    name: settings.multimodal_dimensions for name in MULTIMODAL_VECTORS
                },
                payload_indexes={"type": "keyword"},
                quantization=settings.enable_binary_quantization,
            )
        )
    return specs
