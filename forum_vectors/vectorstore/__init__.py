"""Vector store module."""

from forum_vectors.vectorstore.memory import InMemoryVectorStore
from forum_vectors.vectorstore.models import (
    DENSE_VECTOR,
    SPARSE_VECTOR,
    CollectionSpec,
    Point,
    ScrollPage,
    SearchResult,
)
from forum_vectors.vectorstore.service import QdrantVectorStore, VectorStore

__all__ = [
    "DENSE_VECTOR",
    "SPARSE_VECTOR",
    "CollectionSpec",
    "InMemoryVectorStore",
    "Point",
    "QdrantVectorStore",
    "ScrollPage",
    "SearchResult",
    "VectorStore",
]
