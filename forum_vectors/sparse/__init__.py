"""Sparse vector generation module."""

from forum_vectors.sparse.generator import SparseVectorGenerator, tokenize
from forum_vectors.sparse.models import SparseVector

__all__ = [
    "SparseVector",
    "SparseVectorGenerator",
    "tokenize",
]
