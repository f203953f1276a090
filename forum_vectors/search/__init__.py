"""Hybrid and multi-stage search module."""

from forum_vectors.search.fusion import dbsf_fuse, fuse, rrf_fuse
from forum_vectors.search.hybrid import HybridSearchEngine
from forum_vectors.search.models import (
    FusionMethod,
    MatchType,
    MultiStageOptions,
    RankedList,
    RankedResult,
    SearchOptions,
)
from forum_vectors.search.multistage import MultiStageSearch

__all__ = [
    "FusionMethod",
    "HybridSearchEngine",
    "MatchType",
    "MultiStageOptions",
    "MultiStageSearch",
    "RankedList",
    "RankedResult",
    "SearchOptions",
    "dbsf_fuse",
    "fuse",
    "rrf_fuse",
]
