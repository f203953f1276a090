"""Search data models."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from forum_vectors.vectorstore.models import SearchResult


class FusionMethod(str, Enum):
    """How ranked lists are combined."""

    RRF = "rrf"
    DBSF = "dbsf"


class MatchType(str, Enum):
    """Which retrieval signals produced a result."""

    DENSE = "dense"
    SPARSE = "sparse"
    HYBRID = "hybrid"
    COLLABORATIVE = "collaborative"
    CONTENT = "content"
    FALLBACK = "fallback"
    CATEGORY = "category"


class RankedList(BaseModel):
    """One ranked list fed into fusion.

    Attributes:
        source: Signal the list came from (dense, sparse, ...).
        results: Results in rank order, best first.
    """

    source: str = Field(description="Signal name")
    results: list[SearchResult] = Field(default_factory=list)


class FusedResult(BaseModel):
    """A result after fusion, before ranks are assigned."""

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)
    vector: list[float] | None = None
    sources: list[str] = Field(default_factory=list)


class RankedResult(BaseModel):
    """Search or recommendation result.

    Scores are native to the method that produced them and are not
    comparable across fusion methods or collections.

    Attributes:
        id: Point id.
        entity_id: Originating entity id from the payload.
        score: Final score.
        payload: Denormalized payload.
        rank: 1-based position in the response.
        match_type: Signals that produced the result.
        collection: Collection the point came from.
    """

    id: str = Field(description="Point id")
    entity_id: str | None = Field(default=None, description="Entity id")
    score: float = Field(description="Final score")
    payload: dict[str, Any] = Field(default_factory=dict)
    rank: int = Field(ge=1, description="1-based rank")
    match_type: MatchType | None = Field(default=None)
    collection: str | None = Field(default=None)


class SearchOptions(BaseModel):
    """Options for hybrid search.

    Attributes:
        limit: Maximum results.
        fusion_method: RRF or DBSF.
        score_threshold: Minimum final score (configured default when None).
        filters: Payload filters applied to every list.
        enable_sparse: Run the sparse term search.
        enable_dense: Run the dense embedding search.
        rrf_k: RRF smoothing constant (configured default when None).
    """

    limit: int = Field(default=10, ge=1, le=200)
    fusion_method: FusionMethod = Field(default=FusionMethod.RRF)
    score_threshold: float | None = Field(default=None)
    filters: dict[str, Any] | None = Field(default=None)
    enable_sparse: bool = Field(default=True)
    enable_dense: bool = Field(default=True)
    rrf_k: int | None = Field(default=None, ge=1)


class MultiStageOptions(BaseModel):
    """Options for two-stage search.

    Attributes:
        limit: Results returned after rescoring.
        candidate_limit: Candidates produced by the cheap stage.
        filters: Payload filters applied to both stages.
        rescore_model: ``dense`` rescoring in the store or ``exact`` cosine
            over retrieved vectors.
        score_threshold: Minimum rescored score (configured default when None).
    """

    limit: int = Field(default=10, ge=1, le=200)
    candidate_limit: int = Field(default=100, ge=1, le=5000)
    filters: dict[str, Any] | None = Field(default=None)
    rescore_model: Literal["dense", "exact"] = Field(default="dense")
    score_threshold: float | None = Field(default=None)
