"""Vector store data models."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from forum_vectors.exceptions import BadRequestError, ErrorCode
from forum_vectors.sparse.models import SparseVector

DENSE_VECTOR = "dense"
SPARSE_VECTOR = "sparse"

DistanceName = Literal["Cosine", "Dot", "Euclid"]


class CollectionSpec(BaseModel):
    """Declared configuration of one collection.

    Attributes:
        name: Collection name.
        dense_size: Size of the ``dense`` vector, or None for sparse-only
            collections.
        distance: Distance metric for every dense vector.
        sparse: Whether the collection carries a ``sparse`` vector.
        named_vectors: Extra named dense vectors and their sizes.
        payload_indexes: Payload fields to index and their schema type.
        quantization: Enable binary quantization of dense vectors.
    """

    name: str = Field(description="Collection name")
    dense_size: int | None = Field(default=None, description="Dense vector size")
    distance: DistanceName = Field(default="Cosine", description="Distance metric")
    sparse: bool = Field(default=False, description="Has a sparse vector")
    named_vectors: dict[str, int] = Field(
        default_factory=dict,
        description="Extra named dense vectors",
    )
    payload_indexes: dict[str, str] = Field(
        default_factory=dict,
        description="Payload field -> schema type",
    )
    quantization: bool = Field(default=False, description="Binary quantization")

    def vector_size(self, using: str) -> int | None:
        """Declared size of a named dense vector, None if unknown."""
        if using == DENSE_VECTOR:
            return self.dense_size
        return self.named_vectors.get(using)

    def check_vector(self, using: str, vector: list[float]) -> None:
        """Validate a dense vector against the declared size.

        Raises:
            BadRequestError: On an undeclared vector or a size mismatch.
        """
        size = self.vector_size(using)
        if size is None:
            raise BadRequestError(
                f"Collection {self.name} has no dense vector named {using!r}",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={"collection": self.name, "using": using},
            )
        if len(vector) != size:
            raise BadRequestError(
                f"Vector of size {len(vector)} does not match {self.name}.{using} "
                f"size {size}",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={
                    "collection": self.name,
                    "using": using,
                    "expected": size,
                    "actual": len(vector),
                },
            )

    def check_point(self, point: "Point") -> None:
        """Validate every vector of a point against this spec."""
        if point.dense is not None:
            self.check_vector(DENSE_VECTOR, point.dense)
        for name, vector in point.named_vectors.items():
            self.check_vector(name, vector)
        if point.sparse is not None and not self.sparse:
            raise BadRequestError(
                f"Collection {self.name} has no sparse vector",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={"collection": self.name},
            )


class Point(BaseModel):
    """A point to store in the vector database.

    Attributes:
        id: Deterministic point identifier.
        dense: Main dense vector.
        sparse: Sparse vector.
        named_vectors: Additional named dense vectors.
        payload: Denormalized metadata stored with the vectors.
    """

    id: str = Field(description="Point identifier")
    dense: list[float] | None = Field(default=None, description="Dense vector")
    sparse: SparseVector | None = Field(default=None, description="Sparse vector")
    named_vectors: dict[str, list[float]] = Field(
        default_factory=dict,
        description="Additional named dense vectors",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Metadata payload",
    )


class SearchResult(BaseModel):
    """Result from a vector similarity search.

    Attributes:
        id: Point identifier.
        score: Native similarity score (higher is more similar).
        payload: Stored metadata.
        vector: The dense vector, when requested.
    """

    id: str = Field(description="Point identifier")
    score: float = Field(description="Similarity score")
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Point metadata",
    )
    vector: list[float] | None = Field(
        default=None,
        description="Dense vector if requested",
    )


class ScrollPage(BaseModel):
    """One unordered page of points."""

    points: list[Point] = Field(default_factory=list, description="Points")
    next_offset: str | None = Field(
        default=None,
        description="Offset of the next page, None when exhausted",
    )
