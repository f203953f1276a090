"""Payload filter parsing.

Filters are plain dicts:

- ``{"key": value}`` exact match
- ``{"key": [v1, v2]}`` match any
- ``{"key": {"gte": 1, "lt": 5}}`` numeric range
- ``{"must_not": {...}}`` excludes points matching the nested conditions

The same parsed form drives the Qdrant filter and in-memory matching.
"""

from typing import Any

from pydantic import BaseModel, Field
from qdrant_client.models import (
    FieldCondition,
    Filter,
    HasIdCondition,
    MatchAny,
    MatchValue,
    Range,
)

from forum_vectors.exceptions import BadRequestError, ErrorCode

RANGE_OPERATORS = frozenset({"gt", "gte", "lt", "lte"})
MUST_NOT = "must_not"

Scalar = str | int | bool


class Condition(BaseModel):
    """A single parsed payload condition."""

    key: str = Field(description="Payload key")
    value: Scalar | None = Field(default=None, description="Exact match value")
    any_of: list[Scalar] | None = Field(default=None, description="Match any value")
    range: dict[str, float] | None = Field(default=None, description="Range bounds")

    def matches(self, payload: dict[str, Any]) -> bool:
        actual = payload.get(self.key)
        if self.range is not None:
            if isinstance(actual, bool) or not isinstance(actual, int | float):
                return False
            bounds = self.range
            if "gt" in bounds and not actual > bounds["gt"]:
                return False
            if "gte" in bounds and not actual >= bounds["gte"]:
                return False
            if "lt" in bounds and not actual < bounds["lt"]:
                return False
            if "lte" in bounds and not actual <= bounds["lte"]:
                return False
            return True
        if self.any_of is not None:
            if isinstance(actual, list):
                return any(v in self.any_of for v in actual)
            return actual in self.any_of
        if isinstance(actual, list):
            return self.value in actual
        return actual == self.value

    def to_qdrant(self) -> FieldCondition:
        if self.range is not None:
            return FieldCondition(key=self.key, range=Range(**self.range))
        if self.any_of is not None:
            return FieldCondition(key=self.key, match=MatchAny(any=self.any_of))
        return FieldCondition(key=self.key, match=MatchValue(value=self.value))


class ParsedFilter(BaseModel):
    """Conditions that must hold and conditions that must not."""

    must: list[Condition] = Field(default_factory=list)
    must_not: list[Condition] = Field(default_factory=list)

    def matches(self, payload: dict[str, Any]) -> bool:
        if not all(c.matches(payload) for c in self.must):
            return False
        return not any(c.matches(payload) for c in self.must_not)


def _invalid(message: str, key: str) -> BadRequestError:
    return BadRequestError(
        message,
        code=ErrorCode.INVALID_FILTER,
        details={"key": key},
    )


def _is_scalar(value: Any) -> bool:
    return isinstance(value, str | int | bool)


def _parse_condition(key: str, value: Any) -> Condition:
    if not isinstance(key, str) or not key:
        raise _invalid("Filter keys must be non-empty strings", str(key))

    if isinstance(value, dict):
        unknown = set(value) - RANGE_OPERATORS
        if not value or unknown:
            raise _invalid(
                f"Range filter on {key!r} must use only {sorted(RANGE_OPERATORS)}",
                key,
            )
        bounds: dict[str, float] = {}
        for op, bound in value.items():
            if isinstance(bound, bool) or not isinstance(bound, int | float):
                raise _invalid(f"Range bound {op} on {key!r} must be numeric", key)
            bounds[op] = float(bound)
        return Condition(key=key, range=bounds)

    if isinstance(value, list | tuple | set):
        values = list(value)
        if not values or not all(_is_scalar(v) for v in values):
            raise _invalid(
                f"Match-any filter on {key!r} needs a non-empty list of scalars",
                key,
            )
        return Condition(key=key, any_of=values)

    if _is_scalar(value):
        return Condition(key=key, value=value)

    raise _invalid(f"Unsupported filter value for {key!r}: {value!r}", key)


def parse_filters(filters: dict[str, Any] | None) -> ParsedFilter:
    """Parse a filter dict.

    Raises:
        BadRequestError: If the filter is malformed.
    """
    parsed = ParsedFilter()
    if not filters:
        return parsed
    if not isinstance(filters, dict):
        raise _invalid("Filters must be a mapping", "")

    for key, value in filters.items():
        if key == MUST_NOT:
            if not isinstance(value, dict) or MUST_NOT in value:
                raise _invalid("must_not takes a flat mapping of conditions", key)
            parsed.must_not.extend(_parse_condition(k, v) for k, v in value.items())
        else:
            parsed.must.append(_parse_condition(key, value))
    return parsed


def build_qdrant_filter(
    filters: dict[str, Any] | None,
    ids: list[str] | None = None,
) -> Filter | None:
    """Translate a filter dict (and an optional id restriction) to Qdrant."""
    parsed = parse_filters(filters)

    must: list[Any] = [c.to_qdrant() for c in parsed.must]
    if ids is not None:
        must.append(HasIdCondition(has_id=list(ids)))
    must_not: list[Any] = [c.to_qdrant() for c in parsed.must_not]

    if not must and not must_not:
        return None
    return Filter(must=must or None, must_not=must_not or None)
