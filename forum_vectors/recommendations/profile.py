"""Interaction profiles.

A profile maps post ids to decayed interaction weights. Each interaction
contributes its kind's weight times ``decay_factor ** age_days``.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Protocol

from forum_vectors.indexing.models import (
    Interaction,
    InteractionKind,
    UserInteractionProfile,
)

DEFAULT_INTERACTION_WEIGHTS: dict[InteractionKind, float] = {
    InteractionKind.VIEW: 0.1,
    InteractionKind.LIKE: 0.5,
    InteractionKind.UPVOTE: 1.0,
    InteractionKind.DOWNVOTE: -1.0,
    InteractionKind.COMMENT: 0.8,
    InteractionKind.BOOKMARK: 1.0,
}

SECONDS_PER_DAY = 86400.0


class InteractionSource(Protocol):
    """Read access to the interaction log held by the primary store."""

    async def get_interactions(self, user_id: str) -> list[Interaction]:
        """All recorded interactions of a user."""
        ...


class ProfileBuilder:
    """Builds UserInteractionProfile values from interaction logs."""

    def __init__(
        self,
        decay_factor: float = 0.95,
        weights: dict[InteractionKind, float] | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._decay_factor = decay_factor
        self._weights = {**DEFAULT_INTERACTION_WEIGHTS, **(weights or {})}
        self._clock = clock

    def weight_of(self, interaction: Interaction, now: datetime) -> float:
        """Decayed weight of one interaction."""
        base = (
            interaction.weight
            if interaction.weight is not None
            else self._weights[interaction.kind]
        )
        timestamp = interaction.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        age_days = max(0.0, (now - timestamp).total_seconds() / SECONDS_PER_DAY)
        return base * self._decay_factor**age_days

    def build(
        self,
        user_id: str,
        interactions: Iterable[Interaction],
    ) -> UserInteractionProfile:
        """Aggregate a user's interactions into a profile.

        Interactions of other users are ignored.
        """
        now = self._clock()
        weights: dict[str, float] = defaultdict(float)
        categories: dict[str, float] = defaultdict(float)
        count = 0

        for interaction in interactions:
            if interaction.user_id != user_id:
                continue
            weight = self.weight_of(interaction, now)
            weights[interaction.entity_id] += weight
            if interaction.category_id:
                categories[interaction.category_id] += weight
            count += 1

        return UserInteractionProfile(
            user_id=user_id,
            weights={k: v for k, v in weights.items() if v != 0},
            category_preferences=dict(categories),
            total_interactions=count,
        )
