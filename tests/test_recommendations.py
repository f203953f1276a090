"""Tests for profiles, diversity filtering and the recommendation engine."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from forum_vectors.config import RecommendationSettings, Settings
from forum_vectors.embeddings.service import FailoverEmbeddingService
from forum_vectors.exceptions import ProfileUnavailableError, SearchUnavailableError
from forum_vectors.indexing.models import CategoryEntity, PostEntity
from forum_vectors.indexing.pipeline import IndexingPipeline
from forum_vectors.recommendations.diversity import diversity_filter
from forum_vectors.recommendations.engine import RecommendationEngine
from forum_vectors.recommendations.models import (
    Interaction,
    InteractionKind,
    RecommendationAlgorithm,
    RecommendOptions,
    UserInteractionProfile,
)
from forum_vectors.recommendations.profile import ProfileBuilder
from forum_vectors.search.models import FusedResult, MatchType
from forum_vectors.vectorstore.memory import InMemoryVectorStore

NOW = datetime(2024, 6, 1, tzinfo=UTC)


class FakeInteractionSource:
    """Interaction log keyed by user id."""

    def __init__(self, interactions: list[Interaction] | None = None) -> None:
        self.interactions = interactions or []

    async def get_interactions(self, user_id: str) -> list[Interaction]:
        return [i for i in self.interactions if i.user_id == user_id]


class BrokenInteractionSource:
    async def get_interactions(self, user_id: str) -> list[Interaction]:
        raise ConnectionError("primary store down")


def _interaction(
    user_id: str,
    entity_id: str,
    kind: InteractionKind = InteractionKind.UPVOTE,
    days_ago: float = 0,
) -> Interaction:
    return Interaction(
        user_id=user_id,
        entity_id=entity_id,
        kind=kind,
        timestamp=NOW - timedelta(days=days_ago),
    )


class TestProfileBuilder:
    """Tests for ProfileBuilder."""

    def test_kind_weights(self) -> None:
        """Each kind contributes its default weight."""
        builder = ProfileBuilder(clock=lambda: NOW)

        profile = builder.build(
            "u1",
            [
                _interaction("u1", "1", InteractionKind.VIEW),
                _interaction("u1", "1", InteractionKind.BOOKMARK),
                _interaction("u1", "2", InteractionKind.DOWNVOTE),
            ],
        )

        assert profile.weights["1"] == pytest.approx(1.1)
        assert profile.weights["2"] == pytest.approx(-1.0)
        assert profile.total_interactions == 3
        assert profile.positive_ids() == ["1"]

    def test_time_decay(self) -> None:
        """Older interactions weigh less."""
        builder = ProfileBuilder(decay_factor=0.95, clock=lambda: NOW)

        profile = builder.build("u1", [_interaction("u1", "1", days_ago=10)])

        assert profile.weights["1"] == pytest.approx(0.95**10)

    def test_ignores_other_users(self) -> None:
        """Interactions of other users are skipped."""
        builder = ProfileBuilder(clock=lambda: NOW)

        profile = builder.build("u1", [_interaction("u2", "1")])

        assert profile.is_empty
        assert profile.total_interactions == 0

    def test_category_preferences(self) -> None:
        """Category weights accumulate when the category is known."""
        builder = ProfileBuilder(clock=lambda: NOW)
        interaction = _interaction("u1", "1").model_copy(update={"category_id": "c1"})

        profile = builder.build("u1", [interaction])

        assert profile.category_preferences == {"c1": pytest.approx(1.0)}


class TestDiversityFilter:
    """Tests for diversity_filter."""

    def _candidates(self) -> list[FusedResult]:
        return [
            FusedResult(id="2", score=0.9, vector=[0.0, 1.0]),
            FusedResult(id="3", score=0.8, vector=[0.01, 1.0]),
            FusedResult(id="1", score=0.7, vector=[1.0, 0.0]),
        ]

    def test_near_duplicates_never_together(self) -> None:
        """Two near-identical items are not both accepted."""
        accepted = diversity_filter(self._candidates(), limit=2, threshold=0.9)

        assert [c.id for c in accepted] == ["2", "1"]

    def test_threshold_above_similarity(self) -> None:
        """A looser threshold keeps the similar pair."""
        accepted = diversity_filter(self._candidates(), limit=2, threshold=1.0)

        assert [c.id for c in accepted] == ["2", "3"]

    def test_missing_vectors_are_accepted(self) -> None:
        """Candidates without vectors cannot be compared and pass."""
        candidates = [
            FusedResult(id="a", score=1.0, vector=[1.0, 0.0]),
            FusedResult(id="b", score=0.9),
            FusedResult(id="c", score=0.8, vector=[1.0, 0.0]),
        ]

        accepted = diversity_filter(candidates, limit=5, threshold=0.9)

        assert [c.id for c in accepted] == ["a", "b"]


@pytest.fixture
async def forum(
    embeddings: FailoverEmbeddingService,
    store: InMemoryVectorStore,
    make_post: Callable[..., PostEntity],
) -> InMemoryVectorStore:
    """Posts plus the interaction profile of a neighbouring user."""
    pipeline = IndexingPipeline(embeddings, store)
    for post in [
        make_post("1", "Quantum basics", "Qubits and superposition"),
        make_post("2", "Quantum entanglement", "Spooky action explained"),
        make_post("3", "Quantum algorithms", "Shor and Grover"),
        make_post("4", "Sourdough starter", "Wild yeast feeding"),
        make_post("5", "Quantum error correction", "Surface codes and qubits"),
        make_post("6", "My quantum notes", "Qubits again", author_id="u1"),
    ]:
        await pipeline.index_entity(post)

    await pipeline.index_user_profile(
        UserInteractionProfile(
            user_id="u2",
            weights={"1": 1.0, "2": 1.0, "3": 1.0, "5": 1.0},
            total_interactions=4,
        )
    )
    return store


@pytest.fixture
def source() -> FakeInteractionSource:
    return FakeInteractionSource(
        [_interaction("u1", post_id) for post_id in ("1", "2", "3")]
    )


@pytest.fixture
def engine(
    embeddings: FailoverEmbeddingService,
    forum: InMemoryVectorStore,
    source: FakeInteractionSource,
    settings: Settings,
) -> RecommendationEngine:
    return RecommendationEngine(
        embeddings,
        forum,
        interaction_source=source,
        profile_builder=ProfileBuilder(clock=lambda: NOW),
        settings=settings.recommendation,
        search_settings=settings.search,
    )


class TestRecommendationEngine:
    """Tests for RecommendationEngine."""

    async def test_build_profile(self, engine: RecommendationEngine) -> None:
        """Profiles come from the interaction source."""
        profile = await engine.build_profile("u1")

        assert set(profile.weights) == {"1", "2", "3"}

    async def test_collaborative(self, engine: RecommendationEngine) -> None:
        """Posts liked by similar users and unseen by the user come first."""
        results = await engine.recommend(
            "u1",
            RecommendOptions(algorithm=RecommendationAlgorithm.COLLABORATIVE),
        )

        assert [r.entity_id for r in results] == ["5"]
        assert results[0].match_type is MatchType.COLLABORATIVE

    async def test_content(self, engine: RecommendationEngine) -> None:
        """Content recommendations skip seen and self-authored posts."""
        results = await engine.recommend(
            "u1",
            RecommendOptions(
                algorithm=RecommendationAlgorithm.CONTENT,
                enable_diversity_filtering=False,
            ),
        )

        ids = [r.entity_id for r in results]
        assert ids[0] == "5"
        assert not {"1", "2", "3", "6"} & set(ids)
        assert all(r.match_type is MatchType.CONTENT for r in results)

    async def test_hybrid(self, engine: RecommendationEngine) -> None:
        """Hybrid fuses both signals."""
        results = await engine.recommend("u1", RecommendOptions(limit=3))

        assert results[0].entity_id == "5"
        assert results[0].match_type is MatchType.HYBRID
        assert [r.rank for r in results] == list(range(1, len(results) + 1))

    async def test_diversity_applied(self, engine: RecommendationEngine) -> None:
        """A strict threshold keeps only mutually dissimilar posts."""
        results = await engine.recommend(
            "u1",
            RecommendOptions(
                algorithm=RecommendationAlgorithm.CONTENT,
                diversity_threshold=-1.0,
            ),
        )

        assert len(results) == 1

    async def test_fallback_for_new_user(self, engine: RecommendationEngine) -> None:
        """Users without history get the fallback query results."""
        results = await engine.recommend("newcomer", RecommendOptions(limit=3))

        assert 0 < len(results) <= 3
        assert all(r.match_type is MatchType.FALLBACK for r in results)

    async def test_no_fallback_configured(
        self,
        embeddings: FailoverEmbeddingService,
        forum: InMemoryVectorStore,
        settings: Settings,
    ) -> None:
        """Without signal or fallback the profile is unavailable."""
        engine = RecommendationEngine(
            embeddings,
            forum,
            settings=RecommendationSettings(fallback_query=None),
            search_settings=settings.search,
        )

        with pytest.raises(ProfileUnavailableError):
            await engine.recommend("newcomer")

    async def test_explicit_profile(self, engine: RecommendationEngine) -> None:
        """A precomputed profile skips the interaction source."""
        profile = UserInteractionProfile(user_id="u9", weights={"4": 1.0})

        results = await engine.recommend(
            "u9",
            RecommendOptions(algorithm=RecommendationAlgorithm.CONTENT),
            profile=profile,
        )

        assert "4" not in {r.entity_id for r in results}

    async def test_source_failure(
        self,
        embeddings: FailoverEmbeddingService,
        forum: InMemoryVectorStore,
    ) -> None:
        """A failing interaction source raises ProfileUnavailableError."""
        engine = RecommendationEngine(
            embeddings,
            forum,
            interaction_source=BrokenInteractionSource(),
        )

        with pytest.raises(ProfileUnavailableError):
            await engine.recommend("u1")

    async def test_store_not_ready(
        self,
        engine: RecommendationEngine,
        forum: InMemoryVectorStore,
    ) -> None:
        """An unready store raises SearchUnavailableError."""
        forum.available = False

        with pytest.raises(SearchUnavailableError):
            await engine.recommend("u1")


class TestCategoryRecommendations:
    """Tests for RecommendationEngine.recommend_for_category."""

    async def test_posts_near_category(
        self,
        embeddings: FailoverEmbeddingService,
        forum: InMemoryVectorStore,
        engine: RecommendationEngine,
    ) -> None:
        """The category name and description seed a dense post query."""
        await IndexingPipeline(embeddings, forum).index_entity(
            CategoryEntity(
                id="c7",
                name="Baking",
                slug="baking",
                description="Sourdough and wild yeast",
            )
        )

        results = await engine.recommend_for_category("baking", limit=3)

        assert results[0].entity_id == "4"
        assert results[0].match_type is MatchType.CATEGORY
        assert len(results) <= 3

    async def test_unknown_slug(self, engine: RecommendationEngine) -> None:
        """Unknown categories give no recommendations."""
        assert await engine.recommend_for_category("nope") == []

    async def test_store_not_ready(
        self,
        engine: RecommendationEngine,
        forum: InMemoryVectorStore,
    ) -> None:
        """An unready store raises SearchUnavailableError."""
        forum.available = False

        with pytest.raises(SearchUnavailableError):
            await engine.recommend_for_category("baking")
