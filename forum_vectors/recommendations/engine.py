"""Recommendation engine.

Collaborative recommendations come from users whose interaction profiles
resemble the requesting user's. Content recommendations come from the dense
centroid of the posts the user engaged with. Hybrid fuses both with RRF.
"""

from collections import defaultdict
from typing import Any

from forum_vectors.config import RecommendationSettings, SearchSettings, get_settings
from forum_vectors.embeddings.models import EmbeddingPurpose
from forum_vectors.embeddings.service import EmbeddingService
from forum_vectors.exceptions import (
    ForumVectorError,
    ProfileUnavailableError,
    SearchUnavailableError,
    StoreUnavailableError,
)
from forum_vectors.indexing.models import EntityType, UserInteractionProfile
from forum_vectors.indexing.points import point_id
from forum_vectors.logging_config import get_logger
from forum_vectors.observability.metrics import track_recommendation_request
from forum_vectors.recommendations.diversity import diversity_filter
from forum_vectors.recommendations.models import (
    RecommendationAlgorithm,
    RecommendOptions,
)
from forum_vectors.recommendations.profile import InteractionSource, ProfileBuilder
from forum_vectors.search.fusion import rrf_fuse
from forum_vectors.search.hybrid import (
    native_results,
    search_unavailable,
    to_ranked_results,
)
from forum_vectors.search.models import MatchType, RankedList, RankedResult
from forum_vectors.sparse.generator import SparseVectorGenerator
from forum_vectors.vectorstore import collections
from forum_vectors.vectorstore.models import DENSE_VECTOR, SPARSE_VECTOR, SearchResult
from forum_vectors.vectorstore.service import VectorStore
from forum_vectors.vectorstore.similarity import mean_vector

logger = get_logger(__name__)

COLLABORATIVE = "collaborative"
CONTENT = "content"
FALLBACK = "fallback"
CATEGORY = "category"

# Strongest positive interactions used for the content interest vector.
MAX_INTEREST_POSTS = 20


class RecommendationEngine:
    """Personalized, diversity-filtered post recommendations."""

    def __init__(
        self,
        embeddings: EmbeddingService,
        store: VectorStore,
        interaction_source: InteractionSource | None = None,
        profile_builder: ProfileBuilder | None = None,
        sparse: SparseVectorGenerator | None = None,
        settings: RecommendationSettings | None = None,
        search_settings: SearchSettings | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            embeddings: Dense embedding service (fallback query only).
            store: Vector store gateway.
            interaction_source: Interaction log of the primary store.
            profile_builder: Turns interactions into profiles.
            sparse: Generator for profile vectors.
            settings: Recommendation configuration.
            search_settings: Search configuration (RRF constant).
        """
        self._settings = settings or get_settings().recommendation
        self._search_settings = search_settings or get_settings().search
        self._embeddings = embeddings
        self._store = store
        self._source = interaction_source
        self._profiles = profile_builder or ProfileBuilder(
            decay_factor=self._settings.time_decay_factor
        )
        self._sparse = sparse or SparseVectorGenerator(
            self._search_settings.sparse_dimensions
        )

    async def build_profile(self, user_id: str) -> UserInteractionProfile:
        """Build a user's profile from the interaction source.

        Raises:
            ProfileUnavailableError: If the source fails.
        """
        if self._source is None:
            return UserInteractionProfile(user_id=user_id)
        try:
            interactions = await self._source.get_interactions(user_id)
        except ForumVectorError:
            raise
        except Exception as e:
            raise ProfileUnavailableError(
                f"Failed to load interactions for user {user_id}: {e}",
                details={"user_id": user_id},
            ) from e
        return self._profiles.build(user_id, interactions)

    async def recommend(
        self,
        user_id: str,
        options: RecommendOptions | None = None,
        profile: UserInteractionProfile | None = None,
    ) -> list[RankedResult]:
        """Recommend posts for a user.

        Args:
            user_id: Requesting user.
            options: Recommendation options.
            profile: Precomputed profile; built from the source when omitted.

        Returns:
            Ranked, diversity-filtered posts.

        Raises:
            SearchUnavailableError: If the vector store is not ready.
            ProfileUnavailableError: If there is no signal and no fallback
                query is configured.
        """
        options = options or RecommendOptions()
        algorithm = options.algorithm.value

        try:
            if not await self._store.is_ready():
                raise SearchUnavailableError(
                    "Vector store is not ready",
                    details={"mode": "recommend"},
                )
            if profile is None:
                profile = await self.build_profile(user_id)
            results = await self._recommend(user_id, profile, options)
        except StoreUnavailableError as e:
            track_recommendation_request(algorithm, success=False)
            if isinstance(e, SearchUnavailableError):
                raise
            raise search_unavailable(e, "recommend") from e
        except ForumVectorError:
            track_recommendation_request(algorithm, success=False)
            raise

        track_recommendation_request(algorithm)
        logger.info(
            f"Recommended {len(results)} posts",
            extra={"user_id": user_id, "algorithm": algorithm},
        )
        return results

    async def recommend_for_category(
        self,
        slug: str,
        limit: int = 6,
    ) -> list[RankedResult]:
        """Posts semantically closest to a category's name and description.

        The category is looked up by slug in the categories collection; an
        unknown slug gives an empty list.

        Raises:
            SearchUnavailableError: If the vector store is not ready.
            EmbeddingUnavailableError: If the category query can not be
                embedded.
        """
        try:
            if not await self._store.is_ready():
                raise SearchUnavailableError(
                    "Vector store is not ready",
                    details={"mode": "recommend"},
                )
            page = await self._store.scroll(
                collections.CATEGORIES,
                limit=1,
                filters={"slug": slug},
            )
            if not page.points:
                logger.info(f"No indexed category with slug {slug}")
                track_recommendation_request(CATEGORY)
                return []

            category = page.points[0].payload
            query = f"{category.get('name', '')} {category.get('description') or ''}"
            embedding = await self._embeddings.embed(
                query.strip(), EmbeddingPurpose.QUERY
            )
            hits = await self._store.search(
                collections.POSTS,
                embedding.embedding,
                using=DENSE_VECTOR,
                limit=limit,
            )
        except StoreUnavailableError as e:
            track_recommendation_request(CATEGORY, success=False)
            if isinstance(e, SearchUnavailableError):
                raise
            raise search_unavailable(e, "recommend") from e
        except ForumVectorError:
            track_recommendation_request(CATEGORY, success=False)
            raise

        track_recommendation_request(CATEGORY)
        return to_ranked_results(
            native_results(hits, CATEGORY),
            limit,
            match_type=MatchType.CATEGORY,
        )

    async def _recommend(
        self,
        user_id: str,
        profile: UserInteractionProfile,
        options: RecommendOptions,
    ) -> list[RankedResult]:
        count = options.limit * max(1, self._settings.candidate_multiplier)
        algorithm = options.algorithm
        lists: list[RankedList] = []

        if algorithm in (
            RecommendationAlgorithm.COLLABORATIVE,
            RecommendationAlgorithm.HYBRID,
        ):
            hits = await self._collaborative(user_id, profile, count)
            if hits:
                lists.append(RankedList(source=COLLABORATIVE, results=hits))

        if algorithm in (RecommendationAlgorithm.CONTENT, RecommendationAlgorithm.HYBRID):
            hits = await self._content(user_id, profile, count)
            if hits:
                lists.append(RankedList(source=CONTENT, results=hits))

        if not lists:
            if not self._settings.fallback_query:
                raise ProfileUnavailableError(
                    f"No interaction signal for user {user_id}",
                    details={"user_id": user_id, "algorithm": algorithm.value},
                )
            logger.info(
                "No interaction signal, using fallback query",
                extra={"user_id": user_id},
            )
            hits = await self._fallback(user_id, profile, count)
            lists.append(RankedList(source=FALLBACK, results=hits))

        if len(lists) == 1:
            candidates = native_results(lists[0].results, lists[0].source)
        else:
            candidates = rrf_fuse(lists, k=self._search_settings.rrf_k)

        if options.score_threshold is not None:
            candidates = [c for c in candidates if c.score >= options.score_threshold]

        if options.enable_diversity_filtering:
            threshold = options.diversity_threshold
            if threshold is None:
                threshold = self._settings.diversity_threshold
            candidates = diversity_filter(candidates, options.limit, threshold)

        return to_ranked_results(candidates, options.limit)

    async def _hydrate(
        self,
        scores: dict[str, float],
        user_id: str,
    ) -> list[SearchResult]:
        """Load posts by entity id, dropping missing and self-authored ones."""
        ids = {point_id(EntityType.POST, entity_id): entity_id for entity_id in scores}
        points = await self._store.retrieve(
            collections.POSTS,
            list(ids),
            with_vectors=True,
        )

        hits = []
        for point in points:
            if point.payload.get("author_id") == user_id:
                continue
            hits.append(
                SearchResult(
                    id=point.id,
                    score=scores[ids[point.id]],
                    payload=point.payload,
                    vector=point.dense,
                )
            )
        hits.sort(key=lambda h: (-h.score, h.id))
        return hits

    async def _collaborative(
        self,
        user_id: str,
        profile: UserInteractionProfile,
        count: int,
    ) -> list[SearchResult]:
        if len(profile.weights) < self._settings.min_collaborative_interactions:
            return []

        query = self._sparse.from_ratings(profile.weights)
        neighbours = await self._store.search(
            collections.INTERACTIONS,
            query,
            using=SPARSE_VECTOR,
            limit=self._settings.similar_users_limit,
            filters={"must_not": {"entity_id": user_id}},
        )

        scores: dict[str, float] = defaultdict(float)
        for neighbour in neighbours:
            if neighbour.score <= 0:
                continue
            ratings: dict[str, Any] = neighbour.payload.get("ratings") or {}
            for entity_id, weight in ratings.items():
                if weight <= 0 or entity_id in profile.weights:
                    continue
                scores[entity_id] += neighbour.score * float(weight)

        if not scores:
            return []

        top = dict(sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))[:count])
        logger.debug(
            f"Collaborative filtering found {len(top)} candidates",
            extra={"user_id": user_id, "neighbours": len(neighbours)},
        )
        return await self._hydrate(top, user_id)

    async def _content(
        self,
        user_id: str,
        profile: UserInteractionProfile,
        count: int,
    ) -> list[SearchResult]:
        liked = profile.positive_ids()[:MAX_INTEREST_POSTS]
        if not liked:
            return []

        points = await self._store.retrieve(
            collections.POSTS,
            [point_id(EntityType.POST, entity_id) for entity_id in liked],
            with_vectors=True,
        )
        vectors = []
        weights = []
        for point in points:
            entity_id = point.payload.get("entity_id")
            if point.dense is None or entity_id not in profile.weights:
                continue
            vectors.append(point.dense)
            weights.append(profile.weights[entity_id])

        interest = mean_vector(vectors, weights)
        if not interest:
            return []

        return await self._unseen_neighbours(interest, user_id, profile, count)

    async def _fallback(
        self,
        user_id: str,
        profile: UserInteractionProfile,
        count: int,
    ) -> list[SearchResult]:
        query = self._settings.fallback_query or ""
        embedding = await self._embeddings.embed(query, EmbeddingPurpose.QUERY)
        return await self._unseen_neighbours(
            embedding.embedding, user_id, profile, count
        )

    async def _unseen_neighbours(
        self,
        vector: list[float],
        user_id: str,
        profile: UserInteractionProfile,
        count: int,
    ) -> list[SearchResult]:
        hits = await self._store.search(
            collections.POSTS,
            vector,
            using=DENSE_VECTOR,
            limit=count + len(profile.weights),
            filters={"must_not": {"author_id": user_id}},
            with_vectors=True,
        )
        unseen = [h for h in hits if h.payload.get("entity_id") not in profile.weights]
        return unseen[:count]
