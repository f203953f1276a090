"""Post-commit indexing hooks.

The primary-store write path calls these after a mutation has committed.
They await the pipeline, log failures and hand back the result; nothing is
raised into the caller.
"""

from forum_vectors.indexing.models import EntityType, IndexResult, UserInteractionProfile
from forum_vectors.indexing.pipeline import IndexingPipeline
from forum_vectors.indexing.points import AnyEntity
from forum_vectors.logging_config import get_logger

logger = get_logger(__name__)


class IndexingHooks:
    """Explicit callbacks for entity mutations."""

    def __init__(self, pipeline: IndexingPipeline) -> None:
        self._pipeline = pipeline

    def _report(self, result: IndexResult) -> IndexResult:
        if not result.ok and result.error is not None:
            logger.warning(
                f"Indexing hook discarded failure: {result.error.message}",
                extra={
                    "operation": result.operation.value,
                    "entity_type": result.entity_type,
                    "entity_id": result.entity_id,
                },
            )
        return result

    async def on_saved(self, entity: AnyEntity) -> IndexResult:
        """Entity created or updated."""
        return self._report(await self._pipeline.index_entity(entity))

    async def on_deleted(
        self,
        entity_id: str,
        entity_type: EntityType | str,
    ) -> IndexResult:
        """Entity deleted."""
        return self._report(await self._pipeline.delete_entity(entity_id, entity_type))

    async def on_signals_changed(self, entity: AnyEntity) -> IndexResult:
        """Votes, bookmarks or counts changed."""
        return self._report(await self._pipeline.refresh_signals(entity))

    async def on_interactions_changed(
        self,
        profile: UserInteractionProfile,
    ) -> IndexResult:
        """A user's interaction history changed."""
        return self._report(await self._pipeline.index_user_profile(profile))
