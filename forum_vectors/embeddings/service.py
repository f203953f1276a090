"""Embedding service interface and the failover implementation."""

import asyncio
import time
from abc import ABC, abstractmethod

from forum_vectors.config import EmbeddingSettings, get_settings
from forum_vectors.embeddings.models import (
    EmbeddingPurpose,
    EmbeddingResult,
    ProviderStatus,
)
from forum_vectors.embeddings.providers import (
    DeterministicEmbeddingProvider,
    EmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    OpenAICompatibleEmbeddingProvider,
)
from forum_vectors.embeddings.rate_limit import AttemptOutcome, ProviderStateRegistry
from forum_vectors.exceptions import (
    ConfigurationError,
    EmbeddingProviderError,
    EmbeddingUnavailableError,
    ProviderRateLimitedError,
)
from forum_vectors.logging_config import get_logger
from forum_vectors.observability.metrics import track_embedding_request

logger = get_logger(__name__)


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Defines the interface for generating text embeddings.
    """

    @abstractmethod
    async def embed(
        self,
        text: str,
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.
            purpose: Document or query embedding.

        Returns:
            EmbeddingResult with vector.

        Raises:
            EmbeddingUnavailableError: If no provider could answer.
        """
        ...

    @abstractmethod
    async def embed_batch(
        self,
        texts: list[str],
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.
            purpose: Document or query embedding.

        Returns:
            List of EmbeddingResult objects.

        Raises:
            EmbeddingUnavailableError: If no provider could answer.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name of the primary provider."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...

    def get_provider_status(self) -> dict[str, ProviderStatus]:
        """Per-provider rate-limit and backoff status."""
        return {}

    async def close(self) -> None:
        """Release resources."""
        return None


class FailoverEmbeddingService(EmbeddingService):
    """Tries providers in priority order under rate-limit and backoff rules.

    A provider is skipped while backed off or when its request window is
    full. A 429 backs the provider off and moves on without retrying it in
    the same call; other failures count towards the failure threshold.
    """

    def __init__(
        self,
        providers: list[EmbeddingProvider],
        registry: ProviderStateRegistry | None = None,
        dimensions: int | None = None,
        timeout: float | None = None,
        batch_size: int = 32,
    ) -> None:
        """Initialize the failover service.

        Args:
            providers: Providers in priority order.
            registry: Shared provider state. A private one is made if omitted.
            dimensions: Required output dimensions (defaults to the first
                provider's).
            timeout: Per-attempt deadline in seconds.
            batch_size: Maximum texts per provider request.
        """
        if not providers:
            raise ConfigurationError("At least one embedding provider is required")

        self._providers = providers
        self._registry = registry or ProviderStateRegistry()
        self._dimensions = dimensions or providers[0].dimensions
        self._timeout = timeout
        self._batch_size = max(1, batch_size)

    @property
    def model_name(self) -> str:
        return self._providers[0].model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def providers(self) -> list[EmbeddingProvider]:
        return list(self._providers)

    @property
    def registry(self) -> ProviderStateRegistry:
        return self._registry

    def get_provider_status(self) -> dict[str, ProviderStatus]:
        """Per-provider rate-limit and backoff status, in priority order."""
        return {p.name: self._registry.status(p.name) for p in self._providers}

    async def close(self) -> None:
        for provider in self._providers:
            await provider.close()

    async def embed(
        self,
        text: str,
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> EmbeddingResult:
        results = await self.embed_batch([text], purpose)
        return results[0]

    async def embed_batch(
        self,
        texts: list[str],
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> list[EmbeddingResult]:
        if not texts:
            return []

        results: list[EmbeddingResult] = []
        for i in range(0, len(texts), self._batch_size):
            batch = texts[i : i + self._batch_size]
            results.extend(await self._embed_with_failover(batch, purpose))
        return results

    async def _embed_with_failover(
        self,
        texts: list[str],
        purpose: EmbeddingPurpose,
    ) -> list[EmbeddingResult]:
        attempts: dict[str, str] = {}

        for provider in self._providers:
            name = provider.name

            if not provider.unlimited and not self._registry.try_acquire(name):
                attempts[name] = "skipped"
                track_embedding_request(name, 0.0, status="skipped")
                continue

            start = time.perf_counter()
            try:
                vectors = await asyncio.wait_for(
                    provider.embed_texts(texts, purpose),
                    timeout=self._timeout,
                )
                self._check_dimensions(provider, vectors)
            except ProviderRateLimitedError as e:
                attempts[name] = "rate_limited"
                track_embedding_request(
                    name, time.perf_counter() - start, status="rate_limited"
                )
                if not provider.unlimited:
                    self._registry.record(
                        name,
                        AttemptOutcome.RATE_LIMITED,
                        retry_after=e.details.get("retry_after"),
                    )
                continue
            except Exception as e:
                attempts[name] = "error"
                track_embedding_request(name, time.perf_counter() - start, status="error")
                if not provider.unlimited:
                    self._registry.record(name, AttemptOutcome.FAILURE)
                reason = "timed out" if isinstance(e, TimeoutError) else str(e)
                logger.warning(
                    f"Embedding provider {name} failed: {reason}",
                    extra={"provider": name, "batch_size": len(texts)},
                )
                continue

            if not provider.unlimited:
                self._registry.record(name, AttemptOutcome.SUCCESS)
            track_embedding_request(name, time.perf_counter() - start)

            return [
                EmbeddingResult(
                    text=text,
                    embedding=vector,
                    model=provider.model_name,
                    provider=name,
                    dimensions=len(vector),
                )
                for text, vector in zip(texts, vectors)
            ]

        logger.error(
            "All embedding providers exhausted",
            extra={"attempts": attempts, "batch_size": len(texts)},
        )
        raise EmbeddingUnavailableError(
            "No embedding provider could answer",
            details={"attempts": attempts},
        )

    def _check_dimensions(
        self,
        provider: EmbeddingProvider,
        vectors: list[list[float]],
    ) -> None:
        for vector in vectors:
            if len(vector) != self._dimensions:
                raise EmbeddingProviderError(
                    f"{provider.name} returned {len(vector)} dimensions, "
                    f"expected {self._dimensions}",
                    details={"provider": provider.name},
                )


def build_providers(settings: EmbeddingSettings) -> list[EmbeddingProvider]:
    """Providers in priority order for the configured API keys.

    Mistral goes first when preferred, otherwise after Hugging Face and
    OpenAI. The deterministic local provider always comes last when enabled.
    """
    common = {"dimensions": settings.dimensions, "timeout": settings.timeout}

    mistral = None
    if settings.mistral_api_key is not None:
        mistral = OpenAICompatibleEmbeddingProvider(
            "mistral",
            settings.mistral_base_url,
            settings.mistral_model,
            api_key=settings.mistral_api_key,
            **common,
        )

    providers: list[EmbeddingProvider] = []
    if mistral is not None and settings.prefer_mistral:
        providers.append(mistral)
    if settings.hf_api_key is not None:
        providers.append(
            HuggingFaceEmbeddingProvider(
                "huggingface",
                settings.hf_base_url,
                settings.hf_model,
                api_key=settings.hf_api_key,
                **common,
            )
        )
    if settings.openai_api_key is not None:
        providers.append(
            OpenAICompatibleEmbeddingProvider(
                "openai",
                settings.openai_base_url,
                settings.openai_model,
                api_key=settings.openai_api_key,
                send_dimensions=True,
                **common,
            )
        )
    if mistral is not None and not settings.prefer_mistral:
        providers.append(mistral)

    if settings.enable_local_fallback or not providers:
        if not providers:
            logger.warning("No embedding API keys configured, using local embeddings")
        providers.append(DeterministicEmbeddingProvider(settings.dimensions))

    return providers


def build_embedding_service(
    settings: EmbeddingSettings | None = None,
    registry: ProviderStateRegistry | None = None,
) -> FailoverEmbeddingService:
    """Create the failover embedding service from settings."""
    settings = settings or get_settings().embedding
    registry = registry or ProviderStateRegistry(
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        backoff_base_seconds=settings.backoff_base_seconds,
        backoff_max_seconds=settings.backoff_max_seconds,
        failure_threshold=settings.failure_threshold,
    )
    return FailoverEmbeddingService(
        providers=build_providers(settings),
        registry=registry,
        dimensions=settings.dimensions,
        timeout=settings.timeout,
        batch_size=settings.batch_size,
    )
