"""Embedding provider implementations.

Each provider turns a batch of texts into dense vectors and reports failures
as EmbeddingProviderError (or ProviderRateLimitedError for 429 responses).
Failover and rate limiting live in the service, not here.
"""

import math
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any

import httpx
from pydantic import SecretStr

from forum_vectors.embeddings.models import EmbeddingPurpose
from forum_vectors.exceptions import EmbeddingProviderError, ProviderRateLimitedError
from forum_vectors.logging_config import get_logger
from forum_vectors.sparse.generator import stable_hash, tokenize

logger = get_logger(__name__)


def l2_normalize(vector: list[float]) -> list[float]:
    """Scale a vector to unit length (zero vectors are returned unchanged)."""
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return list(vector)
    return [v / norm for v in vector]


def mean_pool(token_vectors: list[list[float]]) -> list[float]:
    """Average token-level vectors into one sentence vector."""
    if not token_vectors:
        return []
    dims = len(token_vectors[0])
    sums = [0.0] * dims
    for vector in token_vectors:
        for i in range(dims):
            sums[i] += vector[i]
    return [s / len(token_vectors) for s in sums]


class EmbeddingProvider(ABC):
    """A single source of dense embeddings."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used for rate-limit state and metrics."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Dimensions this provider is expected to return."""
        ...

    @property
    def unlimited(self) -> bool:
        """True for local providers that bypass rate-limit bookkeeping."""
        return False

    @abstractmethod
    async def embed_texts(
        self,
        texts: list[str],
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> list[list[float]]:
        """Embed a batch of texts.

        Args:
            texts: Texts to embed.
            purpose: Whether the texts are documents or queries.

        Returns:
            One vector per text, in order.

        Raises:
            EmbeddingProviderError: If the provider fails.
        """
        ...

    async def close(self) -> None:
        """Release provider resources."""
        return None


class HTTPEmbeddingProvider(EmbeddingProvider):
    """Base class for providers reached over HTTP."""

    def __init__(
        self,
        name: str,
        base_url: str,
        model: str,
        dimensions: int,
        api_key: SecretStr | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP provider.

        Args:
            name: Provider name.
            base_url: API base URL.
            model: Model name.
            dimensions: Expected output dimensions.
            api_key: Bearer token, if the API needs one.
            timeout: Request timeout in seconds.
            client: HTTP client. Creates new one if not provided.
        """
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dimensions = dimensions
        self._api_key = api_key
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return self._name

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key is not None:
            headers["Authorization"] = f"Bearer {self._api_key.get_secret_value()}"
        return headers

    async def _post(self, url: str, payload: dict[str, Any]) -> Any:
        """POST a JSON payload and return the decoded body.

        Raises:
            ProviderRateLimitedError: On a 429 response.
            EmbeddingProviderError: On any other failure.
        """
        client = await self._get_client()

        try:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                raise ProviderRateLimitedError(
                    f"{self._name} rate limited",
                    details={
                        "provider": self._name,
                        "retry_after": _retry_after(e.response),
                    },
                ) from e
            raise EmbeddingProviderError(
                f"{self._name} returned {status}",
                details={"provider": self._name, "status_code": status},
            ) from e
        except httpx.RequestError as e:
            raise EmbeddingProviderError(
                f"Failed to connect to {self._name}: {e}",
                details={"provider": self._name, "url": url},
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise EmbeddingProviderError(
                f"Invalid JSON from {self._name}",
                details={"provider": self._name},
            ) from e


def _retry_after(response: httpx.Response) -> float | None:
    """Parse a numeric Retry-After header."""
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class OpenAICompatibleEmbeddingProvider(HTTPEmbeddingProvider):
    """Provider for OpenAI-style ``/embeddings`` endpoints.

    Works with:
    - OpenAI (``text-embedding-3-small`` with a dimensions override)
    - Mistral (``mistral-embed``)
    - Any OpenAI-compatible endpoint
    """

    def __init__(
        self,
        *args: Any,
        send_dimensions: bool = False,
        **kwargs: Any,
    ) -> None:
        """Initialize the provider.

        Args:
            send_dimensions: Ask the API to shorten vectors to ``dimensions``.
        """
        super().__init__(*args, **kwargs)
        self._send_dimensions = send_dimensions

    async def embed_texts(
        self,
        texts: list[str],
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> list[list[float]]:
        if not texts:
            return []

        payload: dict[str, Any] = {"input": texts, "model": self._model}
        if self._send_dimensions:
            payload["dimensions"] = self._dimensions

        data = await self._post(f"{self._base_url}/embeddings", payload)

        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            vectors = [list(item["embedding"]) for item in items]
        except (KeyError, TypeError) as e:
            raise EmbeddingProviderError(
                f"Invalid response from {self._name}: {e}",
                details={"provider": self._name},
            ) from e

        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"{self._name} returned {len(vectors)} vectors for {len(texts)} texts",
                details={"provider": self._name},
            )
        return vectors


class HuggingFaceEmbeddingProvider(HTTPEmbeddingProvider):
    """Provider for the Hugging Face feature-extraction pipeline.

    Token-level outputs are mean pooled; every vector is L2 normalized. E5
    models get their ``query:`` / ``passage:`` prefixes.
    """

    def _prefix(self, text: str, purpose: EmbeddingPurpose) -> str:
        if "e5" not in self._model.lower():
            return text
        if purpose is EmbeddingPurpose.QUERY:
            return f"query: {text}"
        return f"passage: {text}"

    async def embed_texts(
        self,
        texts: list[str],
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> list[list[float]]:
        if not texts:
            return []

        payload = {
            "inputs": [self._prefix(text, purpose) for text in texts],
            "options": {"wait_for_model": True},
        }
        data = await self._post(f"{self._base_url}/{self._model}", payload)

        if not isinstance(data, list) or len(data) != len(texts):
            raise EmbeddingProviderError(
                f"Unexpected response shape from {self._name}",
                details={"provider": self._name},
            )

        vectors: list[list[float]] = []
        for item in data:
            if item and isinstance(item[0], list):
                item = mean_pool(item)
            vectors.append(l2_normalize([float(v) for v in item]))
        return vectors


class DeterministicEmbeddingProvider(EmbeddingProvider):
    """Local feature-hashing embedder that never fails.

    Each token is hashed onto a signed dimension and weighted ``1 + log(tf)``,
    so texts sharing vocabulary get positive cosine similarity. Text without
    tokens falls back to a vector seeded by the whole string.
    """

    def __init__(self, dimensions: int = 1024, name: str = "local") -> None:
        self._dimensions = dimensions
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def model_name(self) -> str:
        return "feature-hashing"

    @property
    def unlimited(self) -> bool:
        return True

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed_one(self, text: str) -> list[float]:
        """Embed a single text synchronously."""
        vector = [0.0] * self._dimensions
        counts = Counter(tokenize(text))

        if not counts:
            seed = stable_hash(text or "empty_text")
            return l2_normalize(
                [math.sin(seed + i) / 2 + 0.5 for i in range(self._dimensions)]
            )

        for token, count in counts.items():
            h = stable_hash(token)
            sign = 1.0 if (h >> 20) & 1 else -1.0
            vector[h % self._dimensions] += sign * (1.0 + math.log(count))
        return l2_normalize(vector)

    async def embed_texts(
        self,
        texts: list[str],
        purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT,
    ) -> list[list[float]]:
        return [self.embed_one(text) for text in texts]
