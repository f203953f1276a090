"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration.

    Providers without an API key are skipped. When no key is set at all the
    deterministic local provider keeps embedding available.
    """

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    mistral_api_key: SecretStr | None = Field(
        default=None,
        description="Mistral API key",
    )
    mistral_base_url: str = Field(
        default="https://api.mistral.ai/v1",
        description="Mistral API base URL",
    )
    mistral_model: str = Field(
        default="mistral-embed",
        description="Mistral embedding model",
    )
    prefer_mistral: bool = Field(
        default=False,
        description="Try Mistral before Hugging Face",
    )
    hf_api_key: SecretStr | None = Field(
        default=None,
        description="Hugging Face inference API key",
    )
    hf_base_url: str = Field(
        default="https://api-inference.huggingface.co/pipeline/feature-extraction",
        description="Hugging Face feature-extraction base URL",
    )
    hf_model: str = Field(
        default="intfloat/e5-large-v2",
        description="Hugging Face embedding model",
    )
    openai_api_key: SecretStr | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI API base URL",
    )
    openai_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model",
    )
    dimensions: int = Field(
        default=1024,
        description="Dense embedding dimensions produced by every provider",
    )
    timeout: float = Field(
        default=10.0,
        description="Per-provider request timeout in seconds",
    )
    batch_size: int = Field(
        default=32,
        description="Batch size for embedding requests",
    )
    rate_limit_requests: int = Field(
        default=60,
        description="Requests allowed per provider per window",
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        description="Rate limit window length in seconds",
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        description="Initial backoff delay in seconds",
    )
    backoff_max_seconds: float = Field(
        default=300.0,
        description="Maximum backoff delay in seconds",
    )
    failure_threshold: int = Field(
        default=3,
        description="Consecutive failures before a provider is backed off",
    )
    enable_local_fallback: bool = Field(
        default=True,
        description="Append the deterministic local provider last",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    timeout: float = Field(
        default=5.0,
        gt=0,
        description="Request timeout in seconds",
    )
    ready_timeout: float = Field(
        default=0.5,
        description="Timeout for the readiness check in seconds",
    )
    posts_dimensions: int = Field(default=1024, description="Posts vector size")
    comments_dimensions: int = Field(default=1024, description="Comments vector size")
    categories_dimensions: int = Field(
        default=1024,
        description="Categories vector size",
    )
    users_dimensions: int = Field(default=1024, description="Users vector size")
    multimodal_dimensions: int = Field(
        default=768,
        description="Multimodal named vector size",
    )
    enable_multimodal: bool = Field(
        default=False,
        description="Create the multimodal collection",
    )
    enable_binary_quantization: bool = Field(
        default=False,
        description="Enable binary quantization on dense collections",
    )


class SearchSettings(BaseSettings):
    """Search defaults."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    rrf_k: int = Field(
        default=60,
        description="Reciprocal rank fusion smoothing constant",
    )
    sparse_dimensions: int = Field(
        default=30000,
        description="Hashed sparse vocabulary size",
    )
    default_limit: int = Field(default=10, description="Default result count")
    hybrid_score_threshold: float = Field(
        default=0.0,
        description="Minimum fused score for hybrid search",
    )
    dense_score_threshold: float = Field(
        default=0.0,
        description="Minimum cosine score for dense-only search",
    )
    multi_stage_score_threshold: float = Field(
        default=0.0,
        description="Minimum rescored score for multi-stage search",
    )
    candidate_limit: int = Field(
        default=100,
        description="Stage one candidate count for multi-stage search",
    )
    prefetch_multiplier: int = Field(
        default=2,
        description="Per-list fetch size as a multiple of the limit",
    )


class RecommendationSettings(BaseSettings):
    """Recommendation engine configuration."""

    model_config = SettingsConfigDict(env_prefix="RECOMMEND_")

    diversity_threshold: float = Field(
        default=0.9,
        description="Cosine similarity at which two items count as near-duplicates",
    )
    candidate_multiplier: int = Field(
        default=3,
        description="Candidate pool size as a multiple of the limit",
    )
    time_decay_factor: float = Field(
        default=0.95,
        description="Per-day decay applied to interaction weights",
    )
    min_collaborative_interactions: int = Field(
        default=3,
        description="Minimum interactions needed for collaborative filtering",
    )
    similar_users_limit: int = Field(
        default=50,
        description="Neighbouring users considered by collaborative filtering",
    )
    fallback_query: str | None = Field(
        default="trending interesting popular insightful discussions",
        description="Query used when a user has no interaction signal",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # Diagnostics API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    recommendation: RecommendationSettings = Field(
        default_factory=RecommendationSettings
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
