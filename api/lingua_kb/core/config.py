import logging
from functools import lru_cache

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Environment settings (declared first so validators can read it)
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    PROJECT_NAME: str = "Lingua KB"
    LOG_LEVEL: str = "INFO"

    # Qdrant settings (one collection per language namespace)
    QDRANT_URL: str = ""  # Takes precedence over host/port when set
    QDRANT_HOST: str = "localhost"
    QDRANT_PORT: int = 6333
    QDRANT_API_KEY: str = ""
    QDRANT_COLLECTION: str = "faq-index"
    QDRANT_TIMEOUT_SECONDS: int = 30
    INDEX_UPSERT_BATCH_SIZE: int = 90  # Provider payload limit per request

    # Embeddings and reranking
    OPENAI_API_KEY: str = ""
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    RERANK_MODEL: str = "BAAI/bge-reranker-v2-m3"
    VECTOR_SEARCH_ENABLED: bool = True

    # LLM language classification (AISuite "provider:model" format)
    LLM_CLASSIFICATION_MODEL: str = "openai:gpt-4o"
    LLM_CLASSIFICATION_TEMPERATURE: float = 0.0
    LLM_CLASSIFICATION_MAX_TOKENS: int = 16

    # Local language identification
    LID_CONFIDENCE_THRESHOLD: float = 0.95

    # DeepL translation
    DEEPL_API_KEY: str = ""
    DEEPL_COST_PER_CHAR: float = 20 / 1_000_000  # EUR per character
    DEEPL_GLOSSARY_NAME: str = "lingua-kb"

    # Crowdin translation memory
    CROWDIN_TOKEN: str = ""
    CROWDIN_PROJECT_ID: int = 0
    CROWDIN_API_URL: str = "https://api.crowdin.com/api/v2"
    TRANSLATION_MEMORY_TTL_SECONDS: int = 15 * 60
    TRANSLATION_MEMORY_POLL_INTERVAL: float = 1.0
    TRANSLATION_MEMORY_MAX_POLLS: int = 60

    # Translation chunk cache
    TRANSLATION_CACHE_SIZE: int = 5000
    TRANSLATION_CACHE_TTL_SECONDS: int = 7 * 24 * 3600

    # Retry / fan-out
    RETRY_ATTEMPTS: int = 5
    RETRY_BACKOFF_SECONDS: float = 3.0
    RETRY_MAX_BACKOFF_SECONDS: float = 60.0
    REINDEX_CONCURRENCY: int = 3

    # Administrative flags (defaults; a flag store may override at runtime)
    AUTO_INDEXING: bool = True
    AUTO_TRANSLATION_CONFIRM: bool = False
    TRANSLATION_ENABLED: bool = True
    LLM_CLASSIFICATION_ENABLED: bool = True

    # Alerting
    ALERT_WEBHOOK_URL: str = ""
    ALERT_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.strip().lower() in {"production", "prod"}

    @property
    def NAMESPACE_PREFIX(self) -> str:
        """Prefix applied to every namespace so non-production never touches production indexes."""
        return "" if self.is_production else "test-"

    @classmethod
    def _is_production(cls, info: ValidationInfo) -> bool:
        """Check if ENVIRONMENT indicates production.

        Args:
            info: Validation info containing other field values

        Returns:
            True if environment is production, False otherwise
        """
        raw_env = info.data.get("ENVIRONMENT", "development")
        environment = str(raw_env).strip().lower()
        if environment in {"prod"}:
            environment = "production"
        return environment == "production"

    @field_validator("LID_CONFIDENCE_THRESHOLD")
    @classmethod
    def validate_lid_threshold(cls, v: float) -> float:
        """Validate the local classifier acceptance threshold.

        Raises:
            ValueError: If threshold is outside 0.0-1.0
        """
        if not 0.0 <= v <= 1.0:
            raise ValueError(
                f"LID_CONFIDENCE_THRESHOLD must be between 0.0 and 1.0, got {v}"
            )
        return v

    @field_validator("LLM_CLASSIFICATION_TEMPERATURE")
    @classmethod
    def validate_classification_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(
                f"LLM_CLASSIFICATION_TEMPERATURE must be between 0.0 and 2.0, got {v}"
            )
        return v

    @field_validator("LLM_CLASSIFICATION_MODEL")
    @classmethod
    def validate_classification_model(cls, v: str) -> str:
        """Validate that the model uses the AISuite "provider:model" format.

        Raises:
            ValueError: If the provider prefix is missing
        """
        v = v.strip()
        if ":" not in v:
            raise ValueError(
                f"LLM_CLASSIFICATION_MODEL must use 'provider:model' format, got '{v}'"
            )
        return v

    @field_validator("INDEX_UPSERT_BATCH_SIZE", "REINDEX_CONCURRENCY", "RETRY_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1, got {v}")
        return v

    @field_validator("TRANSLATION_MEMORY_MAX_POLLS")
    @classmethod
    def validate_max_polls(cls, v: int) -> int:
        # A ceiling is mandatory; the build-and-wait loop must terminate.
        if v < 1:
            raise ValueError(f"TRANSLATION_MEMORY_MAX_POLLS must be at least 1, got {v}")
        return v

    @field_validator("QDRANT_URL", "ALERT_WEBHOOK_URL", "CROWDIN_API_URL")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("DEEPL_API_KEY")
    @classmethod
    def validate_deepl_key_in_production(cls, v: str, info: ValidationInfo) -> str:
        """Ensure DEEPL_API_KEY is set in production environments.

        Raises:
            ValueError: If DEEPL_API_KEY is empty in production
        """
        if cls._is_production(info) and not v.strip():
            raise ValueError("DEEPL_API_KEY required in production")
        return v.strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings instance with lazy initialization.

    Settings are only created once on first access, then cached for subsequent calls.

    Returns:
        Settings: Application settings object
    """
    return Settings()


def reset_settings() -> None:
    """Reset the cached settings instance.

    Useful for testing when you need to reload settings with different values.
    """
    get_settings.cache_clear()
