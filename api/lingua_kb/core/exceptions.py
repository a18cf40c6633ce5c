"""
Custom exception hierarchy for the multilingual knowledge base.

Every error carries an ``error_code`` so logs, metrics and alerts can group
failures without parsing messages. Whether an error is retried is decided by
its type: only ``TransientUpstreamError`` subclasses are retried.
"""

from typing import Optional


class LinguaKBError(Exception):
    """Base exception for all knowledge base errors."""

    def __init__(self, detail: str, error_code: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.error_code = error_code or self.__class__.__name__


# Upstream (retried) Exceptions


class TransientUpstreamError(LinguaKBError):
    """Raised on network failures, 5xx responses and rate limits from a provider."""

    def __init__(self, service: str, detail: str, error_code: Optional[str] = None):
        # Map to controlled vocabulary to prevent high cardinality
        service_map = {
            "deepl": "DEEPL",
            "qdrant": "QDRANT",
            "crowdin": "CROWDIN",
            "llm": "LLM",
            "embeddings": "EMBEDDINGS",
        }
        normalized_service = service_map.get(service.lower(), "EXTERNAL")
        super().__init__(
            f"{service} error: {detail}",
            error_code=error_code or f"{normalized_service}_UPSTREAM_ERROR",
        )
        self.service = service


class UpstreamTranslationError(TransientUpstreamError):
    """Raised when the translation provider fails."""

    def __init__(self, detail: str):
        super().__init__("deepl", detail, error_code="TRANSLATION_UPSTREAM_ERROR")


class VectorStoreError(TransientUpstreamError):
    """Raised when the vector search provider fails."""

    def __init__(self, detail: str):
        super().__init__("qdrant", detail, error_code="VECTOR_STORE_ERROR")


class LLMProviderError(TransientUpstreamError):
    """Raised when the LLM provider fails."""

    def __init__(self, detail: str):
        super().__init__("llm", detail, error_code="LLM_PROVIDER_ERROR")


class TranslationMemoryError(TransientUpstreamError):
    """Raised when the translation memory bundle cannot be built or fetched."""

    def __init__(self, detail: str):
        super().__init__("crowdin", detail, error_code="TRANSLATION_MEMORY_ERROR")


# Resource Exceptions


class NotFoundError(LinguaKBError):
    """Raised when a resource is not found.

    Delete and unindex paths treat this as a successful no-op.
    """

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            error_code="RESOURCE_NOT_FOUND",
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# Data Validation Exceptions


class ValidationError(LinguaKBError):
    """Raised when a single item fails validation; the surrounding batch continues."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = (
            f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        )
        super().__init__(detail, error_code=error_code)
        self.field = field


# Administrative Exceptions


class DisabledError(LinguaKBError):
    """Raised when a feature is switched off by an administrative flag."""

    def __init__(self, feature: str):
        super().__init__(
            f"{feature} usage is disabled; aborting.",
            error_code=f"{feature.upper()}_DISABLED",
        )
        self.feature = feature


class ConfigurationError(LinguaKBError):
    """Raised at construction time when a required credential or setting is missing."""

    def __init__(self, setting: str, detail: Optional[str] = None):
        super().__init__(
            detail or f"Missing required setting {setting}; aborting.",
            error_code="CONFIGURATION_ERROR",
        )
        self.setting = setting
