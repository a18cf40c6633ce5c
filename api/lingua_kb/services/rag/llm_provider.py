"""
LLM Provider for model initialization.

This module handles initialization of the models the knowledge base uses:
- OpenAI embeddings for the vector index
- LLM client using AISuite for language classification
"""

import logging
from typing import Optional

import aisuite as ai
from langchain_openai import OpenAIEmbeddings
from lingua_kb.core.config import Settings
from lingua_kb.core.exceptions import ConfigurationError, LLMProviderError

logger = logging.getLogger(__name__)


class AISuiteLLMWrapper:
    """Single-shot chat completion over an AISuite client."""

    def __init__(
        self, client: ai.Client, model: str, max_tokens: int, temperature: float
    ):
        self.client = client
        self.model_id = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def generate(self, system: str, user: str) -> str:
        """Return the completion text for a system instruction and a user message.

        Raises:
            LLMProviderError: If the provider call fails
        """
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.model_id,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            return (response.choices[0].message.content or "").strip()
        except Exception as e:
            error_msg = (
                f"Failed to invoke LLM (model={self.model_id}, "
                f"prompt_length={len(user)}): {e}"
            )
            logger.exception(error_msg)
            raise LLMProviderError(error_msg) from e


class LLMProvider:
    """Builds the embeddings model and the classification LLM from settings."""

    def __init__(self, settings: Settings, client: Optional[ai.Client] = None):
        self.settings = settings
        self.embeddings: Optional[OpenAIEmbeddings] = None
        self.llm: Optional[AISuiteLLMWrapper] = None
        self.ai_client = client if client is not None else ai.Client()
        logger.info("AISuite client ready for language classification")

    def _validate_openai_api_key(self) -> None:
        if not self.settings.OPENAI_API_KEY:
            logger.error("OpenAI API key is required but not configured")
            raise ConfigurationError(
                "OPENAI_API_KEY",
                "OpenAI API key is required but not configured. "
                "Please set OPENAI_API_KEY in environment variables.",
            )

    def initialize_embeddings(self) -> OpenAIEmbeddings:
        """Build the OpenAI embeddings used by the index store.

        Raises:
            ConfigurationError: If OpenAI API key is not configured
        """
        logger.info(f"Preparing embeddings model {self.settings.EMBEDDING_MODEL}")
        self._validate_openai_api_key()
        self.embeddings = OpenAIEmbeddings(
            api_key=self.settings.OPENAI_API_KEY,
            model=self.settings.EMBEDDING_MODEL,
        )
        logger.info(f"Embeddings model initialized: {self.settings.EMBEDDING_MODEL}")
        return self.embeddings

    def initialize_llm(self) -> AISuiteLLMWrapper:
        """Initialize the classification model using AISuite."""
        logger.info(f"Preparing classification model {self.settings.LLM_CLASSIFICATION_MODEL}")
        if self.settings.LLM_CLASSIFICATION_MODEL.startswith("openai:"):
            self._validate_openai_api_key()
        self.llm = AISuiteLLMWrapper(
            client=self.ai_client,
            model=self.settings.LLM_CLASSIFICATION_MODEL,
            max_tokens=self.settings.LLM_CLASSIFICATION_MAX_TOKENS,
            temperature=self.settings.LLM_CLASSIFICATION_TEMPERATURE,
        )
        logger.info(f"LLM initialized with model: {self.settings.LLM_CLASSIFICATION_MODEL}")
        return self.llm
