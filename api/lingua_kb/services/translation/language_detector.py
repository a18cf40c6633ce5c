"""Language detector with a local model first, then an LLM fallback.

Short chat messages are noisy, so both stages favour false negatives: a
``None`` result always means "do not act".
"""

import asyncio
import logging
import re
from typing import List, Optional, Protocol, Tuple

from lingua_kb.core.exceptions import DisabledError, LinguaKBError
from lingua_kb.metrics.translation_metrics import (
    language_detection_confidence,
    language_detection_total,
)
from lingua_kb.models.language import LanguageCatalog
from lingua_kb.services.feature_flags import LLM_CLASSIFICATION, FeatureFlags
from lingua_kb.services.rag.interfaces import LLMProviderProtocol
from lingua_kb.utils.logging import excerpt

logger = logging.getLogger(__name__)

UNKNOWN_LANGUAGE = "und"
UNSUPPORTED_SENTINEL = "UNSUPPORTED"

URL_PATTERN = re.compile(r"https?://\S+")

# English single-letter shorthands that confuse character n-gram models.
# Tokens that are real words elsewhere ("y" in French, "ur" in Swedish) stay out.
INFORMAL_TOKENS = {
    "u": "you",
    "r": "are",
}
_INFORMAL_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(INFORMAL_TOKENS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)


class LocalLanguageClassifier(Protocol):
    def classify(self, text: str) -> List[Tuple[str, float]]:
        """Return ``(code, probability)`` candidates, best first."""
        ...


class LangdetectClassifier:
    """Local classifier backed by ``langdetect``.

    Seeded so the same input always gets the same answer.
    """

    def __init__(self):
        from langdetect import DetectorFactory, detect_langs
        from langdetect.lang_detect_exception import LangDetectException

        DetectorFactory.seed = 0
        self._detect_langs = detect_langs
        self._error = LangDetectException
        logger.info("Language detector local backend initialized: langdetect")

    def classify(self, text: str) -> List[Tuple[str, float]]:
        try:
            raw = self._detect_langs(text[:2000])
        except self._error:
            # Raised for input without any usable features (digits, emoji)
            return [(UNKNOWN_LANGUAGE, 0.0)]
        return [(item.lang, float(item.prob)) for item in raw]


def normalize_for_detection(text: str) -> str:
    """Strip URLs and expand informal shorthands before classification."""
    without_urls = URL_PATTERN.sub(" ", text or "")
    expanded = _INFORMAL_PATTERN.sub(
        lambda m: INFORMAL_TOKENS[m.group(0).lower()], without_urls
    )
    return re.sub(r"\s+", " ", expanded).strip()


class LanguageDetector:
    """Resolve the language of short user text to a supported profile code."""

    CLASSIFICATION_PROMPT = "\n".join(
        [
            "Return the ISO 639-1 code for the language of the message.",
            "You must respond with one of: {codes}.",
            "Only respond with UNSUPPORTED if there are no recognizable cues whatsoever.",
            "Do not explain your answer. Respond with a single code only.",
        ]
    )

    def __init__(
        self,
        catalog: LanguageCatalog,
        flags: FeatureFlags,
        local_classifier: Optional[LocalLanguageClassifier] = None,
        llm_provider: Optional[LLMProviderProtocol] = None,
        confidence_threshold: float = 0.95,
    ):
        self.catalog = catalog
        self.flags = flags
        self.local = local_classifier
        self.llm = llm_provider
        self.confidence_threshold = max(0.0, min(1.0, confidence_threshold))

    def classify_locally(self, text: str) -> Optional[str]:
        """Stage 1: accept the local model's answer only when it is confident."""
        if self.local is None:
            return None
        normalized = normalize_for_detection(text)
        if not normalized:
            language_detection_total.labels(stage="local", result="empty").inc()
            return None

        candidates = self.local.classify(normalized)
        if not candidates:
            language_detection_total.labels(stage="local", result="unknown").inc()
            return None

        raw_code, probability = candidates[0]
        language_detection_confidence.observe(max(0.0, min(1.0, probability)))

        if raw_code == UNKNOWN_LANGUAGE:
            language_detection_total.labels(stage="local", result="unknown").inc()
            return None
        if probability < self.confidence_threshold:
            language_detection_total.labels(stage="local", result="low_confidence").inc()
            return None

        code = self.catalog.resolve(raw_code)
        if code is None:
            language_detection_total.labels(stage="local", result="unsupported").inc()
            return None

        language_detection_total.labels(stage="local", result="accepted").inc()
        return code

    def classify_with_llm(self, text: str) -> Optional[str]:
        """Stage 2: ask the LLM for one of the supported codes.

        Raises:
            DisabledError: If LLM usage is switched off
        """
        if not self.flags.is_enabled(LLM_CLASSIFICATION):
            raise DisabledError("ChatGPT")
        if self.llm is None:
            return None

        logger.info(f"Guessing language with LLM for '{excerpt(text)}'")
        system = self.CLASSIFICATION_PROMPT.format(codes=",".join(self.catalog.codes))
        try:
            response = (self.llm.generate(system, text) or "").strip()
        except LinguaKBError as e:
            logger.warning(f"LLM language classification failed: {e}")
            language_detection_total.labels(stage="llm", result="error").inc()
            return None

        if not response:
            logger.warning(f"LLM could not guess the language of '{excerpt(text)}'")
            language_detection_total.labels(stage="llm", result="empty").inc()
            return None
        if response.upper() == UNSUPPORTED_SENTINEL:
            logger.warning(f"LLM found no supported language in '{excerpt(text)}'")
            language_detection_total.labels(stage="llm", result="unsupported").inc()
            return None

        # Accept exact vocabulary only; anything else is treated as unsupported
        code = next((c for c in self.catalog.codes if c.lower() == response.lower()), None)
        if code is None:
            logger.warning(
                f"LLM returned an unsupported language '{excerpt(response, 20)}' "
                f"for '{excerpt(text)}'"
            )
            language_detection_total.labels(stage="llm", result="unsupported").inc()
            return None

        language_detection_total.labels(stage="llm", result="accepted").inc()
        return code

    async def guess_language(self, text: str) -> Optional[str]:
        """Local model first, then the LLM when the local model abstains."""
        local = await asyncio.to_thread(self.classify_locally, text)
        if local is not None:
            return local
        return await asyncio.to_thread(self.classify_with_llm, text)

    async def flag_off_topic_language(self, text: str) -> Optional[str]:
        """Return a non-source language code when the local model is confident.

        Runs on every chat message, so it never calls the LLM.
        """
        code = await asyncio.to_thread(self.classify_locally, text)
        if code is None or code == self.catalog.source.code:
            return None
        return code
