"""Translation pipeline for FAQ entries.

Orchestrates the kill-switch, template-token protection, line chunking,
caching and retries around a ``TranslationProvider``.
"""

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from lingua_kb.core.exceptions import DisabledError, LinguaKBError, ValidationError
from lingua_kb.metrics.translation_metrics import (
    translation_cache_total,
    translation_characters_total,
    translation_errors_total,
    translation_operation_duration_seconds,
    translation_requests_total,
)
from lingua_kb.models.entry import Entry, EntryPart, TranslatedEntry
from lingua_kb.models.language import LanguageProfile, TranslationMemoryItem
from lingua_kb.services.feature_flags import TRANSLATION, FeatureFlags
from lingua_kb.services.retry import RetryExecutor
from lingua_kb.services.translation.cache import TTLCache
from lingua_kb.services.translation.glossary_manager import GlossaryManager, SkippedPair
from lingua_kb.services.translation.providers import TranslationProvider
from lingua_kb.utils.logging import excerpt

logger = logging.getLogger(__name__)

DEFAULT_COST_PER_CHAR = 20 / 1_000_000


@dataclass
class GlossaryUpdateResult:
    target_code: str
    submitted: int = 0
    skipped: List[SkippedPair] = field(default_factory=list)


def split_lines(text: str) -> List[str]:
    """Split text into non-blank lines.

    Providers tend to merge line breaks, which breaks lists; sending one chunk
    per line and rejoining with ``\\n`` keeps the structure.
    """
    return [line for line in (text or "").split("\n") if line.strip()]


class TranslationPipeline:
    """Translate entries into one target language at a time."""

    def __init__(
        self,
        provider: TranslationProvider,
        flags: FeatureFlags,
        retry: Optional[RetryExecutor] = None,
        glossary: Optional[GlossaryManager] = None,
        cache: Optional[TTLCache] = None,
        cost_per_char: float = DEFAULT_COST_PER_CHAR,
        cache_ttl: Optional[float] = None,
    ):
        self.provider = provider
        self.flags = flags
        self.retry = retry or RetryExecutor()
        self.glossary = glossary or GlossaryManager()
        self.cache = cache if cache is not None else TTLCache(maxsize=5000)
        self.cost_per_char = cost_per_char
        self.cache_ttl = cache_ttl

    def ensure_enabled(self) -> None:
        if not self.flags.is_enabled(TRANSLATION):
            raise DisabledError("DeepL")

    @staticmethod
    def _make_cache_key(text: str, target_code: str) -> str:
        content = f"en:{target_code}:{text}"
        return hashlib.md5(content.encode()).hexdigest()

    async def _translate_chunks(self, chunks: Sequence[str], target_code: str) -> List[str]:
        """Translate chunks in one provider request, skipping cached ones."""
        results: List[Optional[str]] = []
        missing: Dict[int, str] = {}
        for index, chunk in enumerate(chunks):
            cached = self.cache.get(self._make_cache_key(chunk, target_code))
            if cached is not None:
                translation_cache_total.labels(outcome="hit").inc()
            else:
                translation_cache_total.labels(outcome="miss").inc()
                missing[index] = chunk
            results.append(cached)

        if missing:
            protected: List[str] = []
            placeholder_maps: List[Dict[str, str]] = []
            for chunk in missing.values():
                text, placeholders = self.glossary.protect_terms(chunk)
                protected.append(text)
                placeholder_maps.append(placeholders)

            translation_requests_total.labels(target_lang=target_code).inc()
            translation_characters_total.labels(target_lang=target_code).inc(
                sum(len(text) for text in protected)
            )
            translated = await self.retry.run(
                self.provider.translate_texts,
                protected,
                target_code,
                label="translation.translate",
            )
            if len(translated) != len(protected):
                raise LinguaKBError(
                    f"Provider returned {len(translated)} chunks for {len(protected)}",
                    error_code="TRANSLATION_CHUNK_MISMATCH",
                )

            unresolved: List[str] = []
            for (index, source), text, placeholders in zip(
                missing.items(), translated, placeholder_maps
            ):
                restored = self.glossary.restore_terms(text, placeholders)
                problems = self.glossary.unresolved_tokens(restored, placeholders)
                if problems:
                    logger.warning(
                        f"Translation to {target_code} mangled template syntax {problems}: "
                        f"'{excerpt(restored)}'"
                    )
                    unresolved.extend(problems)
                    continue
                self.cache.set(self._make_cache_key(source, target_code), restored, ttl=self.cache_ttl)
                results[index] = restored

            if unresolved:
                raise ValidationError(
                    f"Translation to {target_code} left unresolved template syntax: {unresolved}",
                    field="translation",
                )

        return [result or "" for result in results]

    async def _translate_text(self, text: str, target_code: str) -> str:
        return "\n".join(await self._translate_chunks(split_lines(text), target_code))

    async def translate(self, entry: Entry, language: LanguageProfile) -> TranslatedEntry:
        """Translate an entry's title and parts into ``language``.

        Raises:
            DisabledError: If translation is switched off
            UpstreamTranslationError: If the provider keeps failing after retries
            ValidationError: If the provider mangled a template token
        """
        self.ensure_enabled()

        if language.is_source:
            return TranslatedEntry(title=entry.title, parts=list(entry.parts))

        target_code = language.translation_backend_code
        logger.info(
            f"Translating entry {entry.id} '{excerpt(entry.title)}' to {target_code} "
            f"({len(entry.parts)} part(s))"
        )
        start_time = time.time()
        try:
            if entry.is_multi_part:
                title, *contents = await asyncio.gather(
                    self._translate_text(entry.title, target_code),
                    *(self._translate_text(part.content, target_code) for part in entry.parts),
                )
                parts = [
                    EntryPart(id=part.id, content=content)
                    for part, content in zip(entry.parts, contents)
                ]
            else:
                part = entry.parts[0]
                title_chunks = split_lines(entry.title) or [entry.title]
                chunks = [" ".join(title_chunks), *split_lines(part.content)]
                translated = await self._translate_chunks(chunks, target_code)
                title = translated[0]
                parts = [EntryPart(id=part.id, content="\n".join(translated[1:]))]
        except Exception:
            translation_errors_total.labels(target_lang=target_code).inc()
            raise
        finally:
            translation_operation_duration_seconds.labels(target_lang=target_code).observe(
                time.time() - start_time
            )

        return TranslatedEntry(title=title, parts=parts)

    def estimate_cost(self, char_count: int, language_count: int) -> float:
        """Estimated provider cost in EUR for translating ``char_count`` characters."""
        return char_count * language_count * self.cost_per_char

    async def update_glossary(
        self, items: Sequence[TranslationMemoryItem], language: LanguageProfile
    ) -> GlossaryUpdateResult:
        """Push clean translation-memory pairs to the provider glossary."""
        self.ensure_enabled()
        logger.info(f"Updating glossary for {language.code} from {len(items)} strings")

        formatted = self.glossary.format_pairs(items, language.code)
        result = GlossaryUpdateResult(target_code=language.code, skipped=formatted.skipped)
        if not formatted.pairs:
            logger.info(f"No glossary pairs for {language.code}; glossary left unchanged")
            return result

        await self.retry.run(
            self.provider.update_glossary,
            formatted.pairs,
            language.translation_backend_code,
            label="translation.glossary",
        )
        result.submitted = len(formatted.pairs)
        return result

    async def get_usage(self) -> Dict[str, int]:
        characters = await self.retry.run(self.provider.get_usage, label="translation.usage")
        return {"character": characters}
