"""Translation provider adapters.

The pipeline talks to a ``TranslationProvider``; the DeepL adapter maps SDK
errors onto the knowledge base hierarchy so the retry policy can tell
transient failures from permanent ones.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Protocol, runtime_checkable

import deepl
from lingua_kb.core.exceptions import ConfigurationError, UpstreamTranslationError

logger = logging.getLogger(__name__)


@runtime_checkable
class TranslationProvider(Protocol):
    async def translate_texts(self, texts: List[str], target_code: str) -> List[str]:
        """Translate each text from English, preserving order and count."""
        ...

    async def update_glossary(self, pairs: Dict[str, str], target_code: str) -> None:
        ...

    async def get_usage(self) -> int:
        """Characters consumed in the current billing period."""
        ...


class DeepLTranslationProvider:
    """DeepL adapter with informal tone, preserved formatting and glossaries."""

    SOURCE_LANG = "EN"

    def __init__(
        self,
        api_key: str,
        glossary_name: str = "lingua-kb",
        translator: Optional[deepl.Translator] = None,
    ):
        if translator is None and not api_key:
            raise ConfigurationError("DEEPL_API_KEY")
        self.translator = translator if translator is not None else deepl.Translator(api_key)
        self.glossary_name = glossary_name
        self._glossary_ids: Dict[str, str] = {}

    @staticmethod
    def _glossary_lang(target_code: str) -> str:
        # Glossaries are keyed by the bare language, without regional variant
        return target_code.split("-", 1)[0].upper()

    async def _call(self, fn, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except deepl.AuthorizationException as e:
            raise ConfigurationError("DEEPL_API_KEY", f"DeepL rejected the API key: {e}") from e
        except deepl.DeepLException as e:
            raise UpstreamTranslationError(str(e)) from e

    async def translate_texts(self, texts: List[str], target_code: str) -> List[str]:
        if not texts:
            return []
        glossary = self._glossary_ids.get(self._glossary_lang(target_code))
        results = await self._call(
            self.translator.translate_text,
            texts,
            source_lang=self.SOURCE_LANG,
            target_lang=target_code,
            formality="prefer_less",
            preserve_formatting=True,
            split_sentences=deepl.SplitSentences.OFF,
            model_type="quality_optimized",
            glossary=glossary,
        )
        if not isinstance(results, list):
            results = [results]
        return [result.text for result in results]

    async def update_glossary(self, pairs: Dict[str, str], target_code: str) -> None:
        """Replace the glossary for one language pair.

        DeepL glossaries are immutable, so the previous one is deleted after
        the new one is created.
        """
        lang = self._glossary_lang(target_code)
        created = await self._call(
            self.translator.create_glossary,
            f"{self.glossary_name}-{lang.lower()}",
            source_lang=self.SOURCE_LANG,
            target_lang=lang,
            entries=pairs,
        )
        previous = self._glossary_ids.get(lang)
        self._glossary_ids[lang] = created.glossary_id
        logger.info(
            f"DeepL glossary for {lang} replaced with {len(pairs)} entries "
            f"(id={created.glossary_id})"
        )
        if previous:
            try:
                await self._call(self.translator.delete_glossary, previous)
            except UpstreamTranslationError as e:
                logger.warning(f"Failed to delete previous DeepL glossary {previous}: {e}")

    async def get_usage(self) -> int:
        usage = await self._call(self.translator.get_usage)
        character = getattr(usage, "character", None)
        return int(getattr(character, "count", 0) or 0)
