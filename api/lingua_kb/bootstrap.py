"""Composition root.

Builds every component from settings with explicit constructor injection.
Any collaborator can be passed in pre-built, which is how tests and
alternative deployments swap backends.

Example:
    kb = build_knowledge_base(get_settings(), entries=current_entries)
    await kb.channel.publish(EntryCreated(entry))
    response = await kb.search("how do I reroll", SearchMode.VECTOR, "fr")
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from langchain_core.embeddings import Embeddings
from lingua_kb.core.config import Settings, get_settings
from lingua_kb.core.exceptions import ConfigurationError
from lingua_kb.models.entry import Entry
from lingua_kb.models.language import LanguageCatalog
from lingua_kb.models.search import SearchMode, SearchResponse
from lingua_kb.services.alerting.webhook_alert_service import AlertSink, WebhookAlertService
from lingua_kb.services.feature_flags import FeatureFlags, SettingsFeatureFlags
from lingua_kb.services.indexing.confirmation import ConfirmationGate, ConfirmationNotifier
from lingua_kb.services.indexing.events import EntryEventChannel
from lingua_kb.services.indexing.reindex_coordinator import ReindexCoordinator
from lingua_kb.services.indexing.title_sync import TitleIndexSync
from lingua_kb.services.rag.fuzzy_index import AliasTable, FuzzyTitleIndex, TitleDocument
from lingua_kb.services.rag.interfaces import (
    LLMProviderProtocol,
    RerankerProtocol,
    VectorIndexProtocol,
)
from lingua_kb.services.rag.llm_provider import LLMProvider
from lingua_kb.services.rag.qdrant_index_store import QdrantIndexStore
from lingua_kb.services.rag.retrieval_engine import RetrievalEngine
from lingua_kb.services.rag.reranker import CrossEncoderReranker
from lingua_kb.services.retry import RetryExecutor
from lingua_kb.services.translation.cache import TTLCache
from lingua_kb.services.translation.language_detector import (
    LangdetectClassifier,
    LanguageDetector,
    LocalLanguageClassifier,
)
from lingua_kb.services.translation.providers import (
    DeepLTranslationProvider,
    TranslationProvider,
)
from lingua_kb.services.translation.translation_memory import TranslationMemoryClient
from lingua_kb.services.translation.translation_pipeline import (
    GlossaryUpdateResult,
    TranslationPipeline,
)

logger = logging.getLogger(__name__)


@dataclass
class KnowledgeBase:
    """Wired components plus the query-side entry points."""

    settings: Settings
    catalog: LanguageCatalog
    flags: FeatureFlags
    channel: EntryEventChannel
    titles: FuzzyTitleIndex
    detector: LanguageDetector
    engine: RetrievalEngine
    pipeline: Optional[TranslationPipeline] = None
    coordinator: Optional[ReindexCoordinator] = None
    translation_memory: Optional[TranslationMemoryClient] = None

    async def search(
        self, query: str, mode: SearchMode, namespace: str, limit: int = 1
    ) -> SearchResponse:
        return await self.engine.search(query, mode, namespace, limit)

    async def guess_language(self, text: str) -> Optional[str]:
        return await self.detector.guess_language(text)

    async def refresh_glossaries(self, force_refresh: bool = False) -> List[GlossaryUpdateResult]:
        """Rebuild the provider glossary of every target language from the translation memory."""
        if self.translation_memory is None or self.pipeline is None:
            raise ConfigurationError(
                "CROWDIN_TOKEN", "Glossary refresh needs translation memory and translation provider"
            )
        items = await self.translation_memory.fetch_all_translations(force_refresh=force_refresh)
        results = []
        for profile in self.catalog.enabled(with_source=False):
            results.append(await self.pipeline.update_glossary(items, profile))
        return results


def build_knowledge_base(
    settings: Optional[Settings] = None,
    *,
    entries: Optional[Iterable[Entry]] = None,
    flags: Optional[FeatureFlags] = None,
    translation_provider: Optional[TranslationProvider] = None,
    embeddings: Optional[Embeddings] = None,
    index: Optional[VectorIndexProtocol] = None,
    reranker: Optional[RerankerProtocol] = None,
    llm: Optional[LLMProviderProtocol] = None,
    local_classifier: Optional[LocalLanguageClassifier] = None,
    alerts: Optional[AlertSink] = None,
    notifier: Optional[ConfirmationNotifier] = None,
) -> KnowledgeBase:
    """Build the knowledge base.

    Components whose credentials are missing are left out with a warning:
    no vector credentials means fuzzy-only search and no indexing, no
    translation credentials means no indexing.
    """
    settings = settings or get_settings()
    catalog = LanguageCatalog()
    flags = flags or SettingsFeatureFlags(settings)
    retry = RetryExecutor.from_settings(settings)
    alerts = alerts or WebhookAlertService(settings.ALERT_WEBHOOK_URL, settings.ALERT_TIMEOUT_SECONDS)

    titles = FuzzyTitleIndex(
        TitleDocument(id=e.id, title=e.title, url=e.source_url, created_at=e.created_at)
        for e in (entries or [])
    )

    needs_openai = index is None or llm is None
    llm_provider = LLMProvider(settings) if needs_openai and settings.OPENAI_API_KEY else None

    if index is None and settings.VECTOR_SEARCH_ENABLED:
        if embeddings is None and llm_provider is not None:
            embeddings = llm_provider.initialize_embeddings()
        if embeddings is not None:
            index = QdrantIndexStore(settings, embeddings)
        else:
            logger.warning("No embeddings configured; vector search and indexing disabled")

    if index is not None and reranker is None:
        reranker = CrossEncoderReranker(settings.RERANK_MODEL)

    if llm is None and llm_provider is not None:
        llm = llm_provider.initialize_llm()

    detector = LanguageDetector(
        catalog=catalog,
        flags=flags,
        local_classifier=local_classifier or LangdetectClassifier(),
        llm_provider=llm,
        confidence_threshold=settings.LID_CONFIDENCE_THRESHOLD,
    )
    engine = RetrievalEngine(titles=titles, index=index, reranker=reranker, aliases=AliasTable())

    if translation_provider is None and settings.DEEPL_API_KEY:
        translation_provider = DeepLTranslationProvider(
            settings.DEEPL_API_KEY, glossary_name=settings.DEEPL_GLOSSARY_NAME
        )

    pipeline = None
    if translation_provider is not None:
        pipeline = TranslationPipeline(
            provider=translation_provider,
            flags=flags,
            retry=retry,
            cache=TTLCache(maxsize=settings.TRANSLATION_CACHE_SIZE),
            cost_per_char=settings.DEEPL_COST_PER_CHAR,
            cache_ttl=settings.TRANSLATION_CACHE_TTL_SECONDS,
        )
    else:
        logger.warning("No translation provider configured; indexing disabled")

    coordinator = None
    if pipeline is not None and index is not None:
        gate = ConfirmationGate(
            cost_estimator=pipeline.estimate_cost,
            language_count=len(catalog.enabled(with_source=False)),
            notifier=notifier,
        )
        coordinator = ReindexCoordinator(
            pipeline=pipeline,
            index=index,
            catalog=catalog,
            flags=flags,
            alerts=alerts,
            retry=retry,
            gate=gate,
            concurrency=settings.REINDEX_CONCURRENCY,
        )

    translation_memory = None
    if settings.CROWDIN_TOKEN and settings.CROWDIN_PROJECT_ID:
        translation_memory = TranslationMemoryClient.from_settings(settings, retry=retry)

    channel = EntryEventChannel()
    TitleIndexSync(titles).bind(channel)
    if coordinator is not None:
        coordinator.bind(channel)

    logger.info(
        f"Knowledge base ready (vector={'on' if index is not None else 'off'}, "
        f"indexing={'on' if coordinator is not None else 'off'}, "
        f"languages={len(catalog.enabled())})"
    )
    return KnowledgeBase(
        settings=settings,
        catalog=catalog,
        flags=flags,
        channel=channel,
        titles=titles,
        detector=detector,
        engine=engine,
        pipeline=pipeline,
        coordinator=coordinator,
        translation_memory=translation_memory,
    )
