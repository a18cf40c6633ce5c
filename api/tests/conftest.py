"""
Pytest configuration and fixtures for the lingua-kb test suite.

This module provides:
- Test settings with an isolated, non-production environment
- In-memory fakes for the translation provider and the vector index
- Entry factories for common test scenarios
"""

from typing import Dict, List, Optional, Sequence

import pytest
from lingua_kb.core.config import Settings
from lingua_kb.core.exceptions import NotFoundError, UpstreamTranslationError
from lingua_kb.models.entry import Entry, EntryPart, IndexRecord
from lingua_kb.models.language import LanguageCatalog
from lingua_kb.services.feature_flags import SettingsFeatureFlags
from lingua_kb.services.rag.interfaces import VectorHit
from lingua_kb.services.retry import RetryExecutor


class FakeTranslationProvider:
    """Prefixes every text with its target code; can fail for chosen targets."""

    def __init__(self, fail_targets: Optional[Dict[str, int]] = None):
        # target code -> number of calls that should still fail
        self.fail_targets = dict(fail_targets or {})
        self.calls: List[tuple] = []
        self.glossaries: Dict[str, Dict[str, str]] = {}
        self.usage = 1234

    async def translate_texts(self, texts: List[str], target_code: str) -> List[str]:
        self.calls.append((list(texts), target_code))
        remaining = self.fail_targets.get(target_code, 0)
        if remaining:
            self.fail_targets[target_code] = remaining - 1
            raise UpstreamTranslationError(f"{target_code} unavailable")
        return [f"[{target_code}] {text}" for text in texts]

    async def update_glossary(self, pairs: Dict[str, str], target_code: str) -> None:
        self.glossaries[target_code] = dict(pairs)

    async def get_usage(self) -> int:
        return self.usage


class FakeIndex:
    """In-memory vector index keyed by namespace then record id."""

    def __init__(self, prefix: str = "test-faq-index-"):
        self.prefix = prefix
        self.namespaces: Dict[str, Dict[str, IndexRecord]] = {}
        self.hits: List[VectorHit] = []
        self.search_error: Optional[Exception] = None
        self.fail_namespaces: Dict[str, Exception] = {}
        self.search_calls: List[tuple] = []
        self.delete_calls: List[tuple] = []

    def resolve_namespace(self, language_code: str) -> str:
        return f"{self.prefix}{language_code}"

    async def upsert(self, records: Sequence[IndexRecord], namespace: str) -> int:
        if namespace in self.fail_namespaces:
            raise self.fail_namespaces[namespace]
        bucket = self.namespaces.setdefault(namespace, {})
        for record in records:
            bucket[record.id] = record
        return len(records)

    async def delete_by_entry_id(
        self, entry_id: str, namespace: str, keep_ids: Sequence[str] = ()
    ) -> None:
        self.delete_calls.append((entry_id, namespace, tuple(keep_ids)))
        if namespace not in self.namespaces:
            raise NotFoundError("collection", namespace)
        bucket = self.namespaces[namespace]
        stale = [rid for rid, rec in bucket.items() if rec.entry_id == entry_id and rid not in keep_ids]
        for record_id in stale:
            del bucket[record_id]

    async def populated_namespaces(self) -> List[str]:
        return sorted(self.namespaces)

    async def search(self, query: str, namespace: str, top_k: int = 20) -> List[VectorHit]:
        self.search_calls.append((query, namespace, top_k))
        if self.search_error is not None:
            raise self.search_error
        return list(self.hits[:top_k])


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an isolated test environment (``test-`` namespaces, no waits)."""
    return Settings(
        ENVIRONMENT="testing",
        OPENAI_API_KEY="test-api-key",
        DEEPL_API_KEY="test-deepl-key",
        QDRANT_COLLECTION="faq-index",
        RETRY_ATTEMPTS=3,
        RETRY_BACKOFF_SECONDS=0.0,
        RETRY_MAX_BACKOFF_SECONDS=0.0,
        ALERT_WEBHOOK_URL="",
    )


@pytest.fixture
def catalog() -> LanguageCatalog:
    return LanguageCatalog()


@pytest.fixture
def flags(test_settings) -> SettingsFeatureFlags:
    return SettingsFeatureFlags(test_settings)


@pytest.fixture
def fast_retry() -> RetryExecutor:
    """Retry executor with three attempts and no backoff."""
    return RetryExecutor(attempts=3, backoff_seconds=0.0, max_backoff_seconds=0.0)


@pytest.fixture
def fake_provider() -> FakeTranslationProvider:
    return FakeTranslationProvider()


@pytest.fixture
def fake_index() -> FakeIndex:
    return FakeIndex()


@pytest.fixture
def make_entry():
    """Factory for entries; pass several bodies for a multi-part entry."""

    def _make(entry_id: str = "t1", title: str = "How do I reroll?", *bodies: str, **kwargs) -> Entry:
        contents = bodies or ("Open the forge.\nPick a rune.",)
        parts = [EntryPart(id=f"p{i}", content=body) for i, body in enumerate(contents)]
        return Entry(id=entry_id, title=title, parts=parts, **kwargs)

    return _make
