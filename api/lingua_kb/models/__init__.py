from lingua_kb.models.entry import (
    RECORD_ID_PREFIX,
    Entry,
    EntryPart,
    IndexRecord,
    TranslatedEntry,
    record_id_for,
)
from lingua_kb.models.language import (
    LANGUAGE_PROFILES,
    SOURCE_LANGUAGE_CODE,
    LanguageCatalog,
    LanguageProfile,
    TranslationMemoryItem,
)
from lingua_kb.models.search import (
    SearchMode,
    SearchResponse,
    SearchResult,
    SearchResultFields,
)

__all__ = [
    "Entry",
    "EntryPart",
    "IndexRecord",
    "LANGUAGE_PROFILES",
    "LanguageCatalog",
    "LanguageProfile",
    "RECORD_ID_PREFIX",
    "SOURCE_LANGUAGE_CODE",
    "SearchMode",
    "SearchResponse",
    "SearchResult",
    "SearchResultFields",
    "TranslatedEntry",
    "TranslationMemoryItem",
    "record_id_for",
]
