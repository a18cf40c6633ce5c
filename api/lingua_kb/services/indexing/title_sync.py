"""Keeps the fuzzy title index in step with entry lifecycle events.

Runs on every event, independent of the auto-indexing flag and of whether a
vector backend exists, so fuzzy search always sees the canonical titles.
"""

import logging

from lingua_kb.services.indexing.events import (
    EntryCreated,
    EntryDeleted,
    EntryEvent,
    EntryEventChannel,
    EntryUpdated,
)
from lingua_kb.services.rag.fuzzy_index import FuzzyTitleIndex, TitleDocument

logger = logging.getLogger(__name__)


class TitleIndexSync:
    def __init__(self, titles: FuzzyTitleIndex):
        self.titles = titles

    async def handle_event(self, event: EntryEvent) -> None:
        if isinstance(event, EntryDeleted):
            self.titles.remove(event.entry_id)
            logger.debug(f"Removed title of entry {event.entry_id}")
        elif isinstance(event, (EntryCreated, EntryUpdated)):
            entry = event.entry
            self.titles.upsert(
                TitleDocument(
                    id=entry.id, title=entry.title, url=entry.source_url, created_at=entry.created_at
                )
            )
            logger.debug(f"Synced title of entry {entry.id}")
        else:
            raise TypeError(f"Unsupported entry event: {type(event).__name__}")

    def bind(self, channel: EntryEventChannel) -> None:
        channel.subscribe(self.handle_event)
