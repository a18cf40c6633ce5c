"""
Keeps every language namespace in step with the canonical FAQ entries.

Lifecycle events fan out into one translate-and-index run per enabled
language, or one unindex run per enabled or previously populated
namespace. Runs are independent: a failure in one language is logged and
alerted, and never stops the others. There is no cross-language
atomicity; a failed language stays stale until the next edit.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

from lingua_kb.core.exceptions import DisabledError, NotFoundError, ValidationError
from lingua_kb.metrics.indexing_metrics import reindex_language_runs_total
from lingua_kb.models.entry import Entry
from lingua_kb.models.language import LanguageCatalog, LanguageProfile
from lingua_kb.services.alerting.webhook_alert_service import Alert, AlertSink
from lingua_kb.services.feature_flags import (
    AUTO_INDEXING,
    AUTO_TRANSLATION_CONFIRM,
    FeatureFlags,
)
from lingua_kb.services.indexing.confirmation import ConfirmationGate
from lingua_kb.services.indexing.events import (
    EntryCreated,
    EntryDeleted,
    EntryEvent,
    EntryEventChannel,
    EntryUpdated,
)
from lingua_kb.services.rag.interfaces import VectorIndexProtocol
from lingua_kb.services.rag.qdrant_index_store import prepare_records
from lingua_kb.services.retry import RetryExecutor
from lingua_kb.services.translation.translation_pipeline import TranslationPipeline
from lingua_kb.utils.logging import excerpt

logger = logging.getLogger(__name__)

LanguageRef = Union[LanguageProfile, str]


@dataclass
class FanOutReport:
    entry_id: str
    action: str
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class ReindexCoordinator:
    """Translate, index and unindex entries across all enabled languages."""

    def __init__(
        self,
        pipeline: TranslationPipeline,
        index: VectorIndexProtocol,
        catalog: LanguageCatalog,
        flags: FeatureFlags,
        alerts: AlertSink,
        retry: Optional[RetryExecutor] = None,
        gate: Optional[ConfirmationGate] = None,
        concurrency: int = 3,
    ):
        self.pipeline = pipeline
        self.index = index
        self.catalog = catalog
        self.flags = flags
        self.alerts = alerts
        self.retry = retry or RetryExecutor()
        self.concurrency = max(1, concurrency)
        self.gate = gate or ConfirmationGate(
            cost_estimator=pipeline.estimate_cost,
            language_count=len(catalog.enabled(with_source=False)),
        )
        if self.gate.on_accept is None:
            self.gate.on_accept = self.translate_and_index_entry_all_languages

    def _profile(self, language: LanguageRef) -> LanguageProfile:
        if isinstance(language, LanguageProfile):
            return language
        profile = self.catalog.get(language)
        if profile is None:
            raise NotFoundError("language", language)
        return profile

    async def translate_and_index_entry(self, entry: Entry, language: LanguageRef) -> int:
        """Index ``entry`` into one language namespace; returns records written.

        The source language is indexed as-is, every other language is
        translated first. Records of parts the entry no longer has are
        removed after the upsert.
        """
        profile = self._profile(language)
        namespace = self.index.resolve_namespace(profile.code)
        logger.info(f"Indexing entry {entry.id} into {namespace} (action=UPSERT)")

        translated = None if profile.is_source else await self.pipeline.translate(entry, profile)
        records = prepare_records(entry, translated)
        written = await self.retry.run(
            self.index.upsert, records, namespace, label="index.upsert"
        )
        await self._delete(entry.id, namespace, keep_ids=[record.id for record in records])
        return written

    async def _delete(self, entry_id: str, namespace: str, keep_ids: Sequence[str] = ()) -> None:
        try:
            await self.retry.run(
                self.index.delete_by_entry_id, entry_id, namespace, keep_ids, label="index.delete"
            )
        except NotFoundError:
            # Nothing was indexed there in the first place
            logger.info(f"Entry {entry_id} was not indexed in {namespace}")

    async def unindex_entry(self, entry_id: str, language: LanguageRef) -> None:
        profile = self._profile(language)
        namespace = self.index.resolve_namespace(profile.code)
        logger.info(f"Unindexing entry {entry_id} from {namespace} (action=DELETE)")
        await self._delete(entry_id, namespace)

    async def _unindex_targets(self) -> Dict[str, str]:
        """Language label to namespace, for enabled and previously populated namespaces.

        Populated namespaces that map to no catalog profile are labelled with
        the namespace name itself.
        """
        targets = {
            profile.code: self.index.resolve_namespace(profile.code)
            for profile in self.catalog.enabled(with_source=True)
        }
        try:
            populated = await self.retry.run(self.index.populated_namespaces, label="index.list")
        except Exception as e:
            logger.warning(f"Could not list populated namespaces; unindexing enabled languages only: {e}")
            return targets

        by_namespace = {self.index.resolve_namespace(p.code): p.code for p in self.catalog.profiles}
        known = set(targets.values())
        for namespace in populated:
            if namespace not in known:
                targets[by_namespace.get(namespace, namespace)] = namespace
        return targets

    async def _fan_out(
        self,
        entry_id: str,
        action: str,
        runs: Dict[str, Callable[[], Awaitable[object]]],
        context: Dict[str, str],
    ) -> FanOutReport:
        report = FanOutReport(entry_id=entry_id, action=action)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(language: str, run: Callable[[], Awaitable[object]]) -> None:
            async with semaphore:
                try:
                    await run()
                except DisabledError as e:
                    report.failed[language] = e.detail
                    reindex_language_runs_total.labels(action=action, outcome="disabled").inc()
                    logger.warning(f"{action} of entry {entry_id} skipped for {language}: {e.detail}")
                    return
                except ValidationError as e:
                    report.failed[language] = e.detail
                    reindex_language_runs_total.labels(action=action, outcome="invalid").inc()
                    logger.warning(f"{action} of entry {entry_id} skipped for {language}: {e.detail}")
                    return
                except Exception as e:
                    report.failed[language] = str(e)
                    reindex_language_runs_total.labels(action=action, outcome="failed").inc()
                    logger.exception(f"{action} of entry {entry_id} failed for {language}")
                    await self.alerts.send_alert(
                        Alert(
                            summary=f"Failed to {action.lower()} entry {entry_id} in {language}",
                            context={**context, "language": language, "error": str(e)},
                        )
                    )
                    return
                report.succeeded.append(language)
                reindex_language_runs_total.labels(action=action, outcome="succeeded").inc()

        await asyncio.gather(*(run_one(language, run) for language, run in runs.items()))
        logger.info(
            f"{action} of entry {entry_id}: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed"
        )
        return report

    async def translate_and_index_entry_all_languages(self, entry: Entry) -> FanOutReport:
        logger.info(f"Indexing entry {entry.id} '{excerpt(entry.title)}' in all languages")
        return await self._fan_out(
            entry.id,
            "UPSERT",
            {
                profile.code: functools.partial(self.translate_and_index_entry, entry, profile)
                for profile in self.catalog.enabled(with_source=True)
            },
            {"entry_id": entry.id, "title": excerpt(entry.title)},
        )

    async def unindex_entry_all_languages(self, entry_id: str) -> FanOutReport:
        """Remove the entry from every enabled or previously populated namespace."""
        logger.info(f"Unindexing entry {entry_id} in all languages")
        targets = await self._unindex_targets()
        return await self._fan_out(
            entry_id,
            "DELETE",
            {
                language: functools.partial(self._delete, entry_id, namespace)
                for language, namespace in targets.items()
            },
            {"entry_id": entry_id},
        )

    async def handle_event(self, event: EntryEvent) -> Optional[FanOutReport]:
        """React to one lifecycle event.

        Returns the fan-out report, or None when nothing was run (flag off,
        confirmation pending, or an update that touched neither name nor body).
        """
        if not self.flags.is_enabled(AUTO_INDEXING):
            logger.info(f"Auto-indexing is disabled; ignoring {type(event).__name__}")
            return None

        if isinstance(event, EntryCreated):
            return await self.translate_and_index_entry_all_languages(event.entry)

        if isinstance(event, EntryDeleted):
            return await self.unindex_entry_all_languages(event.entry_id)

        if isinstance(event, EntryUpdated):
            if event.content_changed and self.flags.is_enabled(AUTO_TRANSLATION_CONFIRM):
                await self.gate.request(event.entry, event.previous)
                return None
            if event.name_changed or event.content_changed:
                return await self.translate_and_index_entry_all_languages(event.entry)
            logger.debug(f"Entry {event.entry.id} updated without name or content change")
            return None

        raise TypeError(f"Unsupported entry event: {type(event).__name__}")


    def bind(self, channel: EntryEventChannel) -> None:
        channel.subscribe(self.handle_event)
