"""Human confirmation gate for costly retranslations.

When enabled, content edits do not fan out immediately. An estimate (cost,
languages, word diff) is handed to a notifier and the reindex waits for an
explicit accept or skip. Pending confirmations do not expire on their own.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from lingua_kb.metrics.indexing_metrics import reindex_confirmations_total
from lingua_kb.models.entry import Entry

logger = logging.getLogger(__name__)

_TOKENS = re.compile(r"\s+|[^\s]+")


def word_diff(old: str, new: str) -> str:
    """Render a word-level diff with **added** and ~~removed~~ markup."""
    old_tokens = _TOKENS.findall(old or "")
    new_tokens = _TOKENS.findall(new or "")
    matcher = SequenceMatcher(None, old_tokens, new_tokens, autojunk=False)

    rendered: List[str] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        removed = "".join(old_tokens[i1:i2])
        added = "".join(new_tokens[j1:j2])
        if tag == "equal":
            rendered.append(added)
            continue
        if tag in ("delete", "replace") and removed:
            rendered.append(f"~~{removed}~~")
        if tag in ("insert", "replace") and added:
            rendered.append(f"**{added}**")
    return "".join(rendered)


@dataclass
class ReindexEstimate:
    entry_id: str
    title: str
    language_count: int  # Target languages, source excluded
    char_count: int
    estimated_cost: float  # EUR
    diff: str = ""

    def format_message(self) -> str:
        lines = [
            "You have edited a FAQ entry. Do you want to automatically translate it "
            "in all supported languages and reindex it?",
            f"- Entry: _“{self.title}”_",
            f"- Language count: {self.language_count:,} (w/o English)",
            f"- Character count: {self.char_count:,}",
            f"- **Total cost:** €{self.estimated_cost:,.2f}",
        ]
        if self.diff:
            lines.append("> " + self.diff.replace("\n", "\n> "))
        return "\n".join(lines)


@dataclass
class PendingConfirmation:
    entry: Entry
    estimate: ReindexEstimate
    requested_at: float = field(default_factory=time.monotonic)


class ConfirmationNotifier(Protocol):
    async def notify(self, estimate: ReindexEstimate) -> None:
        ...


class LoggingConfirmationNotifier:
    """Notifier that only logs; used when no chat surface is wired."""

    async def notify(self, estimate: ReindexEstimate) -> None:
        logger.info(
            f"Reindex of entry {estimate.entry_id} awaiting confirmation "
            f"(estimated €{estimate.estimated_cost:,.2f})"
        )


class ConfirmationGate:
    """Tracks retranslations awaiting a human decision, one per entry."""

    def __init__(
        self,
        cost_estimator: Callable[[int, int], float],
        language_count: int,
        notifier: Optional[ConfirmationNotifier] = None,
        on_accept: Optional[Callable[[Entry], Awaitable[Any]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cost_estimator = cost_estimator
        self.language_count = language_count
        self.notifier = notifier or LoggingConfirmationNotifier()
        self.on_accept = on_accept
        self.clock = clock
        self._pending: Dict[str, PendingConfirmation] = {}

    @property
    def pending(self) -> Dict[str, PendingConfirmation]:
        return dict(self._pending)

    def estimate(self, entry: Entry, previous: Optional[Entry] = None) -> ReindexEstimate:
        char_count = entry.char_count
        return ReindexEstimate(
            entry_id=entry.id,
            title=entry.title,
            language_count=self.language_count,
            char_count=char_count,
            estimated_cost=self.cost_estimator(char_count, self.language_count),
            # Without the previous version there is nothing to diff against
            diff=word_diff(previous.content, entry.content) if previous else "",
        )

    async def request(self, entry: Entry, previous: Optional[Entry] = None) -> ReindexEstimate:
        """Record a pending confirmation and notify; a newer edit replaces an older one."""
        estimate = self.estimate(entry, previous)
        self._pending[entry.id] = PendingConfirmation(
            entry=entry, estimate=estimate, requested_at=self.clock()
        )
        reindex_confirmations_total.labels(decision="requested").inc()
        logger.info(f"Asking for translation confirmation of entry {entry.id}")
        try:
            await self.notifier.notify(estimate)
        except Exception:
            logger.exception(f"Failed to deliver confirmation request for entry {entry.id}")
        return estimate

    async def accept(self, entry_id: str) -> Any:
        """Run the reindex for a pending entry. Unknown ids are logged and ignored."""
        if self.on_accept is None:
            raise RuntimeError("ConfirmationGate has no reindex callback bound")
        pending = self._pending.pop(entry_id, None)
        if pending is None:
            logger.warning(f"No pending confirmation for entry {entry_id}")
            return None
        reindex_confirmations_total.labels(decision="accepted").inc()
        logger.info(f"Retranslation of entry {entry_id} confirmed")
        return await self.on_accept(pending.entry)

    def skip(self, entry_id: str) -> bool:
        pending = self._pending.pop(entry_id, None)
        if pending is None:
            return False
        reindex_confirmations_total.labels(decision="skipped").inc()
        logger.info(f"Retranslation of entry {entry_id} skipped")
        return True

    def expire_older_than(self, seconds: float) -> List[str]:
        """Drop confirmations pending for longer than ``seconds``; returns their entry ids."""
        cutoff = self.clock() - seconds
        expired = [
            entry_id
            for entry_id, pending in self._pending.items()
            if pending.requested_at < cutoff
        ]
        for entry_id in expired:
            del self._pending[entry_id]
            reindex_confirmations_total.labels(decision="expired").inc()
        if expired:
            logger.info(f"Expired {len(expired)} pending confirmation(s)")
        return expired
