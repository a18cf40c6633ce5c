"""Entry lifecycle events published by the content platform adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Union

from lingua_kb.models.entry import Entry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EntryCreated:
    entry: Entry
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class EntryUpdated:
    """An edit of an existing entry.

    ``name_changed`` and ``content_changed`` are independent; an update with
    neither set (tags only, for instance) triggers no reindex.
    """

    entry: Entry
    previous: Optional[Entry] = None
    name_changed: bool = False
    content_changed: bool = False
    occurred_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def between(cls, previous: Entry, current: Entry) -> "EntryUpdated":
        return cls(
            entry=current,
            previous=previous,
            name_changed=previous.title != current.title,
            content_changed=[(p.id, p.content) for p in previous.parts]
            != [(p.id, p.content) for p in current.parts],
        )


@dataclass(frozen=True)
class EntryDeleted:
    entry_id: str
    occurred_at: datetime = field(default_factory=_utcnow)


EntryEvent = Union[EntryCreated, EntryUpdated, EntryDeleted]
EntryEventHandler = Callable[[EntryEvent], Awaitable[None]]


class EntryEventChannel:
    """Explicit subscriber list for entry lifecycle events."""

    def __init__(self) -> None:
        self._subscribers: List[EntryEventHandler] = []

    @property
    def subscribers(self) -> List[EntryEventHandler]:
        return list(self._subscribers)

    def subscribe(self, handler: EntryEventHandler) -> None:
        if handler not in self._subscribers:
            self._subscribers.append(handler)

    def unsubscribe(self, handler: EntryEventHandler) -> None:
        if handler in self._subscribers:
            self._subscribers.remove(handler)

    async def publish(self, event: EntryEvent) -> None:
        """Deliver ``event`` to every subscriber in subscription order.

        A failing subscriber is logged and does not stop delivery to the rest.
        """
        for handler in list(self._subscribers):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    f"Subscriber {getattr(handler, '__qualname__', handler)} failed "
                    f"on {type(event).__name__}"
                )
