from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

RECORD_ID_PREFIX = "entry#"


class EntryPart(BaseModel):
    id: str
    content: str


class Entry(BaseModel):
    """Canonical FAQ entry as published by the content platform.

    The knowledge base never mutates an entry; it only reacts to change
    notifications about it.
    """

    id: str
    title: str
    parts: List[EntryPart] = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    source_url: str = ""
    created_at: Optional[datetime] = None

    @property
    def content(self) -> str:
        return "\n\n".join(part.content for part in self.parts)

    @property
    def is_multi_part(self) -> bool:
        return len(self.parts) > 1

    @property
    def char_count(self) -> int:
        return len(self.title) + sum(len(part.content) for part in self.parts)


class TranslatedEntry(BaseModel):
    """Title and parts of an entry rendered in one target language."""

    title: str
    parts: List[EntryPart]


def record_id_for(entry_id: str, part_id: str, position: int) -> str:
    """Deterministic record id: ``entry#<id>`` for the first part, ``entry#<id>#<part>`` after."""
    if position == 0:
        return f"{RECORD_ID_PREFIX}{entry_id}"
    return f"{RECORD_ID_PREFIX}{entry_id}#{part_id}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IndexRecord(BaseModel):
    """One retrievable unit per (entry, part, language)."""

    id: str
    entry_id: str
    part_id: str
    question: str
    chunk_text: str  # title + body, used for embedding and reranking
    answer_text: str
    tags: List[str] = Field(default_factory=list)
    source_url: str = ""
    created_at: Optional[datetime] = None
    indexed_at: datetime = Field(default_factory=_utcnow)

    def to_payload(self) -> dict:
        return {
            "record_id": self.id,
            "entry_id": self.entry_id,
            "part_id": self.part_id,
            "entry_question": self.question,
            "chunk_text": self.chunk_text,
            "entry_answer": self.answer_text,
            "entry_tags": list(self.tags),
            "entry_url": self.source_url,
            "entry_date": self.created_at.isoformat() if self.created_at else "",
            "entry_indexed_at": self.indexed_at.isoformat(),
        }
