"""Fuzzy title matching over FAQ entry titles.

Distances run from 0.0 (perfect match) to 1.0 (no match). A query matches a
title through its best-aligned substring, so "pvp" finds "How does PvP
matchmaking work?" regardless of where the word sits.
"""

import logging
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from difflib import SequenceMatcher
from typing import Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ALIASES: List[Tuple[str, str]] = [
    ("error token", "invalid token error"),
    ("floating", "extra weapon mastery point"),
    ("additional skill points", "extra weapon mastery point"),
    ("guide", "getting started as a beginner"),
    ("augmentation", "reroll rank power"),
    ("afk farm", "AFK/idle"),
    ("newbie", "beginner"),
]


def fold(text: str) -> str:
    """Lowercase and strip diacritics."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


def fuzzy_distance(query: str, target: str) -> float:
    """Distance between ``query`` and the best-matching substring of ``target``.

    Both inputs are expected to be folded already.
    """
    if not query or not target:
        return 1.0
    shorter, longer = (query, target) if len(query) <= len(target) else (target, query)

    matcher = SequenceMatcher(None, shorter, longer, autojunk=False)
    best = 0.0
    for block in matcher.get_matching_blocks():
        start = max(block.b - block.a, 0)
        window = longer[start : start + len(shorter)]
        ratio = SequenceMatcher(None, shorter, window, autojunk=False).ratio()
        if ratio > best:
            best = ratio
            if best == 1.0:
                break

    # Penalise queries much longer than the title they are compared with
    if len(query) > len(target):
        best *= len(target) / len(query)
    return round(1.0 - best, 6)


@dataclass
class TitleDocument:
    id: str
    title: str
    url: str = ""
    created_at: Optional[datetime] = None


@dataclass
class FuzzyMatch(Generic[T]):
    item: T
    distance: float


class _FuzzyCollection(Generic[T]):
    def __init__(self, min_match_char_length: int = 3):
        self.min_match_char_length = min_match_char_length

    def _rank(self, keyword: str, candidates: Iterable[Tuple[str, T]]) -> List[FuzzyMatch[T]]:
        folded = fold(keyword)
        if len(folded) < self.min_match_char_length:
            return []
        matches = [
            FuzzyMatch(item=item, distance=fuzzy_distance(folded, fold(key)))
            for key, item in candidates
        ]
        matches = [match for match in matches if match.distance < 1.0]
        matches.sort(key=lambda match: match.distance)
        return matches


class FuzzyTitleIndex(_FuzzyCollection[TitleDocument]):
    """In-memory title index kept in sync with entry lifecycle events."""

    def __init__(self, documents: Optional[Iterable[TitleDocument]] = None, min_match_char_length: int = 3):
        super().__init__(min_match_char_length)
        self._documents: Dict[str, TitleDocument] = {}
        if documents:
            self.replace(documents)

    def __len__(self) -> int:
        return len(self._documents)

    def replace(self, documents: Iterable[TitleDocument]) -> None:
        self._documents = {doc.id: doc for doc in documents}
        logger.info(f"Fuzzy title index loaded with {len(self._documents)} titles")

    def upsert(self, document: TitleDocument) -> None:
        self._documents[document.id] = document

    def remove(self, document_id: str) -> None:
        self._documents.pop(document_id, None)

    def search(self, keyword: str) -> List[FuzzyMatch[TitleDocument]]:
        return self._rank(keyword, ((doc.title, doc) for doc in self._documents.values()))


class AliasTable(_FuzzyCollection[str]):
    """Hand-maintained keyword aliases for common gaps in titles."""

    def __init__(self, aliases: Optional[Iterable[Tuple[str, str]]] = None, min_match_char_length: int = 3):
        super().__init__(min_match_char_length)
        self.aliases = list(aliases if aliases is not None else DEFAULT_ALIASES)

    def search(self, keyword: str) -> List[FuzzyMatch[str]]:
        """Match ``keyword`` against alias sources; items are the alias targets."""
        return self._rank(keyword, self.aliases)
