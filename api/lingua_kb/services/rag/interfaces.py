"""
Protocol interfaces for the retrieval side of the knowledge base.

Backends (vector index, reranker, LLM) are consumed through these Protocols so
the retrieval engine and the reindex coordinator never import a concrete SDK.

Usage:
    class MyIndex(VectorIndexProtocol):
        async def search(self, query: str, namespace: str, top_k: int = 20) -> List[VectorHit]:
            ...
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence, runtime_checkable

from lingua_kb.models.entry import IndexRecord


@dataclass
class VectorHit:
    """Raw hit returned by the vector index, before reranking.

    Attributes:
        id: Record id (``entry#<id>`` or ``entry#<id>#<part>``)
        score: Similarity score from the vector backend
        payload: Stored record payload (question, answer, tags, ...)
    """

    id: str
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def question(self) -> str:
        return self.payload.get("entry_question", "")

    @property
    def chunk_text(self) -> str:
        return self.payload.get("chunk_text", "")


@runtime_checkable
class VectorIndexProtocol(Protocol):
    """Protocol for per-namespace vector indexes."""

    def resolve_namespace(self, language_code: str) -> str:
        """Map a language profile code to its namespace name."""
        ...

    async def upsert(self, records: Sequence[IndexRecord], namespace: str) -> int:
        """Insert or overwrite records; returns the number of records written."""
        ...

    async def delete_by_entry_id(
        self, entry_id: str, namespace: str, keep_ids: Sequence[str] = ()
    ) -> None:
        """Remove the records of an entry, sparing ``keep_ids``. Unknown entries are a no-op."""
        ...

    async def search(self, query: str, namespace: str, top_k: int = 20) -> List[VectorHit]:
        """Dense search returning up to ``top_k`` raw hits."""
        ...

    async def populated_namespaces(self) -> List[str]:
        """Namespaces of this index that currently exist in the backend."""
        ...


@runtime_checkable
class RerankerProtocol(Protocol):
    """Protocol for second-stage rerankers.

    Rerankers take initial retrieval results and rescore them against the
    query; the returned hits carry the reranker's score.
    """

    def rerank(self, query: str, hits: List[VectorHit], top_n: int = 5) -> List[VectorHit]:
        """Rerank hits by relevance to query, returning at most ``top_n``."""
        ...

    def is_loaded(self) -> bool:
        ...


@runtime_checkable
class LLMProviderProtocol(Protocol):
    """Protocol for single-shot chat completions."""

    def generate(self, system: str, user: str) -> str:
        """Return the completion text for a system instruction and user message."""
        ...
