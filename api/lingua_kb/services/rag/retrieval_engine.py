"""
Hybrid retrieval over the per-language indexes.

Vector search with cross-encoder reranking is the primary path; fuzzy title
matching is the fallback when the vector backend is missing or fails. Both
paths are normalised into the same ``SearchResponse`` contract.

Relevance filtering always happens on the raw backend score, before
normalisation.
"""

import asyncio
import logging
import time
from typing import List, Optional, Tuple

from lingua_kb.metrics.indexing_metrics import (
    search_duration_seconds,
    search_fallback_total,
    search_requests_total,
)
from lingua_kb.models.entry import RECORD_ID_PREFIX
from lingua_kb.models.search import (
    SearchMode,
    SearchResponse,
    SearchResult,
    SearchResultFields,
)
from lingua_kb.services.rag.fuzzy_index import (
    AliasTable,
    FuzzyMatch,
    FuzzyTitleIndex,
    TitleDocument,
)
from lingua_kb.services.rag.interfaces import (
    RerankerProtocol,
    VectorHit,
    VectorIndexProtocol,
)
from lingua_kb.utils.logging import excerpt

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Answer free-text queries with the best-matching entries of a language."""

    VECTOR_MIN_SCORE = 0.3  # Reranker score must be strictly greater
    FUZZY_MAX_DISTANCE = 0.65  # Fuzzy distance must be at most this
    CANDIDATE_POOL = 20
    RERANK_POOL = 5

    def __init__(
        self,
        titles: FuzzyTitleIndex,
        index: Optional[VectorIndexProtocol] = None,
        reranker: Optional[RerankerProtocol] = None,
        aliases: Optional[AliasTable] = None,
    ):
        """Initialize the retrieval engine.

        Args:
            titles: Fuzzy index over source-language entry titles
            index: Vector index; when None every search runs in fuzzy mode
            reranker: Second-stage reranker; when None raw vector scores are used
            aliases: Keyword aliases tried when a fuzzy search finds nothing
        """
        self.titles = titles
        self.index = index
        self.reranker = reranker
        self.aliases = aliases or AliasTable()

    @property
    def vector_enabled(self) -> bool:
        return self.index is not None

    async def search(
        self,
        query: str,
        mode: SearchMode,
        namespace: str,
        limit: int = 1,
    ) -> SearchResponse:
        """Search one language namespace.

        Vector results may hold fewer than ``limit`` items even when more
        entries exist, because low-scoring hits are dropped.

        Args:
            query: Free-text user query
            mode: VECTOR or FUZZY
            namespace: Language profile code of the namespace to search
            limit: Maximum number of results
        """
        mode = SearchMode(mode)
        if mode is SearchMode.VECTOR and not self.vector_enabled:
            logger.info("Vector backend not configured; using fuzzy search")
            mode = SearchMode.FUZZY

        search_requests_total.labels(mode=mode.value).inc()
        start_time = time.time()
        try:
            if mode is SearchMode.VECTOR:
                try:
                    hits = await self.search_vector(query, namespace, limit)
                except Exception as e:
                    logger.warning(
                        f"Vector search failed for '{excerpt(query)}' in {namespace}; "
                        f"falling back to fuzzy search: {e}"
                    )
                    search_fallback_total.labels(reason=type(e).__name__).inc()
                    return await self.search(query, SearchMode.FUZZY, namespace, limit)

                return SearchResponse(
                    query=query,
                    results=[self.normalize_vector_hit(hit) for hit in hits],
                )

            keyword, matches = self.search_fuzzy(query)
            return SearchResponse(
                query=keyword,
                results=[self.normalize_fuzzy_match(match) for match in matches[:limit]],
            )
        finally:
            search_duration_seconds.labels(mode=mode.value).observe(time.time() - start_time)

    async def search_vector(self, query: str, namespace: str, limit: int = 1) -> List[VectorHit]:
        """Over-fetch, rerank the head of the list, drop weak hits, truncate."""
        collection = self.index.resolve_namespace(namespace)
        candidates = await self.index.search(
            query, collection, top_k=max(self.CANDIDATE_POOL, limit)
        )
        head = candidates[: max(self.RERANK_POOL, limit)]

        if self.reranker is not None and head:
            head = await asyncio.to_thread(self.reranker.rerank, query, head, len(head))

        relevant = [hit for hit in head if self.is_vector_hit_relevant(hit)]
        logger.debug(
            f"Vector search '{excerpt(query)}' in {collection}: {len(candidates)} candidates, "
            f"{len(relevant)} relevant"
        )
        return relevant[:limit]

    def search_fuzzy(self, keyword: str) -> Tuple[str, List[FuzzyMatch[TitleDocument]]]:
        """Match titles; on no match, retry once with the closest alias.

        Returns:
            The keyword that produced the results, and the relevant matches
        """
        results = [m for m in self.titles.search(keyword) if self.is_fuzzy_match_relevant(m)]
        if results:
            return keyword, results

        alias_matches = [m for m in self.aliases.search(keyword) if self.is_fuzzy_match_relevant(m)]
        if not alias_matches:
            return keyword, []

        alias = alias_matches[0].item
        logger.info(f"No title matched '{excerpt(keyword)}'; retrying with alias '{alias}'")
        alias_results = [m for m in self.titles.search(alias) if self.is_fuzzy_match_relevant(m)]
        return alias, alias_results

    @classmethod
    def is_vector_hit_relevant(cls, hit: VectorHit) -> bool:
        return hit.score > cls.VECTOR_MIN_SCORE

    @classmethod
    def is_fuzzy_match_relevant(cls, match: FuzzyMatch) -> bool:
        return match.distance <= cls.FUZZY_MAX_DISTANCE

    @staticmethod
    def normalize_vector_hit(hit: VectorHit) -> SearchResult:
        payload = hit.payload
        return SearchResult(
            id=hit.id,
            relevance_score=hit.score,
            fields=SearchResultFields(
                question=payload.get("entry_question", ""),
                answer=payload.get("entry_answer", ""),
                tags=list(payload.get("entry_tags", [])),
                url=payload.get("entry_url", ""),
                indexed_at=payload.get("entry_indexed_at", payload.get("entry_date", "")),
            ),
        )

    @staticmethod
    def normalize_fuzzy_match(match: FuzzyMatch[TitleDocument]) -> SearchResult:
        # Fuzzy search only sees titles, so answer and tags stay empty
        doc = match.item
        return SearchResult(
            id=f"{RECORD_ID_PREFIX}{doc.id}",
            relevance_score=1 - match.distance,
            fields=SearchResultFields(
                question=doc.title,
                url=doc.url,
                indexed_at=doc.created_at.isoformat() if doc.created_at else "",
            ),
        )
