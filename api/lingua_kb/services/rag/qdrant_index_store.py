"""Qdrant-backed index store with one collection per language namespace."""

import asyncio
import hashlib
import logging
from typing import Any, Iterable, List, Optional, Sequence

from langchain_core.embeddings import Embeddings
from lingua_kb.core.config import Settings
from lingua_kb.core.exceptions import (
    NotFoundError,
    TransientUpstreamError,
    VectorStoreError,
)
from lingua_kb.metrics.indexing_metrics import (
    index_deletes_total,
    index_records_upserted_total,
)
from lingua_kb.models.entry import Entry, IndexRecord, TranslatedEntry, record_id_for
from lingua_kb.services.rag.interfaces import VectorHit
from qdrant_client import QdrantClient
from qdrant_client.http import models as rest
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

logger = logging.getLogger(__name__)


def _stable_int_id(key: str) -> int:
    """Generate a deterministic 63-bit int ID from an arbitrary string key."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False) & ((1 << 63) - 1)


def prepare_records(entry: Entry, translated: Optional[TranslatedEntry] = None) -> List[IndexRecord]:
    """Build one record per part, in part order.

    ``translated`` supplies the title and bodies for non-source namespaces;
    ids, tags, URL and dates always come from the canonical entry.
    """
    title = translated.title if translated else entry.title
    parts = translated.parts if translated else entry.parts

    records: List[IndexRecord] = []
    for position, part in enumerate(parts):
        records.append(
            IndexRecord(
                id=record_id_for(entry.id, part.id, position),
                entry_id=entry.id,
                part_id=part.id,
                question=title,
                chunk_text=f"{title}\n\n{part.content}",
                answer_text=part.content,
                tags=list(entry.tags),
                source_url=entry.source_url,
                created_at=entry.created_at,
            )
        )
    return records


class QdrantIndexStore:
    """Upsert, delete and search FAQ records in per-language Qdrant collections."""

    def __init__(
        self,
        settings: Settings,
        embeddings: Embeddings,
        client: Optional[QdrantClient] = None,
    ):
        self.settings = settings
        self.embeddings = embeddings
        self.collection_prefix = f"{settings.NAMESPACE_PREFIX}{settings.QDRANT_COLLECTION}-"
        self.batch_size = settings.INDEX_UPSERT_BATCH_SIZE

        if client is not None:
            self._client = client
        elif settings.QDRANT_URL:
            self._client = QdrantClient(
                url=settings.QDRANT_URL,
                api_key=settings.QDRANT_API_KEY or None,
                timeout=settings.QDRANT_TIMEOUT_SECONDS,
            )
        else:
            self._client = QdrantClient(
                host=settings.QDRANT_HOST,
                port=settings.QDRANT_PORT,
                api_key=settings.QDRANT_API_KEY or None,
                prefer_grpc=False,
                timeout=settings.QDRANT_TIMEOUT_SECONDS,
            )

    @property
    def client(self) -> QdrantClient:
        return self._client

    def resolve_namespace(self, language_code: str) -> str:
        return f"{self.collection_prefix}{language_code}"

    prepare_records = staticmethod(prepare_records)

    async def _call(self, fn, *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except UnexpectedResponse as e:
            if e.status_code == 404:
                raise NotFoundError("collection", kwargs.get("collection_name", "?")) from e
            if e.status_code == 429 or (e.status_code or 0) >= 500:
                raise VectorStoreError(f"Qdrant returned {e.status_code}: {e.reason_phrase}") from e
            raise
        except (ResponseHandlingException, OSError) as e:
            raise VectorStoreError(str(e)) from e

    async def _embed(self, texts: List[str]) -> List[List[float]]:
        try:
            return await asyncio.to_thread(self.embeddings.embed_documents, texts)
        except Exception as e:
            raise TransientUpstreamError("embeddings", str(e)) from e

    async def _embed_query(self, text: str) -> List[float]:
        try:
            return await asyncio.to_thread(self.embeddings.embed_query, text)
        except Exception as e:
            raise TransientUpstreamError("embeddings", str(e)) from e

    async def collection_exists(self, namespace: str) -> bool:
        cols = await self._call(self._client.get_collections)
        return any(c.name == namespace for c in cols.collections)

    async def _ensure_collection(self, namespace: str, vector_size: int) -> None:
        if await self.collection_exists(namespace):
            return

        logger.info(f"Creating Qdrant collection '{namespace}' (dense_size={vector_size})")
        await self._call(
            self._client.create_collection,
            collection_name=namespace,
            vectors_config=rest.VectorParams(size=vector_size, distance=rest.Distance.COSINE),
        )
        # Deletes filter on entry_id
        await self._call(
            self._client.create_payload_index,
            collection_name=namespace,
            field_name="entry_id",
            field_schema=rest.PayloadSchemaType.KEYWORD,
        )

    @staticmethod
    def _iter_batches(items: Sequence[Any], batch_size: int) -> Iterable[Sequence[Any]]:
        for i in range(0, len(items), batch_size):
            yield items[i : i + batch_size]

    async def upsert(self, records: Sequence[IndexRecord], namespace: str) -> int:
        """Insert or overwrite records in batches, sent one after another.

        Point ids derive from record ids, so re-indexing replaces in place.
        """
        if not records:
            return 0

        upserted = 0
        ensured = False
        for batch in self._iter_batches(records, self.batch_size):
            vectors = await self._embed([record.chunk_text for record in batch])
            if not ensured:
                await self._ensure_collection(namespace, len(vectors[0]))
                ensured = True

            points = [
                rest.PointStruct(
                    id=_stable_int_id(record.id),
                    vector=vector,
                    payload=record.to_payload(),
                )
                for record, vector in zip(batch, vectors)
            ]
            await self._call(self._client.upsert, collection_name=namespace, points=points)
            upserted += len(points)
            logger.info(f"Upserted {upserted}/{len(records)} records into '{namespace}'")

        index_records_upserted_total.labels(namespace=namespace).inc(upserted)
        return upserted

    async def delete_by_entry_id(
        self, entry_id: str, namespace: str, keep_ids: Sequence[str] = ()
    ) -> None:
        """Delete the records of ``entry_id`` except ``keep_ids``.

        Missing collections or records are a no-op.
        """
        try:
            if not await self.collection_exists(namespace):
                logger.info(f"Namespace '{namespace}' does not exist; nothing to delete for {entry_id}")
                index_deletes_total.labels(outcome="not_found").inc()
                return
            await self._call(
                self._client.delete,
                collection_name=namespace,
                points_selector=rest.FilterSelector(
                    filter=rest.Filter(
                        must=[
                            rest.FieldCondition(
                                key="entry_id", match=rest.MatchValue(value=entry_id)
                            )
                        ],
                        must_not=(
                            [rest.HasIdCondition(has_id=[_stable_int_id(rid) for rid in keep_ids])]
                            if keep_ids
                            else None
                        ),
                    )
                ),
            )
        except NotFoundError:
            index_deletes_total.labels(outcome="not_found").inc()
            return
        index_deletes_total.labels(outcome="deleted").inc()
        logger.info(f"Deleted records of entry {entry_id} from '{namespace}'")

    async def search(self, query: str, namespace: str, top_k: int = 20) -> List[VectorHit]:
        vector = await self._embed_query(query)
        response = await self._call(
            self._client.query_points,
            collection_name=namespace,
            query=vector,
            limit=top_k,
            with_payload=True,
        )
        hits: List[VectorHit] = []
        for point in response.points:
            payload = dict(point.payload or {})
            hits.append(
                VectorHit(
                    id=payload.get("record_id", str(point.id)),
                    score=float(point.score),
                    payload=payload,
                )
            )
        return hits

    async def populated_namespaces(self) -> List[str]:
        cols = await self._call(self._client.get_collections)
        return sorted(c.name for c in cols.collections if c.name.startswith(self.collection_prefix))
