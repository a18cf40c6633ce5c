"""
Cross-encoder reranker for vector search candidates.

Scores (query, title + body) pairs jointly, which is markedly more precise
than the bi-encoder similarity used for candidate retrieval. Scores are
sigmoid-normalised to 0-1 by the model head.
"""

import logging
import threading
from typing import List, Optional

from lingua_kb.services.rag.interfaces import RerankerProtocol, VectorHit

logger = logging.getLogger(__name__)


class CrossEncoderReranker(RerankerProtocol):
    """Reranker using a sentence-transformers CrossEncoder.

    The model is loaded lazily on first use, under a lock, and cached.
    """

    def __init__(self, model_name: str = "BAAI/bge-reranker-v2-m3", model=None):
        self.model_name = model_name
        self._model = model
        self._model_lock = threading.Lock()
        self._load_error: Optional[Exception] = None

    def is_loaded(self) -> bool:
        return self._model is not None

    def load_model(self) -> None:
        """Load the CrossEncoder model into memory.

        Raises:
            RuntimeError: If model loading fails
        """
        if self._model is not None:
            return

        with self._model_lock:
            # Double-check after acquiring lock
            if self._model is not None:
                return
            try:
                from sentence_transformers import CrossEncoder

                logger.info(f"Loading reranker: {self.model_name}")
                self._model = CrossEncoder(self.model_name)
                logger.info("Reranker loaded")
            except Exception as e:
                self._load_error = e
                logger.error(f"Failed to load reranker {self.model_name}: {e}")
                raise RuntimeError(f"Failed to load reranker: {e}") from e

    def rerank(self, query: str, hits: List[VectorHit], top_n: int = 5) -> List[VectorHit]:
        """Rescore hits against the query and return the best ``top_n``.

        Returned hits carry the reranker score in place of the vector score.
        """
        if not hits:
            return []

        self.load_model()
        pairs = [[query, hit.chunk_text or hit.question] for hit in hits]
        scores = self._model.predict(pairs)

        reranked = [
            VectorHit(id=hit.id, score=float(score), payload=hit.payload)
            for hit, score in zip(hits, scores)
        ]
        reranked.sort(key=lambda hit: hit.score, reverse=True)

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{hit.score:.2f}" for hit in reranked[:3])
            logger.debug(f"Reranker top-3 scores: [{top_scores}]")

        return reranked[:top_n]
