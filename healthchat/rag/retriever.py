"""Semantic Retriever

Embeds a query, scores every embedded knowledge item by cosine similarity and
returns the best matches above the similarity threshold.
"""

from typing import List, Optional, Tuple
import asyncio
import time

import structlog

from healthchat.core.exceptions import (
    DimensionMismatchError,
    EmbeddingProviderError,
    EmbeddingTransportError,
    HealthChatException,
    RetrievalError,
)
from healthchat.core.metrics import record_rag_metrics
from healthchat.rag.embeddings import BaseEmbeddingProvider, cosine_similarity
from healthchat.rag.index import RagIndex
from healthchat.rag.models import KnowledgeItem, ScoredKnowledgeItem, SubjectCategory

logger = structlog.get_logger(__name__)


class Retriever:
    """Top-k cosine retrieval over a ``RagIndex``."""

    def __init__(
        self,
        index: RagIndex,
        embedding_provider: BaseEmbeddingProvider,
        similarity_threshold: float = 0.2,
        default_top_k: int = 5,
        query_timeout: Optional[float] = 45.0
    ):
        """Initialize the retriever.

        Args:
            index: Knowledge index to search
            embedding_provider: Provider used to embed queries
            similarity_threshold: Results must score strictly above this
            default_top_k: Result count when the caller passes none
            query_timeout: Upper bound in seconds for embedding a query
        """
        self.index = index
        self.embedding_provider = embedding_provider
        self.similarity_threshold = similarity_threshold
        self.default_top_k = default_top_k
        self.query_timeout = query_timeout

    async def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        category: Optional[SubjectCategory] = None
    ) -> List[ScoredKnowledgeItem]:
        """Retrieve the knowledge items most similar to a query.

        Args:
            query: Free-text user query
            top_k: Maximum number of results
            category: Only consider items of this category

        Returns:
            Scored items, best first

        Raises:
            EmbeddingProviderError: If the query cannot be embedded
            DimensionMismatchError: If query and item vectors disagree in size
            RetrievalError: If the index cannot be initialized
        """
        start_time = time.perf_counter()
        top_k = self.default_top_k if top_k is None else top_k

        api_key = self.index.api_key
        if not api_key:
            logger.warning("No embedding API key configured, skipping retrieval")
            record_rag_metrics("no_credential", time.perf_counter() - start_time, 0)
            return []

        if top_k <= 0:
            return []

        try:
            await self.index.initialize()
        except HealthChatException:
            raise
        except Exception as e:
            raise RetrievalError("initialize", str(e)) from e

        try:
            query_vector = await asyncio.wait_for(
                self.embedding_provider.embed_one(query, api_key),
                timeout=self.query_timeout
            )
            results = self.score(query_vector, top_k, category)
        except asyncio.TimeoutError as e:
            record_rag_metrics("error", time.perf_counter() - start_time, 0)
            raise EmbeddingTransportError(
                "embed_one",
                f"query embedding timed out after {self.query_timeout}s"
            ) from e
        except Exception:
            record_rag_metrics("error", time.perf_counter() - start_time, 0)
            raise

        query_time = time.perf_counter() - start_time
        record_rag_metrics("success", query_time, len(results))
        logger.info(
            "Knowledge retrieved",
            results=len(results),
            top_k=top_k,
            category=category.value if category else None,
            time_ms=round(query_time * 1000, 2)
        )
        return results

    async def retrieve_safe(
        self,
        query: str,
        top_k: Optional[int] = None,
        category: Optional[SubjectCategory] = None
    ) -> List[ScoredKnowledgeItem]:
        """Like ``retrieve`` but returns ``[]`` when the provider fails.

        Dimension mismatches still raise, since they point at a broken index.
        """
        try:
            return await self.retrieve(query, top_k, category)
        except DimensionMismatchError:
            raise
        except (EmbeddingProviderError, RetrievalError) as e:
            logger.error("Retrieval failed, returning no results", error=str(e))
            return []

    def score(
        self,
        query_vector: List[float],
        top_k: int,
        category: Optional[SubjectCategory] = None
    ) -> List[ScoredKnowledgeItem]:
        """Rank embedded items against an already embedded query."""
        scored: List[Tuple[KnowledgeItem, float]] = []
        for item, vector in self.index.iter_vectors():
            if category is not None and item.category != category:
                continue
            scored.append((item, cosine_similarity(query_vector, vector)))

        # sorted() is stable, so ties keep corpus order
        scored = sorted(scored, key=lambda pair: pair[1], reverse=True)[:top_k]

        return [
            ScoredKnowledgeItem.from_item(item, score)
            for item, score in scored
            if score > self.similarity_threshold
        ]
