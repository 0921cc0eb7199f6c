"""Knowledge Embedding Index

This module provides ``RagIndex``, which owns the knowledge item table and the
vector side table for one process, and mediates all bulk embedding calls.
"""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import asyncio
import time

import numpy as np
import structlog

from healthchat.core.metrics import record_index_build
from healthchat.rag.embeddings import BaseEmbeddingProvider
from healthchat.rag.loader import CorpusLoader
from healthchat.rag.models import IndexStats, KnowledgeItem, SubjectCategory

logger = structlog.get_logger(__name__)


def build_embedding_text(item: KnowledgeItem) -> str:
    """Compose the text sent to the embedding provider for an item."""
    parts = [
        item.title,
        item.description,
        item.embedding_text,
        " ".join(item.keywords),
    ]
    return "\n".join(parts).strip()


class RagIndex:
    """In-memory knowledge index with lazy, single-flight initialization.

    The first ``initialize()`` loads every corpus file and embeds every item.
    Concurrent callers share one in-flight build. ``invalidate()`` makes the
    next ``initialize()`` rebuild both tables from scratch.

    Tables are swapped in whole at the end of a build, so readers observe
    either the previous corpus or the new one while a rebuild is running.
    """

    def __init__(
        self,
        loader: CorpusLoader,
        embedding_provider: BaseEmbeddingProvider,
        corpus_files: Sequence[str],
        batch_size: int = 10,
        api_key: Optional[str] = None
    ):
        """Initialize the index.

        Args:
            loader: Corpus loader used on every build
            embedding_provider: Provider for batch embeddings
            corpus_files: Corpus file names, in load order
            batch_size: Number of items per embedding request
            api_key: Embedding API key; without one items load but get no vectors
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.loader = loader
        self.embedding_provider = embedding_provider
        self.corpus_files = list(corpus_files)
        self.batch_size = batch_size
        self._api_key = api_key

        self._items: Dict[str, KnowledgeItem] = {}
        self._vectors: Dict[str, np.ndarray] = {}
        self._initialized = False
        self._init_task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Set the embedding API key.

        A new key invalidates an index that was built without any vectors,
        so the next use embeds the corpus with the working credential.
        """
        if api_key == self._api_key:
            return

        self._api_key = api_key
        if api_key and self._items and not self._vectors:
            logger.info("API key updated, scheduling re-embedding", items=len(self._items))
            self.invalidate()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_building(self) -> bool:
        return self._init_task is not None and not self._init_task.done()

    @property
    def item_count(self) -> int:
        return len(self._items)

    @property
    def vector_count(self) -> int:
        return len(self._vectors)

    async def initialize(self) -> None:
        """Load and embed the corpus unless that already happened."""
        while not self._initialized:
            task = self._init_task
            if task is None:
                task = asyncio.ensure_future(self._build(self._generation))
                self._init_task = task

            try:
                await asyncio.shield(task)
            finally:
                if self._init_task is task and task.done():
                    self._init_task = None

    def invalidate(self) -> None:
        """Force the next ``initialize()`` to reload and re-embed everything."""
        self._generation += 1
        self._initialized = False
        self._init_task = None
        logger.info("Knowledge index invalidated", generation=self._generation)

    async def reset_and_reinitialize(self) -> None:
        """Rebuild the index now."""
        self.invalidate()
        await self.initialize()

    async def _build(self, generation: int) -> None:
        start_time = time.perf_counter()
        logger.info("Initializing knowledge index", generation=generation, files=self.corpus_files)

        try:
            items: Dict[str, KnowledgeItem] = {}
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self.loader.load_into, items, self.corpus_files)

            vectors, failed_batches = await self._generate_embeddings(items)
        except Exception as e:
            logger.error("Knowledge index initialization failed", generation=generation, error=str(e))
            record_index_build(0, 0, 0, success=False)
            raise

        if generation != self._generation:
            logger.info("Discarding stale knowledge index build", generation=generation)
            return

        self._items = items
        self._vectors = vectors
        self._initialized = True

        record_index_build(len(items), len(vectors), failed_batches)
        logger.info(
            "Knowledge index initialized",
            generation=generation,
            items=len(items),
            vectors=len(vectors),
            failed_batches=failed_batches,
            time_ms=round((time.perf_counter() - start_time) * 1000, 2)
        )

    async def _generate_embeddings(
        self,
        items: Dict[str, KnowledgeItem]
    ) -> Tuple[Dict[str, np.ndarray], int]:
        vectors: Dict[str, np.ndarray] = {}

        api_key = self._api_key
        if not api_key:
            logger.warning("No embedding API key configured, skipping embedding generation", items=len(items))
            return vectors, 0

        entries = [(item_id, build_embedding_text(item)) for item_id, item in items.items()]
        failed_batches = 0

        for start in range(0, len(entries), self.batch_size):
            batch = entries[start:start + self.batch_size]

            try:
                embeddings = await self.embedding_provider.embed_batch(
                    [text for _, text in batch],
                    api_key
                )
                if len(embeddings) != len(batch):
                    raise ValueError(f"expected {len(batch)} embeddings, got {len(embeddings)}")
            except Exception as e:
                failed_batches += 1
                logger.error(
                    "Error generating embeddings for batch",
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(e)
                )
                continue

            for (item_id, _), embedding in zip(batch, embeddings):
                vectors[item_id] = np.asarray(embedding, dtype=float)

        return vectors, failed_batches

    def get_item(self, item_id: str) -> Optional[KnowledgeItem]:
        return self._items.get(item_id)

    def all_items(self) -> List[KnowledgeItem]:
        return list(self._items.values())

    def items_by_category(self, category: SubjectCategory) -> List[KnowledgeItem]:
        return [item for item in self._items.values() if item.category == category]

    def has_vector(self, item_id: str) -> bool:
        return item_id in self._vectors

    def iter_vectors(self) -> Iterator[Tuple[KnowledgeItem, np.ndarray]]:
        """Yield (item, vector) pairs for every embedded item, in corpus order."""
        items = self._items
        for item_id, vector in list(self._vectors.items()):
            item = items.get(item_id)
            if item is not None:
                yield item, vector

    def stats(self) -> IndexStats:
        return IndexStats(
            initialized=self._initialized,
            building=self.is_building,
            item_count=self.item_count,
            vector_count=self.vector_count,
            embedding_model=getattr(self.embedding_provider, "model_name", "unknown"),
            has_api_key=bool(self._api_key)
        )
