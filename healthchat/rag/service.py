"""RAG Service Module

This module provides the main RAG service that wires the corpus loader,
embedding index, retriever and context assembler together for one process.
"""

from typing import List, Optional

import structlog

from healthchat.config.settings import Settings, get_settings
from healthchat.core.exceptions import ConfigurationError
from healthchat.rag.context import ContextAssembler
from healthchat.rag.embeddings import BaseEmbeddingProvider, create_embedding_provider
from healthchat.rag.index import RagIndex
from healthchat.rag.knowledge import KnowledgeService
from healthchat.rag.loader import CorpusLoader
from healthchat.rag.models import IndexStats, ScoredKnowledgeItem, SubjectCategory
from healthchat.rag.retriever import Retriever

logger = structlog.get_logger(__name__)


class RagService:
    """Main service for RAG functionality."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        embedding_provider: Optional[BaseEmbeddingProvider] = None
    ):
        """Initialize the RAG service.

        Args:
            settings: Application settings, defaults to the global ones
            embedding_provider: Provider override, mostly for tests
        """
        self.settings = settings or get_settings()
        rag_settings = self.settings.rag

        if rag_settings.default_category not in {category.value for category in SubjectCategory}:
            raise ConfigurationError("rag", f"unknown default_category {rag_settings.default_category!r}")

        self.embedding_provider = embedding_provider or create_embedding_provider(self.settings.embedding)
        self.loader = CorpusLoader(rag_settings.corpus_dir, rag_settings.default_category)
        self.index = RagIndex(
            loader=self.loader,
            embedding_provider=self.embedding_provider,
            corpus_files=rag_settings.corpus_files,
            batch_size=rag_settings.batch_size,
            api_key=self.settings.embedding.api_key
        )
        self.retriever = Retriever(
            index=self.index,
            embedding_provider=self.embedding_provider,
            similarity_threshold=rag_settings.similarity_threshold,
            default_top_k=rag_settings.default_top_k,
            query_timeout=rag_settings.query_timeout
        )
        self.context_assembler = ContextAssembler(self.retriever, top_k=rag_settings.context_top_k)
        self.knowledge = KnowledgeService(self.index, self.retriever)

    async def initialize(self) -> bool:
        """Initialize the knowledge index.

        Returns:
            True once the index is built, False if the build failed
        """
        try:
            await self.index.initialize()
            logger.info("RAG service initialized", **self.index.stats().model_dump())
            return True
        except Exception as e:
            logger.error("Failed to initialize RAG service", error=str(e))
            return False

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.index.set_api_key(api_key)

    async def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        category: Optional[SubjectCategory] = None,
        strict: bool = False
    ) -> List[ScoredKnowledgeItem]:
        """Retrieve relevant knowledge items.

        With ``strict=True`` provider failures propagate instead of yielding
        an empty list.
        """
        if strict:
            return await self.retriever.retrieve(query, top_k, category)
        return await self.retriever.retrieve_safe(query, top_k, category)

    async def build_context(self, query: str, category: Optional[SubjectCategory] = None) -> str:
        return await self.context_assembler.build_context(query, category)

    def invalidate(self) -> None:
        """Signal that the corpus changed; the next use rebuilds the index."""
        self.index.invalidate()

    async def reset_and_reinitialize(self) -> None:
        await self.index.reset_and_reinitialize()

    def stats(self) -> IndexStats:
        return self.index.stats()

    async def close(self) -> None:
        await self.embedding_provider.aclose()
        logger.info("RAG service closed")
