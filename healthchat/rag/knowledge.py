"""Knowledge Browsing Service

Structured listing and lookup helpers over the knowledge index, used by the
knowledge API for browsing subjects, topics and related entries.
"""

from typing import List, Optional
import random

import structlog

from healthchat.rag.index import RagIndex
from healthchat.rag.models import (
    SUBJECT_ICONS,
    SUBJECT_NAMES,
    CategoryInfo,
    DifficultyLevel,
    KnowledgeItem,
    KnowledgeQuery,
    SearchHit,
    SubjectCategory,
)
from healthchat.rag.retriever import Retriever

logger = structlog.get_logger(__name__)

DEFAULT_ICON = "📚"


class KnowledgeService:
    """Query helpers over a ``RagIndex``."""

    def __init__(self, index: RagIndex, retriever: Retriever, rng: Optional[random.Random] = None):
        self.index = index
        self.retriever = retriever
        self.rng = rng or random.Random()

    async def query_knowledge(self, query: KnowledgeQuery) -> List[KnowledgeItem]:
        """List items matching structured filters.

        ``search`` is a case-insensitive substring match on title, description
        and keywords.
        """
        await self.index.initialize()
        items = self.index.all_items()

        if query.category:
            items = [item for item in items if item.category == query.category]
        if query.topic:
            items = [item for item in items if item.topic == query.topic]
        if query.difficulty:
            items = [item for item in items if item.difficulty == query.difficulty]
        if query.search:
            needle = query.search.lower()
            items = [
                item for item in items
                if needle in item.title.lower()
                or needle in item.description.lower()
                or any(needle in keyword.lower() for keyword in item.keywords)
            ]
        if query.limit:
            items = items[:query.limit]

        return items

    async def search_knowledge(
        self,
        query: str,
        category: Optional[SubjectCategory] = None,
        limit: int = 5
    ) -> List[SearchHit]:
        """Semantic search returning result summaries."""
        await self.index.initialize()
        results = await self.retriever.retrieve_safe(query, top_k=limit, category=category)

        return [
            SearchHit(
                id=item.id,
                title=item.title,
                description=item.description,
                relevance_score=item.relevance_score,
                category=item.category,
                difficulty=item.difficulty
            )
            for item in results
        ]

    async def get_item(self, item_id: str) -> Optional[KnowledgeItem]:
        await self.index.initialize()
        return self.index.get_item(item_id)

    def get_categories(self) -> List[CategoryInfo]:
        return [
            CategoryInfo(value=category, label=label, icon=SUBJECT_ICONS.get(category, DEFAULT_ICON))
            for category, label in SUBJECT_NAMES.items()
        ]

    async def get_topics_by_category(self, category: SubjectCategory) -> List[str]:
        """Sorted unique topics of a category."""
        await self.index.initialize()
        return sorted({item.topic for item in self.index.items_by_category(category)})

    async def get_recommended(
        self,
        category: Optional[SubjectCategory] = None,
        difficulty: Optional[DifficultyLevel] = None,
        limit: int = 5
    ) -> List[KnowledgeItem]:
        """Random sample of items, optionally filtered."""
        await self.index.initialize()
        items = self.index.all_items()

        if category:
            items = [item for item in items if item.category == category]
        if difficulty:
            items = [item for item in items if item.difficulty == difficulty]

        return self.rng.sample(items, min(limit, len(items)))

    async def get_related(self, item_id: str, limit: int = 4) -> List[KnowledgeItem]:
        """Items listed in an item's ``related_theorems`` that exist in the index."""
        await self.index.initialize()
        item = self.index.get_item(item_id)
        if item is None:
            return []

        related = []
        for related_id in item.related_theorems[:limit]:
            related_item = self.index.get_item(related_id)
            if related_item is not None:
                related.append(related_item)
            else:
                logger.debug("Related knowledge item missing", item_id=item_id, related_id=related_id)
        return related
