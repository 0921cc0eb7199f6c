"""Knowledge API Module

This module provides API endpoints for browsing the knowledge base, semantic
search, RAG context assembly and index management.
"""

from typing import List, Optional
import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from healthchat.rag.dependencies import get_rag_service
from healthchat.rag.models import (
    CategoryInfo,
    ContextRequest,
    ContextResponse,
    DifficultyLevel,
    IndexStats,
    KnowledgeItem,
    KnowledgeQuery,
    SearchHit,
    SearchRequest,
    SubjectCategory,
)
from healthchat.rag.service import RagService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/knowledge", tags=["knowledge"])


# API Models
class SearchResponse(BaseModel):
    """Search response model."""
    results: List[SearchHit]
    query: str
    total_results: int
    processing_time_ms: float


class InvalidateResponse(BaseModel):
    """Index invalidation response model."""
    invalidated: bool
    rebuilt: bool
    stats: IndexStats


# API Endpoints
@router.get("", response_model=List[KnowledgeItem])
async def list_knowledge(
    category: Optional[SubjectCategory] = Query(None, description="Filter by subject category"),
    topic: Optional[str] = Query(None, description="Filter by topic"),
    difficulty: Optional[DifficultyLevel] = Query(None, description="Filter by difficulty"),
    search: Optional[str] = Query(None, description="Keyword filter on title, description and keywords"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of items"),
    rag_service: RagService = Depends(get_rag_service)
):
    """List knowledge items with optional filters."""
    try:
        query = KnowledgeQuery(
            category=category,
            topic=topic,
            difficulty=difficulty,
            search=search,
            limit=limit
        )
        return await rag_service.knowledge.query_knowledge(query)
    except Exception as e:
        logger.error("Error listing knowledge", error=str(e))
        raise HTTPException(status_code=500, detail=f"Error listing knowledge: {str(e)}")


@router.post("/search", response_model=SearchResponse)
async def search_knowledge(
    request: SearchRequest,
    rag_service: RagService = Depends(get_rag_service)
):
    """Semantic search over the knowledge base."""
    try:
        start_time = time.perf_counter()
        results = await rag_service.knowledge.search_knowledge(
            request.query,
            category=request.category,
            limit=request.limit
        )
        processing_time = (time.perf_counter() - start_time) * 1000

        return SearchResponse(
            results=results,
            query=request.query,
            total_results=len(results),
            processing_time_ms=processing_time
        )
    except Exception as e:
        logger.error("Error searching knowledge", error=str(e))
        raise HTTPException(status_code=500, detail=f"Error searching knowledge: {str(e)}")


@router.post("/context", response_model=ContextResponse)
async def build_context(
    request: ContextRequest,
    rag_service: RagService = Depends(get_rag_service)
):
    """Assemble RAG context for a chat query."""
    try:
        context = await rag_service.build_context(request.query, request.category)
        return ContextResponse(query=request.query, context=context, has_context=bool(context))
    except Exception as e:
        logger.error("Error building context", error=str(e))
        raise HTTPException(status_code=500, detail=f"Error building context: {str(e)}")


@router.get("/categories/list", response_model=List[CategoryInfo])
async def list_categories(rag_service: RagService = Depends(get_rag_service)):
    """List subject categories with labels and icons."""
    return rag_service.knowledge.get_categories()


@router.get("/topics/{category}", response_model=List[str])
async def list_topics(
    category: SubjectCategory,
    rag_service: RagService = Depends(get_rag_service)
):
    """List the topics of a subject category."""
    try:
        return await rag_service.knowledge.get_topics_by_category(category)
    except Exception as e:
        logger.error("Error listing topics", category=category.value, error=str(e))
        raise HTTPException(status_code=500, detail=f"Error listing topics: {str(e)}")


@router.get("/recommended", response_model=List[KnowledgeItem])
async def recommended_knowledge(
    category: Optional[SubjectCategory] = Query(None),
    difficulty: Optional[DifficultyLevel] = Query(None),
    limit: int = Query(5, ge=1, le=50),
    rag_service: RagService = Depends(get_rag_service)
):
    """Random selection of knowledge items."""
    try:
        return await rag_service.knowledge.get_recommended(category, difficulty, limit)
    except Exception as e:
        logger.error("Error getting recommendations", error=str(e))
        raise HTTPException(status_code=500, detail=f"Error getting recommendations: {str(e)}")


@router.get("/stats", response_model=IndexStats)
async def index_stats(rag_service: RagService = Depends(get_rag_service)):
    """Knowledge index statistics."""
    return rag_service.stats()


@router.post("/invalidate", response_model=InvalidateResponse)
async def invalidate_index(
    rebuild: bool = Query(False, description="Rebuild immediately instead of on next use"),
    rag_service: RagService = Depends(get_rag_service)
):
    """Notify the service that the corpus changed."""
    try:
        if rebuild:
            await rag_service.reset_and_reinitialize()
        else:
            rag_service.invalidate()

        logger.info("Knowledge index invalidated via API", rebuild=rebuild)
        return InvalidateResponse(invalidated=True, rebuilt=rebuild, stats=rag_service.stats())
    except Exception as e:
        logger.error("Error invalidating index", error=str(e))
        raise HTTPException(status_code=500, detail=f"Error invalidating index: {str(e)}")


@router.get("/{item_id}", response_model=KnowledgeItem)
async def get_knowledge_item(
    item_id: str,
    rag_service: RagService = Depends(get_rag_service)
):
    """Get a knowledge item by ID."""
    try:
        item = await rag_service.knowledge.get_item(item_id)

        if not item:
            raise HTTPException(status_code=404, detail=f"Knowledge item not found: {item_id}")

        return item

    except HTTPException:
        raise
    except Exception as e:
        logger.error("Error getting knowledge item", item_id=item_id, error=str(e))
        raise HTTPException(status_code=500, detail=f"Error getting knowledge item: {str(e)}")


@router.get("/{item_id}/related", response_model=List[KnowledgeItem])
async def related_knowledge(
    item_id: str,
    limit: int = Query(4, ge=1, le=20),
    rag_service: RagService = Depends(get_rag_service)
):
    """Get the items related to a knowledge item."""
    try:
        return await rag_service.knowledge.get_related(item_id, limit)
    except Exception as e:
        logger.error("Error getting related knowledge", item_id=item_id, error=str(e))
        raise HTTPException(status_code=500, detail=f"Error getting related knowledge: {str(e)}")
