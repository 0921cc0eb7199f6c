"""Dependency functions for the RAG service.

Provides dependency injection functions for FastAPI endpoints that need access to the RAG service.
"""

from fastapi import Request, HTTPException, status

from healthchat.rag.service import RagService


async def get_rag_service(request: Request) -> RagService:
    """Dependency function to get the RAG service instance.

    Args:
        request: The FastAPI request object

    Returns:
        RagService: An initialized RAG service instance

    Raises:
        HTTPException: If the RAG service cannot be created or initialized
    """
    # Check if RAG service is stored in app state (initialized during startup)
    if hasattr(request.app.state, "rag_service"):
        return request.app.state.rag_service

    # If not in app state, create a new instance
    try:
        rag_service = RagService()
        if not await rag_service.initialize():
            raise RuntimeError("knowledge index build failed")
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"RAG service unavailable: {str(e)}"
        )

    request.app.state.rag_service = rag_service
    return rag_service
