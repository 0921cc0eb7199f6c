"""Unit tests for the RAG dependencies module.

Tests the dependency injection functionality for the RAG service.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import HTTPException

from healthchat.rag.dependencies import get_rag_service
from healthchat.rag.service import RagService


@pytest.mark.asyncio
async def test_get_rag_service_from_app_state():
    """Test getting RAG service from app state."""
    mock_rag_service = MagicMock(spec=RagService)
    mock_request = MagicMock()
    mock_request.app.state.rag_service = mock_rag_service

    with patch("healthchat.rag.dependencies.RagService") as service_cls:
        service = await get_rag_service(mock_request)

    assert service is mock_rag_service
    service_cls.assert_not_called()


@pytest.mark.asyncio
async def test_get_rag_service_initialize_new():
    """Test initializing a new RAG service when not in app state."""
    mock_app = MagicMock()
    mock_app.state = MagicMock(spec=[])
    mock_request = MagicMock()
    mock_request.app = mock_app

    mock_rag_service = MagicMock(spec=RagService)
    mock_rag_service.initialize = AsyncMock(return_value=True)

    with patch("healthchat.rag.dependencies.RagService", return_value=mock_rag_service):
        service = await get_rag_service(mock_request)

    assert service is mock_rag_service
    mock_rag_service.initialize.assert_awaited_once()
    assert mock_app.state.rag_service is mock_rag_service


@pytest.mark.asyncio
async def test_get_rag_service_initialization_failure():
    """Test a failed index build is reported as unavailable."""
    mock_app = MagicMock()
    mock_app.state = MagicMock(spec=[])
    mock_request = MagicMock()
    mock_request.app = mock_app

    mock_rag_service = MagicMock(spec=RagService)
    mock_rag_service.initialize = AsyncMock(return_value=False)

    with patch("healthchat.rag.dependencies.RagService", return_value=mock_rag_service), \
         pytest.raises(HTTPException) as excinfo:
        await get_rag_service(mock_request)

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_get_rag_service_construction_error():
    """Test error handling when the RAG service cannot be built."""
    mock_app = MagicMock()
    mock_app.state = MagicMock(spec=[])
    mock_request = MagicMock()
    mock_request.app = mock_app

    with patch("healthchat.rag.dependencies.RagService", side_effect=Exception("bad config")), \
         pytest.raises(HTTPException) as excinfo:
        await get_rag_service(mock_request)

    assert excinfo.value.status_code == 503
    assert "bad config" in excinfo.value.detail
