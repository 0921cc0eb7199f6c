"""Embedding Provider for the RAG layer

This module provides embedding generation through a hosted, OpenAI-compatible
``/embeddings`` endpoint (the ModelScope inference API by default), converting
text into vector representations for semantic search.
"""

from typing import Any, List, Optional, Sequence
from abc import ABC, abstractmethod
import time

import httpx
import numpy as np
import structlog

from healthchat.config.settings import EmbeddingSettings
from healthchat.core.exceptions import (
    DimensionMismatchError,
    EmbeddingCredentialError,
    EmbeddingTransportError,
)
from healthchat.core.metrics import record_embedding_request

logger = structlog.get_logger(__name__)


class BaseEmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    model_name: str = "unknown"

    @abstractmethod
    async def embed_one(self, text: str, api_key: Optional[str] = None) -> List[float]:
        """Generate an embedding for a single text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: List[str], api_key: Optional[str] = None) -> List[List[float]]:
        """Generate embeddings for several texts, in input order."""
        pass

    async def aclose(self) -> None:
        """Release any underlying resources."""
        return None


class ModelScopeEmbeddingProvider(BaseEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible HTTP API."""

    def __init__(
        self,
        base_url: str,
        model_name: str,
        default_api_key: Optional[str] = None,
        timeout: float = 30.0,
        batch_timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the embedding provider.

        Args:
            base_url: API root, e.g. ``https://api-inference.modelscope.cn/v1``
            model_name: Embedding model identifier
            default_api_key: Key used when a call does not pass its own
            timeout: Timeout in seconds for single-text requests
            batch_timeout: Timeout in seconds for batch requests
            transport: Optional httpx transport override
        """
        self.base_url = base_url
        self.model_name = model_name
        self.default_api_key = default_api_key
        self.timeout = timeout
        self.batch_timeout = batch_timeout
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport)

        logger.info(
            "Embedding provider initialized",
            base_url=base_url,
            model=model_name,
            has_default_key=bool(default_api_key)
        )

    def _resolve_api_key(self, api_key: Optional[str]) -> Optional[str]:
        return api_key or self.default_api_key

    async def embed_one(self, text: str, api_key: Optional[str] = None) -> List[float]:
        """Generate an embedding for a single text.

        Args:
            text: Text to embed
            api_key: Optional key overriding the default one

        Returns:
            Vector embedding
        """
        embeddings = await self._request("embed_one", text, api_key, self.timeout)
        if len(embeddings) != 1:
            raise EmbeddingTransportError(
                "embed_one",
                f"expected 1 embedding, got {len(embeddings)}"
            )
        return embeddings[0]

    async def embed_batch(self, texts: List[str], api_key: Optional[str] = None) -> List[List[float]]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed
            api_key: Optional key overriding the default one

        Returns:
            List of vector embeddings in input order
        """
        if not texts:
            return []

        embeddings = await self._request("embed_batch", list(texts), api_key, self.batch_timeout)
        if len(embeddings) != len(texts):
            raise EmbeddingTransportError(
                "embed_batch",
                f"expected {len(texts)} embeddings, got {len(embeddings)}"
            )
        return embeddings

    async def _request(
        self,
        operation: str,
        payload_input: Any,
        api_key: Optional[str],
        timeout: float
    ) -> List[List[float]]:
        key = self._resolve_api_key(api_key)
        if not key:
            raise EmbeddingCredentialError(operation, "API key not configured")

        start_time = time.perf_counter()
        outcome = "error"
        try:
            try:
                response = await self._client.post(
                    "/embeddings",
                    json={
                        "model": self.model_name,
                        "input": payload_input,
                        "encoding_format": "float"
                    },
                    headers={"Authorization": f"Bearer {key}"},
                    timeout=timeout
                )
            except httpx.TimeoutException as e:
                outcome = "timeout"
                raise EmbeddingTransportError(operation, f"request timed out after {timeout}s") from e
            except httpx.HTTPError as e:
                raise EmbeddingTransportError(operation, str(e) or type(e).__name__) from e

            if response.status_code in (401, 403):
                outcome = "unauthorized"
                raise EmbeddingCredentialError(
                    operation,
                    f"API key rejected (HTTP {response.status_code})",
                    details={"operation": operation, "status_code": response.status_code}
                )
            if response.status_code >= 400:
                raise EmbeddingTransportError(
                    operation,
                    f"HTTP {response.status_code}",
                    details={
                        "operation": operation,
                        "status_code": response.status_code,
                        "body": response.text[:500]
                    }
                )

            embeddings = self._parse_embeddings(operation, response)
            outcome = "success"

            logger.debug(
                "Embedding request completed",
                operation=operation,
                model=self.model_name,
                count=len(embeddings),
                dimension=len(embeddings[0]) if embeddings else 0,
                time_ms=round((time.perf_counter() - start_time) * 1000, 2)
            )
            return embeddings
        finally:
            record_embedding_request(operation, outcome, time.perf_counter() - start_time)

    @staticmethod
    def _parse_embeddings(operation: str, response: httpx.Response) -> List[List[float]]:
        try:
            data = response.json()["data"]
            ordered = sorted(
                enumerate(data),
                key=lambda pair: pair[1].get("index", pair[0])
            )
            return [[float(value) for value in item["embedding"]] for _, item in ordered]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise EmbeddingTransportError(operation, f"malformed response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()


def create_embedding_provider(
    embedding_settings: EmbeddingSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> ModelScopeEmbeddingProvider:
    """Build the HTTP embedding provider from settings."""
    return ModelScopeEmbeddingProvider(
        base_url=embedding_settings.base_url,
        model_name=embedding_settings.model_name,
        default_api_key=embedding_settings.api_key,
        timeout=embedding_settings.timeout,
        batch_timeout=embedding_settings.batch_timeout,
        transport=transport
    )


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Calculate cosine similarity between two embeddings.

    Args:
        vec1: First embedding
        vec2: Second embedding

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)

    if a.shape != b.shape:
        raise DimensionMismatchError(expected=a.size, actual=b.size)

    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0

    return float(np.dot(a, b) / norm)
