"""
Centralized exception handling for the knowledge retrieval service.
"""
from typing import Any, Dict, Optional
import structlog

logger = structlog.get_logger(__name__)


class HealthChatException(Exception):
    """Base exception for the health consultation service."""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
        user_message: Optional[str] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.status_code = status_code
        self.user_message = user_message or message

        super().__init__(self.message)

        # Log the exception
        logger.error(
            "HealthChat exception raised",
            error_code=self.error_code,
            message=self.message,
            details=self.details,
            status_code=self.status_code
        )


class ConfigurationError(HealthChatException):
    """Configuration and setup errors."""

    def __init__(self, component: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Configuration error in {component}: {message}",
            error_code="CONFIGURATION_ERROR",
            details=details or {"component": component},
            status_code=500
        )


class CorpusError(HealthChatException):
    """Knowledge corpus file errors."""

    def __init__(self, filename: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Corpus file {filename} rejected: {message}",
            error_code="CORPUS_ERROR",
            details=details or {"filename": filename},
            status_code=500
        )


class EmbeddingProviderError(HealthChatException):
    """Embedding provider errors."""

    def __init__(
        self,
        operation: str,
        message: str,
        error_code: str = "EMBEDDING_PROVIDER_ERROR",
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None
    ):
        self.operation = operation
        super().__init__(
            message=f"Embedding {operation} failed: {message}",
            error_code=error_code,
            details=details or {"operation": operation},
            status_code=status_code
        )


class EmbeddingCredentialError(EmbeddingProviderError):
    """Missing or rejected embedding API credential."""

    def __init__(self, operation: str, message: str = "API key missing or rejected",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(
            operation=operation,
            message=message,
            error_code="EMBEDDING_CREDENTIAL_ERROR",
            status_code=401,
            details=details
        )


class EmbeddingTransportError(EmbeddingProviderError):
    """Network, timeout or protocol failure talking to the embedding API."""

    def __init__(self, operation: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            operation=operation,
            message=message,
            error_code="EMBEDDING_TRANSPORT_ERROR",
            status_code=502,
            details=details
        )


class DimensionMismatchError(HealthChatException):
    """Query and stored vectors disagree on dimensionality."""

    def __init__(self, expected: int, actual: int, details: Optional[Dict[str, Any]] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=f"Vector dimension mismatch: {expected} != {actual}",
            error_code="DIMENSION_MISMATCH",
            details=details or {"expected": expected, "actual": actual},
            status_code=500
        )


class RetrievalError(HealthChatException):
    """Knowledge retrieval errors."""

    def __init__(self, operation: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Retrieval {operation} failed: {message}",
            error_code="RETRIEVAL_ERROR",
            details=details or {"operation": operation},
            status_code=500
        )


def handle_exception(exc: Exception) -> Dict[str, Any]:
    """Convert any exception to a standardized error response."""
    if isinstance(exc, HealthChatException):
        return {
            "error": exc.error_code,
            "message": exc.user_message,
            "details": exc.details,
            "status_code": exc.status_code
        }

    logger.error("Unhandled exception", error_type=type(exc).__name__, error=str(exc))
    return {
        "error": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
        "details": {},
        "status_code": 500
    }


def is_client_error(exc: Exception) -> bool:
    """Check if the exception represents a client error (4xx)."""
    if isinstance(exc, HealthChatException):
        return 400 <= exc.status_code < 500
    return False
