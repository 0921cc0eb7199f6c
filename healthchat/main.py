"""
Main FastAPI application for the health consultation knowledge service.
"""
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from healthchat.config.settings import Settings, get_settings
from healthchat.core.exceptions import HealthChatException, handle_exception, is_client_error
from healthchat.rag.api import router as knowledge_router
from healthchat.rag.service import RagService

logger = structlog.get_logger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", level=settings.monitoring.log_level.upper())

    if settings.monitoring.log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = app.state.settings
    logger.info("Starting knowledge service", version=settings.service.version, environment=settings.service.environment)

    rag_service = None
    if settings.rag.enabled:
        try:
            rag_service = RagService(settings)
            app.state.rag_service = rag_service
            await rag_service.initialize()
        except Exception as e:
            logger.error("Failed to initialize RAG engine", error=str(e))
            if settings.service.debug:
                raise
    else:
        logger.info("RAG engine disabled in settings")

    try:
        yield
    finally:
        logger.info("Shutting down knowledge service")
        if rag_service is not None:
            await rag_service.close()


def create_app(settings: Settings = None) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="HealthChat Knowledge Service",
        description="Knowledge retrieval and RAG context for health consultation chat",
        version=settings.service.version,
        docs_url="/docs" if settings.service.debug else None,
        redoc_url="/redoc" if settings.service.debug else None,
        openapi_url="/openapi.json" if settings.service.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.service.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(knowledge_router, prefix="/api")

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add process time header to responses."""
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response

    @app.exception_handler(HealthChatException)
    async def healthchat_exception_handler(request: Request, exc: HealthChatException):
        """Handle service exceptions."""
        if is_client_error(exc):
            logger.warning("Client error", path=request.url.path, error_code=exc.error_code)
        else:
            logger.error("Service error", path=request.url.path, error_code=exc.error_code)

        content = handle_exception(exc)
        content["timestamp"] = time.time()
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        rag_service = getattr(app.state, "rag_service", None)

        return {
            "status": "healthy",
            "rag": rag_service.stats().model_dump() if rag_service else None,
            "timestamp": time.time()
        }

    if settings.monitoring.metrics_enabled:
        @app.get("/metrics")
        async def metrics():
            """Prometheus metrics endpoint."""
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
