"""
Configuration settings for the health consultation knowledge service.
"""
from typing import Annotated, List, Optional
import os

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_CORPUS_FILES = [
    "health.json",
    "math.json",
    "physics.json",
    "chemistry.json",
    "logic.json",
    "uploaded_documents.json",
]


class ServiceSettings(BaseSettings):
    """Main service configuration settings."""

    name: str = Field(default="healthchat")
    version: str = Field(default="1.0.0")
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # HTTP server settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    cors_origins: Annotated[List[str], NoDecode] = Field(default=["http://localhost:5173"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins string to list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    model_config = SettingsConfigDict(env_prefix="SERVICE_")


class EmbeddingSettings(BaseSettings):
    """Hosted embedding API settings."""

    base_url: str = Field(default="https://api-inference.modelscope.cn/v1")
    model_name: str = Field(default="Qwen/Qwen3-Embedding-8B")
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("EMBEDDING_API_KEY", "MODELSCOPE_API_KEY"),
    )
    timeout: float = Field(default=30.0, gt=0)
    batch_timeout: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_", populate_by_name=True)


class RAGSettings(BaseSettings):
    """RAG (Retrieval-Augmented Generation) configuration settings."""

    enabled: bool = Field(default=True)
    corpus_dir: str = Field(default="data/knowledge")
    corpus_files: Annotated[List[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_CORPUS_FILES))
    default_category: str = Field(default="math")

    # Tuning knobs
    batch_size: int = Field(default=10, gt=0)
    similarity_threshold: float = Field(default=0.2, ge=-1.0, le=1.0)
    default_top_k: int = Field(default=5, ge=1)
    context_top_k: int = Field(default=3, ge=1)
    query_timeout: float = Field(default=45.0, gt=0)

    @field_validator("corpus_files", mode="before")
    @classmethod
    def parse_corpus_files(cls, v):
        """Parse comma separated corpus file names to list."""
        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]
        return v

    model_config = SettingsConfigDict(env_prefix="RAG_")


class MonitoringSettings(BaseSettings):
    """Monitoring and logging configuration settings."""

    metrics_enabled: bool = Field(default=True)
    log_level: str = Field(default="info")
    log_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="MONITORING_")


class Settings(BaseSettings):
    """Main settings class that combines all configuration sections."""

    service: ServiceSettings = Field(default_factory=ServiceSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    rag: RAGSettings = Field(default_factory=RAGSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


# Environment-specific overrides
if os.getenv("ENVIRONMENT") == "production":
    settings.service.debug = False
    settings.monitoring.log_level = "warning"
elif os.getenv("ENVIRONMENT") == "testing":
    settings.service.debug = True
    settings.monitoring.log_level = "debug"
