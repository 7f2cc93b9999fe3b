"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class VectorStoreType(str, Enum):
    """Supported vector store backends."""

    MEMORY = "memory"
    POSTGRES = "postgres"
    QDRANT = "qdrant"


class OpenAISettings(BaseSettings):
    """Cloud embedding provider configuration.

    The cloud provider is only selected when an API key is present.
    """

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: SecretStr | None = Field(
        default=None,
        description="OpenAI API key (enables the cloud provider)",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API base URL",
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds",
    )


class OllamaSettings(BaseSettings):
    """Local embedding provider configuration."""

    model_config = SettingsConfigDict(env_prefix="OLLAMA_")

    base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL",
    )
    embedding_model: str = Field(
        default="bge-small-en",
        description="Embedding model name",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds",
    )


class EmbeddingSettings(BaseSettings):
    """Provider-independent embedding behaviour."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    max_tokens_per_chunk: int = Field(
        default=8191,
        ge=1,
        description="Estimated token limit before text is split and averaged",
    )
    max_concurrency: int = Field(
        default=5,
        ge=1,
        description="Concurrent single-text requests for providers without batching",
    )


class DatabaseSettings(BaseSettings):
    """Vector store backend selection."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    type: VectorStoreType = Field(
        default=VectorStoreType.MEMORY,
        description="Vector store backend",
    )


class PostgresSettings(BaseSettings):
    """PostgreSQL (pgvector) configuration."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="mcp_docs", description="Database name")
    user: str = Field(default="postgres", description="Database user")
    password: SecretStr = Field(
        default=SecretStr("password"),
        description="Database password",
    )
    min_pool_size: int = Field(default=1, ge=1, description="Minimum pool size")
    max_pool_size: int = Field(default=10, ge=1, description="Maximum pool size")
    command_timeout: float = Field(
        default=60.0,
        description="Statement timeout in seconds",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="documents",
        description="Collection holding document chunks",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        description="Points per upsert request",
    )


class IngestionSettings(BaseSettings):
    """Chunking and ingestion defaults."""

    model_config = SettingsConfigDict(env_prefix="INGEST_")

    max_chunk_size: int = Field(default=1000, ge=1, description="Chunk size in characters")
    overlap: int = Field(default=200, ge=0, description="Overlap between chunks")
    max_concurrency: int = Field(
        default=5,
        ge=1,
        description="Documents ingested concurrently",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=6111,
        description="API server port",
    )

    # Nested settings
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
