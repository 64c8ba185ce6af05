"""
Application Configuration

Every tunable of the service (database, providers, query pipeline, auth)
in one pydantic-settings object, read from the environment or `.env`.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    mindnotes settings.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        POSTGRES_PORT (5432), LOG_LEVEL (INFO), EMBEDDING_PROVIDER (openai),
        LLM_PROVIDER (ollama), EXTERNAL_CALL_TIMEOUT (8.0), AUTH_VERIFY_URL,
        RAG_MIN_SCORE, and the provider model names below.
    """

    PROJECT_NAME: str = "mindnotes"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str
    DB_POOL_SIZE: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"

    # Embeddings
    EMBEDDING_PROVIDER: Literal["openai", "local"] = "openai"
    OPENAI_API_KEY: str | None = None
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    LOCAL_EMBEDDING_MODEL: str = "all-MiniLM-L6-v2"
    # Must match the note_vectors column; 384 for all-MiniLM-L6-v2
    EMBEDDING_DIMENSION: int = 1536

    # Completion
    LLM_PROVIDER: Literal["ollama", "openai"] = "ollama"
    OLLAMA_BASE_URL: str = "http://host.docker.internal:11434"
    OLLAMA_MODEL: str = "mistral"
    OPENAI_COMPLETION_MODEL: str = "gpt-4o-mini"

    # Query pipeline
    EXTERNAL_CALL_TIMEOUT: float = 8.0
    RAG_MIN_SCORE: float | None = None
    PROMPT_MAX_EXCERPT_CHARS: int = 600
    PROMPT_MAX_CONTEXT_CHARS: int = 3000

    # Authentication
    AUTH_VERIFY_URL: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL connection string using asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()  # type: ignore[call-arg]
