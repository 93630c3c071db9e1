"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        ELASTICSEARCH_URL (http://localhost:9200), ELASTICSEARCH_INDEX (soap_notes),
        ELASTICSEARCH_TIMEOUT (2.0), OPENAI_API_KEY (unset = mock mode),
        TENANT_HEADER (X-Tenant-ID), LOG_LEVEL (INFO)
    """

    PROJECT_NAME: str = "SOAP Assist"

    # Elasticsearch (suggestion index)
    ELASTICSEARCH_URL: str = "http://localhost:9200"
    ELASTICSEARCH_INDEX: str = "soap_notes"
    ELASTICSEARCH_USERNAME: str | None = None
    ELASTICSEARCH_PASSWORD: str | None = None
    ELASTICSEARCH_TIMEOUT: float = 2.0  # Exceeding it counts as "index unavailable"
    ELASTICSEARCH_REFRESH: str = "false"  # "wait_for" makes writes searchable on return

    # Record store (pets, medical records)
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str

    # OpenAI (prompted suggestions and paraphrasing)
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-3.5-turbo"
    OPENAI_TIMEOUT: float = 15.0

    # Request handling
    TENANT_HEADER: str = "X-Tenant-ID"
    SUGGEST_MIN_CHARS: int = 3
    MAX_INPUT_LENGTH: int = 1000
    PARAPHRASE_MIN_WORDS: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"

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

    @property
    def ELASTICSEARCH_AUTH(self) -> tuple[str, str] | None:
        """Basic-auth pair, or None when the cluster runs without security."""
        if self.ELASTICSEARCH_USERNAME and self.ELASTICSEARCH_PASSWORD:
            return (self.ELASTICSEARCH_USERNAME, self.ELASTICSEARCH_PASSWORD)
        return None


settings = Settings()  # type: ignore[call-arg]
