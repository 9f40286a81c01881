"""Configuration management for the Kai journal service."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # Sandboxed environments may not expose .env; variables are set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Environment
    KAI_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    KAI_TABLE_PREFIX: str = Field(
        default="my_kb_", description="Prefix applied to every table name"
    )

    # Generation API
    KAI_LLM_PROVIDER: str = Field(
        default="gemini", description="Generation provider: gemini or anthropic"
    )
    GOOGLE_AI_API_KEY: str | None = Field(default=None, description="Google AI API key")
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash", description="Gemini model name")
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST base URL",
    )
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    ANTHROPIC_MODEL: str = Field(
        default="claude-haiku-4-5-20251001", description="Anthropic model name"
    )
    LLM_MAX_RETRIES: int = Field(default=3, description="Attempts per generation call")
    LLM_TIMEOUT_SECONDS: float = Field(default=60.0, description="HTTP timeout for generation")

    # Retrieval pipeline
    MAX_RETRIEVAL_CANDIDATES: int = Field(
        default=50, description="Max entries sent to the semantic matching call"
    )
    RERANK_ENTRY_CHARS: int = Field(
        default=400, description="Entry text truncation for the semantic matching call"
    )
    RERANK_FALLBACK_LIMIT: int = Field(
        default=5, description="Pre-filtered entries kept when semantic matching fails"
    )
    CHAT_HISTORY_WINDOW: int = Field(
        default=4, description="Conversation exchanges included in the chat prompt"
    )

    # Keyword backfill
    KEYWORD_BACKFILL_DELAY_SECONDS: float = Field(
        default=7.0, description="Delay between successive keyword generation calls"
    )
    KEYWORD_RATE_LIMIT_PAUSE_SECONDS: float = Field(
        default=40.0, description="Pause before the single retry after a 429"
    )
    KEYWORD_BACKFILL_CONCURRENCY: int = Field(
        default=1, description="Keyword backfill workers"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
