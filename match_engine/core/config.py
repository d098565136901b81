"""Configuration management for the Playdate Match Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
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
    MATCH_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Internal tooling (sync pipeline, admin scripts)
    ADMIN_API_KEY: str | None = Field(
        default=None, description="API key accepted for internal endpoints such as cache invalidation"
    )

    # Matcher configuration
    MATCHER_CANDIDATE_CACHE_TTL_SECONDS: float = Field(
        default=300.0, description="Freshness window for the in-memory candidate snapshot"
    )
    MATCHER_RELEASE_CHANNELS: list[str] = Field(
        default_factory=lambda: ["sampler", "pack-only"],
        description="Release channels whose playdates are publicly offerable",
    )
    MATCHER_CANDIDATE_PAGE_SIZE: int = Field(
        default=1000, description="Playdates read per request when refreshing the candidate snapshot"
    )
    MATCHER_MAX_FILTER_ITEMS: int = Field(
        default=50, description="Max items accepted per matcher filter array"
    )
    MATCHER_MAX_TAG_LENGTH: int = Field(
        default=100, description="Max characters kept per matcher filter item"
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
