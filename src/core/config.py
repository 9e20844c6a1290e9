"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Auth0
    auth0_domain: str = Field(default="", validation_alias="AUTH0_DOMAIN")
    auth0_audience: str = Field(default="", validation_alias="AUTH0_AUDIENCE")

    # Development mode - bypasses auth for local development
    dev_mode: bool = Field(default=False, validation_alias="DEV_MODE")

    # Deployment environment - production enables SSRF hardening on submitted URLs
    app_env: Literal["development", "production"] = Field(
        default="development", validation_alias="APP_ENV",
    )
    app_url: str = Field(default="http://localhost:3000", validation_alias="APP_URL")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    # Scraping
    use_lightweight_scraper: bool = Field(
        default=False, validation_alias="USE_LIGHTWEIGHT_SCRAPER",
    )
    # Set by the Railway platform; its containers ship without a Chromium binary
    railway_environment: str | None = Field(
        default=None, validation_alias="RAILWAY_ENVIRONMENT",
    )
    browser_scrape_timeout: float = Field(
        default=30.0, validation_alias="BROWSER_SCRAPE_TIMEOUT",
    )
    lightweight_scrape_timeout: float = Field(
        default=10.0, validation_alias="LIGHTWEIGHT_SCRAPE_TIMEOUT",
    )
    # Overrides the lightweight scraper's bot User-Agent
    scraper_user_agent: str | None = Field(default=None, validation_alias="SCRAPER_USER_AGENT")

    # LLM providers - precedence is Anthropic, then OpenRouter, then OpenAI
    anthropic_api_key: str | None = Field(default=None, validation_alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(
        default="claude-3-haiku-20240307", validation_alias="ANTHROPIC_MODEL",
    )
    openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(
        default="anthropic/claude-3-haiku", validation_alias="OPENROUTER_MODEL",
    )
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")
    llm_timeout_seconds: float = Field(default=60.0, validation_alias="LLM_TIMEOUT_SECONDS")

    # Rate limiting and retention
    links_per_hour_limit: int = Field(default=30, validation_alias="LINKS_PER_HOUR_LIMIT")
    violation_retention_days: int = Field(
        default=30, validation_alias="VIOLATION_RETENTION_DAYS",
    )

    @model_validator(mode="after")
    def validate_dev_mode_security(self) -> "Settings":
        """
        Prevent DEV_MODE from being enabled with a production database.

        DEV_MODE completely bypasses authentication, so we must ensure it's only
        used with local development databases to prevent accidental production exposure.
        """
        if not self.dev_mode:
            return self

        # SQLite databases are always local files (or in-memory)
        if self.database_url.startswith("sqlite"):
            return self

        try:
            parsed = urlparse(self.database_url)
            hostname = parsed.hostname or ""
        except ValueError:
            hostname = ""

        local_hosts = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}
        if hostname.lower() not in local_hosts:
            raise ValueError(
                f"DEV_MODE cannot be enabled with a non-local database. "
                f"Database host '{hostname}' appears to be a production database. "
                f"DEV_MODE bypasses all authentication and must only be used locally.",
            )

        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Whether the app runs in a production-like deployment."""
        return self.app_env == "production"

    @property
    def force_lightweight_scraper(self) -> bool:
        """Whether the browser scraper must be skipped entirely."""
        return self.use_lightweight_scraper or self.railway_environment is not None

    @property
    def auth0_issuer(self) -> str:
        """Get the Auth0 issuer URL."""
        return f"https://{self.auth0_domain}/"

    @property
    def auth0_jwks_url(self) -> str:
        """Get the Auth0 JWKS URL for fetching public keys."""
        return f"https://{self.auth0_domain}/.well-known/jwks.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
