"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, ConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./results.db",
        description="Database connection URL"
    )

    # === Admin ===
    admin_api_key: Optional[str] = Field(
        default=None,
        description="Shared key for the admin import route (X-Admin-Key)"
    )

    # === Upstream HTTP ===
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
    )
    http_max_retries: int = Field(
        default=2,
        ge=0,
        description="Retries for idempotent GETs on transport errors / 502-504"
    )
    http_retry_backoff_s: float = Field(default=1.0, ge=0)

    # === Sporthive ===
    sporthive_api_base: str = Field(
        default="https://eventresults-api.sporthive.com/api"
    )
    sporthive_page_size: int = Field(default=50, gt=0)
    sporthive_delay_s: float = Field(default=0.35, ge=0)
    sporthive_timeout_s: float = Field(default=15.0, gt=0)

    # === RaceResult ===
    raceresult_base_url: str = Field(default="https://my.raceresult.com")
    raceresult_page_size: int = Field(default=500, gt=0)
    raceresult_delay_s: float = Field(default=0.3, ge=0)
    raceresult_timeout_s: float = Field(default=20.0, gt=0)
    raceresult_list_candidates: List[str] = Field(
        default_factory=lambda: [
            "Online|Final",
            "Results|All",
            "Online|Results",
            "Results|Final",
            "Online|All",
        ],
        description="List names probed in order during discovery"
    )

    # === Ingestion ===
    ingest_batch_size: int = Field(default=50, gt=0)
    ingest_sample_size: int = Field(default=3, ge=0)

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('raceresult_list_candidates', mode='before')
    @classmethod
    def parse_list_candidates(cls, v):
        """Parse list candidates from comma-separated string."""
        if isinstance(v, str):
            return [name.strip() for name in v.split(',') if name.strip()]
        return v

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
