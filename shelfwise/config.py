"""
Configuration for ShelfWise.

Settings are read from the environment (and a local ``.env`` file) once per
process and handed to ``ServiceContainer``.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite:///:memory:"
    database_echo: bool = False

    # LLM
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"

    # External APIs
    google_books_api_key: Optional[str] = None
    http_timeout_seconds: float = 15.0

    # Rate limiting
    rate_limit_backend: str = "memory"  # memory, database

    # Cache lifetimes
    rating_ttl_days: int = 90
    summary_ttl_days: int = 120

    # Matching and recommendations
    match_threshold: float = 0.6
    max_external_candidates: int = 30
    max_preference_terms: int = 5
    enrichment_concurrency: int = 8
    enrich_external_candidates: bool = True

    # Environment
    log_level: str = "INFO"
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=_env_bool("DATABASE_ECHO", "false"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            google_books_api_key=os.getenv("GOOGLE_BOOKS_API_KEY"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", cls.http_timeout_seconds)),
            rate_limit_backend=os.getenv("RATE_LIMIT_BACKEND", cls.rate_limit_backend).lower(),
            rating_ttl_days=int(os.getenv("RATING_TTL_DAYS", cls.rating_ttl_days)),
            summary_ttl_days=int(os.getenv("SUMMARY_TTL_DAYS", cls.summary_ttl_days)),
            match_threshold=float(os.getenv("MATCH_THRESHOLD", cls.match_threshold)),
            max_external_candidates=int(os.getenv("MAX_EXTERNAL_CANDIDATES", cls.max_external_candidates)),
            max_preference_terms=int(os.getenv("MAX_PREFERENCE_TERMS", cls.max_preference_terms)),
            enrichment_concurrency=int(os.getenv("ENRICHMENT_CONCURRENCY", cls.enrichment_concurrency)),
            enrich_external_candidates=_env_bool("ENRICH_EXTERNAL_CANDIDATES", "true"),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            environment=os.getenv("SHELFWISE_ENV", cls.environment),
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    load_dotenv()
    return Settings.from_env()
