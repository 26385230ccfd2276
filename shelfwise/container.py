"""
Service wiring.

One ServiceContainer per process: it owns the database, the rate limiter and
every service, and hands the same instances to whoever asks.
"""

from typing import Optional

from loguru import logger

from .config import Settings, get_settings
from .exceptions import ConfigurationError


class ServiceContainer:
    """
    Container for lazy-loaded service instances.

    Services are initialized on first access to avoid startup delays.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._database = None
        self._book_cache = None
        self._preferences = None
        self._saved_books = None
        self._rate_limiter = None
        self._content_generator = None
        self._enrichment = None
        self._search_service = None
        self._identification = None
        self._expander = None
        self._scorer = None
        self._pipeline = None

    @property
    def database(self):
        """Get database instance."""
        if self._database is None:
            from .storage import Database
            self._database = Database(
                self.settings.database_url,
                echo=self.settings.database_echo,
            )
        return self._database

    @property
    def book_cache(self):
        """Get book cache instance."""
        if self._book_cache is None:
            from .storage import BookCache
            self._book_cache = BookCache(self.database)
        return self._book_cache

    @property
    def preferences(self):
        """Get preference repository instance."""
        if self._preferences is None:
            from .storage import PreferenceRepository
            self._preferences = PreferenceRepository(self.database)
        return self._preferences

    @property
    def saved_books(self):
        """Get saved-book repository instance."""
        if self._saved_books is None:
            from .storage import SavedBookRepository
            self._saved_books = SavedBookRepository(self.database)
        return self._saved_books

    @property
    def rate_limiter(self):
        """Get rate limiter instance."""
        if self._rate_limiter is None:
            from .ratelimit import DatabaseCounterStore, InMemoryCounterStore, RateLimiter

            backend = self.settings.rate_limit_backend
            if backend == "memory":
                store = InMemoryCounterStore()
            elif backend == "database":
                store = DatabaseCounterStore(self.database)
            else:
                raise ConfigurationError(
                    f"Unknown rate limit backend: {backend}",
                    detail="RATE_LIMIT_BACKEND must be 'memory' or 'database'",
                )
            self._rate_limiter = RateLimiter(store)
        return self._rate_limiter

    @property
    def content_generator(self):
        """Get rating/summary generator instance."""
        if self._content_generator is None:
            from .enrichment import create_content_generator
            self._content_generator = create_content_generator(
                self.rate_limiter,
                api_key=self.settings.openai_api_key,
                model=self.settings.openai_model,
                timeout=self.settings.http_timeout_seconds,
            )
        return self._content_generator

    @property
    def enrichment(self):
        """Get enrichment service instance."""
        if self._enrichment is None:
            from .enrichment import EnrichmentService
            self._enrichment = EnrichmentService(
                cache=self.book_cache,
                generator=self.content_generator,
                saved_books=self.saved_books,
                rating_ttl_days=self.settings.rating_ttl_days,
                summary_ttl_days=self.settings.summary_ttl_days,
                concurrency=self.settings.enrichment_concurrency,
            )
        return self._enrichment

    @property
    def search_service(self):
        """Get title search instance."""
        if self._search_service is None:
            from .identification import BookSearchService, GoogleBooksClient, OpenLibraryClient
            timeout = self.settings.http_timeout_seconds
            self._search_service = BookSearchService(
                rate_limiter=self.rate_limiter,
                google_books=GoogleBooksClient(self.settings.google_books_api_key, timeout=timeout),
                open_library=OpenLibraryClient(timeout=timeout),
            )
        return self._search_service

    @property
    def identification(self):
        """Get identification service instance."""
        if self._identification is None:
            from .identification import IdentificationService
            self._identification = IdentificationService(
                search_service=self.search_service,
                cache=self.book_cache,
                similarity_threshold=self.settings.match_threshold,
                concurrency=self.settings.enrichment_concurrency,
            )
        return self._identification

    @property
    def expander(self):
        """Get candidate expander instance."""
        if self._expander is None:
            from .recommendations import CandidateExpander
            self._expander = CandidateExpander(
                search_service=self.search_service,
                max_candidates=self.settings.max_external_candidates,
                max_terms=self.settings.max_preference_terms,
            )
        return self._expander

    @property
    def scorer(self):
        """Get recommendation scorer instance."""
        if self._scorer is None:
            from .recommendations import RecommendationScorer
            self._scorer = RecommendationScorer()
        return self._scorer

    @property
    def pipeline(self):
        """Get recommendation pipeline instance."""
        if self._pipeline is None:
            from .recommendations import RecommendationPipeline
            self._pipeline = RecommendationPipeline(
                identification=self.identification,
                expander=self.expander,
                enrichment=self.enrichment,
                scorer=self.scorer,
                enrich_external_candidates=self.settings.enrich_external_candidates,
            )
        return self._pipeline

    def startup(self) -> None:
        """Run startup maintenance: drop untrusted ratings and expired entries."""
        cleared = self.book_cache.cleanup_non_openai_ratings()
        removed = self.enrichment.run_maintenance()
        logger.info(
            f"Startup maintenance done: {cleared} ratings cleared, {removed} expired entries removed"
        )

    async def close(self) -> None:
        """Release HTTP clients and the database engine."""
        if self._search_service is not None:
            await self._search_service.close()
        if self._database is not None:
            self._database.dispose()
