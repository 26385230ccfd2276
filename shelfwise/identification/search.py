"""
Title Search

Google Books first, Open Library as fallback. Upstream ratings are never
passed on; only LLM-curated ratings are shown.
"""

from dataclasses import replace
from typing import Optional

from loguru import logger

from shelfwise.exceptions import ExternalServiceError
from shelfwise.models import CandidateBook
from shelfwise.ratelimit import RateLimiter

from .google_books import GoogleBooksClient
from .open_library import OpenLibraryClient

MIN_TITLE_LENGTH = 2


class BookSearchService:
    """Rate-limited title search over the public book catalogs."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        google_books: Optional[GoogleBooksClient] = None,
        open_library: Optional[OpenLibraryClient] = None,
        max_results: int = 5,
    ):
        self.rate_limiter = rate_limiter
        self.google_books = google_books or GoogleBooksClient()
        self.open_library = open_library or OpenLibraryClient()
        self.max_results = max_results

    async def search_by_title(self, title: str) -> list[CandidateBook]:
        """
        Search for books matching a title.

        Args:
            title: Detected or preferred title (or an author name)

        Returns:
            Candidates without upstream ratings; [] when nothing is found,
            a limit is reached, or both catalogs fail
        """
        if not title or len(title.strip()) < MIN_TITLE_LENGTH:
            logger.debug(f"Skipping search for invalid title: {title!r}")
            return []

        title = title.strip()
        logger.info(f"Searching for book: '{title}'")

        if not await self.rate_limiter.check_and_increment("google-books"):
            logger.warning(f"Rate limit reached for Google Books API, skipping search for '{title}'")
            return []

        try:
            results = await self.google_books.search_title(title, max_results=self.max_results)
        except ExternalServiceError as e:
            logger.warning(f"Google Books search failed for '{title}': {e.detail}")
            results = []

        if results:
            logger.info(f"Found {len(results)} Google Books results for '{title}'")
            return [replace(book, rating=None, detected_from=title) for book in results]

        if not await self.rate_limiter.check_and_increment("open-library"):
            logger.warning(f"Rate limit reached for Open Library API, skipping fallback search for '{title}'")
            return []

        try:
            results = await self.open_library.search(title, limit=self.max_results)
        except ExternalServiceError as e:
            logger.warning(f"Open Library search failed for '{title}': {e.detail}")
            return []

        logger.info(f"Found {len(results)} OpenLibrary results for '{title}'")
        return [
            replace(book, rating=None, summary=None, detected_from=title)
            for book in results
        ]

    async def close(self):
        await self.open_library.close()
