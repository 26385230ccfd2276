"""
Identification Service

Resolves titles detected on a shelf photo to catalog books.
"""

import asyncio
from dataclasses import replace
from typing import Optional

from loguru import logger

from shelfwise.models import CandidateBook
from shelfwise.storage import BookCache

from .fuzzy import best_match_with_score
from .search import BookSearchService


class IdentificationService:
    """Service for identifying books from detected titles."""

    def __init__(
        self,
        search_service: BookSearchService,
        cache: Optional[BookCache] = None,
        similarity_threshold: float = 0.6,
        concurrency: int = 8,
    ):
        """
        Initialize service.

        Args:
            search_service: Title search
            cache: Book cache for previously generated ratings/summaries
            similarity_threshold: Best result must score strictly above this
            concurrency: Max searches in flight
        """
        self.search_service = search_service
        self.cache = cache
        self.similarity_threshold = similarity_threshold
        self.concurrency = max(1, concurrency)

    async def identify_title(self, title: str) -> Optional[CandidateBook]:
        """
        Identify a single detected title.

        Returns:
            The closest search result, or None if nothing is close enough
        """
        results = await self.search_service.search_by_title(title)
        if not results:
            logger.info(f"No results found for '{title}'")
            return None

        match, score = best_match_with_score(title, results)
        if match is None or score <= self.similarity_threshold:
            logger.info(f"No close match for '{title}' (best similarity {score:.2f})")
            return None

        book = replace(match, from_shelf=True, detected_from=title)
        return self._apply_cached_content(book)

    def _apply_cached_content(self, book: CandidateBook) -> CandidateBook:
        if self.cache is None:
            return book

        cached = self.cache.find_in_cache(book.title, book.author)
        if cached is None or not cached.is_authoritative:
            logger.debug(f"No cached OpenAI data found for '{book.title}'")
            return book

        logger.debug(
            f"Using cached OpenAI data for detected book '{book.title}': "
            f"rating={cached.rating}, summary={'yes' if cached.summary else 'no'}"
        )
        return replace(
            book,
            rating=cached.rating or book.rating,
            summary=cached.summary or book.summary,
        )

    async def identify(self, titles: list[str]) -> list[CandidateBook]:
        """
        Identify detected titles.

        Args:
            titles: Titles returned by the vision collaborator

        Returns:
            Identified books in detected order; unidentifiable titles are dropped
        """
        semaphore = asyncio.Semaphore(self.concurrency)

        async def identify_bounded(title: str) -> Optional[CandidateBook]:
            async with semaphore:
                try:
                    return await self.identify_title(title)
                except Exception as e:
                    logger.error(f"Error identifying '{title}': {e}")
                    return None

        results = await asyncio.gather(*(identify_bounded(t) for t in titles))
        books = [book for book in results if book is not None]

        logger.info(f"Identified {len(books)} of {len(titles)} detected titles")
        return books
