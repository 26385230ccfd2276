"""
Enrichment Service

Fills in rating and summary for candidate books:
- Cached LLM content first (only source=openai is trusted)
- Then the content generator
- Then a local estimate (ratings) or the caller's summary

Whatever is generated or estimated is written back to the book cache so the
next lookup is free.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger

from shelfwise.exceptions import ExternalServiceError, StorageError
from shelfwise.models import CandidateBook
from shelfwise.storage import BookCache, BookSource, SavedBookRepository

from .generators import ContentGenerator, NullContentGenerator, normalize_rating
from .heuristics import estimate_rating

NO_SUMMARY = "No summary available"

# Saved books with a summary at least this long are considered complete
MIN_GOOD_SUMMARY_LENGTH = 100


class EnrichmentService:
    """
    Rating/summary enrichment backed by the book cache.

    Usage:
        service = EnrichmentService(cache, generator)
        rating = await service.get_enhanced_rating("Dune", "Frank Herbert")
        books = await service.enhance_books(candidates)
    """

    def __init__(
        self,
        cache: BookCache,
        generator: Optional[ContentGenerator] = None,
        saved_books: Optional[SavedBookRepository] = None,
        rating_ttl_days: int = 90,
        summary_ttl_days: int = 120,
        concurrency: int = 8,
    ):
        """
        Initialize enrichment service.

        Args:
            cache: Book cache
            generator: LLM content generator (no generation if omitted)
            saved_books: Saved-book repository for enhance_saved_books
            rating_ttl_days: Lifetime of cached ratings
            summary_ttl_days: Lifetime of cached summaries
            concurrency: Max books enriched at once
        """
        self.cache = cache
        self.generator = generator or NullContentGenerator()
        self.saved_books = saved_books
        self.rating_ttl = timedelta(days=rating_ttl_days)
        self.summary_ttl = timedelta(days=summary_ttl_days)
        self.concurrency = max(1, concurrency)

        logger.info(
            f"EnrichmentService initialized: generator={type(self.generator).__name__}, "
            f"concurrency={self.concurrency}"
        )

    # =========================================================================
    # Rating / summary
    # =========================================================================

    async def get_enhanced_rating(
        self,
        title: str,
        author: str,
        isbn: Optional[str] = None,
    ) -> str:
        """
        Trusted rating for a book, generating one if needed.

        Args:
            title: Book title
            author: Book author
            isbn: ISBN, used as a secondary cache index

        Returns:
            Rating string "1.0"-"5.0" (never upstream metadata)
        """
        try:
            cached = self.cache.find_in_cache(title, author)
            if cached and cached.trusted_rating:
                logger.debug(f"Using cached LLM rating for '{title}': {cached.rating}")
                return cached.rating

            if isbn:
                by_isbn = self.cache.find_by_isbn(isbn)
                if by_isbn and by_isbn.trusted_rating and normalize_rating(by_isbn.rating):
                    logger.debug(f"Using ISBN-cached LLM rating for '{title}': {by_isbn.rating}")
                    return by_isbn.rating

            rating = None
            try:
                rating = await self.generator.generate_rating(title, author)
            except ExternalServiceError as e:
                logger.warning(f"Rating generation failed for '{title}': {e.detail}")

            if not rating:
                rating = estimate_rating(title, author)

            self._write_back(
                title, author,
                isbn=isbn,
                rating=rating,
                expires_at=datetime.utcnow() + self.rating_ttl,
            )
            logger.debug(f"Cached rating for '{title}': {rating}")
            return rating

        except Exception as e:
            logger.error(f"Error getting enhanced rating for '{title}': {e}")
            return estimate_rating(title, author)

    async def get_enhanced_summary(
        self,
        title: str,
        author: str,
        existing_summary: Optional[str] = None,
    ) -> Optional[str]:
        """
        Trusted summary for a book, generating one if needed.

        Args:
            title: Book title
            author: Book author
            existing_summary: Returned when nothing can be generated

        Returns:
            Summary, ``existing_summary``, or None
        """
        try:
            cached = self.cache.find_in_cache(title, author)
            if cached and cached.trusted_summary:
                logger.debug(f"Using cached LLM summary for '{title}'")
                return cached.summary

            summary = None
            try:
                summary = await self.generator.generate_summary(title, author)
            except ExternalServiceError as e:
                logger.warning(f"Summary generation failed for '{title}': {e.detail}")

            if summary:
                self._write_back(
                    title, author,
                    summary=summary,
                    expires_at=datetime.utcnow() + self.summary_ttl,
                )
                logger.debug(f"Cached summary for '{title}'")
                return summary

            return existing_summary or None

        except Exception as e:
            logger.error(f"Error generating summary for '{title}': {e}")
            return existing_summary or None

    def _write_back(self, title: str, author: str, **fields) -> None:
        try:
            self.cache.cache_book({
                "title": title.strip(),
                "author": author.strip(),
                "source": BookSource.OPENAI,
                **fields,
            })
        except StorageError as e:
            # The value is still returned, just not memoized
            logger.warning(f"Could not cache content for '{title}': {e.detail}")

    # =========================================================================
    # Batch enrichment
    # =========================================================================

    async def enhance_book(self, book: CandidateBook) -> CandidateBook:
        """
        Copy of ``book`` with trusted rating and summary filled in.

        Never raises: on failure the copy carries an estimated rating and the
        book's own summary (or a placeholder).
        """
        try:
            rating = await self.get_enhanced_rating(book.title, book.author, book.isbn)
            summary = await self.get_enhanced_summary(book.title, book.author, book.summary)
            return replace(book, rating=rating, summary=summary or NO_SUMMARY)
        except Exception as e:
            logger.error(f"Error enhancing book '{book.title}': {e}")
            return replace(
                book,
                rating=estimate_rating(book.title, book.author),
                summary=book.summary or NO_SUMMARY,
            )

    async def enhance_books(self, books: list[CandidateBook]) -> list[CandidateBook]:
        """
        Enrich many books concurrently, preserving order.

        Args:
            books: Candidates to enrich

        Returns:
            Enriched copies, same length and order as ``books``
        """
        if not books:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)

        async def enhance_bounded(book: CandidateBook) -> CandidateBook:
            async with semaphore:
                return await self.enhance_book(book)

        enhanced = await asyncio.gather(*(enhance_bounded(b) for b in books))
        logger.info(f"Enhanced {len(enhanced)} books")
        return list(enhanced)

    async def enhance_saved_books(self, device_id: str) -> int:
        """
        Backfill rating/summary on a device's saved books.

        Returns:
            Number of saved books updated
        """
        if self.saved_books is None:
            logger.warning("No saved-book repository configured; nothing to enhance")
            return 0

        saved = self.saved_books.list_for_device(device_id)
        if not saved:
            return 0

        logger.info(f"Enhancing {len(saved)} saved books for device {device_id}")
        updated_count = 0

        for book in saved:
            has_good_summary = bool(book.summary) and len(book.summary) >= MIN_GOOD_SUMMARY_LENGTH
            if (has_good_summary and book.rating) or not book.title or not book.author:
                continue

            try:
                updates = {}
                if not book.rating:
                    updates["rating"] = await self.get_enhanced_rating(book.title, book.author)
                if not has_good_summary:
                    summary = await self.get_enhanced_summary(book.title, book.author, book.summary)
                    if summary and summary != book.summary:
                        updates["summary"] = summary

                if updates:
                    self.saved_books.update(book.id, **updates)
                    updated_count += 1

            except StorageError as e:
                logger.error(f"Error enhancing saved book '{book.title}': {e.detail}")

        logger.info(f"Enhanced {updated_count} saved books for device {device_id}")
        return updated_count

    # =========================================================================
    # Maintenance
    # =========================================================================

    def run_maintenance(self) -> int:
        """Remove expired cache entries. Returns the number removed."""
        try:
            return self.cache.cleanup_expired()
        except Exception as e:
            logger.error(f"Error during cache maintenance: {e}")
            return 0
