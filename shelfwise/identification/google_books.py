"""
Google Books API Client

Handles searching for books using the Google Books Volume API.
"""

import os
from typing import Any, Optional

import aiohttp
from loguru import logger

from shelfwise.exceptions import ExternalServiceError
from shelfwise.models import CandidateBook


class GoogleBooksClient:
    """Client for Google Books API."""

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 15.0):
        """
        Initialize client.

        Args:
            api_key: Optional API key. If not provided, tries GOOGLE_BOOKS_API_KEY env var.
            timeout: Total request timeout in seconds
        """
        self.api_key = api_key or os.getenv("GOOGLE_BOOKS_API_KEY")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        if not self.api_key:
            logger.warning("No Google Books API key provided. Rate limits will be lower.")

    async def search(self, query: str, max_results: int = 5) -> list[CandidateBook]:
        """
        Search for books.

        Args:
            query: Search query string (Google Books syntax)
            max_results: Maximum number of results to return

        Returns:
            List of CandidateBook, upstream rating and description included

        Raises:
            ExternalServiceError: On transport errors or non-200 responses
        """
        if not query or not query.strip():
            return []

        params = {
            "q": query,
            "maxResults": min(max_results, 40),
            "printType": "books",
        }

        if self.api_key:
            params["key"] = self.api_key

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self.BASE_URL, params=params) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        logger.error(f"Google Books API error {resp.status}: {error_text[:200]}")
                        raise ExternalServiceError("Google Books", detail=f"HTTP {resp.status}")

                    data = await resp.json()

        except aiohttp.ClientError as e:
            logger.error(f"Failed to search Google Books: {e}")
            raise ExternalServiceError("Google Books", detail=str(e)) from e

        return [
            book for book in (self._parse_volume(item) for item in data.get("items") or [])
            if book is not None
        ]

    async def search_title(self, title: str, max_results: int = 5) -> list[CandidateBook]:
        """Exact-title search (``intitle:"..."``)."""
        return await self.search(f'intitle:"{title.strip()}"', max_results=max_results)

    def _parse_volume(self, item: dict[str, Any]) -> Optional[CandidateBook]:
        """Parse raw API response into a CandidateBook."""
        volume_info = item.get("volumeInfo")
        if not isinstance(volume_info, dict):
            logger.warning("Skipping Google Books item without volumeInfo")
            return None

        # Prefer ISBN-13
        isbn_10 = None
        isbn_13 = None
        for identifier in volume_info.get("industryIdentifiers") or []:
            if identifier.get("type") == "ISBN_10":
                isbn_10 = identifier.get("identifier")
            elif identifier.get("type") == "ISBN_13":
                isbn_13 = identifier.get("identifier")

        image_links = volume_info.get("imageLinks") or {}
        thumbnail = image_links.get("thumbnail") or image_links.get("smallThumbnail")
        if thumbnail:
            thumbnail = thumbnail.replace("http://", "https://")

        authors = volume_info.get("authors") or []
        average_rating = volume_info.get("averageRating")

        return CandidateBook(
            title=volume_info.get("title") or "Unknown Title",
            author=", ".join(authors) if authors else "Unknown Author",
            isbn=isbn_13 or isbn_10,
            cover_url=thumbnail,
            summary=volume_info.get("description"),
            rating=str(average_rating) if average_rating is not None else None,
            publisher=volume_info.get("publisher"),
            categories=list(volume_info.get("categories") or []),
        )
