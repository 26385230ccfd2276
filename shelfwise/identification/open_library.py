"""
Open Library API Client

Fallback title search when Google Books has nothing.
"""

from typing import Optional

import httpx
from loguru import logger

from shelfwise.exceptions import ExternalServiceError
from shelfwise.models import CandidateBook


class OpenLibraryClient:
    """
    Client for Open Library API.

    Open Library is a free, open-source library catalog.
    Rate limits: Be respectful, no official limit but don't abuse.
    """

    BASE_URL = "https://openlibrary.org"
    COVERS_URL = "https://covers.openlibrary.org"

    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def search(self, title: str, limit: int = 5) -> list[CandidateBook]:
        """
        Search by title.

        Args:
            title: Book title
            limit: Maximum results

        Returns:
            List of CandidateBook

        Raises:
            ExternalServiceError: On transport errors or non-200 responses
        """
        client = await self._get_client()

        try:
            response = await client.get(
                f"{self.BASE_URL}/search.json",
                params={
                    "title": title,
                    "limit": limit,
                    "fields": "key,title,author_name,isbn,publisher,cover_i,subject",
                },
            )
        except httpx.HTTPError as e:
            logger.warning(f"OpenLibrary search failed: {e}")
            raise ExternalServiceError("Open Library", detail=str(e)) from e

        if response.status_code != 200:
            raise ExternalServiceError("Open Library", detail=f"HTTP {response.status_code}")

        return [self._parse_doc(doc) for doc in response.json().get("docs") or []]

    def _parse_doc(self, doc: dict) -> CandidateBook:
        authors = doc.get("author_name") or []
        isbns = doc.get("isbn") or []
        publishers = doc.get("publisher") or []
        cover_id = doc.get("cover_i")

        return CandidateBook(
            title=doc.get("title") or "Unknown Title",
            author=", ".join(authors) if authors else "Unknown Author",
            isbn=isbns[0] if isbns else None,
            cover_url=f"{self.COVERS_URL}/b/id/{cover_id}-M.jpg" if cover_id else None,
            publisher=publishers[0] if publishers else None,
        )

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
