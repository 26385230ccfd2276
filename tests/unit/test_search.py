"""
Unit tests for title search and book identification.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from shelfwise.exceptions import ExternalServiceError
from shelfwise.identification import BookSearchService, IdentificationService
from shelfwise.identification.google_books import GoogleBooksClient
from shelfwise.identification.open_library import OpenLibraryClient
from shelfwise.models import CandidateBook
from shelfwise.ratelimit import ApiLimits, InMemoryCounterStore, RateLimiter

from tests.conftest import FakeSearchService


def make_clients(google_results=None, open_library_results=None):
    google = MagicMock(spec=GoogleBooksClient)
    google.search_title = AsyncMock(return_value=google_results or [])
    open_library = MagicMock(spec=OpenLibraryClient)
    open_library.search = AsyncMock(return_value=open_library_results or [])
    open_library.close = AsyncMock()
    return google, open_library


class TestBookSearchService:
    """Tests for BookSearchService.search_by_title."""

    @pytest.mark.asyncio
    async def test_google_results_lose_upstream_rating(self, rate_limiter):
        """Test Google Books ratings are stripped but summaries kept."""
        google, open_library = make_clients(google_results=[
            CandidateBook(title="Dune", author="Frank Herbert", rating="4.2", summary="Desert planet."),
        ])
        service = BookSearchService(rate_limiter, google, open_library)

        results = await service.search_by_title("  Dune ")

        assert len(results) == 1
        assert results[0].rating is None
        assert results[0].summary == "Desert planet."
        assert results[0].detected_from == "Dune"
        google.search_title.assert_awaited_once_with("Dune", max_results=5)
        open_library.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_open_library_fallback(self, rate_limiter):
        """Test Open Library is used when Google Books finds nothing."""
        google, open_library = make_clients(open_library_results=[
            CandidateBook(title="Dune", author="Frank Herbert", rating="3.9", summary="x"),
        ])
        service = BookSearchService(rate_limiter, google, open_library)

        results = await service.search_by_title("Dune")

        assert results[0].title == "Dune"
        assert results[0].rating is None
        assert results[0].summary is None

    @pytest.mark.asyncio
    async def test_google_error_falls_back(self, rate_limiter):
        """Test a Google Books failure still tries Open Library."""
        google, open_library = make_clients(open_library_results=[CandidateBook(title="Dune")])
        google.search_title.side_effect = ExternalServiceError("Google Books", detail="HTTP 503")
        service = BookSearchService(rate_limiter, google, open_library)

        assert [b.title for b in await service.search_by_title("Dune")] == ["Dune"]

    @pytest.mark.asyncio
    async def test_both_fail(self, rate_limiter):
        """Test failures in both catalogs give no results."""
        google, open_library = make_clients()
        google.search_title.side_effect = ExternalServiceError("Google Books")
        open_library.search.side_effect = ExternalServiceError("Open Library")
        service = BookSearchService(rate_limiter, google, open_library)

        assert await service.search_by_title("Dune") == []

    @pytest.mark.asyncio
    async def test_short_titles_skipped(self, rate_limiter):
        """Test titles under two characters never hit the network."""
        google, open_library = make_clients()
        service = BookSearchService(rate_limiter, google, open_library)

        assert await service.search_by_title("") == []
        assert await service.search_by_title(" a ") == []
        google.search_title.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limited(self, clock):
        """Test a refused Google Books call returns nothing."""
        limiter = RateLimiter(
            InMemoryCounterStore(clock=clock),
            limits={"google-books": ApiLimits(per_minute=0, per_day=10)},
            clock=clock,
        )
        google, open_library = make_clients(google_results=[CandidateBook(title="Dune")])
        service = BookSearchService(limiter, google, open_library)

        assert await service.search_by_title("Dune") == []
        google.search_title.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close(self, rate_limiter):
        """Test close releases the Open Library client."""
        google, open_library = make_clients()
        service = BookSearchService(rate_limiter, google, open_library)

        await service.close()

        open_library.close.assert_awaited_once()


class TestClientParsing:
    """Tests for catalog response parsing."""

    def test_google_volume(self):
        """Test ISBN-13 is preferred and authors are joined."""
        client = GoogleBooksClient(api_key="test")
        book = client._parse_volume({
            "volumeInfo": {
                "title": "Good Omens",
                "authors": ["Terry Pratchett", "Neil Gaiman"],
                "industryIdentifiers": [
                    {"type": "ISBN_10", "identifier": "0060853980"},
                    {"type": "ISBN_13", "identifier": "9780060853983"},
                ],
                "imageLinks": {"thumbnail": "http://books.google.com/cover.jpg"},
                "categories": ["Fiction"],
                "averageRating": 4.5,
            }
        })

        assert book.author == "Terry Pratchett, Neil Gaiman"
        assert book.isbn == "9780060853983"
        assert book.cover_url == "https://books.google.com/cover.jpg"
        assert book.categories == ["Fiction"]

    def test_google_volume_defaults(self):
        """Test missing fields fall back to placeholders."""
        client = GoogleBooksClient(api_key="test")

        book = client._parse_volume({"volumeInfo": {}})

        assert book.title == "Unknown Title"
        assert book.author == "Unknown Author"
        assert client._parse_volume({}) is None

    def test_open_library_doc(self):
        """Test Open Library docs map cover ids to cover URLs."""
        book = OpenLibraryClient()._parse_doc({
            "title": "Dune",
            "author_name": ["Frank Herbert"],
            "isbn": ["9780441172719", "0441172717"],
            "cover_i": 12345,
        })

        assert book.isbn == "9780441172719"
        assert book.cover_url == "https://covers.openlibrary.org/b/id/12345-M.jpg"


class TestIdentificationService:
    """Tests for IdentificationService."""

    @pytest.mark.asyncio
    async def test_best_match_selected(self):
        """Test the closest title wins and is marked as a shelf book."""
        search = FakeSearchService({
            "Dnue": [
                {"title": "The Dune Encyclopedia", "author": "Willis McNelly"},
                {"title": "Dune", "author": "Frank Herbert"},
            ],
        })
        service = IdentificationService(search, similarity_threshold=0.3)

        book = await service.identify_title("Dnue")

        assert book.title == "Dune"
        assert book.from_shelf is True
        assert book.detected_from == "Dnue"

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self):
        """Test a match exactly at the threshold is rejected."""
        search = FakeSearchService({"abcde": [{"title": "abcxy", "author": "A"}]})

        assert await IdentificationService(search, similarity_threshold=0.6).identify_title("abcde") is None
        assert await IdentificationService(search, similarity_threshold=0.59).identify_title("abcde") is not None

    @pytest.mark.asyncio
    async def test_cached_llm_content_applied(self, book_cache):
        """Test cached LLM rating and summary replace search metadata."""
        book_cache.cache_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "rating": "4.6",
            "summary": "Curated summary.",
            "source": "openai",
        })
        search = FakeSearchService({"Dune": [{"title": "Dune", "author": "Frank Herbert", "summary": "Blurb."}]})

        book = await IdentificationService(search, cache=book_cache).identify_title("Dune")

        assert book.rating == "4.6"
        assert book.summary == "Curated summary."

    @pytest.mark.asyncio
    async def test_non_llm_cache_ignored(self, book_cache):
        """Test cached upstream content is not applied."""
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert", "rating": "3.0", "source": "google"})
        search = FakeSearchService({"Dune": [{"title": "Dune", "author": "Frank Herbert"}]})

        book = await IdentificationService(search, cache=book_cache).identify_title("Dune")

        assert book.rating is None

    @pytest.mark.asyncio
    async def test_identify_keeps_order_and_drops_failures(self):
        """Test batch identification preserves detected order."""
        search = FakeSearchService(
            {
                "Sapiens": [{"title": "Sapiens", "author": "Yuval Noah Harari"}],
                "Dune": [{"title": "Dune", "author": "Frank Herbert"}],
            },
            failing=("Broken",),
        )
        service = IdentificationService(search, concurrency=1)

        books = await service.identify(["Sapiens", "Unknown", "Broken", "Dune"])

        assert [b.title for b in books] == ["Sapiens", "Dune"]
        assert len(search.calls) == 4
