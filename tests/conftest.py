"""
Pytest configuration and fixtures for ShelfWise tests.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shelfwise.config import Settings
from shelfwise.enrichment import ContentGenerator
from shelfwise.models import CandidateBook, PreferenceProfile
from shelfwise.ratelimit import InMemoryCounterStore, RateLimiter
from shelfwise.storage import BookCache, Database


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings() -> Settings:
    """Return settings configured for testing."""
    return Settings(
        database_url="sqlite:///:memory:",
        database_echo=False,
        openai_api_key=None,
        rate_limit_backend="memory",
        environment="test",
    )


@pytest.fixture
def test_settings() -> Settings:
    return get_test_settings()


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Settable clock (seconds since epoch)."""

    def __init__(self, start: Optional[datetime] = None):
        start = start or datetime(2024, 3, 15, 12, 0, 30, tzinfo=timezone.utc)
        self.now = start.timestamp()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSearchService:
    """Title search returning canned results and recording every query."""

    def __init__(self, results: Optional[dict] = None, failing: tuple = ()):
        self.results = results or {}
        self.failing = set(failing)
        self.calls: list[str] = []

    async def search_by_title(self, title: str) -> list[CandidateBook]:
        self.calls.append(title)
        if title in self.failing:
            raise RuntimeError(f"search exploded for {title}")
        return [CandidateBook.from_dict(r) if isinstance(r, dict) else r for r in self.results.get(title, [])]

    async def close(self):
        pass


class FakeGenerator(ContentGenerator):
    """Content generator with fixed answers and call counters."""

    def __init__(self, rating: Optional[str] = "4.4", summary: Optional[str] = "A generated summary.", error=None):
        self.rating = rating
        self.summary = summary
        self.error = error
        self.rating_calls = 0
        self.summary_calls = 0

    async def generate_rating(self, title: str, author: str) -> Optional[str]:
        self.rating_calls += 1
        if self.error:
            raise self.error
        return self.rating

    async def generate_summary(self, title: str, author: str) -> Optional[str]:
        self.summary_calls += 1
        if self.error:
            raise self.error
        return self.summary


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def database():
    """In-memory database with all tables created."""
    db = Database("sqlite:///:memory:")
    yield db
    db.dispose()


@pytest.fixture
def book_cache(database) -> BookCache:
    return BookCache(database)


# =============================================================================
# Rate Limiter Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock) -> RateLimiter:
    return RateLimiter(InMemoryCounterStore(clock=clock), clock=clock)


# =============================================================================
# Book Fixtures
# =============================================================================

@pytest.fixture
def sample_candidates() -> list[CandidateBook]:
    """Two candidates from different genres."""
    return [
        CandidateBook(
            title="Leviathan Wakes",
            author="James S.A. Corey",
            categories=["Science Fiction"],
            rating="4.5",
        ),
        CandidateBook(
            title="The Notebook",
            author="Nicholas Sparks",
            categories=["Romance"],
            rating="4.2",
        ),
    ]


@pytest.fixture
def dune_reader() -> PreferenceProfile:
    """Profile whose Goodreads history contains a 5-star Dune."""
    return PreferenceProfile(
        device_id="device-1",
        goodreads_data=[
            {"Title": "Dune", "Author": "Frank Herbert", "My Rating": "5", "Bookshelves": "read"},
        ],
    )
