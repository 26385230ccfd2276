"""
Unit tests for the book cache repository.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from shelfwise.exceptions import StorageError
from shelfwise.storage import BookSource, derive_book_id


def future(days=30):
    return datetime.utcnow() + timedelta(days=days)


def past(days=1):
    return datetime.utcnow() - timedelta(days=days)


class TestDeriveBookId:
    """Tests for derive_book_id()."""

    def test_isbn_key(self):
        """Test ISBNs keep only digits and X."""
        assert derive_book_id("Dune", "Frank Herbert", "978-0-441-17271-9") == "isbn_9780441172719"
        assert derive_book_id("Anything", "", "0-306-40615-x") == "isbn_030640615X"

    def test_title_author_key(self):
        """Test title/author keys lowercase and replace non-alphanumerics."""
        assert derive_book_id("The Martian", "Andy Weir") == "book_the_martian_andy_weir"
        assert derive_book_id("  1984 ", "George Orwell") == "book_1984_george_orwell"

    def test_isbn_without_digits_falls_back(self):
        """Test an ISBN with nothing usable is ignored."""
        assert derive_book_id("Dune", "Frank Herbert", "n/a") == "book_dune_frank_herbert"


class TestCacheBook:
    """Tests for BookCache.cache_book upsert semantics."""

    def test_insert_defaults_source_to_google(self, book_cache):
        """Test new records default to google provenance."""
        record = book_cache.cache_book({"title": "Dune", "author": "Frank Herbert"})

        assert record.book_id == "book_dune_frank_herbert"
        assert record.source is BookSource.GOOGLE
        assert record.expires_at is None
        assert record.cached_at is not None

    def test_upsert_is_idempotent(self, book_cache):
        """Test caching identical data twice keeps one record with refreshed cached_at."""
        data = {
            "title": "Dune",
            "author": "Frank Herbert",
            "isbn": "9780441172719",
            "rating": "4.7",
            "summary": "Spice and sandworms.",
            "source": "openai",
            "expires_at": future(),
        }

        first = book_cache.cache_book(data)
        second = book_cache.cache_book(data)

        assert book_cache.count() == 1
        assert second.id == first.id
        assert second.cached_at >= first.cached_at

        first_fields = first.to_dict()
        second_fields = second.to_dict()
        first_fields.pop("cached_at")
        second_fields.pop("cached_at")
        assert first_fields == second_fields

    def test_absent_fields_preserve_existing(self, book_cache):
        """Test None/empty incoming values keep what is stored."""
        book_cache.cache_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "rating": "4.7",
            "summary": "Old summary",
            "source": BookSource.OPENAI,
        })

        record = book_cache.cache_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "rating": None,
            "summary": "New summary",
            "cover_url": "",
        })

        assert record.rating == "4.7"
        assert record.summary == "New summary"
        assert record.cover_url is None
        assert record.source is BookSource.OPENAI

    def test_promotion_to_openai_drops_unsupplied_fields(self, book_cache):
        """Test upstream rating/summary are cleared when a record becomes openai."""
        book_cache.cache_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "rating": "1.2",
            "summary": "Upstream blurb.",
            "cover_url": "http://covers.example/dune.jpg",
            "source": "google",
        })

        record = book_cache.cache_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "rating": "4.4",
            "source": BookSource.OPENAI,
        })

        assert record.source is BookSource.OPENAI
        assert record.rating == "4.4"
        assert record.summary is None
        assert record.cover_url == "http://covers.example/dune.jpg"

    def test_metadata_round_trip(self, book_cache):
        """Test opaque metadata is stored as JSON."""
        record = book_cache.cache_book({
            "title": "Sapiens",
            "author": "Yuval Noah Harari",
            "metadata": {"publisher": "Harper", "categories": ["History"]},
        })

        assert book_cache.get_by_id(record.id).metadata == {
            "publisher": "Harper",
            "categories": ["History"],
        }

    def test_write_failure_raises_storage_error(self, book_cache):
        """Test write errors surface as StorageError."""
        error = OperationalError("INSERT", {}, Exception("disk full"))
        with patch.object(book_cache.database, "session", side_effect=error):
            with pytest.raises(StorageError):
                book_cache.cache_book({"title": "Dune", "author": "Frank Herbert"})


class TestFindInCache:
    """Tests for BookCache.find_in_cache."""

    @pytest.fixture
    def populated(self, book_cache):
        book_cache.cache_book({"title": "Dune Messiah", "author": "Frank Herbert", "rating": "4.1"})
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert", "rating": "4.7"})
        return book_cache

    def test_exact_match_case_insensitive(self, populated):
        """Test exact title match ignores case."""
        record = populated.find_in_cache("DUNE", "frank herbert")

        assert record.title == "Dune"

    def test_exact_title_with_partial_author(self, populated):
        """Test author containment in either direction counts for exact matches."""
        assert populated.find_in_cache("Dune", "Herbert").title == "Dune"
        assert populated.find_in_cache("Dune", "Frank Herbert Jr.").title == "Dune"

    def test_partial_match(self, populated):
        """Test partial title and author containment is the fallback."""
        record = populated.find_in_cache("Messiah", "Herbert")

        assert record.title == "Dune Messiah"

    def test_miss(self, populated):
        """Test unrelated queries miss."""
        assert populated.find_in_cache("Sapiens", "Yuval Noah Harari") is None

    def test_expired_records_ignored(self, book_cache):
        """Test expired records are invisible to lookups."""
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert", "expires_at": past()})

        assert book_cache.find_in_cache("Dune", "Frank Herbert") is None

    def test_wildcards_are_literal(self, book_cache):
        """Test LIKE wildcards in queries are escaped."""
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert"})

        assert book_cache.find_in_cache("%", "%") is None

    def test_stored_wildcards_are_literal(self, book_cache):
        """Test LIKE wildcards in stored titles and authors are escaped."""
        book_cache.cache_book({"title": "_", "author": "%"})
        book_cache.cache_book({"title": "Book_One", "author": "A Writer"})

        assert book_cache.find_in_cache("Completely Unrelated", "Someone Else") is None
        assert book_cache.find_in_cache("BookXOne Deluxe", "A Writer") is None
        assert book_cache.find_in_cache("Book_One Deluxe", "A Writer").title == "Book_One"

    def test_blank_stored_author_never_matches(self, book_cache):
        """Test records with a blank author are not contained in every query."""
        book_cache.cache_book({"title": "Dune", "author": ""})

        assert book_cache.find_in_cache("Dune", "Frank Herbert") is None
        assert book_cache.find_in_cache("Dune Messiah", "Frank Herbert") is None

    def test_read_failure_returns_none(self, book_cache):
        """Test lookups are fail-soft."""
        error = OperationalError("SELECT", {}, Exception("db gone"))
        with patch.object(book_cache.database, "session", side_effect=error):
            assert book_cache.find_in_cache("Dune", "Frank Herbert") is None
            assert book_cache.find_by_isbn("9780441172719") is None


class TestFindByIsbn:
    """Tests for BookCache.find_by_isbn."""

    def test_found(self, book_cache):
        """Test lookup by stored ISBN."""
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert", "isbn": "9780441172719"})

        assert book_cache.find_by_isbn("9780441172719").title == "Dune"

    def test_hyphenated_isbn_normalized(self, book_cache):
        """Test hyphens are ignored on both write and lookup."""
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert", "isbn": "978-0441172719"})

        assert book_cache.find_by_isbn("9780441172719").title == "Dune"
        assert book_cache.find_by_isbn("978-0-441-17271-9").title == "Dune"
        assert book_cache.find_by_isbn("9780441172719").isbn == "9780441172719"

    def test_short_isbn_ignored(self, book_cache):
        """Test ISBNs shorter than 10 characters never match."""
        assert book_cache.find_by_isbn("123") is None
        assert book_cache.find_by_isbn(None) is None

    def test_expired_ignored(self, book_cache):
        """Test expired ISBN records are invisible."""
        book_cache.cache_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "isbn": "9780441172719",
            "expires_at": past(),
        })

        assert book_cache.find_by_isbn("9780441172719") is None


class TestMaintenance:
    """Tests for expiry cleanup and rating purges."""

    def test_cleanup_expired(self, book_cache):
        """Test only expired records are deleted."""
        book_cache.cache_book({"title": "Old", "author": "A", "expires_at": past()})
        book_cache.cache_book({"title": "Fresh", "author": "B", "expires_at": future()})
        book_cache.cache_book({"title": "Forever", "author": "C"})

        assert book_cache.cleanup_expired() == 1
        assert book_cache.count() == 2
        assert book_cache.cleanup_expired() == 0

    def test_cleanup_non_openai_ratings(self, book_cache):
        """Test upstream ratings are cleared and LLM ratings kept."""
        google = book_cache.cache_book({"title": "A", "author": "X", "rating": "3.9", "source": "google"})
        amazon = book_cache.cache_book({"title": "B", "author": "Y", "rating": "4.0", "source": "amazon"})
        openai = book_cache.cache_book({"title": "C", "author": "Z", "rating": "4.5", "source": "openai"})

        assert book_cache.cleanup_non_openai_ratings() == 2

        assert book_cache.get_by_id(google.id).rating is None
        assert book_cache.get_by_id(amazon.id).rating is None
        assert book_cache.get_by_id(openai.id).rating == "4.5"
        assert book_cache.cleanup_non_openai_ratings() == 0

    def test_recently_added(self, book_cache):
        """Test newest records come first."""
        book_cache.cache_book({"title": "First", "author": "A"})
        book_cache.cache_book({"title": "Second", "author": "B"})

        titles = [r.title for r in book_cache.recently_added(limit=1)]

        assert titles == ["Second"]

    def test_clear_for_testing_expires_matching(self, book_cache):
        """Test title-filtered clearing expires in place."""
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert", "summary": "s"})
        book_cache.cache_book({"title": "Sapiens", "author": "Harari", "summary": "s"})

        assert book_cache.clear_for_testing(preserve_summaries=False, title_filter="dune") == 1

        assert book_cache.find_in_cache("Dune", "Frank Herbert") is None
        assert book_cache.find_in_cache("Sapiens", "Harari") is not None
        assert book_cache.count() == 2

    def test_clear_for_testing_deletes_all(self, book_cache):
        """Test clearing without preservation empties the cache."""
        book_cache.cache_book({"title": "Dune", "author": "Frank Herbert"})

        assert book_cache.clear_for_testing(preserve_summaries=False) == 1
        assert book_cache.count() == 0
