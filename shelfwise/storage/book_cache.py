"""
Book Cache for ShelfWise

Persistent memo of resolved book metadata so repeated scans don't repeat
expensive LLM and search calls:
- Lookup by fuzzy title/author containment or by ISBN
- Upsert keyed by a derived book id
- TTL expiry (NULL expires_at never expires)
- Provenance-gated ratings: only LLM-curated ratings survive maintenance

Reads are fail-soft (log and return None); writes raise StorageError.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from loguru import logger
from sqlalchemy import String, delete, func, literal, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from shelfwise.exceptions import StorageError

from .database import Database
from .models import BookCacheModel, BookSource

MIN_ISBN_LENGTH = 10

# Fields an upsert may overwrite; everything else is fixed at insert
_UPDATABLE_FIELDS = ("isbn", "cover_url", "rating", "summary", "source", "metadata", "expires_at")


def normalize_isbn(isbn: Optional[str]) -> Optional[str]:
    """Digits and X of an ISBN, or None if nothing is left."""
    if not isbn:
        return None
    return re.sub(r"[^0-9X]", "", isbn.upper()) or None


def derive_book_id(title: str, author: str, isbn: Optional[str] = None) -> str:
    """
    Deterministic cache key for a book.

    ``isbn_<digits and X>`` when an ISBN is known, otherwise
    ``book_<title>_<author>`` with every non-alphanumeric replaced by "_".
    """
    digits = normalize_isbn(isbn)
    if digits:
        return f"isbn_{digits}"

    normalized_title = re.sub(r"[^a-z0-9]", "_", (title or "").lower().strip())
    normalized_author = re.sub(r"[^a-z0-9]", "_", (author or "").lower().strip())
    return f"book_{normalized_title}_{normalized_author}"


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != {}


def _escape_like(column):
    for char in ("\\", "%", "_"):
        column = func.replace(column, char, "\\" + char, type_=String)
    return column


def _occurs_in(text: str, column):
    """``column`` appears literally inside ``text`` (reverse LIKE containment)."""
    pattern = literal("%", String).concat(_escape_like(column)).concat("%")
    return literal(text, String).like(pattern, escape="\\")


@dataclass
class BookRecord:
    """Data class for cached book transfer."""

    id: int
    book_id: str
    title: str
    author: str

    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    rating: Optional[str] = None
    summary: Optional[str] = None
    source: BookSource = BookSource.GOOGLE
    metadata: dict = field(default_factory=dict)

    cached_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: BookCacheModel) -> "BookRecord":
        """Create from SQLAlchemy model."""
        return cls(
            id=model.id,
            book_id=model.book_id,
            title=model.title,
            author=model.author,
            isbn=model.isbn,
            cover_url=model.cover_url,
            rating=model.rating,
            summary=model.summary,
            source=BookSource.parse(model.source),
            metadata=model.extra_metadata or {},
            cached_at=model.cached_at,
            expires_at=model.expires_at,
        )

    @property
    def is_authoritative(self) -> bool:
        return self.source.is_authoritative

    @property
    def trusted_rating(self) -> Optional[str]:
        return self.rating if self.is_authoritative and self.rating else None

    @property
    def trusted_summary(self) -> Optional[str]:
        return self.summary if self.is_authoritative and self.summary else None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or datetime.utcnow())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "book_id": self.book_id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "cover_url": self.cover_url,
            "rating": self.rating,
            "summary": self.summary,
            "source": self.source.value,
            "metadata": self.metadata,
            "cached_at": self.cached_at.isoformat() if self.cached_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


class BookCache:
    """
    Repository for cached book metadata.

    Usage:
        cache = BookCache(Database("sqlite:///shelfwise.db"))

        cache.cache_book({
            "title": "Dune",
            "author": "Frank Herbert",
            "rating": "4.7",
            "source": "openai",
            "expires_at": datetime.utcnow() + timedelta(days=90),
        })

        record = cache.find_in_cache("dune", "Herbert")
    """

    def __init__(self, database: Database):
        """
        Initialize cache.

        Args:
            database: Shared Database (tables are created there)
        """
        self.database = database
        logger.info("BookCache initialized")

    @staticmethod
    def _not_expired(now: datetime):
        return or_(BookCacheModel.expires_at.is_(None), BookCacheModel.expires_at >= now)

    def find_in_cache(self, title: str, author: str) -> Optional[BookRecord]:
        """
        Find a live record by title and author.

        Exact (case-insensitive) title with an author that is equal to, or
        contained in either direction by, the query author wins. Otherwise a
        record whose title and author each contain or are contained by the
        query is returned.

        Args:
            title: Book title
            author: Book author

        Returns:
            BookRecord or None (also None on storage errors)
        """
        normalized_title = (title or "").lower().strip()
        normalized_author = (author or "").lower().strip()
        now = datetime.utcnow()

        title_col = func.lower(BookCacheModel.title)
        author_col = func.lower(BookCacheModel.author)

        author_overlaps = or_(
            author_col == normalized_author,
            author_col.contains(normalized_author, autoescape=True),
            _occurs_in(normalized_author, author_col),
        )
        # Blank stored values would be contained in every query
        not_blank = (func.trim(BookCacheModel.title) != "", func.trim(BookCacheModel.author) != "")

        try:
            with self.database.session() as session:
                exact = session.execute(
                    select(BookCacheModel)
                    .where(
                        title_col == normalized_title,
                        author_overlaps,
                        *not_blank,
                        self._not_expired(now),
                    )
                    .order_by(BookCacheModel.cached_at.desc())
                    .limit(1)
                ).scalar_one_or_none()

                if exact is not None:
                    logger.debug(f"Cache hit for '{title}' by {author}")
                    return BookRecord.from_model(exact)

                partial = session.execute(
                    select(BookCacheModel)
                    .where(
                        or_(
                            title_col.contains(normalized_title, autoescape=True),
                            _occurs_in(normalized_title, title_col),
                        ),
                        or_(
                            author_col.contains(normalized_author, autoescape=True),
                            _occurs_in(normalized_author, author_col),
                        ),
                        *not_blank,
                        self._not_expired(now),
                    )
                    .order_by(BookCacheModel.cached_at.desc())
                    .limit(1)
                ).scalar_one_or_none()

                if partial is not None:
                    logger.debug(f"Partial cache hit for '{title}' by {author}")
                    return BookRecord.from_model(partial)

            logger.debug(f"Cache miss for '{title}' by {author}")
            return None

        except SQLAlchemyError as e:
            logger.error(f"Error finding book in cache: {e}")
            return None

    def find_by_isbn(self, isbn: Optional[str]) -> Optional[BookRecord]:
        """
        Find a live record by ISBN.

        Args:
            isbn: ISBN-10 or ISBN-13, hyphenated or not (shorter values are ignored)

        Returns:
            BookRecord or None
        """
        digits = normalize_isbn(isbn)
        if not digits or len(digits) < MIN_ISBN_LENGTH:
            return None

        try:
            with self.database.session() as session:
                book = session.execute(
                    select(BookCacheModel).where(
                        BookCacheModel.isbn == digits,
                        self._not_expired(datetime.utcnow()),
                    )
                ).scalar_one_or_none()

            if book is None:
                logger.debug(f"ISBN cache miss for {isbn}")
                return None

            logger.debug(f"ISBN cache hit for {isbn}")
            return BookRecord.from_model(book)

        except SQLAlchemyError as e:
            logger.error(f"Error finding book by ISBN: {e}")
            return None

    def get_by_id(self, record_id: int) -> Optional[BookRecord]:
        """Get a record by primary key, expired or not."""
        try:
            with self.database.session() as session:
                book = session.get(BookCacheModel, record_id)
                return BookRecord.from_model(book) if book else None
        except SQLAlchemyError as e:
            logger.error(f"Error getting book cache by ID: {e}")
            return None

    def cache_book(self, data: dict) -> BookRecord:
        """
        Insert or update a record keyed by its derived book id.

        On update, present incoming values overwrite; None/empty values keep
        what is stored. ``cached_at`` is always refreshed. ISBNs are stored
        normalized to their digits and X.

        Provenance is per record, so an update that turns a non-openai
        record into an openai one drops whichever of rating/summary it does
        not supply.

        Args:
            data: title and author (required) plus any of isbn, cover_url,
                rating, summary, source, metadata, expires_at

        Returns:
            The stored BookRecord

        Raises:
            StorageError: If the write fails
        """
        title = (data.get("title") or "").strip()
        author = (data.get("author") or "").strip()
        # An ISBN with no digits is not an identifier
        isbn = normalize_isbn(data.get("isbn"))
        book_id = derive_book_id(title, author, isbn)

        incoming = {
            "isbn": isbn,
            "cover_url": data.get("cover_url"),
            "rating": data.get("rating"),
            "summary": data.get("summary"),
            "source": BookSource.parse(data["source"]).value if data.get("source") else None,
            "metadata": data.get("metadata"),
            "expires_at": data.get("expires_at"),
        }

        try:
            with self.database.session() as session:
                existing = session.execute(
                    select(BookCacheModel).where(BookCacheModel.book_id == book_id)
                ).scalar_one_or_none()

                if existing is not None:
                    logger.debug(f"Updating existing cache entry for '{title}' (ID: {book_id})")
                    promoted = (
                        incoming["source"] == BookSource.OPENAI.value
                        and not BookSource.parse(existing.source).is_authoritative
                    )
                    if promoted:
                        for name in ("rating", "summary"):
                            if not _present(incoming[name]) and getattr(existing, name):
                                logger.debug(f"Dropping upstream {name} of '{title}' on promotion to openai")
                                setattr(existing, name, None)

                    for name in _UPDATABLE_FIELDS:
                        value = incoming[name]
                        if _present(value):
                            setattr(existing, "extra_metadata" if name == "metadata" else name, value)
                    existing.cached_at = datetime.utcnow()
                    book = existing
                else:
                    logger.debug(f"Creating new cache entry for '{title}' (ID: {book_id})")
                    book = BookCacheModel(
                        book_id=book_id,
                        title=title,
                        author=author,
                        isbn=incoming["isbn"],
                        cover_url=incoming["cover_url"] or None,
                        rating=incoming["rating"] or None,
                        summary=incoming["summary"] or None,
                        source=incoming["source"] or BookSource.GOOGLE.value,
                        extra_metadata=incoming["metadata"] or None,
                        expires_at=incoming["expires_at"],
                        cached_at=datetime.utcnow(),
                    )
                    session.add(book)

                session.commit()
                session.refresh(book)
                return BookRecord.from_model(book)

        except SQLAlchemyError as e:
            logger.error(f"Error caching book '{title}': {e}")
            raise StorageError("cache_book", detail=str(e)) from e

    def cleanup_expired(self) -> int:
        """
        Delete records whose expiry has passed.

        Returns:
            Number of records removed
        """
        try:
            with self.database.session() as session:
                result = session.execute(
                    delete(BookCacheModel).where(
                        BookCacheModel.expires_at.isnot(None),
                        BookCacheModel.expires_at <= datetime.utcnow(),
                    )
                )
                session.commit()
                count = result.rowcount or 0

            if count > 0:
                logger.info(f"Removed {count} expired entries from book cache")
            return count

        except SQLAlchemyError as e:
            logger.error(f"Error cleaning up expired cache: {e}")
            return 0

    def cleanup_non_openai_ratings(self) -> int:
        """
        Clear every rating that was not produced by the LLM.

        Run at startup so displayed ratings are only ever LLM-curated.

        Returns:
            Number of records whose rating was cleared
        """
        try:
            with self.database.session() as session:
                result = session.execute(
                    update(BookCacheModel)
                    .where(
                        BookCacheModel.rating.isnot(None),
                        or_(
                            BookCacheModel.source.is_(None),
                            BookCacheModel.source != BookSource.OPENAI.value,
                        ),
                    )
                    .values(rating=None)
                )
                session.commit()
                count = result.rowcount or 0

            if count:
                logger.info(f"Cleared ratings from {count} non-OpenAI cache entries")
            else:
                logger.info("No non-OpenAI ratings found in cache")
            return count

        except SQLAlchemyError as e:
            logger.error(f"Error clearing non-OpenAI ratings: {e}")
            return 0

    def recently_added(self, limit: int = 10) -> list[BookRecord]:
        """Most recently written records."""
        try:
            with self.database.session() as session:
                books = session.execute(
                    select(BookCacheModel)
                    .order_by(BookCacheModel.cached_at.desc(), BookCacheModel.id.desc())
                    .limit(limit)
                ).scalars().all()
                return [BookRecord.from_model(b) for b in books]
        except SQLAlchemyError as e:
            logger.error(f"Error getting recently added books: {e}")
            return []

    def count(self) -> int:
        """Number of records, expired included."""
        with self.database.session() as session:
            return session.execute(select(func.count(BookCacheModel.id))).scalar_one()

    def clear_for_testing(
        self,
        preserve_summaries: bool = True,
        title_filter: Optional[str] = None,
    ) -> int:
        """
        Expire or delete records so the next lookup regenerates them.

        With ``preserve_summaries`` or a ``title_filter`` matching records are
        expired in place (and lose their summary unless preserved); otherwise
        the whole cache is emptied.

        Returns:
            Number of records affected
        """
        try:
            with self.database.session() as session:
                if preserve_summaries or title_filter:
                    values: dict[str, Any] = {"expires_at": datetime.utcnow() - timedelta(minutes=1)}
                    if not preserve_summaries:
                        values["summary"] = None

                    statement = update(BookCacheModel).values(**values)
                    if title_filter:
                        statement = statement.where(
                            func.lower(BookCacheModel.title).contains(title_filter.lower(), autoescape=True)
                        )
                else:
                    statement = delete(BookCacheModel)

                result = session.execute(statement)
                session.commit()
                count = result.rowcount or 0

            logger.info(f"Cleared {count} book cache entries (preserve_summaries={preserve_summaries})")
            return count

        except SQLAlchemyError as e:
            logger.error(f"Error clearing cache for testing: {e}")
            return 0
