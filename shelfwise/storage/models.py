"""
Database models for ShelfWise.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BookSource(str, Enum):
    """
    Provenance of a cached record's rating/summary.

    Only OPENAI content is shown to users; everything else is upstream
    metadata that gets its rating stripped by cache maintenance.
    """

    GOOGLE = "google"
    AMAZON = "amazon"
    OPENLIBRARY = "openlibrary"
    OPENAI = "openai"
    MANUAL = "manual"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value) -> "BookSource":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_authoritative(self) -> bool:
        return self is BookSource.OPENAI


class BookCacheModel(Base):
    """Cached book metadata keyed by a derived book id."""

    __tablename__ = "book_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # isbn_<digits> or book_<title>_<author>
    book_id = Column(String(600), nullable=False, unique=True, index=True)

    title = Column(String(500), nullable=False)
    author = Column(String(500), nullable=False)
    isbn = Column(String(30), unique=True)

    cover_url = Column(String(500))
    rating = Column(String(10))
    summary = Column(Text)
    source = Column(String(20), nullable=False, default=BookSource.GOOGLE.value)
    extra_metadata = Column("metadata", JSON)

    cached_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime)  # NULL never expires

    __table_args__ = (
        Index("idx_book_cache_title_author", "title", "author"),
        Index("idx_book_cache_expires", "expires_at"),
    )


class PreferenceModel(Base):
    """Reading preferences, one row per device."""

    __tablename__ = "preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(100), nullable=False, unique=True, index=True)
    genres = Column(JSON, nullable=False, default=list)
    authors = Column(JSON, default=list)
    books = Column(JSON, default=list)
    goodreads_data = Column(JSON)


class SavedBookModel(Base):
    """A book a device saved from its recommendations."""

    __tablename__ = "saved_books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String(100), nullable=False, index=True)
    book_cache_id = Column(Integer, ForeignKey("book_cache.id", ondelete="SET NULL"))
    title = Column(String(500), nullable=False)
    author = Column(String(500), nullable=False)
    cover_url = Column(String(500))
    rating = Column(String(10))
    summary = Column(Text)
    saved_at = Column(DateTime, default=datetime.utcnow)


class RateLimitCounterModel(Base):
    """Shared rate-limit counter for multi-instance deployments."""

    __tablename__ = "rate_limit_counters"

    key = Column(String(200), primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime)
