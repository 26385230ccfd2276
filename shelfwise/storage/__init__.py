"""Persistence: book cache, preferences and saved books."""

from .database import Database
from .models import (
    Base,
    BookCacheModel,
    BookSource,
    PreferenceModel,
    RateLimitCounterModel,
    SavedBookModel,
)
from .book_cache import BookCache, BookRecord, derive_book_id
from .preferences import PreferenceRepository, SavedBook, SavedBookRepository

__all__ = [
    "Database",
    "Base",
    "BookCacheModel",
    "BookSource",
    "PreferenceModel",
    "RateLimitCounterModel",
    "SavedBookModel",
    "BookCache",
    "BookRecord",
    "derive_book_id",
    "PreferenceRepository",
    "SavedBook",
    "SavedBookRepository",
]
