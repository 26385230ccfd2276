"""Matching detected titles to catalog books."""

from .fuzzy import (
    best_match,
    best_match_with_score,
    clean_query,
    levenshtein,
    normalize_title,
    similarity,
)
from .google_books import GoogleBooksClient
from .open_library import OpenLibraryClient
from .search import BookSearchService
from .service import IdentificationService

__all__ = [
    "best_match",
    "best_match_with_score",
    "clean_query",
    "levenshtein",
    "normalize_title",
    "similarity",
    "GoogleBooksClient",
    "OpenLibraryClient",
    "BookSearchService",
    "IdentificationService",
]
