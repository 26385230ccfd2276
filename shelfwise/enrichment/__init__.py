"""Rating and summary enrichment."""

from .generators import (
    ContentGenerator,
    NullContentGenerator,
    OpenAIContentGenerator,
    create_content_generator,
    normalize_rating,
)
from .heuristics import POPULAR_BOOK_RATINGS, estimate_rating, popular_book_rating
from .service import NO_SUMMARY, EnrichmentService

__all__ = [
    "ContentGenerator",
    "NullContentGenerator",
    "OpenAIContentGenerator",
    "create_content_generator",
    "normalize_rating",
    "POPULAR_BOOK_RATINGS",
    "estimate_rating",
    "popular_book_rating",
    "NO_SUMMARY",
    "EnrichmentService",
]
