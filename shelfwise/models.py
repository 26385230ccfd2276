"""
Transient book and preference types.

These flow between identification, enrichment and scoring and are never
persisted directly (see ``shelfwise.storage`` for the cached records).
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class MatchedFrom(str, Enum):
    """Which preference list produced an externally discovered candidate."""

    AUTHOR = "author"
    BOOK = "book"


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def book_key(title: Optional[str], author: Optional[str]) -> str:
    """Dedup key used across detection, expansion and output marking."""
    return f"{(title or '').lower()}::{(author or '').lower()}"


def js_round(value: float) -> int:
    """Round half up, so 14.5 displays as 15."""
    return int(math.floor(value + 0.5))


_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_leading_float(value: Any) -> Optional[float]:
    """
    Numeric prefix of a value, e.g. "4.5 stars" -> 4.5.

    Returns None when there is no numeric prefix.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    match = _LEADING_FLOAT.match(str(value))
    if not match:
        return None
    number = float(match.group(1))
    return number if math.isfinite(number) else None


@dataclass
class CandidateBook:
    """A book being considered for recommendation."""

    title: str
    author: str = ""

    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    summary: Optional[str] = None
    rating: Optional[str] = None
    publisher: Optional[str] = None
    categories: list[str] = field(default_factory=list)

    # Provenance
    from_shelf: bool = False
    matched_from: Optional[MatchedFrom] = None
    matched_term: Optional[str] = None
    detected_from: Optional[str] = None

    @property
    def key(self) -> str:
        return book_key(self.title, self.author)

    @classmethod
    def from_dict(cls, data: dict) -> "CandidateBook":
        """Build from loosely-typed input, defaulting anything malformed."""
        matched_from = data.get("matched_from") or data.get("matchedFrom")
        try:
            matched_from = MatchedFrom(matched_from) if matched_from else None
        except ValueError:
            matched_from = None

        return cls(
            title=_as_str(data.get("title")),
            author=_as_str(data.get("author")),
            isbn=data.get("isbn") or None,
            cover_url=data.get("cover_url") or data.get("coverUrl") or None,
            summary=data.get("summary") or None,
            rating=_as_str(data.get("rating")) or None,
            publisher=data.get("publisher") or None,
            categories=_as_str_list(data.get("categories")),
            from_shelf=bool(data.get("from_shelf", data.get("fromShelf", False))),
            matched_from=matched_from,
            matched_term=data.get("matched_term") or data.get("matchedTerm") or None,
            detected_from=data.get("detected_from") or data.get("detectedFrom") or None,
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "cover_url": self.cover_url,
            "summary": self.summary,
            "rating": self.rating,
            "publisher": self.publisher,
            "categories": list(self.categories),
            "from_shelf": self.from_shelf,
            "matched_from": self.matched_from.value if self.matched_from else None,
            "matched_term": self.matched_term,
            "detected_from": self.detected_from,
        }


@dataclass
class PreferenceProfile:
    """
    A device's reading preferences.

    ``goodreads_data`` holds rows of a Goodreads library export, keyed by the
    export's own column names ("Title", "Author", "My Rating", "Bookshelves").
    """

    device_id: str
    genres: list[str] = field(default_factory=list)
    authors: list[str] = field(default_factory=list)
    books: list[str] = field(default_factory=list)
    goodreads_data: list[dict] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.genres or self.authors or self.books or self.goodreads_data)

    @classmethod
    def from_dict(cls, data: dict) -> "PreferenceProfile":
        goodreads = data.get("goodreads_data", data.get("goodreadsData"))
        if not isinstance(goodreads, list):
            goodreads = []

        return cls(
            device_id=_as_str(data.get("device_id", data.get("deviceId"))),
            genres=_as_str_list(data.get("genres")),
            authors=_as_str_list(data.get("authors")),
            books=_as_str_list(data.get("books")),
            goodreads_data=[row for row in goodreads if isinstance(row, dict)],
        )

    def to_dict(self) -> dict:
        return {
            "device_id": self.device_id,
            "genres": list(self.genres),
            "authors": list(self.authors),
            "books": list(self.books),
            "goodreads_data": list(self.goodreads_data),
        }


@dataclass
class ScoredRecommendation:
    """A candidate with its match score and explanation."""

    title: str
    author: str

    score: float
    match_reason: str = ""
    match_quality: str = ""

    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    summary: Optional[str] = None
    rating: Optional[str] = None
    categories: list[str] = field(default_factory=list)

    from_shelf: bool = False
    matched_from: Optional[MatchedFrom] = None
    matched_term: Optional[str] = None

    already_read: bool = False
    original_read_title: Optional[str] = None

    @property
    def match_score(self) -> int:
        """Display score: non-negative whole number."""
        return max(0, js_round(self.score))

    def to_dict(self) -> dict:
        data = {
            "title": self.title or "Unknown Title",
            "author": self.author or "Unknown Author",
            "isbn": self.isbn,
            "cover_url": self.cover_url or "",
            "summary": self.summary or "No summary available",
            "rating": self.rating or "",
            "categories": list(self.categories),
            "match_score": self.match_score,
            "match_reason": self.match_reason,
            "match_quality": self.match_quality,
            "already_read": self.already_read,
        }
        if self.already_read:
            data["original_read_title"] = self.original_read_title
        else:
            data["from_shelf"] = self.from_shelf
            data["matched_from"] = self.matched_from.value if self.matched_from else None
            data["matched_term"] = self.matched_term
        return data
