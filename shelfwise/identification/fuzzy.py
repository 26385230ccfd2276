"""
Fuzzy Title Matching

Edit-distance similarity used to tolerate OCR/vision spelling variation:
- Picking the best external search result for a detected title
- Normalized title comparison for favorites and reading history
"""

import re
from typing import Any, Optional, Sequence, TypeVar

import Levenshtein

T = TypeVar("T")

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Normalized edit-distance similarity.

    Defined as ``(max_len - distance) / max_len`` so identical strings score
    1.0 and completely different strings of equal length score 0.0. Two
    empty strings are identical.

    Args:
        a: First string
        b: Second string

    Returns:
        Similarity in [0, 1]
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def _title_of(candidate: Any) -> str:
    if isinstance(candidate, dict):
        title = candidate.get("title")
    else:
        title = getattr(candidate, "title", None)
    return title if isinstance(title, str) else ""


def best_match(target: str, candidates: Sequence[T]) -> Optional[T]:
    """
    Candidate whose title is most similar to ``target`` (case-insensitive).

    Ties keep the earliest candidate. Acceptance thresholds are the caller's
    business; this only ranks.

    Args:
        target: Title to match
        candidates: Objects with a ``title`` attribute, or dicts with a "title" key

    Returns:
        Best candidate or None if there are no candidates
    """
    target_lower = target.lower()
    best: Optional[T] = None
    best_score = -1.0

    for candidate in candidates:
        score = similarity(target_lower, _title_of(candidate).lower())
        if score > best_score:
            best = candidate
            best_score = score

    return best


def best_match_with_score(target: str, candidates: Sequence[T]) -> tuple[Optional[T], float]:
    """Like ``best_match`` but also returns the winning similarity."""
    match = best_match(target, candidates)
    if match is None:
        return None, 0.0
    return match, similarity(target.lower(), _title_of(match).lower())


def normalize_title(title: Optional[str]) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""
    if not title:
        return ""
    text = _PUNCTUATION.sub("", title.lower())
    return _WHITESPACE.sub(" ", text).strip()


def clean_query(text: str) -> str:
    """Clean detected text before sending it to a search API."""
    # Punctuation becomes a separator here, unlike normalize_title
    text = _PUNCTUATION.sub(" ", text)

    # Single characters are usually noise
    text = " ".join(word for word in text.split() if len(word) > 1)

    return " ".join(text.split())
