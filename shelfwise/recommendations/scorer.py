"""
Recommendation Scorer for ShelfWise

Scores candidate books against a reader's preferences:
- Rating as the base score
- Genre, favorite-author and favorite-title boosts
- Goodreads history boosts (authors read, books loved)

Design Decisions:
1. Explainability: every rule that fires adds a reason fragment
2. Books already read (per Goodreads) are listed after new ones, never dropped
3. On equal scores, books from the photographed shelf rank first
"""

from typing import Optional

from loguru import logger

from shelfwise.identification.fuzzy import normalize_title
from shelfwise.models import CandidateBook, PreferenceProfile, ScoredRecommendation, parse_leading_float

from .goodreads import parse_rating

GENRE_BOOST = 10
AUTHOR_BOOST = 25
FAVORITE_BOOK_BOOST = 20
GOODREADS_AUTHOR_BOOST = 3
GOODREADS_HIGHLY_RATED_BOOST = 3
GOODREADS_LOVED_BOOST = 8
HIGH_RATING = 4


def match_quality_label(match_score: Optional[float]) -> str:
    """User-facing label for a match score; empty below 60."""
    if match_score is None:
        return ""
    if match_score >= 90:
        return "Great match"
    if match_score >= 76:
        return "Good match"
    if match_score >= 60:
        return "Fair match"
    return ""


class RecommendationScorer:
    """
    Score and order candidates for a preference profile.

    Usage:
        scorer = RecommendationScorer()
        ranked = scorer.score(candidates, preferences)
    """

    def _already_read_title(
        self,
        book: CandidateBook,
        read_titles: list[tuple[str, str]],
    ) -> Optional[str]:
        """Original Goodreads title the book matches, if it was read and rated."""
        normalized = normalize_title(book.title)
        if not normalized:
            return None
        for normalized_read, original in read_titles:
            if normalized in normalized_read or normalized_read in normalized:
                return original
        return None

    def _score_book(
        self,
        book: CandidateBook,
        preferences: PreferenceProfile,
    ) -> tuple[float, list[str]]:
        score = parse_leading_float(book.rating) or 0.0
        reasons: list[str] = []

        author_lower = (book.author or "").lower()
        normalized_title = normalize_title(book.title)

        # Genres
        for category in book.categories:
            if not category:
                continue
            category_lower = category.lower()
            for genre in preferences.genres:
                if genre and genre.lower() in category_lower:
                    score += GENRE_BOOST
                    reasons.append(f"matches preferred genre {genre}")

        # Favorite authors
        if author_lower:
            for favorite in preferences.authors:
                if favorite and favorite.lower() in author_lower:
                    score += AUTHOR_BOOST
                    reasons.append(f"because you like author {favorite}")

        # Favorite books
        for favorite in preferences.books:
            normalized_favorite = normalize_title(favorite)
            if not normalized_favorite:
                continue
            if normalized_favorite in normalized_title or normalized_title in normalized_favorite:
                score += FAVORITE_BOOK_BOOST
                reasons.append(f'similar to your favorite book "{favorite}"')

        # Goodreads history
        for entry in preferences.goodreads_data:
            entry_author = str(entry.get("Author") or "")
            entry_rating = parse_rating(entry.get("My Rating"))

            if entry_author and author_lower and entry_author.lower() in author_lower:
                score += GOODREADS_AUTHOR_BOOST
                reasons.append(f"Goodreads author you've read: {entry_author}")
                if entry_rating >= HIGH_RATING:
                    score += GOODREADS_HIGHLY_RATED_BOOST
                    reasons.append(f"highly rated Goodreads author: {entry_author}")

            entry_title = normalize_title(str(entry.get("Title") or ""))
            if entry_title and entry_title == normalized_title:
                if entry_rating >= HIGH_RATING:
                    score += GOODREADS_LOVED_BOOST
                    reasons.append("you already loved this")
                elif entry_rating > 0:
                    score += entry_rating
                    reasons.append(f"you rated this {entry_rating}/5 on Goodreads")

        return max(0.0, score), reasons

    def _to_recommendation(
        self,
        book: CandidateBook,
        preferences: PreferenceProfile,
        original_read_title: Optional[str] = None,
    ) -> ScoredRecommendation:
        score, reasons = self._score_book(book, preferences)
        recommendation = ScoredRecommendation(
            title=book.title,
            author=book.author,
            score=score,
            match_reason="; ".join(reasons),
            isbn=book.isbn,
            cover_url=book.cover_url,
            summary=book.summary,
            rating=book.rating,
            categories=list(book.categories),
            from_shelf=book.from_shelf,
            matched_from=book.matched_from,
            matched_term=book.matched_term,
            already_read=original_read_title is not None,
            original_read_title=original_read_title,
        )
        recommendation.match_quality = match_quality_label(recommendation.match_score)
        return recommendation

    def score(
        self,
        candidates: list[CandidateBook],
        preferences: PreferenceProfile,
    ) -> list[ScoredRecommendation]:
        """
        Score and order candidates.

        Args:
            candidates: Detected and externally discovered books
            preferences: Reader preferences, Goodreads history included

        Returns:
            New books by descending score (shelf books first on ties), then
            already-read books by descending score
        """
        if not candidates:
            return []

        read_titles = []
        for entry in preferences.goodreads_data:
            title = str(entry.get("Title") or "")
            normalized = normalize_title(title)
            if normalized and parse_rating(entry.get("My Rating")) > 0:
                read_titles.append((normalized, title))

        new_books: list[ScoredRecommendation] = []
        read_books: list[ScoredRecommendation] = []

        for book in candidates:
            original_read_title = self._already_read_title(book, read_titles) if read_titles else None
            recommendation = self._to_recommendation(book, preferences, original_read_title)

            if original_read_title is not None:
                logger.debug(f"'{book.title}' already read as '{original_read_title}'")
                read_books.append(recommendation)
            else:
                new_books.append(recommendation)

        new_books.sort(key=lambda r: (-r.score, not r.from_shelf))
        read_books.sort(key=lambda r: -r.score)

        logger.info(
            f"Scored {len(candidates)} books: {len(new_books)} new, "
            f"{len(read_books)} already read"
        )
        return new_books + read_books


_default_scorer = RecommendationScorer()


def score(
    candidates: list[CandidateBook],
    preferences: PreferenceProfile,
) -> list[ScoredRecommendation]:
    """Score candidates with a default RecommendationScorer."""
    return _default_scorer.score(candidates, preferences)
