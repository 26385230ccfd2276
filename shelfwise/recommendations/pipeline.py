"""
Recommendation Pipeline

detected titles -> identification -> external expansion -> enrichment -> scoring

Enrichment finishes for every candidate before scoring reads ratings.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

from loguru import logger

from shelfwise.enrichment import EnrichmentService
from shelfwise.identification import IdentificationService
from shelfwise.models import CandidateBook, PreferenceProfile, ScoredRecommendation

from .expander import CandidateExpander
from .scorer import RecommendationScorer

NO_TITLES_MESSAGE = (
    "No books could be clearly identified in the image. Try taking a clearer photo "
    "with better lighting and make sure book titles are visible."
)
NO_MATCHES_MESSAGE = (
    "We identified some book titles, but couldn't find detailed information for them. "
    "Try taking a clearer photo with better lighting."
)
NO_CANDIDATES_MESSAGE = (
    "No books to recommend yet. Scan a bookshelf or add favorite books and authors "
    "to your preferences."
)


@dataclass
class RecommendationResult:
    """Ordered recommendations plus what was detected."""

    recommendations: list[ScoredRecommendation] = field(default_factory=list)
    detected_books: list[CandidateBook] = field(default_factory=list)
    external_count: int = 0
    message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.recommendations

    def to_dict(self) -> dict:
        return {
            "books": [r.to_dict() for r in self.recommendations],
            "detected_books": [b.to_dict() for b in self.detected_books],
            "external_count": self.external_count,
            "message": self.message,
        }


class RecommendationPipeline:
    """
    End-to-end recommendation flow.

    Usage:
        pipeline = RecommendationPipeline(identification, expander, enrichment)
        result = await pipeline.recommend_from_titles(["Dune", "Sapiens"], profile)
    """

    def __init__(
        self,
        identification: IdentificationService,
        expander: CandidateExpander,
        enrichment: EnrichmentService,
        scorer: Optional[RecommendationScorer] = None,
        enrich_external_candidates: bool = True,
    ):
        self.identification = identification
        self.expander = expander
        self.enrichment = enrichment
        self.scorer = scorer or RecommendationScorer()
        self.enrich_external_candidates = enrich_external_candidates

    async def recommend(
        self,
        detected_books: list[CandidateBook],
        preferences: PreferenceProfile,
    ) -> RecommendationResult:
        """
        Recommend from already identified books.

        Args:
            detected_books: Books identified on the shelf
            preferences: Reader preferences

        Returns:
            RecommendationResult; empty with an advisory message when there is
            nothing to score
        """
        detected = [replace(book, from_shelf=True) for book in detected_books]
        external = await self.expander.expand(preferences, {book.key for book in detected})

        if not detected and not external:
            logger.info("No candidates to score")
            return RecommendationResult(message=NO_CANDIDATES_MESSAGE)

        if self.enrich_external_candidates:
            candidates = await self.enrichment.enhance_books(detected + external)
        else:
            candidates = await self.enrichment.enhance_books(detected) + external

        recommendations = self.scorer.score(candidates, preferences)

        message = None
        if preferences.is_empty and detected:
            titles = ", ".join(book.title for book in detected)
            message = f"Found {len(detected)} books in your photo: {titles}. Set preferences to get rankings."

        return RecommendationResult(
            recommendations=recommendations,
            detected_books=detected,
            external_count=len(external),
            message=message,
        )

    async def recommend_from_titles(
        self,
        titles: list[str],
        preferences: PreferenceProfile,
    ) -> RecommendationResult:
        """
        Identify detected titles, then recommend.

        Args:
            titles: Titles from the vision collaborator
            preferences: Reader preferences
        """
        titles = [t for t in titles if t and t.strip()]
        if not titles:
            return RecommendationResult(message=NO_TITLES_MESSAGE)

        detected = await self.identification.identify(titles)
        result = await self.recommend(detected, preferences)

        if not detected and result.is_empty:
            result.message = NO_MATCHES_MESSAGE
        return result
