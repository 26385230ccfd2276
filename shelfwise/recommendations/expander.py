"""
External Candidate Expander

Adds books the user did not photograph by searching for their favorite
books and authors. Author names go through the same title search, since the
catalogs usually answer an author name with that author's best-known works.
"""

from dataclasses import replace
from typing import Iterable

from loguru import logger

from shelfwise.identification import BookSearchService
from shelfwise.models import CandidateBook, MatchedFrom, PreferenceProfile


class CandidateExpander:
    """Preference-driven candidate discovery."""

    def __init__(
        self,
        search_service: BookSearchService,
        max_candidates: int = 30,
        max_terms: int = 5,
    ):
        """
        Initialize expander.

        Args:
            search_service: Title search
            max_candidates: Cap on external candidates per expansion
            max_terms: Max favorite books, and separately max favorite authors, searched
        """
        self.search_service = search_service
        self.max_candidates = max_candidates
        self.max_terms = max_terms

    def _search_terms(self, preferences: PreferenceProfile) -> list[tuple[str, MatchedFrom]]:
        terms = []
        for book in preferences.books[:self.max_terms]:
            if book and len(book.strip()) > 1:
                terms.append((book.strip(), MatchedFrom.BOOK))
        for author in preferences.authors[:self.max_terms]:
            if author and len(author.strip()) > 1:
                terms.append((author.strip(), MatchedFrom.AUTHOR))
        return terms

    async def expand(
        self,
        preferences: PreferenceProfile,
        seen: Iterable[str] = (),
    ) -> list[CandidateBook]:
        """
        Discover external candidates from favorite books and authors.

        Args:
            preferences: Profile whose ``books`` and ``authors`` drive the searches
            seen: ``title::author`` keys (lowercase) to exclude, usually the detected books

        Returns:
            New candidates in discovery order, tagged with ``matched_from`` and
            ``matched_term``; at most ``max_candidates``
        """
        terms = self._search_terms(preferences)
        if not terms:
            logger.debug("No external expansion (no favorite books or authors)")
            return []

        logger.info(f"Attempting external expansion with {len(terms)} search terms")

        seen_keys = set(seen)
        candidates: list[CandidateBook] = []

        for term, kind in terms:
            if len(candidates) >= self.max_candidates:
                break

            try:
                results = await self.search_service.search_by_title(term)
            except Exception as e:
                logger.error(f"External search failed for term '{term}': {e}")
                continue

            for result in results:
                if result.key in seen_keys:
                    continue
                seen_keys.add(result.key)
                candidates.append(
                    replace(result, from_shelf=False, matched_from=kind, matched_term=term)
                )
                if len(candidates) >= self.max_candidates:
                    break

        if candidates:
            logger.info(f"Added {len(candidates)} external candidate books (after dedupe)")
        else:
            logger.info("No external candidates added (none found)")
        return candidates
