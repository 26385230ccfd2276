"""
ShelfWise

Bookshelf-photo reading recommendations:
- Fuzzy matching of detected titles against catalog search results
- Persistent book cache with LLM-curated ratings and summaries
- Per-API rate limiting with minute windows and daily quotas
- Preference-driven candidate expansion and match scoring
"""

__version__ = "0.1.0"
