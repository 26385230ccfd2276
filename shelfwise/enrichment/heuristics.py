"""
Local rating estimates used when no generated rating is available.
"""

import struct
from typing import Optional

# (title, author, rating), all lowercase
POPULAR_BOOK_RATINGS: list[tuple[str, str, str]] = [
    # Bestsellers & popular fiction
    ("atomic habits", "james clear", "4.8"),
    ("the creative act", "rick rubin", "4.8"),
    ("american gods", "neil gaiman", "4.6"),
    ("the psychology of money", "morgan housel", "4.7"),
    ("stumbling on happiness", "daniel gilbert", "4.3"),
    ("this is how you lose the time war", "amal el-mohtar", "4.5"),
    ("this is how you lose the time war", "max gladstone", "4.5"),
    ("the book of five rings", "miyamoto musashi", "4.7"),
    ("economics for everyone", "jim stanford", "4.5"),
    ("apocalypse never", "michael shellenberger", "4.7"),
    ("economic facts and fallacies", "thomas sowell", "4.8"),
    ("thinking, fast and slow", "daniel kahneman", "4.6"),
    ("sapiens", "yuval noah harari", "4.7"),
    ("educated", "tara westover", "4.7"),
    ("becoming", "michelle obama", "4.8"),
    ("the silent patient", "alex michaelides", "4.5"),
    ("where the crawdads sing", "delia owens", "4.8"),
    ("dune", "frank herbert", "4.7"),
    ("project hail mary", "andy weir", "4.8"),
    ("the martian", "andy weir", "4.7"),
    ("the midnight library", "matt haig", "4.3"),
    ("1984", "george orwell", "4.7"),
    ("to kill a mockingbird", "harper lee", "4.8"),
    ("the great gatsby", "f. scott fitzgerald", "4.5"),
    ("pride and prejudice", "jane austen", "4.7"),
    ("the alchemist", "paulo coelho", "4.7"),
    ("the four agreements", "don miguel ruiz", "4.7"),
    ("the power of now", "eckhart tolle", "4.7"),
    ("man's search for meaning", "viktor e. frankl", "4.7"),
    ("a brief history of time", "stephen hawking", "4.7"),
    ("the 7 habits of highly effective people", "stephen r. covey", "4.7"),
    ("the immortal life of henrietta lacks", "rebecca skloot", "4.7"),
    ("thinking in systems", "donella h. meadows", "4.6"),
    ("meditations", "marcus aurelius", "4.7"),
]

MIN_ESTIMATE = 3.0
MAX_ESTIMATE = 4.9
_INT32_MAX = 2147483647


def popular_book_rating(title: str, author: str) -> Optional[str]:
    """Known rating for a well-known title, matched by containment."""
    normalized_title = (title or "").lower().strip()
    normalized_author = (author or "").lower().strip()
    if not normalized_title or not normalized_author:
        return None

    for known_title, known_author, rating in POPULAR_BOOK_RATINGS:
        title_match = normalized_title in known_title or known_title in normalized_title
        author_match = normalized_author in known_author or known_author in normalized_author
        if title_match and author_match:
            return rating

    return None


def _string_hash(text: str) -> int:
    """31-multiplier rolling hash over UTF-16 code units, as a signed int32."""
    data = text.encode("utf-16-le")
    value = 0
    for unit in struct.unpack(f"<{len(data) // 2}H", data):
        value = (value * 31 + unit) & 0xFFFFFFFF
    return value - 0x100000000 if value > _INT32_MAX else value


def estimate_rating(title: str, author: str) -> str:
    """
    Plausible rating for a book with no generated rating.

    Known titles get their listed rating; anything else gets a value in
    3.0-4.9 derived from a hash of title and author, so the same book
    always gets the same estimate.

    Args:
        title: Book title
        author: Book author

    Returns:
        Rating formatted with one decimal, e.g. "4.2"
    """
    known = popular_book_rating(title, author)
    if known:
        return known

    hashed = _string_hash(f"{title or ''}{author or ''}".lower())
    normalized = abs(hashed) / _INT32_MAX
    rating = MIN_ESTIMATE + normalized * (MAX_ESTIMATE - MIN_ESTIMATE)
    return f"{rating:.1f}"
