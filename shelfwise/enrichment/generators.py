"""
Rating and Summary Generators

LLM-backed content for books that the cache has nothing trustworthy for.
Every OpenAI call is gated by the shared rate limiter; a refused call is a
"no content" result, not an error.
"""

from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger

from shelfwise.exceptions import ExternalServiceError
from shelfwise.models import parse_leading_float
from shelfwise.ratelimit import RateLimiter

RATING_SYSTEM_PROMPT = (
    "You are a literary expert with comprehensive knowledge of books. When asked "
    "about a book, provide only a numeric rating between 1.0 and 5.0 with one "
    "decimal place. Do not include any other text."
)

SUMMARY_SYSTEM_PROMPT = (
    "You are a literary expert providing engaging book summaries. Craft a concise "
    "3-4 sentence summary that captures the essence of the book, its main themes, "
    "and what makes it notable. Be informative yet brief."
)


def normalize_rating(text: Optional[str]) -> Optional[str]:
    """One-decimal rating string if ``text`` starts with a number in [1, 5]."""
    value = parse_leading_float(text)
    if value is None or not 1.0 <= value <= 5.0:
        return None
    return f"{value:.1f}"


class ContentGenerator(ABC):
    """Abstract base class for rating/summary generators."""

    @abstractmethod
    async def generate_rating(self, title: str, author: str) -> Optional[str]:
        """Rating "1.0"-"5.0", or None if nothing could be generated."""
        pass

    @abstractmethod
    async def generate_summary(self, title: str, author: str) -> Optional[str]:
        """Short spoiler-free summary, or None."""
        pass


class OpenAIContentGenerator(ContentGenerator):
    """
    OpenAI chat-completions generator.

    Raises ExternalServiceError when the API call itself fails; returns None
    when the limiter refuses the call or the answer is unusable.
    """

    API_NAME = "openai"

    def __init__(
        self,
        api_key: str,
        rate_limiter: RateLimiter,
        model: str = "gpt-4o",
        timeout: float = 15.0,
    ):
        """
        Initialize OpenAI generator.

        Args:
            api_key: OpenAI API key
            rate_limiter: Shared limiter, consulted before every call
            model: Chat model identifier
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.model = model
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            import openai
            self._client = openai.AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> Optional[str]:
        if not await self.rate_limiter.check_and_increment(self.API_NAME):
            logger.warning("Rate limit reached for OpenAI, skipping generation")
            return None

        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except Exception as e:
            logger.error(f"OpenAI generation failed: {e}")
            raise ExternalServiceError("OpenAI", detail=str(e)) from e

        if not response.choices:
            return None
        content = response.choices[0].message.content
        return content.strip() if content else None

    async def generate_rating(self, title: str, author: str) -> Optional[str]:
        content = await self._complete(
            RATING_SYSTEM_PROMPT,
            f'Based on critical reception and reader reviews, what would be an accurate '
            f'rating for "{title}" by {author}? Respond with just a number between 1.0 '
            f'and 5.0 with one decimal place.',
            max_tokens=10,
            temperature=0.5,
        )
        if content is None:
            return None

        rating = normalize_rating(content)
        if rating is None:
            logger.warning(f"Invalid rating response from OpenAI: {content!r}")
        return rating

    async def generate_summary(self, title: str, author: str) -> Optional[str]:
        logger.debug(f"Generating summary via OpenAI for '{title}'")
        return await self._complete(
            SUMMARY_SYSTEM_PROMPT,
            f'Summarize the book "{title}" by {author} in 3-4 sentences. Avoid spoilers.',
            max_tokens=220,
            temperature=0.6,
        )


class NullContentGenerator(ContentGenerator):
    """Generator used when no LLM is configured; never produces content."""

    async def generate_rating(self, title: str, author: str) -> Optional[str]:
        return None

    async def generate_summary(self, title: str, author: str) -> Optional[str]:
        return None


def create_content_generator(
    rate_limiter: RateLimiter,
    api_key: Optional[str] = None,
    model: str = "gpt-4o",
    timeout: float = 15.0,
) -> ContentGenerator:
    """
    Factory function to create a ContentGenerator.

    Falls back to NullContentGenerator when no API key is available.
    """
    if not api_key:
        logger.warning("No OpenAI API key configured. Using NullContentGenerator.")
        return NullContentGenerator()

    return OpenAIContentGenerator(
        api_key=api_key,
        rate_limiter=rate_limiter,
        model=model,
        timeout=timeout,
    )
