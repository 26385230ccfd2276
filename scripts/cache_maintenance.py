#!/usr/bin/env python3
"""
ShelfWise - Cache Maintenance Script

Periodic upkeep of the book cache and API quota report:
- Remove expired entries
- Clear ratings that were not LLM-generated
- Optionally expire entries so they regenerate (testing)
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from shelfwise.config import get_settings
from shelfwise.container import ServiceContainer
from shelfwise.logging_config import setup_logging


async def report_usage(container: ServiceContainer) -> None:
    stats = await container.rate_limiter.get_usage_stats()
    for api_name, usage in sorted(stats.items()):
        status = "ok" if usage.within_limits else "LIMITED"
        print(f"{api_name:<14} window={usage.window_usage:<5} daily={usage.daily_usage}/{usage.daily_limit}  {status}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Book cache maintenance")
    parser.add_argument("--purge-ratings", action="store_true", help="Clear non-OpenAI ratings")
    parser.add_argument("--expire", metavar="TITLE", nargs="?", const="", help="Expire entries (optionally matching TITLE)")
    parser.add_argument("--drop-summaries", action="store_true", help="With --expire, also drop summaries")
    parser.add_argument("--usage", action="store_true", help="Print API usage for the configured limiter")
    args = parser.parse_args()

    load_dotenv()
    settings = get_settings()
    setup_logging(settings.log_level)

    container = ServiceContainer(settings)

    removed = container.enrichment.run_maintenance()
    print(f"Removed {removed} expired entries")

    if args.purge_ratings:
        cleared = container.book_cache.cleanup_non_openai_ratings()
        print(f"Cleared {cleared} non-OpenAI ratings")

    if args.expire is not None:
        count = container.book_cache.clear_for_testing(
            preserve_summaries=not args.drop_summaries,
            title_filter=args.expire or None,
        )
        print(f"Expired {count} entries")

    if args.usage:
        asyncio.run(report_usage(container))

    asyncio.run(container.close())
    return 0


if __name__ == "__main__":
    sys.exit(main())
