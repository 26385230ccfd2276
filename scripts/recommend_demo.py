"""
Demo script for shelf recommendations.

Runs the full pipeline for a list of titles as if they had been detected on
a shelf photo, optionally with preferences and a Goodreads export.

    python scripts/recommend_demo.py "Dune" "Sapiens" --genre "Science Fiction" --author "Andy Weir"
"""

import argparse
import asyncio
import json

from dotenv import load_dotenv

# Load env vars
load_dotenv()

from shelfwise.config import get_settings
from shelfwise.container import ServiceContainer
from shelfwise.logging_config import setup_logging
from shelfwise.models import PreferenceProfile
from shelfwise.recommendations import load_goodreads_export


async def main(args: argparse.Namespace) -> None:
    settings = get_settings()
    setup_logging(settings.log_level)

    container = ServiceContainer(settings)
    container.startup()

    preferences = PreferenceProfile(
        device_id="demo",
        genres=args.genre,
        authors=args.author,
        books=args.book,
        goodreads_data=load_goodreads_export(args.goodreads) if args.goodreads else [],
    )

    try:
        result = await container.pipeline.recommend_from_titles(args.titles, preferences)
    finally:
        await container.close()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    if result.message:
        print(result.message)
    print(f"\n--- {len(result.recommendations)} books ({result.external_count} external) ---\n")

    for rec in result.recommendations:
        origin = "shelf" if rec.from_shelf else f"{rec.matched_from.value}: {rec.matched_term}" if rec.matched_from else "-"
        flag = " [already read]" if rec.already_read else ""
        print(f"{rec.match_score:>4}  {rec.title} by {rec.author}{flag}")
        print(f"      rating={rec.rating or '-'}  origin={origin}  {rec.match_quality}")
        if rec.match_reason:
            print(f"      {rec.match_reason}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Recommend books for detected shelf titles")
    parser.add_argument("titles", nargs="*", help="Detected book titles")
    parser.add_argument("--genre", action="append", default=[], help="Preferred genre (repeatable)")
    parser.add_argument("--author", action="append", default=[], help="Favorite author (repeatable)")
    parser.add_argument("--book", action="append", default=[], help="Favorite book title (repeatable)")
    parser.add_argument("--goodreads", help="Path to a Goodreads library export CSV")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    asyncio.run(main(parser.parse_args()))
