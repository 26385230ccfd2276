"""
Goodreads library export import.

Goodreads exports a CSV with one row per shelved book. Only the columns the
scorer reads are kept, as strings, exactly as Goodreads names them.
"""

from pathlib import Path
from typing import IO, Any, Union

import pandas as pd
from loguru import logger

from shelfwise.models import parse_leading_float

GOODREADS_COLUMNS = ["Title", "Author", "My Rating", "Bookshelves", "Exclusive Shelf"]


def parse_rating(value: Any) -> int:
    """
    Integer star rating from a "My Rating" cell.

    Goodreads writes 0 for unrated books; anything unparseable is 0 too.
    """
    number = parse_leading_float(value)
    return int(number) if number is not None else 0


def load_goodreads_export(source: Union[str, Path, IO]) -> list[dict]:
    """
    Load a Goodreads library export.

    Args:
        source: Path or file-like object of the exported CSV

    Returns:
        Rows with GOODREADS_COLUMNS as keys; missing columns become ""
    """
    df = pd.read_csv(source, dtype=str, keep_default_na=False)

    missing = [col for col in GOODREADS_COLUMNS if col not in df.columns]
    if "Title" in missing:
        logger.warning("Goodreads export has no Title column; nothing to import")
        return []
    for col in missing:
        df[col] = ""

    df = df[GOODREADS_COLUMNS]
    df = df[df["Title"].str.strip() != ""]

    rows = df.to_dict(orient="records")
    rated = sum(1 for row in rows if parse_rating(row["My Rating"]) > 0)
    logger.info(f"Loaded {len(rows)} Goodreads entries ({rated} rated)")
    return rows
