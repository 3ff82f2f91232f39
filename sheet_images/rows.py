"""Column validation and per-row image task extraction."""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .errors import SchemaError
from .models import CACHE, MAIN, ColumnSet, ImageTask, SheetRow

REQUIRED_COLUMNS = ("main_image", "image_cache", "brand_seo_url")
SEO_COLUMNS = ("seo_url", "seo_url_uk")


def _header_map(header: Sequence[str]) -> Dict[str, int]:
    # Later duplicates overwrite earlier ones.
    mapping: Dict[str, int] = {}
    for index, name in enumerate(header):
        mapping[name] = index
    return mapping


def resolve_columns(header: Sequence[str]) -> ColumnSet:
    """Locate the required columns in a header row."""
    mapping = _header_map(header)
    for name in REQUIRED_COLUMNS:
        if name not in mapping:
            raise SchemaError(f"Missing required column: {name}")

    seo_column = next((name for name in SEO_COLUMNS if name in mapping), None)
    if seo_column is None:
        raise SchemaError("Missing required column: seo_url or seo_url_uk")

    return ColumnSet(
        main_image=mapping["main_image"],
        image_cache=mapping["image_cache"],
        brand_seo_url=mapping["brand_seo_url"],
        seo_url=mapping[seo_column],
        seo_column=seo_column,
    )


def extract_rows(table: Sequence[Sequence[str]]) -> Tuple[ColumnSet, List[SheetRow]]:
    """Validate a parsed CSV table and return its data rows."""
    if len(table) < 2:
        raise SchemaError("No data in CSV")
    columns = resolve_columns(table[0])
    rows = [
        SheetRow(
            index=index,
            main_image=record[columns.main_image],
            image_cache=record[columns.image_cache],
            brand=record[columns.brand_seo_url],
            seo=record[columns.seo_url],
        )
        for index, record in enumerate(table[1:])
    ]
    return columns, rows


def split_image_cache(value: str) -> List[str]:
    """Split an ``image_cache`` field into URLs.

    ``|`` wins over ``,``; a field with neither is a single URL.
    """
    if "|" in value:
        candidates = value.split("|")
    elif "," in value:
        candidates = value.split(",")
    else:
        candidates = [value]
    return [candidate.strip() for candidate in candidates if candidate.strip()]


def build_tasks(row: SheetRow) -> List[ImageTask]:
    """Create the download tasks for one row, main image first."""
    tasks: List[ImageTask] = []
    if row.main_image:
        tasks.append(
            ImageTask(
                source_url=row.main_image,
                brand=row.brand,
                seo=row.seo,
                slug=f"m{row.index}",
                row_index=row.index,
                kind=MAIN,
            )
        )
    if row.image_cache:
        for position, url in enumerate(split_image_cache(row.image_cache)):
            tasks.append(
                ImageTask(
                    source_url=url,
                    brand=row.brand,
                    seo=row.seo,
                    slug=f"i{row.index}_j{position}",
                    row_index=row.index,
                    kind=CACHE,
                    position=position,
                )
            )
    return tasks
