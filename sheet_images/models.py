"""Data models used throughout the download pipeline."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

MAIN = "main"
CACHE = "cache"


@dataclass(frozen=True)
class ColumnSet:
    """Header indices of the columns the pipeline reads."""

    main_image: int
    image_cache: int
    brand_seo_url: int
    seo_url: int
    seo_column: str = "seo_url"


@dataclass(frozen=True)
class SheetRow:
    """Image sources and naming metadata taken verbatim from one data row."""

    index: int
    main_image: str
    image_cache: str
    brand: str
    seo: str

    @property
    def sheet_row(self) -> int:
        """1-based spreadsheet row number, counting the header."""
        return self.index + 2


@dataclass(frozen=True)
class ImageTask:
    """A single image to fetch and store."""

    source_url: str
    brand: str
    seo: str
    slug: str
    row_index: int
    kind: str = MAIN
    position: int = 0


@dataclass
class DownloadResult:
    """Outcome of one ImageTask."""

    task: ImageTask
    relative_path: str = ""
    error: Optional[Exception] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchOutcome:
    """Replacement columns and counters for one batch run.

    Every mutation goes through the methods below, which hold ``_lock`` so a
    reader on another thread only sees fully committed updates.
    """

    row_count: int = 0
    main_image_column: List[str] = field(default_factory=list)
    image_cache_column: List[str] = field(default_factory=list)
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    rows_completed: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @classmethod
    def for_rows(cls, row_count: int) -> "BatchOutcome":
        return cls(
            row_count=row_count,
            main_image_column=[""] * row_count,
            image_cache_column=[""] * row_count,
        )

    def record(self, result: DownloadResult) -> None:
        """Count a finished task."""
        with self._lock:
            self.total += 1
            if result.ok:
                self.succeeded += 1
            else:
                self.failed += 1

    def complete_row(self, index: int, main_path: str, cache_paths: List[str]) -> int:
        """Store the replacement values of a row and return rows completed."""
        with self._lock:
            self.main_image_column[index] = main_path
            self.image_cache_column[index] = "|".join(cache_paths)
            self.rows_completed += 1
            return self.rows_completed

    def snapshot(self) -> Tuple[int, int, int, int]:
        """Return ``(rows_completed, total, succeeded, failed)`` atomically."""
        with self._lock:
            return self.rows_completed, self.total, self.succeeded, self.failed

    def main_image_text(self) -> str:
        with self._lock:
            return "\n".join(self.main_image_column)

    def image_cache_text(self) -> str:
        with self._lock:
            return "\n".join(self.image_cache_column)

    def summary(self) -> str:
        _, total, succeeded, failed = self.snapshot()
        return (
            f"Download completed, {succeeded} images of {total} downloaded. "
            f"{failed} Failed."
        )
