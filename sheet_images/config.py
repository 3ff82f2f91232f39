"""Configuration objects and constants for the image downloader."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger("sheet_images")

DEFAULT_OUTPUT_ROOT = Path("products")
OUTPUT_ROOT_ENV = "SHEET_IMAGES_OUTPUT"
REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_WORKERS = 8
DEFAULT_CHUNK_SIZE = 64 * 1024

EXPORT_URL_TEMPLATE = (
    "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&gid={gid}"
)

DEFAULT_EXTENSION = ".jpg"
MAX_EXTENSION_LENGTH = 5

# Image hosts tend to reject requests that do not look like a browser.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.5",
    "Referer": "https://www.google.com/",
}


@dataclass
class DownloadConfig:
    """Settings that control where and how images are downloaded."""

    output_root: Path = DEFAULT_OUTPUT_ROOT
    timeout: float = REQUEST_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    headers: Dict[str, str] = field(default_factory=lambda: dict(BROWSER_HEADERS))


def resolve_output_root(explicit: Optional[Path] = None) -> Path:
    """Pick the output root from the CLI flag, the environment, or the default."""
    if explicit is not None:
        return Path(explicit)
    override = os.getenv(OUTPUT_ROOT_ENV)
    if override:
        logger.debug("%s override detected: %s", OUTPUT_ROOT_ENV, override)
        return Path(override).expanduser()
    return DEFAULT_OUTPUT_ROOT
