"""Command-line entry point for the spreadsheet image downloader."""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .batch import load_rows, run_batch
from .config import (
    DEFAULT_MAX_WORKERS,
    REQUEST_TIMEOUT,
    DownloadConfig,
    resolve_output_root,
)
from .errors import SheetImagesError

logger = logging.getLogger("sheet_images.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Download the images referenced by a Google Spreadsheet and print "
            "the local paths that replace its main_image and image_cache columns."
        ),
    )
    parser.add_argument("url", help="Shared Google Spreadsheet URL")
    parser.add_argument(
        "--output",
        default=None,
        type=Path,
        help="Directory where images are stored (default: products, or $SHEET_IMAGES_OUTPUT)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help="Number of concurrent downloads",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=REQUEST_TIMEOUT,
        help="Per-request timeout in seconds",
    )
    existing = parser.add_mutually_exclusive_group()
    existing.add_argument(
        "--delete-existing",
        action="store_true",
        help="Delete the output directory without asking if it already exists",
    )
    existing.add_argument(
        "--reuse-existing",
        action="store_true",
        help="Keep an existing output directory and skip images already on disk",
    )
    parser.add_argument(
        "--main-out",
        type=Path,
        default=None,
        help="Write the new main_image column to this file instead of STDOUT",
    )
    parser.add_argument(
        "--cache-out",
        type=Path,
        default=None,
        help="Write the new image_cache column to this file instead of STDOUT",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    argv = list(sys.argv[1:] if argv is None else argv)
    return parser.parse_args(argv)


def _confirm(prompt: str) -> bool:
    if not sys.stdin.isatty():
        return False
    answer = input(f"{prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def prepare_output_root(
    output_root: Path,
    delete_existing: bool = False,
    reuse_existing: bool = False,
) -> bool:
    """Decide what to do with a pre-existing output directory.

    Returns False when the user declines and the run should be aborted.
    """
    if not output_root.is_dir() or reuse_existing:
        return True
    if not delete_existing and not _confirm(
        f'"{output_root}" directory already exists. Do you want to delete it and proceed?'
    ):
        logger.error("'%s' directory exists, aborting ...", output_root)
        return False
    try:
        shutil.rmtree(output_root)
    except OSError as exc:
        logger.error("Failed to delete '%s' directory: %s", output_root, exc)
        return False
    logger.info("Deleted existing directory %s", output_root)
    return True


def _emit(text: str, destination: Optional[Path], label: str) -> None:
    if destination is None:
        sys.stdout.write(f"New {label} data:\n{text}\n")
        return
    destination.write_text(text + "\n", encoding="utf-8")
    logger.info("Saved %s column to %s", label, destination)


def _log_progress(completed: int, total: int, message: str) -> None:
    logger.info("%s (%d/%d rows)", message, completed, total)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    config = DownloadConfig(
        output_root=resolve_output_root(args.output),
        timeout=args.timeout,
        max_workers=args.workers,
    )
    overall_start = time.perf_counter()
    try:
        rows = load_rows(args.url, config)
    except SheetImagesError as exc:
        logger.error("%s", exc)
        return 1

    # Only touch an existing output root once the table is known to be usable.
    if not prepare_output_root(
        config.output_root,
        delete_existing=args.delete_existing,
        reuse_existing=args.reuse_existing,
    ):
        return 1

    outcome = run_batch(rows, config, progress=_log_progress)
    total_elapsed = time.perf_counter() - overall_start

    _emit(outcome.main_image_text(), args.main_out, "main_image")
    _emit(outcome.image_cache_text(), args.cache_out, "image_cache")
    _, total, succeeded, failed = outcome.snapshot()
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        succeeded,
        total,
        failed,
    )
    sys.stdout.write(outcome.summary() + "\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
