"""High-level orchestration from spreadsheet URL to replacement columns."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence

import requests

from .config import DownloadConfig
from .images import download_image
from .models import MAIN, BatchOutcome, DownloadResult, ImageTask, SheetRow
from .rows import build_tasks, extract_rows
from .sheets import fetch_csv, resolve_export_url

logger = logging.getLogger("sheet_images")

ProgressCallback = Callable[[int, int, str], None]
Downloader = Callable[[ImageTask, DownloadConfig], DownloadResult]


class _RowState:
    """Results gathered so far for one row."""

    def __init__(self, pending: int) -> None:
        self.pending = pending
        self.main_path = ""
        self.cache_paths: Dict[int, str] = {}

    def add(self, result: DownloadResult) -> None:
        self.pending -= 1
        if not result.ok:
            return
        if result.task.kind == MAIN:
            self.main_path = result.relative_path
        else:
            self.cache_paths[result.task.position] = result.relative_path

    def ordered_cache_paths(self) -> List[str]:
        return [self.cache_paths[k] for k in sorted(self.cache_paths)]


def run_batch(
    rows: Sequence[SheetRow],
    config: DownloadConfig,
    progress: Optional[ProgressCallback] = None,
    downloader: Downloader = download_image,
) -> BatchOutcome:
    """Download every image referenced by ``rows`` and collect the new paths.

    Downloads run on a thread pool; results are folded into the outcome by the
    calling thread only, as they complete.
    """
    outcome = BatchOutcome.for_rows(len(rows))
    states: Dict[int, _RowState] = {}
    tasks: List[ImageTask] = []
    for row in rows:
        row_tasks = build_tasks(row)
        states[row.index] = _RowState(len(row_tasks))
        tasks.extend(row_tasks)

    def finish(index: int) -> None:
        state = states[index]
        completed = outcome.complete_row(
            index, state.main_path, state.ordered_cache_paths()
        )
        if progress is not None:
            progress(completed, len(rows), f"Processed row {completed}/{len(rows)}")

    logger.info("Downloading %d images across %d rows", len(tasks), len(rows))
    for row in rows:
        if states[row.index].pending == 0:
            finish(row.index)

    if tasks:
        workers = max(1, config.max_workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(downloader, task, config): task for task in tasks}
            for future in as_completed(futures):
                try:
                    result = future.result()
                except Exception as exc:  # pylint: disable=broad-except
                    task = futures[future]
                    logger.exception(
                        "Unexpected error downloading %s for row %d",
                        task.source_url,
                        task.row_index + 2,
                    )
                    result = DownloadResult(task=task, error=exc)
                outcome.record(result)
                state = states[result.task.row_index]
                state.add(result)
                if state.pending == 0:
                    finish(result.task.row_index)

    logger.info(outcome.summary())
    return outcome


def load_rows(
    spreadsheet_url: str,
    config: DownloadConfig,
    session: Optional[requests.Session] = None,
) -> List[SheetRow]:
    """Resolve, fetch and validate a spreadsheet without touching the disk."""
    csv_url = resolve_export_url(spreadsheet_url)
    table = fetch_csv(csv_url, session=session, timeout=config.timeout)
    columns, rows = extract_rows(table)
    logger.debug("Using %s as the SEO column", columns.seo_column)
    return rows


def process_spreadsheet(
    spreadsheet_url: str,
    config: DownloadConfig,
    progress: Optional[ProgressCallback] = None,
    session: Optional[requests.Session] = None,
    downloader: Downloader = download_image,
) -> BatchOutcome:
    """Resolve, fetch, validate and download a spreadsheet's images.

    Table-level errors propagate before any image is requested.
    """
    overall_start = time.perf_counter()
    rows = load_rows(spreadsheet_url, config, session=session)
    outcome = run_batch(rows, config, progress=progress, downloader=downloader)
    logger.debug("Batch finished in %.2fs", time.perf_counter() - overall_start)
    return outcome
