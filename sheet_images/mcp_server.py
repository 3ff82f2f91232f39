"""MCP server exposing the spreadsheet image downloader as a tool."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from .batch import process_spreadsheet
from .config import DEFAULT_OUTPUT_ROOT, DownloadConfig
from .models import BatchOutcome

logger = logging.getLogger("sheet_images.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="sheet-images")


def render_outcome(outcome: BatchOutcome) -> str:
    """Format the replacement columns and summary as a single text reply."""
    return (
        f"{outcome.summary()}\n\n"
        f"New main_image data:\n{outcome.main_image_text()}\n\n"
        f"New image_cache data:\n{outcome.image_cache_text()}\n"
    )


@mcp.tool()
async def download_sheet_images(
    url: str,
    output_dir: str = str(DEFAULT_OUTPUT_ROOT),
) -> str:
    """Download the images of a Google Spreadsheet and return the new column values."""

    config = DownloadConfig(output_root=Path(output_dir).expanduser())
    outcome = await asyncio.to_thread(process_spreadsheet, url, config)
    return render_outcome(outcome)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
