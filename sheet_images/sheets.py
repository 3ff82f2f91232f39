"""Spreadsheet URL resolution and CSV export fetching."""

from __future__ import annotations

import csv
import io
import logging
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

import requests

from .config import EXPORT_URL_TEMPLATE, REQUEST_TIMEOUT
from .errors import FetchFailure, InvalidReference, MalformedCSV

logger = logging.getLogger("sheet_images")


def _spreadsheet_id(path: str) -> str:
    parts = path.split("/")
    for index, part in enumerate(parts[:-1]):
        if part == "d":
            return parts[index + 1]
    return ""


def _first_gid(params: dict) -> str:
    values = params.get("gid") or [""]
    return values[0]


def resolve_export_url(spreadsheet_url: str) -> str:
    """Derive the CSV export URL of a shared spreadsheet URL.

    The sheet selector is read from the ``gid`` query parameter, then from a
    ``gid=<value>`` pair in the fragment, and defaults to ``"0"``.
    """
    if not spreadsheet_url or not spreadsheet_url.strip():
        raise InvalidReference("Please enter a URL")
    try:
        parsed = urlparse(spreadsheet_url.strip())
    except ValueError as exc:
        raise InvalidReference(f"Invalid Google Spreadsheet URL: {exc}") from exc

    sheet_id = _spreadsheet_id(parsed.path)
    if not sheet_id:
        raise InvalidReference("Invalid Google Spreadsheet URL")

    gid = _first_gid(parse_qs(parsed.query))
    if not gid and parsed.fragment:
        gid = _first_gid(parse_qs(parsed.fragment))
    return EXPORT_URL_TEMPLATE.format(sheet_id=sheet_id, gid=gid or "0")


def parse_csv(text: str) -> List[List[str]]:
    """Parse CSV text; every record must have as many fields as the first."""
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    records: List[List[str]] = []
    expected: Optional[int] = None
    try:
        for record in reader:
            if not record:
                continue
            if expected is None:
                expected = len(record)
            elif len(record) != expected:
                raise MalformedCSV(
                    f"record on line {reader.line_num}: wrong number of fields "
                    f"(expected {expected}, got {len(record)})"
                )
            records.append(record)
    except csv.Error as exc:
        raise MalformedCSV(f"line {reader.line_num}: {exc}") from exc
    return records


def fetch_csv(
    csv_url: str,
    session: Optional[requests.Session] = None,
    timeout: float = REQUEST_TIMEOUT,
) -> List[List[str]]:
    """Download and parse a CSV export."""
    get = session.get if session is not None else requests.get
    logger.info("Fetching CSV data from %s", csv_url)
    try:
        resp = get(csv_url, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchFailure(f"Failed to fetch CSV data: {exc}") from exc

    if not 200 <= resp.status_code < 300:
        raise FetchFailure(
            f"Failed to fetch CSV data: {resp.status_code} {resp.reason}"
        )
    text = resp.content.decode("utf-8-sig", errors="replace")
    records = parse_csv(text)
    logger.debug("Parsed %d CSV records", len(records))
    return records
