"""Exceptions raised while turning a spreadsheet into downloaded images."""

from __future__ import annotations


class SheetImagesError(RuntimeError):
    """Base class for every error surfaced by the downloader."""


class InvalidReference(SheetImagesError):
    """The spreadsheet URL does not contain a ``/d/<id>/`` segment."""


class FetchFailure(SheetImagesError):
    """An HTTP request failed or answered with a non-2xx status."""


class MalformedCSV(SheetImagesError):
    """The CSV export could not be parsed."""


class SchemaError(SheetImagesError):
    """The table has no data rows or lacks a required column."""


class StorageFailure(SheetImagesError):
    """A directory or file could not be created or written."""


class SizeMismatch(SheetImagesError):
    """The number of bytes written differs from the declared Content-Length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"File size mismatch: expected {expected} bytes, got {actual} bytes"
        )
        self.expected = expected
        self.actual = actual

