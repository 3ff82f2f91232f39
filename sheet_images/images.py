"""Image downloading and storage utilities."""

from __future__ import annotations

import logging
import posixpath
from http.cookiejar import DefaultCookiePolicy, request_host
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from publicsuffixlist import PublicSuffixList

from .config import DEFAULT_EXTENSION, MAX_EXTENSION_LENGTH, DownloadConfig
from .errors import FetchFailure, SheetImagesError, SizeMismatch, StorageFailure
from .models import DownloadResult, ImageTask

logger = logging.getLogger("sheet_images")

_PUBLIC_SUFFIXES = PublicSuffixList()


def image_extension(url: str) -> str:
    """Return the extension of the URL path, or ``.jpg`` when unusable.

    Only the path counts: ``photo.png?w=200`` is ``.png``, where taking the
    extension of the whole URL string would have fallen back to ``.jpg``.
    """
    ext = posixpath.splitext(urlparse(url).path)[1]
    if not ext or len(ext) > MAX_EXTENSION_LENGTH:
        return DEFAULT_EXTENSION
    return ext


def _segment(value: str) -> str:
    # Cell values are joined under the root, never treated as absolute paths.
    return value.lstrip("/\\")


def destination_path(task: ImageTask, output_root: Path) -> Path:
    """Where a task's image lives: ``<root>/<brand>/<seo>_<slug><ext>``."""
    filename = f"{_segment(task.seo)}_{task.slug}{image_extension(task.source_url)}"
    return Path(output_root) / _segment(task.brand) / filename


class PublicSuffixCookiePolicy(DefaultCookiePolicy):
    """Cookie policy that refuses cookies scoped to a public suffix.

    ``DefaultCookiePolicy`` only knows a handful of second-level domains, so a
    host under ``github.io`` could otherwise set a cookie for every other
    ``github.io`` site it redirects to.
    """

    def set_ok_domain(self, cookie, request):
        if cookie.domain_specified:
            domain = cookie.domain.lstrip(".").lower()
            host = request_host(request).lower()
            if _PUBLIC_SUFFIXES.publicsuffix(domain) == domain and domain != host:
                logger.debug("Rejecting cookie for public suffix %s from %s", domain, host)
                return False
        return super().set_ok_domain(cookie, request)


def build_session(config: DownloadConfig) -> requests.Session:
    """Create a browser-like session; its cookie jar survives redirects."""
    session = requests.Session()
    session.headers.update(config.headers)
    session.cookies.set_policy(PublicSuffixCookiePolicy())
    return session


def _declared_length(resp: requests.Response) -> Optional[int]:
    # requests transparently decodes compressed bodies, so the declared
    # length only describes the written bytes for identity encoding.
    encoding = resp.headers.get("Content-Encoding", "identity").lower()
    if encoding not in ("", "identity"):
        return None
    raw = resp.headers.get("Content-Length")
    if raw is None:
        return None
    try:
        length = int(raw)
    except ValueError:
        return None
    return length if length > 0 else None


def _fetch_to_path(
    task: ImageTask,
    destination: Path,
    session: requests.Session,
    config: DownloadConfig,
) -> None:
    try:
        resp = session.get(
            task.source_url,
            timeout=config.timeout,
            stream=True,
            allow_redirects=True,
        )
    except requests.RequestException as exc:
        raise FetchFailure(f"Failed to execute HTTP request: {exc}") from exc

    with resp:
        if not 200 <= resp.status_code < 300:
            raise FetchFailure(
                f"Failed to download image: {resp.status_code} {resp.reason}"
            )
        written = 0
        try:
            with destination.open("wb") as handle:
                for chunk in resp.iter_content(chunk_size=config.chunk_size):
                    if chunk:
                        handle.write(chunk)
                        written += len(chunk)
        except requests.RequestException as exc:
            raise FetchFailure(f"Failed to read image body: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise StorageFailure(f"Failed to save image to file: {exc}") from exc

        expected = _declared_length(resp)
        if expected is not None and written != expected:
            raise SizeMismatch(expected, written)


def _prepare_destination(destination: Path, output_root: Path) -> bool:
    """Create the destination directory and report whether the file exists."""
    try:
        root = Path(output_root).resolve()
        if not destination.resolve().is_relative_to(root):
            raise StorageFailure(f"{destination.as_posix()} is outside {root.as_posix()}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        return destination.exists()
    except (OSError, ValueError) as exc:
        raise StorageFailure(
            f"Failed to create directory {destination.parent}: {exc}"
        ) from exc


def download_image(
    task: ImageTask,
    config: DownloadConfig,
    session: Optional[requests.Session] = None,
) -> DownloadResult:
    """Download one image unless it is already on disk.

    Failures are logged and returned in the result rather than raised.
    """
    destination = destination_path(task, config.output_root)
    relative_path = destination.as_posix()

    try:
        exists = _prepare_destination(destination, config.output_root)
    except StorageFailure as exc:
        logger.warning("Row %d (%s): %s", task.row_index + 2, task.slug, exc)
        return DownloadResult(task=task, error=exc)

    if exists:
        logger.info("File already exists: %s", relative_path)
        return DownloadResult(task=task, relative_path=relative_path, skipped=True)

    client = session or build_session(config)
    try:
        _fetch_to_path(task, destination, client, config)
    except SheetImagesError as exc:
        logger.warning(
            "Error downloading %s image for row %d (%s): %s",
            task.kind,
            task.row_index + 2,
            task.source_url,
            exc,
        )
        return DownloadResult(task=task, error=exc)
    finally:
        if session is None:
            client.close()

    logger.info("Downloaded image: %s", relative_path)
    return DownloadResult(task=task, relative_path=relative_path)
