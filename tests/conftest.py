"""Shared fakes for exercising HTTP code paths without network access."""

from typing import Dict, Iterator, List, Optional, Union

import pytest
from requests.structures import CaseInsensitiveDict


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(
        self,
        content: bytes = b"",
        status_code: int = 200,
        reason: str = "OK",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.content = content
        self.status_code = status_code
        self.reason = reason
        self.headers = CaseInsensitiveDict(headers or {})
        self.closed = False

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSession:
    """Serves canned responses keyed by URL and records every request."""

    def __init__(self, routes: Dict[str, Union[FakeResponse, Exception]]) -> None:
        self.routes = routes
        self.calls: List[str] = []
        self.headers: Dict[str, str] = {}
        self.closed = False

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(status_code=404, reason="Not Found")
        if isinstance(route, Exception):
            raise route
        return route

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def image_host(monkeypatch):
    """Route every session built by the image downloader to one FakeSession."""
    from sheet_images import images

    session = FakeSession({})

    def fake_build_session(config):
        return session

    monkeypatch.setattr(images, "build_session", fake_build_session)
    return session
