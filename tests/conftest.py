# File: tests/conftest.py
from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from typing import Callable, Deque, Dict, Iterable, List, Optional, Set

import pytest
from aiohttp import web

from linkcheck.crawler.models import CheckRequest, Destination, FetchOutcome, FetchResults, Link


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


class FakePool:
    """
    Scripted stand-in for WorkerPool.

    *pages* maps a URL to the absolute hrefs found on it; *statuses* overrides
    the default 200. Results come back FIFO, or LIFO with ``order="lifo"``.
    """

    def __init__(
        self,
        pages: Dict[str, List[str]],
        size: int = 8,
        statuses: Optional[Dict[str, int]] = None,
        sources: Iterable[str] = (),
        order: str = "fifo",
    ) -> None:
        self.pages = pages
        self.size = size
        self.statuses = statuses or {}
        self.sources: Set[str] = set(sources)
        self.order = order
        self.submitted: List[CheckRequest] = []
        self.observer: Optional[Callable[[], None]] = None
        self._pending: Deque[CheckRequest] = deque()
        self.max_in_flight = 0

    @property
    def submitted_urls(self) -> List[str]:
        return [r.url for r in self.submitted]

    def submit(self, destination: Destination) -> None:
        request = destination.to_request()
        self.submitted.append(request)
        self._pending.append(request)
        self.max_in_flight = max(self.max_in_flight, len(self._pending))

    async def next_result(self) -> FetchResults:
        if self.observer is not None:
            self.observer()
        if not self._pending:
            raise AssertionError("scheduler waits for a result with nothing in flight")
        await asyncio.sleep(0)
        request = self._pending.popleft() if self.order == "fifo" else self._pending.pop()
        return self._result(request)

    def is_saturated(self) -> bool:
        return len(self._pending) >= self.size

    def is_idle(self) -> bool:
        return not self._pending

    def _result(self, request: CheckRequest) -> FetchResults:
        status = self.statuses.get(request.url, 200)
        outcome = FetchOutcome(
            url=request.url,
            status_code=status,
            final_url=request.url,
            content_type="text/html",
        )
        if request.is_external or status != 200:
            return FetchResults(checked=outcome)
        links = []
        for href in self.pages.get(request.url, []):
            link = Link.from_href(request.url, href)
            link.destination.is_source = link.destination.url in self.sources
            links.append(link)
        return FetchResults(checked=outcome, links=links)


@pytest.fixture()
def fake_pool_factory() -> Callable[..., FakePool]:
    return FakePool


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


def html(body: str) -> web.Response:
    return web.Response(text=f"<html><body>{body}</body></html>", content_type="text/html")
