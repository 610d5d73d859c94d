# linkcheck/crawler/fetcher.py
"""
Fetcher module: checks one URL over HTTP with retry/backoff and timeout.

Internal pages are fetched with GET and parsed for links; external ones are
probed with HEAD, falling back to GET for hosts that reject HEAD.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Set, Tuple
from urllib.parse import urlsplit

from aiohttp import ClientError, ClientResponse, ClientSession, InvalidURL, TooManyRedirects

from linkcheck.config import CheckerConfig
from linkcheck.crawler.link_extractor import extract_links
from linkcheck.crawler.models import CheckRequest, FetchOutcome, FetchResults, Link
from linkcheck.logger import logger

RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)
HEAD_REJECTED_STATUS: Sequence[int] = (405, 501)


def _redirect_chain(resp: ClientResponse) -> Tuple[Tuple[int, str], ...]:
    """(status, target) for every hop aiohttp followed."""
    hops = list(resp.history)
    targets = [str(h.url) for h in hops[1:]] + [str(resp.url)]
    return tuple((h.status, target) for h, target in zip(hops, targets))


class Fetcher:
    """Checks destinations. One instance is shared by all workers of a pool."""

    def __init__(
        self,
        session: ClientSession,
        config: CheckerConfig,
        retry_status: Sequence[int] = RETRY_STATUS,
    ) -> None:
        self.session = session
        self.config = config
        self._retry_status = retry_status
        # hosts answering 405/501 to HEAD
        self.head_incompatible: Set[str] = set()

    async def fetch(self, request: CheckRequest) -> FetchResults:
        """Check *request* and return its outcome plus discovered links."""
        host = urlsplit(request.url).netloc
        if request.is_external and host not in self.head_incompatible:
            results = await self._attempt(request, "HEAD")
            status = results.checked.status_code
            if status not in HEAD_REJECTED_STATUS:
                return results
            logger.debug("%s rejects HEAD (%s), using GET", host, status)
            self.head_incompatible.add(host)
        return await self._attempt(request, "GET")

    async def _attempt(self, request: CheckRequest, method: str) -> FetchResults:
        attempts = 0
        while True:
            try:
                async with self.session.request(method, request.url, allow_redirects=True) as resp:
                    if resp.status in self._retry_status and attempts < self.config.retry_times:
                        attempts += 1
                        logger.debug("Retry %d/%d for %s after HTTP %d",
                                     attempts, self.config.retry_times, request.url, resp.status)
                        await self._backoff(attempts)
                        continue
                    return await self._read(request, resp, parse=(method == "GET"))
            except (InvalidURL, TooManyRedirects) as exc:
                return self._failure(request, f"{type(exc).__name__}: {exc}")
            except asyncio.TimeoutError:
                # no retry on timeout
                return self._failure(request, "timeout")
            except ClientError as exc:
                attempts += 1
                if attempts > self.config.retry_times:
                    logger.debug("Failed %s: %s", request.url, exc)
                    return self._failure(request, f"{type(exc).__name__}: {exc}")
                await self._backoff(attempts)

    async def _read(self, request: CheckRequest, resp: ClientResponse, *, parse: bool) -> FetchResults:
        mime = resp.content_type.lower() if resp.content_type else None
        links: List[Link] = []
        anchors = frozenset()
        if parse and mime == "text/html" and 200 <= resp.status < 300:
            text = await resp.text(errors="replace")
            # links on a page resolve against where we actually landed
            page_url = str(resp.url)
            links, anchors = extract_links(page_url, text)
            if request.is_external:
                links = []
        outcome = FetchOutcome(
            url=request.url,
            status_code=resp.status,
            final_url=str(resp.url),
            content_type=mime,
            redirects=_redirect_chain(resp),
            anchors=anchors,
        )
        return FetchResults(checked=outcome, links=links)

    async def _backoff(self, attempts: int) -> None:
        # exponential backoff, cap at 60s
        delay = min(2**attempts, 60) * self.config.retry_backoff
        if delay:
            await asyncio.sleep(delay)

    @staticmethod
    def _failure(request: CheckRequest, error: Optional[str]) -> FetchResults:
        return FetchResults(checked=FetchOutcome(url=request.url, error=error))
