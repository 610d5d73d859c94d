# linkcheck/crawler/crawler.py
"""
Crawl orchestration: scheduling, result merging and completion detection.

The frontier is owned by a single coroutine. Workers only ever see
:class:`~linkcheck.crawler.models.CheckRequest` snapshots and send back
:class:`~linkcheck.crawler.models.FetchResults`; every state change happens
here, one result at a time.
"""
from __future__ import annotations

import asyncio
import time
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from linkcheck.config import CheckerConfig
from linkcheck.crawler.frontier import Bin, Frontier, FrontierInvariantError
from linkcheck.crawler.models import Destination, FetchResults, Link
from linkcheck.crawler.pool import WorkerPool, pick_concurrency
from linkcheck.logger import logger
from linkcheck.uri_glob import UriGlob, compile_globs, matches_any
from linkcheck.utils import remove_duplicates

__all__ = ("Pool", "CompletionDetector", "Scheduler", "crawl")


class Pool(Protocol):
    """What the scheduler needs from a worker pool."""

    def submit(self, destination: Destination) -> None: ...

    async def next_result(self) -> FetchResults: ...

    def is_saturated(self) -> bool: ...

    def is_idle(self) -> bool: ...


class CompletionDetector:
    """Resolves a one-shot future when nothing is left to do."""

    def __init__(self) -> None:
        self.done: asyncio.Future[None] = asyncio.get_running_loop().create_future()

    @property
    def fired(self) -> bool:
        return self.done.done()

    def check(self, frontier: Frontier, pool: Pool) -> bool:
        """Fire if the crawl is finished; returns whether it fired."""
        if frontier.size(Bin.OPEN_INTERNAL) or not pool.is_idle():
            return False
        if frontier.size(Bin.OPEN_EXTERNAL) or frontier.size(Bin.IN_PROGRESS):
            raise FrontierInvariantError(
                f"pool idle with {frontier.size(Bin.OPEN_EXTERNAL)} external queued "
                f"and {frontier.size(Bin.IN_PROGRESS)} in progress"
            )
        if self.fired:
            raise RuntimeError("completion detected twice")
        self.done.set_result(None)
        return True


class Scheduler:
    """Feeds the pool from the frontier and merges results back."""

    def __init__(
        self,
        pool: Pool,
        uri_globs: Sequence[UriGlob],
        check_external: bool,
        verbose: bool = False,
        frontier: Optional[Frontier] = None,
    ) -> None:
        self.pool = pool
        self.uri_globs = list(uri_globs)
        self.check_external = check_external
        self.frontier = frontier if frontier is not None else Frontier()
        self.detector = CompletionDetector()
        self.links: Dict[Link, None] = {}
        self.dispatch_order: List[str] = []
        # fairness counter, independent of the progress counter below
        self._dispatched = 0
        self.checked = 0
        self._log = logger.info if verbose else logger.debug

    def add_seeds(self, seeds: Iterable[str]) -> None:
        for url in remove_duplicates(list(seeds)):
            self.frontier.insert(Destination(url, is_source=True), Bin.OPEN_INTERNAL)

    async def run(self) -> List[Link]:
        """Dispatch the seeds and process results until the crawl completes."""
        self._dispatch_seeds()
        self.detector.check(self.frontier, self.pool)
        while not self.detector.fired:
            result = await self.pool.next_result()
            self.on_result(result)
        return list(self.links)

    def _dispatch_seeds(self) -> None:
        while self.frontier.size(Bin.OPEN_INTERNAL) and not self.pool.is_saturated():
            self._dispatch(Bin.OPEN_INTERNAL)

    def on_result(self, result: FetchResults) -> None:
        """Merge one worker result into the frontier and refill the pool."""
        checked = self.frontier.transition(result.checked.url, Bin.IN_PROGRESS, Bin.CLOSED)
        checked.update_from_result(result.checked)
        self.checked += 1
        self._log(
            "Done checking %d: %s (%s) => %d links%s",
            self.checked, checked, checked.status_description, len(result.links),
            " - BROKEN" if checked.is_broken else "",
        )

        for destination in self._merge(result.links):
            self._route(destination)

        self._refill()
        self.detector.check(self.frontier, self.pool)

    def _merge(self, links: Iterable[Link]) -> List[Destination]:
        """Canonicalize link destinations; return the ones never seen before."""
        staged: Dict[str, Destination] = {}
        for link in links:
            url = link.destination.url
            if url in staged:
                link.destination = staged[url]
            elif self.frontier.classify(url) is None:
                staged[url] = link.destination
            else:
                link.destination = self.frontier.lookup(url)
            self.links[link] = None
        return list(staged.values())

    def _route(self, destination: Destination) -> None:
        destination.is_external = not matches_any(self.uri_globs, destination.url)
        if destination.is_unsupported_scheme:
            self.frontier.insert(destination, Bin.CLOSED)
        elif destination.is_external:
            if self.check_external:
                self.frontier.insert(destination, Bin.OPEN_EXTERNAL)
            else:
                self.frontier.insert(destination, Bin.CLOSED)
        else:
            self.frontier.insert(destination, Bin.OPEN_INTERNAL, front=destination.is_source)

    def _refill(self) -> None:
        while self.frontier.has_open() and not self.pool.is_saturated():
            internal = self.frontier.size(Bin.OPEN_INTERNAL)
            external = self.frontier.size(Bin.OPEN_EXTERNAL)
            if not external:
                source = Bin.OPEN_INTERNAL
            elif not internal:
                source = Bin.OPEN_EXTERNAL
            else:
                source = Bin.OPEN_INTERNAL if self._dispatched % 2 == 0 else Bin.OPEN_EXTERNAL
            self._dispatch(source)

    def _dispatch(self, source: Bin) -> None:
        destination = self.frontier.take(source)
        self._log("About to check: %s", destination)
        self.pool.submit(destination)
        self.dispatch_order.append(destination.url)
        self._dispatched += 1


async def crawl(
    seeds: Sequence[str],
    host_globs: Iterable[str],
    check_external: bool,
    verbose: bool,
    *,
    config: Optional[CheckerConfig] = None,
    pool: Optional[Pool] = None,
) -> List[Link]:
    """
    Crawl from *seeds* and return every link found, in discovery order.

    Destinations matching one of *host_globs* are internal: they are fetched
    and parsed. Others are external and are only checked when
    *check_external* is set. A supplied *pool* is used as is and not shut
    down; otherwise a :class:`WorkerPool` is created from *config*.
    """
    seeds = list(seeds)
    uri_globs = compile_globs(host_globs)
    if verbose:
        logger.info("Crawl will start on the following URLs: %s", seeds)
        logger.info("Crawl will check pages only on URLs satisfying: %s", [g.glob for g in uri_globs])
    if config is None:
        config = CheckerConfig()

    start = time.monotonic()
    if pool is not None:
        links = await _run(pool, seeds, uri_globs, check_external, verbose)
    else:
        size = pick_concurrency(seeds, check_external, config.concurrency)
        (logger.info if verbose else logger.debug)("Using %d workers.", size)
        async with WorkerPool(size, config) as own_pool:
            links = await _run(own_pool, seeds, uri_globs, check_external, verbose)

    duration = time.monotonic() - start
    logger.info("Crawl finished: %d links in %.2f s", len(links), duration)
    return links


async def _run(
    pool: Pool,
    seeds: Sequence[str],
    uri_globs: Sequence[UriGlob],
    check_external: bool,
    verbose: bool,
) -> List[Link]:
    scheduler = Scheduler(pool, uri_globs, check_external, verbose)
    scheduler.add_seeds(seeds)
    links = await scheduler.run()
    if verbose:
        for link in links:
            if link.destination.is_broken:
                logger.info("BROKEN: %s", link)
    return links
