# linkcheck/crawler/pool.py
"""
Fixed-size pool of fetch workers.

Workers are asyncio tasks sharing one aiohttp session. Requests go in through
:meth:`WorkerPool.submit`; results come back, in completion order, through a
bounded queue read by :meth:`WorkerPool.next_result`.
"""
from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Union

from aiohttp import ClientSession, ClientTimeout

from linkcheck.config import CheckerConfig
from linkcheck.crawler.fetcher import Fetcher
from linkcheck.crawler.models import CheckRequest, Destination, FetchResults
from linkcheck.logger import logger
from linkcheck.utils import is_local_url

__all__ = ("WorkerPool", "DEFAULT_WORKERS", "LOCALHOST_ONLY_WORKERS", "pick_concurrency")

#: workers used by default
DEFAULT_WORKERS = 8
#: workers used when only localhost is crawled
LOCALHOST_ONLY_WORKERS = 4

_Message = Union[FetchResults, BaseException]


def pick_concurrency(seeds: Iterable[str], check_external: bool, override: Optional[int] = None) -> int:
    if override is not None:
        return override
    if check_external or not all(is_local_url(s) for s in seeds):
        return DEFAULT_WORKERS
    return LOCALHOST_ONLY_WORKERS


class WorkerPool:
    """Asynchronous fetch workers with a result channel."""

    def __init__(self, size: int, config: CheckerConfig, session: Optional[ClientSession] = None) -> None:
        if size < 1:
            raise ValueError("pool size must be >= 1")
        self.size = size
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._requests: asyncio.Queue[CheckRequest] = asyncio.Queue()
        self._results: asyncio.Queue[_Message] = asyncio.Queue(maxsize=size)
        self._workers: List[asyncio.Task] = []
        self._in_flight = 0
        self.fetcher: Optional[Fetcher] = None

    async def __aenter__(self) -> WorkerPool:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def start(self) -> None:
        if self._session is None:
            self._session = ClientSession(
                timeout=ClientTimeout(total=self.config.timeout),
                headers={"User-Agent": self.config.user_agent},
                raise_for_status=False,
            )
        self.fetcher = Fetcher(self._session, self.config)
        self._workers = [
            asyncio.create_task(self._worker(i, self.fetcher), name=f"linkcheck-worker-{i}")
            for i in range(self.size)
        ]
        logger.debug("Started %d workers", self.size)

    async def shutdown(self) -> None:
        for w in self._workers:
            w.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def submit(self, destination: Destination) -> None:
        """Queue *destination* for checking. Never blocks."""
        self._requests.put_nowait(destination.to_request())
        self._in_flight += 1

    async def next_result(self) -> FetchResults:
        """Wait for the next completed check. Re-raises a worker's unexpected error."""
        message = await self._results.get()
        self._in_flight -= 1
        if isinstance(message, BaseException):
            raise message
        return message

    def is_saturated(self) -> bool:
        return self._in_flight >= self.size

    def is_idle(self) -> bool:
        return self._in_flight == 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def _worker(self, number: int, fetcher: Fetcher) -> None:
        while True:
            request = await self._requests.get()
            try:
                message: _Message = await fetcher.fetch(request)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Worker %d crashed on %s: %s", number, request.url, exc)
                message = exc
            finally:
                self._requests.task_done()
            await self._results.put(message)
