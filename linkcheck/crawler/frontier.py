# linkcheck/crawler/frontier.py
"""
Frontier / state tracker for the crawl.

Every known URL (fragment stripped) lives in exactly one of four bins. The
index ``url -> (bin, destination)`` is authoritative; the deques and dicts
behind it only hold the same destinations in dispatch order.
"""
from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Deque, Dict, Iterator, List, Optional, Tuple

from linkcheck.crawler.models import Destination

__all__ = ("Bin", "Frontier", "FrontierInvariantError")


class Bin(Enum):
    OPEN_INTERNAL = "open-internal"
    OPEN_EXTERNAL = "open-external"
    IN_PROGRESS = "in-progress"
    CLOSED = "closed"


_OPEN_BINS = (Bin.OPEN_INTERNAL, Bin.OPEN_EXTERNAL)

# Allowed forward moves. Nothing leaves CLOSED.
_TRANSITIONS = {
    Bin.OPEN_INTERNAL: (Bin.IN_PROGRESS,),
    Bin.OPEN_EXTERNAL: (Bin.IN_PROGRESS,),
    Bin.IN_PROGRESS: (Bin.CLOSED,),
    Bin.CLOSED: (),
}


class FrontierInvariantError(RuntimeError):
    """Bin bookkeeping is inconsistent. The crawl must not continue."""


class Frontier:
    """Tracks which bin every known URL is in."""

    def __init__(self) -> None:
        self._index: Dict[str, Tuple[Bin, Destination]] = {}
        self._open: Dict[Bin, Deque[Destination]] = {b: deque() for b in _OPEN_BINS}
        self._in_progress: Dict[str, Destination] = {}
        self._closed: Dict[str, Destination] = {}

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, url: str) -> bool:
        return url in self._index

    def classify(self, url: str) -> Optional[Bin]:
        entry = self._index.get(url)
        return None if entry is None else entry[0]

    def lookup(self, url: str) -> Destination:
        """Canonical destination for a known URL."""
        try:
            return self._index[url][1]
        except KeyError:
            raise FrontierInvariantError(f"{url} is not known to the frontier") from None

    def insert(self, destination: Destination, target: Bin, *, front: bool = False) -> None:
        """Adds a brand-new URL to *target*."""
        if destination.url in self._index:
            current = self._index[destination.url][0]
            raise FrontierInvariantError(
                f"duplicate destination for {destination.url} (already {current.value})"
            )
        if target is Bin.IN_PROGRESS:
            raise FrontierInvariantError(f"{destination.url} cannot start in progress")
        if front and target is not Bin.OPEN_INTERNAL:
            raise FrontierInvariantError("only open-internal accepts front insertion")
        self._place(destination, target, front=front)

    def transition(self, url: str, from_bin: Bin, to_bin: Bin) -> Destination:
        """Moves *url* from *from_bin* to *to_bin*, checking both ends of the move."""
        current = self.classify(url)
        if current is not from_bin:
            found = "unknown" if current is None else current.value
            raise FrontierInvariantError(f"{url} expected in {from_bin.value}, found {found}")
        if to_bin not in _TRANSITIONS[from_bin]:
            raise FrontierInvariantError(f"illegal move {from_bin.value} -> {to_bin.value} for {url}")
        destination = self._remove(url, from_bin)
        self._place(destination, to_bin)
        return destination

    def take(self, source: Bin) -> Destination:
        """Pops the head of an open queue and marks it in progress."""
        queue = self._open.get(source)
        if queue is None:
            raise FrontierInvariantError(f"{source.value} is not an open queue")
        if not queue:
            raise FrontierInvariantError(f"{source.value} is empty")
        return self.transition(queue[0].url, source, Bin.IN_PROGRESS)

    def size(self, which: Bin) -> int:
        if which in _OPEN_BINS:
            return len(self._open[which])
        if which is Bin.IN_PROGRESS:
            return len(self._in_progress)
        return len(self._closed)

    def has_open(self) -> bool:
        return any(self._open[b] for b in _OPEN_BINS)

    def closed(self) -> List[Destination]:
        return list(self._closed.values())

    def queued(self, which: Bin) -> List[Destination]:
        """Snapshot of an open queue, head first."""
        return list(self._open[which])

    def items(self) -> Iterator[Tuple[str, Bin]]:
        for url, (where, _) in self._index.items():
            yield url, where

    def check_consistency(self) -> None:
        """Verifies the index against the containers. Linear; meant for tests and debugging."""
        physical: Dict[str, Bin] = {}
        for where in _OPEN_BINS:
            for destination in self._open[where]:
                self._claim(physical, destination.url, where)
        for url in self._in_progress:
            self._claim(physical, url, Bin.IN_PROGRESS)
        for url in self._closed:
            self._claim(physical, url, Bin.CLOSED)
        indexed = {url: where for url, (where, _) in self._index.items()}
        if physical != indexed:
            raise FrontierInvariantError("bin index disagrees with the containers")

    @staticmethod
    def _claim(physical: Dict[str, Bin], url: str, where: Bin) -> None:
        if url in physical:
            raise FrontierInvariantError(
                f"{url} held by both {physical[url].value} and {where.value}"
            )
        physical[url] = where

    def _place(self, destination: Destination, target: Bin, *, front: bool = False) -> None:
        if target in _OPEN_BINS:
            if front:
                self._open[target].appendleft(destination)
            else:
                self._open[target].append(destination)
        elif target is Bin.IN_PROGRESS:
            self._in_progress[destination.url] = destination
        else:
            self._closed[destination.url] = destination
        self._index[destination.url] = (target, destination)

    def _remove(self, url: str, source: Bin) -> Destination:
        destination = self._index[url][1]
        if source in _OPEN_BINS:
            queue = self._open[source]
            if queue and queue[0] is destination:
                queue.popleft()
            else:
                queue.remove(destination)
        elif source is Bin.IN_PROGRESS:
            del self._in_progress[url]
        else:
            del self._closed[url]
        return destination
