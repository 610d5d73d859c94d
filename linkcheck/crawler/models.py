# linkcheck/crawler/models.py
"""
Data models for the link checker crawl.

A :class:`Destination` is one URL (fragment stripped) together with the
outcome of checking it; a :class:`Link` is an edge from the page it was
found on to a destination. Both compare by identity so that the crawl can
collapse duplicate destinations by repointing links.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

from linkcheck.utils import is_supported_scheme, split_fragment, url_without_fragment

__all__ = ("Destination", "Link", "FetchOutcome", "FetchResults", "CheckRequest")

PERMANENT_REDIRECTS = (301, 308)


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """What a worker learned about one URL. Produced by the fetcher only."""

    url: str
    status_code: Optional[int] = None
    final_url: Optional[str] = None
    content_type: Optional[str] = None
    redirects: Tuple[Tuple[int, str], ...] = ()
    anchors: FrozenSet[str] = frozenset()
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CheckRequest:
    """Immutable snapshot of a destination handed to a worker."""

    url: str
    is_external: bool


@dataclass(eq=False)
class Destination:
    """A unique URL and, once checked, its outcome."""

    url: str
    is_source: bool = False
    is_external: bool = False
    status_code: Optional[int] = None
    final_url: Optional[str] = None
    content_type: Optional[str] = None
    redirects: Tuple[Tuple[int, str], ...] = ()
    anchors: FrozenSet[str] = frozenset()
    error: Optional[str] = None
    was_tried: bool = False

    def __post_init__(self) -> None:
        self.url = url_without_fragment(self.url)

    def __str__(self) -> str:
        return self.url

    @property
    def is_unsupported_scheme(self) -> bool:
        return not is_supported_scheme(self.url)

    @property
    def is_broken(self) -> bool:
        """Tried and did not end in a 2xx response."""
        if not self.was_tried:
            return False
        return self.status_code is None or not 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return self.content_type == "text/html"

    @property
    def is_redirected(self) -> bool:
        return bool(self.redirects)

    @property
    def is_permanently_redirected(self) -> bool:
        return any(status in PERMANENT_REDIRECTS for status, _ in self.redirects)

    @property
    def status_description(self) -> str:
        if self.is_unsupported_scheme:
            return "unsupported scheme"
        if not self.was_tried:
            return "not checked (external)" if self.is_external else "not checked"
        if self.status_code is None:
            return f"connection failed: {self.error}" if self.error else "connection failed"
        if self.is_redirected:
            status, _ = self.redirects[0]
            return f"{self.status_code} (redirected {status} → {self.final_url})"
        return str(self.status_code)

    def to_request(self) -> CheckRequest:
        return CheckRequest(url=self.url, is_external=self.is_external)

    def update_from_result(self, outcome: FetchOutcome) -> None:
        """Applies a fetch outcome. A destination is updated exactly once."""
        if self.was_tried:
            raise RuntimeError(f"Destination {self.url} was already updated")
        if outcome.url != self.url:
            raise ValueError(f"Outcome for {outcome.url} applied to {self.url}")
        self.status_code = outcome.status_code
        self.final_url = outcome.final_url
        self.content_type = outcome.content_type
        self.redirects = outcome.redirects
        self.anchors = outcome.anchors
        self.error = outcome.error
        self.was_tried = True


@dataclass(eq=False)
class Link:
    """A reference from page *origin* to *destination*."""

    origin: str
    destination: Destination
    fragment: Optional[str] = None
    tag: str = "a"

    @classmethod
    def from_href(cls, origin: str, absolute_url: str, tag: str = "a") -> Link:
        url, fragment = split_fragment(absolute_url)
        return cls(origin=origin, destination=Destination(url), fragment=fragment, tag=tag)

    def __str__(self) -> str:
        target = self.destination.url + (f"#{self.fragment}" if self.fragment else "")
        return f"{self.origin} => {target} ({self.destination.status_description})"

    @property
    def breaks_anchor(self) -> bool:
        return (
            self.fragment is not None
            and self.destination.was_tried
            and self.destination.is_html
            and not self.destination.is_broken
            and self.fragment not in self.destination.anchors
        )

    @property
    def has_warning(self) -> bool:
        return self.breaks_anchor or self.destination.is_permanently_redirected


@dataclass(slots=True)
class FetchResults:
    """Worker message: the checked outcome plus links found on the page."""

    checked: FetchOutcome
    links: List[Link] = field(default_factory=list)
