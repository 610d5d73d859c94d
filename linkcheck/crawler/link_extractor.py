# linkcheck/crawler/link_extractor.py
"""
Link and anchor extraction from HTML pages.
"""
from __future__ import annotations

from typing import FrozenSet, List, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from linkcheck.crawler.models import Link
from linkcheck.logger import logger

# tag -> attribute holding the URL
LINK_ATTRIBUTES: Tuple[Tuple[str, str], ...] = (
    ("a", "href"),
    ("area", "href"),
    ("link", "href"),
    ("img", "src"),
    ("script", "src"),
    ("iframe", "src"),
    ("source", "src"),
)

_ATTR_BY_TAG = dict(LINK_ATTRIBUTES)
_SKIPPED_PREFIXES = ("javascript:", "data:")


def _base_url(soup: BeautifulSoup, page_url: str) -> str:
    base = soup.find("base", href=True)
    if isinstance(base, Tag):
        href = base.get("href")
        if isinstance(href, str) and href.strip():
            try:
                return urljoin(page_url, href.strip())
            except ValueError:
                logger.debug("Ignoring malformed <base href> %r on %s", href, page_url)
    return page_url


def extract_anchors(soup: BeautifulSoup) -> FrozenSet[str]:
    """Fragment targets on the page: every ``id`` plus ``<a name>``."""
    anchors = set()
    for tag in soup.find_all(id=True):
        anchors.add(str(tag["id"]))
    for tag in soup.find_all("a", attrs={"name": True}):
        anchors.add(str(tag["name"]))
    return frozenset(anchors)


def extract_links(page_url: str, html: str) -> Tuple[List[Link], FrozenSet[str]]:
    """
    Extract outbound links and anchors from an HTML page.

    Relative references resolve against ``<base href>`` when present.
    ``javascript:`` and ``data:`` references are ignored; other non-HTTP
    schemes (mailto:, tel:, ftp:) are kept so they can be reported.
    References that cannot be parsed as URLs are skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    base = _base_url(soup, page_url)
    links: List[Link] = []
    for tag in soup.find_all(list(_ATTR_BY_TAG)):
        if not isinstance(tag, Tag):
            continue
        attr = _ATTR_BY_TAG[tag.name]
        value = tag.get(attr)
        if not isinstance(value, str):
            continue
        raw = value.strip()
        if raw.lower().startswith(_SKIPPED_PREFIXES):
            continue
        try:
            # an empty href points at the page itself, not at <base>
            absolute = urljoin(base, raw) if raw else page_url
        except ValueError:
            logger.debug("Skipping malformed %s %r on %s", attr, raw, page_url)
            continue
        links.append(Link.from_href(page_url, absolute, tag=tag.name))
    return links, extract_anchors(soup)
