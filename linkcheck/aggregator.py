# File: linkcheck/aggregator.py
"""linkcheck.aggregator: turns the crawl's link list into a report."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence, TypedDict

from linkcheck.crawler.models import Link


class LinkInfo(TypedDict):
    """One reported link."""

    origin: str
    url: str
    fragment: Optional[str]
    tag: str
    status: Optional[int]
    description: str


class Summary(TypedDict):
    checked: int
    destinations: int
    links: int
    broken: int
    warnings: int
    skipped: int


@dataclass(slots=True)
class CrawlReport:
    """Problems found by a crawl, grouped by the page they were found on."""

    broken: Dict[str, List[LinkInfo]] = field(default_factory=dict)
    warnings: Dict[str, List[LinkInfo]] = field(default_factory=dict)
    skipped: Dict[str, List[LinkInfo]] = field(default_factory=dict)
    summary: Summary = field(
        default_factory=lambda: Summary(
            checked=0, destinations=0, links=0, broken=0, warnings=0, skipped=0
        )
    )

    @property
    def has_errors(self) -> bool:
        return self.summary["broken"] > 0

    @property
    def has_warnings(self) -> bool:
        return self.summary["warnings"] > 0

    def exit_code(self) -> int:
        """0 – clean, 1 – warnings only, 2 – broken links."""
        if self.has_errors:
            return 2
        if self.has_warnings:
            return 1
        return 0

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, indent=2 if pretty else None)

    def text(self) -> str:
        """Console summary in the style ``page\\n- url (status)``."""
        lines: List[str] = []
        for title, section in (("Errors", self.broken), ("Warnings", self.warnings)):
            if not section:
                continue
            lines.append(f"{title}:")
            for origin, infos in section.items():
                lines.append(origin)
                for info in infos:
                    target = info["url"] + (f"#{info['fragment']}" if info["fragment"] else "")
                    lines.append(f"- '{target}' => {info['description']}")
            lines.append("")
        s = self.summary
        lines.append(
            f"{s['checked']} destinations checked, {s['links']} links: "
            f"{s['broken']} broken, {s['warnings']} warnings, {s['skipped']} not checked."
        )
        return "\n".join(lines)


def _info(link: Link, description: Optional[str] = None) -> LinkInfo:
    dest = link.destination
    return LinkInfo(
        origin=link.origin,
        url=dest.url,
        fragment=link.fragment,
        tag=link.tag,
        status=dest.status_code,
        description=description or dest.status_description,
    )


def aggregate_links(links: Sequence[Link]) -> CrawlReport:
    """Collects broken, warning and skipped links into a CrawlReport."""
    report = CrawlReport()
    destinations = {id(link.destination): link.destination for link in links}
    for link in links:
        dest = link.destination
        if dest.is_broken:
            report.broken.setdefault(link.origin, []).append(_info(link))
        elif link.breaks_anchor:
            report.warnings.setdefault(link.origin, []).append(
                _info(link, f"{dest.status_description}, missing anchor #{link.fragment}")
            )
        elif link.has_warning:
            report.warnings.setdefault(link.origin, []).append(_info(link))
        elif not dest.was_tried:
            report.skipped.setdefault(link.origin, []).append(_info(link))

    report.summary = Summary(
        checked=sum(1 for d in destinations.values() if d.was_tried),
        destinations=len(destinations),
        links=len(links),
        broken=sum(len(v) for v in report.broken.values()),
        warnings=sum(len(v) for v in report.warnings.values()),
        skipped=sum(len(v) for v in report.skipped.values()),
    )
    return report
