# File: linkcheck/engine.py
"""linkcheck.engine: runs a crawl described by a CheckerConfig."""

from __future__ import annotations

from typing import List

from linkcheck.config import CheckerConfig
from linkcheck.crawler.crawler import crawl
from linkcheck.crawler.models import Link
from linkcheck.logger import logger

__all__ = ["start_crawl"]


async def start_crawl(cfg: CheckerConfig) -> List[Link]:
    """
    Crawls the configured seeds and returns every discovered link.

    Parameters
    ----------
    cfg : CheckerConfig
        Crawl configuration; host globs default to the seeds' sites.

    Returns
    -------
    List[Link]
        Links in discovery order.
    """
    hosts = cfg.effective_hosts()
    logger.debug("Starting crawl of %s within %s", cfg.seeds, hosts)
    return await crawl(cfg.seeds, hosts, cfg.check_external, cfg.verbose, config=cfg)
