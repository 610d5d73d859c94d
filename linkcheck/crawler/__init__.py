"""linkcheck.crawler: frontier, worker pool and crawl scheduler."""
from linkcheck.crawler.crawler import crawl
from linkcheck.crawler.frontier import Bin, Frontier, FrontierInvariantError
from linkcheck.crawler.models import Destination, FetchOutcome, FetchResults, Link

__all__ = [
    "crawl",
    "Bin",
    "Frontier",
    "FrontierInvariantError",
    "Destination",
    "FetchOutcome",
    "FetchResults",
    "Link",
]
