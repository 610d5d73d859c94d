"""
linkcheck package initializer.
Defines package version and exposes the crawl entry point and CLI.
"""
__version__ = "0.1.0"

from linkcheck.crawler.crawler import crawl  # noqa: E402
from .cli import cli  # noqa: E402

__all__ = ["__version__", "crawl", "cli"]
