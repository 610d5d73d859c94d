# File: linkcheck/utils.py
"""linkcheck.utils: URL helpers shared by the crawler, the config layer and the CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Collection, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

from linkcheck.logger import logger

__all__: Sequence[str] = (
    "SUPPORTED_SCHEMES",
    "LOCAL_HOSTS",
    "url_without_fragment",
    "split_fragment",
    "is_supported_scheme",
    "is_local_url",
    "default_host_glob",
    "read_url_file",
    "remove_duplicates",
)

SUPPORTED_SCHEMES = frozenset(("http", "https"))
LOCAL_HOSTS = frozenset(("localhost", "127.0.0.1", "::1"))


def url_without_fragment(url: str) -> str:
    """Strips the fragment; lowercases scheme and host and gives an empty HTTP path a ``/``.

    A URL that cannot be split (e.g. ``http://[oops/``) is returned without
    its fragment and otherwise unchanged.
    """
    stripped = url.strip().partition("#")[0]
    try:
        parts = urlsplit(stripped)
    except ValueError:
        return stripped
    scheme = parts.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        return stripped
    path = parts.path or "/"
    return urlunsplit((scheme, parts.netloc.lower(), path, parts.query, ""))


def split_fragment(url: str) -> Tuple[str, Optional[str]]:
    """Returns ``(url_without_fragment, fragment or None)``."""
    _, _, fragment = url.strip().partition("#")
    return url_without_fragment(url), fragment or None


def is_supported_scheme(url: str) -> bool:
    try:
        return urlsplit(url).scheme.lower() in SUPPORTED_SCHEMES
    except ValueError:
        return False


def is_local_url(url: str) -> bool:
    """True when the URL's host is the local machine."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return False
    return host in LOCAL_HOSTS


def default_host_glob(seed: str) -> str:
    """Glob matching everything on the seed's scheme and authority."""
    parts = urlsplit(url_without_fragment(seed))
    return f"{parts.scheme}://{parts.netloc}/**"


def read_url_file(path: Union[str, Path]) -> List[str]:
    """Reads one URL per line, skipping blank lines and ``#`` comments."""
    p = Path(path).expanduser()
    if not p.exists():
        logger.error("URL file not found: %s", p)
        raise FileNotFoundError(f"URL file not found: {p}")
    urls = []
    for line in p.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            urls.append(line)
    logger.debug("Loaded %d URLs from %s", len(urls), p)
    return urls


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Removes URLs that are equal once their fragment is stripped, keeping order."""
    seen = {}
    for url in urls:
        seen.setdefault(url_without_fragment(url), url)
    unique = list(seen.values())
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique
