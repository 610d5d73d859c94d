# linkcheck/uri_glob.py
"""
Glob patterns over URLs, used to tell internal destinations from external ones.

Syntax: ``*`` matches within one path segment, ``**`` matches across
segments, ``?`` matches one non-slash character. A pattern without a scheme
(``example.com/docs/**``) matches both http and https. Scheme and host are
compared case-insensitively, the path case-sensitively.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List

from linkcheck.utils import SUPPORTED_SCHEMES, url_without_fragment

__all__ = ("UriGlob", "compile_globs", "matches_any")

_TOKEN_RE = re.compile(r"\*\*|\*|\?")


class UriGlob:
    """A single compiled URL glob."""

    _cache: Dict[str, re.Pattern[str]] = {}

    def __init__(self, glob: str) -> None:
        self.glob = glob.strip()
        self._has_scheme = "://" in self.glob
        self._regex = self._compile(self._canonical(self.glob))

    def __repr__(self) -> str:
        return f"UriGlob({self.glob!r})"

    def matches(self, url: str) -> bool:
        """True if *url* (fragment ignored) falls under this glob."""
        canonical = url_without_fragment(url)
        scheme, sep, rest = canonical.partition("://")
        if not sep or scheme not in SUPPORTED_SCHEMES:
            return False
        subject = canonical if self._has_scheme else rest
        return bool(self._regex.fullmatch(subject))

    @staticmethod
    def _canonical(glob: str) -> str:
        # lowercase everything up to the first slash after the authority
        if "://" in glob:
            scheme, _, rest = glob.partition("://")
            authority, slash, path = rest.partition("/")
            return f"{scheme.lower()}://{authority.lower()}{slash}{path}"
        authority, slash, path = glob.partition("/")
        return f"{authority.lower()}{slash}{path}"

    @classmethod
    def _compile(cls, glob: str) -> re.Pattern[str]:
        if glob not in cls._cache:
            optional_tail = glob.endswith("/**")
            body = glob[:-3] if optional_tail else glob
            parts: List[str] = []
            pos = 0
            for token in _TOKEN_RE.finditer(body):
                parts.append(re.escape(body[pos:token.start()]))
                parts.append({"**": ".*", "*": "[^/]*", "?": "[^/]"}[token.group()])
                pos = token.end()
            parts.append(re.escape(body[pos:]))
            after_scheme = body.partition("://")[2] if "://" in body else body
            if optional_tail:
                parts.append("(?:/.*)?")
            elif "/" not in after_scheme:
                # bare authority: accept the site root
                parts.append("/?")
            cls._cache[glob] = re.compile("".join(parts))
        return cls._cache[glob]


def compile_globs(globs: Iterable[str]) -> List[UriGlob]:
    return [UriGlob(g) for g in globs if g.strip()]


def matches_any(globs: Iterable[UriGlob], url: str) -> bool:
    return any(g.matches(url) for g in globs)
