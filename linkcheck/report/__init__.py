# File: linkcheck/report/__init__.py
"""linkcheck.report: writers for JSON and HTML crawl reports."""

from __future__ import annotations

from linkcheck.report.html_report import DEFAULT_TEMPLATE_DIR, render_html
from linkcheck.report.json_report import render_json

__all__ = ["render_json", "render_html", "DEFAULT_TEMPLATE_DIR"]
