# File: seo_autofix/report/__init__.py
"""seo_autofix.report: local JSON persistence of crawl and workflow results."""

from seo_autofix.report.json_report import render_json

__all__ = ["render_json"]
