"""Scraper version string, overridable per deployment."""

from __future__ import annotations

import os


def get_scraper_version(script_name: str, script_version: str) -> str:
    """``ADLIB_SCRAPER_VERSION`` wins over the built-in ``<script>:<version>``."""

    return os.getenv("ADLIB_SCRAPER_VERSION") or f"{script_name}:{script_version}"


__all__ = ["get_scraper_version"]
