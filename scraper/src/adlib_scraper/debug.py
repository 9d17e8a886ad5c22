"""Debug artifacts for snapshot pages that yielded nothing."""

from __future__ import annotations

import os
import re

from playwright.async_api import Page

from .logging import jlog

DEBUG_DIR = os.path.join("media", "debug")
_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def ensure_debug_dir() -> str:
    os.makedirs(DEBUG_DIR, exist_ok=True)
    return DEBUG_DIR


def debug_html_path(ad_id: str) -> str:
    return os.path.join(DEBUG_DIR, f"snapshot_{_UNSAFE_RE.sub('_', ad_id) or 'unknown'}.html")


async def ensure_debug_html(page: Page, ad_id: str) -> str | None:
    """Persist the current page HTML (best effort) and return the path written."""

    try:
        ensure_debug_dir()
        html = await page.content()
        path = debug_html_path(ad_id)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(html)
        return path
    except Exception as exc:  # pragma: no cover - logging only
        jlog("error", event="debug_save_html_error", ad_id=ad_id, error=str(exc))
        return None


__all__ = ["DEBUG_DIR", "debug_html_path", "ensure_debug_dir", "ensure_debug_html"]
