"""Playwright helpers: browser launch, scrape context setup and teardown."""

from __future__ import annotations

import os

from playwright.async_api import Browser, BrowserContext, Page, Route

from .logging import jlog

CHROMIUM_LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-background-timer-throttling",
    "--disable-renderer-backgrounding",
    "--disable-backgrounding-occluded-windows",
]
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120 Safari/537.36"
)
TIMEZONE_ID = "Europe/Brussels"
VIEWPORT = {"width": 1366, "height": 900}
COOKIE_DOMAIN = ".facebook.com"
HEAVY_RESOURCE_TYPES = frozenset({"image", "media", "font"})
CONTEXT_TIMEOUT_MS = 12_000
PAGE_NAVIGATION_TIMEOUT_MS = 15_000
PAGE_TIMEOUT_MS = 8_000


def should_block_resource(resource_type: str, *, block_stylesheets: bool) -> bool:
    if resource_type in HEAVY_RESOURCE_TYPES:
        return True
    return block_stylesheets and resource_type == "stylesheet"


async def new_scrape_context(
    browser: Browser,
    *,
    locale: str,
    storage_state_path: str | None,
    block_stylesheets: bool = True,
) -> BrowserContext:
    """Isolated context pinned to ``locale`` with heavy assets blocked and saved session state restored."""

    cookie_locale = locale.replace("-", "_")
    language = locale.split("-")[0]
    has_state = bool(storage_state_path) and os.path.exists(storage_state_path)
    context = await browser.new_context(
        storage_state=storage_state_path if has_state else None,
        locale=locale,
        timezone_id=TIMEZONE_ID,
        viewport=VIEWPORT,
        user_agent=USER_AGENT,
        service_workers="block",
        extra_http_headers={"accept-language": f"{locale},{language};q=0.9,en;q=0.8"},
    )
    await context.add_cookies(
        [
            {
                "name": "locale",
                "value": cookie_locale,
                "domain": COOKIE_DOMAIN,
                "path": "/",
                "httpOnly": False,
                "secure": True,
                "sameSite": "Lax",
            }
        ]
    )

    async def _route(route: Route) -> None:
        if should_block_resource(route.request.resource_type, block_stylesheets=block_stylesheets):
            await route.abort()
        else:
            await route.continue_()

    await context.route("**/*", _route)
    context.set_default_timeout(CONTEXT_TIMEOUT_MS)
    jlog("info", event="browser_context_ready", locale=locale, restored_state=has_state)
    return context


async def new_worker_page(context: BrowserContext) -> Page:
    page = await context.new_page()
    page.set_default_navigation_timeout(PAGE_NAVIGATION_TIMEOUT_MS)
    page.set_default_timeout(PAGE_TIMEOUT_MS)
    return page


async def cleanup_playwright(context: BrowserContext | None, browser: Browser | None, storage_state_path: str | None) -> None:
    """Persist session state (if configured) and close the browser resources."""

    try:
        if context and storage_state_path:
            directory = os.path.dirname(storage_state_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            await context.storage_state(path=storage_state_path)
    except Exception as exc:
        jlog("warning", event="storage_state_save_error", path=storage_state_path, error=repr(exc))
    try:
        if context:
            await context.close()
    except Exception:
        pass
    try:
        if browser:
            await browser.close()
    except Exception:
        pass


__all__ = [
    "CHROMIUM_LAUNCH_ARGS",
    "cleanup_playwright",
    "new_scrape_context",
    "new_worker_page",
    "should_block_resource",
]
