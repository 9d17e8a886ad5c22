"""Browser-driven extraction from ad snapshot pages and publisher profiles."""

from __future__ import annotations

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .consent import ConsentCache, ensure_consent
from .cta import MAX_CTA_TEXT_CHARS, pick_cta
from .logging import jlog
from .models import PublisherProfile, SnapshotBits
from .publishers import parse_profile_text
from .urls import profile_url, select_product_url, with_locale

NAVIGATION_TIMEOUT_MS = 15_000
CONSENT_BUDGET_MS = 2_000
INTERACTIVE_WAIT_MS = 600
BODY_WAIT_MS = 1_500
OVERLAY_CLOSE_TIMEOUT_MS = 500
INTERACTIVE_SELECTOR = 'a[role="link"],button,div[role="button"],a[aria-label]'
OVERLAY_CLOSE_SELECTOR = '[aria-label="Sluiten"], [aria-label="Close"]'

_HREFS_JS = """
() => Array.from(document.querySelectorAll('a[href^="http"]'))
    .map(a => a.getAttribute('href'))
    .filter(Boolean)
"""

_CTA_TEXTS_JS = """
(maxLen) => Array.from(document.querySelectorAll('a[role="link"],button,div[role="button"],a[aria-label]'))
    .map(n => (n.innerText || n.getAttribute('aria-label') || '').trim())
    .filter(t => t && t.length <= maxLen)
"""


async def _body_text(page: Page) -> str:
    try:
        return await page.evaluate("() => document.body ? document.body.innerText || '' : ''")
    except PlaywrightError:
        return ""


async def scrape_snapshot(page: Page, snapshot_url: str, *, locale: str, consent: ConsentCache) -> SnapshotBits:
    """Return the outbound product link and canonical CTA label shown on a snapshot page."""

    target = with_locale(snapshot_url, locale)
    try:
        await page.goto(target, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    except PlaywrightError as exc:
        jlog("warning", event="snapshot_error", url=target, stage="goto", error=str(exc))
        return SnapshotBits()

    await ensure_consent(page, CONSENT_BUDGET_MS, cache=consent)
    try:
        await page.wait_for_selector(INTERACTIVE_SELECTOR, timeout=INTERACTIVE_WAIT_MS)
    except PlaywrightError:
        pass

    try:
        hrefs = await page.evaluate(_HREFS_JS)
    except PlaywrightError as exc:
        jlog("warning", event="snapshot_error", url=target, stage="links", error=str(exc))
        hrefs = []
    try:
        texts = await page.evaluate(_CTA_TEXTS_JS, MAX_CTA_TEXT_CHARS)
    except PlaywrightError as exc:
        jlog("warning", event="snapshot_error", url=target, stage="cta", error=str(exc))
        texts = []

    return SnapshotBits(product_url=select_product_url(hrefs), cta_text=pick_cta(texts))


async def _profile_view(page: Page, url: str, consent: ConsentCache, *, close_overlays: bool) -> str:
    await page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    await ensure_consent(page, CONSENT_BUDGET_MS, cache=consent)
    try:
        await page.wait_for_selector("body", timeout=BODY_WAIT_MS)
    except PlaywrightError:
        pass
    if close_overlays:
        try:
            await page.locator(OVERLAY_CLOSE_SELECTOR).first.click(timeout=OVERLAY_CLOSE_TIMEOUT_MS)
        except PlaywrightError:
            pass
        try:
            await page.keyboard.press("Escape")
        except PlaywrightError:
            pass
    return await _body_text(page)


def _profile_from_text(publisher_id: str, url: str, text: str) -> PublisherProfile:
    likes, followers, raw_category, parts = parse_profile_text(text)
    return PublisherProfile(
        publisher_id=publisher_id,
        category=" · ".join(parts) if parts else raw_category,
        categories=parts,
        raw_category_text=raw_category,
        likes_text=likes,
        followers_text=followers,
        profile_url=url,
    )


async def scrape_profile(page: Page, publisher_id: str, *, locale: str, consent: ConsentCache) -> PublisherProfile:
    """Read likes, followers and category from the desktop profile, falling back to the basic view.

    Navigation errors propagate; the classifier turns them into an empty profile.
    """

    primary = profile_url(publisher_id, locale)
    profile = _profile_from_text(publisher_id, primary, await _profile_view(page, primary, consent, close_overlays=True))
    if profile.has_signal:
        return profile

    fallback = profile_url(publisher_id, locale, basic=True)
    text = await _profile_view(page, fallback, consent, close_overlays=False)
    return _profile_from_text(publisher_id, fallback, text)


__all__ = ["scrape_profile", "scrape_snapshot"]
