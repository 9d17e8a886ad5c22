"""Best-effort dismissal of cookie/consent overlays."""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any

from playwright.async_api import Error as PlaywrightError

from .logging import jlog
from .urls import host_key

ACCEPT_PATTERNS = (
    re.compile(r"(accept|allow|agree|consent|continue|ok|proceed|enable)", re.IGNORECASE),
    re.compile(r"(alles|alle|toestaan|accepteren|aanvaarden)", re.IGNORECASE),
)
GENERIC_BUTTON_SELECTORS = (
    'button[aria-label*="cookie" i]',
    'button:has-text("cookie")',
    '[role="dialog"] button',
    '[data-testid*="consent" i] button',
    'button[type="submit"]',
    "button",
)
MAX_BUTTONS_PER_SELECTOR = 8
ROLE_CLICK_TIMEOUT_MS = 150
TEXT_READ_TIMEOUT_MS = 40
BUTTON_CLICK_TIMEOUT_MS = 180
POLL_INTERVAL_S = 0.08


class ConsentCache:
    """Hosts on which a consent click already succeeded during this run."""

    def __init__(self) -> None:
        self._hosts: set[str] = set()

    def __contains__(self, host: object) -> bool:
        return host in self._hosts

    def __len__(self) -> int:
        return len(self._hosts)

    def add(self, host: str) -> None:
        self._hosts.add(host)


def matches_accept_text(text: str | None) -> bool:
    return bool(text) and any(p.search(text) for p in ACCEPT_PATTERNS)


async def _button_label(button: Any) -> str:
    try:
        text = await button.inner_text(timeout=TEXT_READ_TIMEOUT_MS)
    except PlaywrightError:
        text = ""
    if text:
        return text
    try:
        return (await button.get_attribute("aria-label", timeout=TEXT_READ_TIMEOUT_MS)) or ""
    except PlaywrightError:
        return ""


async def try_accept_in_frame(frame: Any) -> bool:
    """One pass over ``frame``: labeled buttons first, then the first button of any dialog."""

    for pattern in ACCEPT_PATTERNS:
        try:
            await frame.get_by_role("button", name=pattern).first.click(timeout=ROLE_CLICK_TIMEOUT_MS)
            return True
        except PlaywrightError:
            pass

    for selector in GENERIC_BUTTON_SELECTORS:
        buttons = frame.locator(selector)
        try:
            count = await buttons.count()
        except PlaywrightError:
            count = 0
        for i in range(min(count, MAX_BUTTONS_PER_SELECTOR)):
            button = buttons.nth(i)
            if not matches_accept_text(await _button_label(button)):
                continue
            try:
                await button.click(timeout=BUTTON_CLICK_TIMEOUT_MS)
                return True
            except PlaywrightError:
                continue

    try:
        dialogs = frame.locator('[role="dialog"]')
        if await dialogs.count() > 0:
            await dialogs.locator("button").first.click(timeout=ROLE_CLICK_TIMEOUT_MS)
            return True
    except PlaywrightError:
        pass
    return False


async def ensure_consent(
    page: Any,
    timeout_ms: int,
    *,
    cache: ConsentCache,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    try_frame: Callable[[Any], Awaitable[bool]] = try_accept_in_frame,
) -> bool:
    """Click through a consent overlay within ``timeout_ms``; ``False`` is not an error."""

    try:
        host = host_key(page.url)
        if host and host in cache:
            return True
        deadline = clock() + timeout_ms / 1000.0
        while clock() < deadline:
            frames = [page.main_frame] + [f for f in page.frames if f is not page.main_frame]
            for frame in frames:
                try:
                    clicked = await try_frame(frame)
                except PlaywrightError:
                    clicked = False
                if clicked:
                    if host:
                        cache.add(host)
                    jlog("info", event="consent_clicked", host=host)
                    return True
            await sleep(POLL_INTERVAL_S)
        return False
    except Exception as exc:
        jlog("warning", event="consent_error", error=repr(exc))
        return False


__all__ = [
    "ACCEPT_PATTERNS",
    "ConsentCache",
    "ensure_consent",
    "matches_accept_text",
    "try_accept_in_frame",
]
