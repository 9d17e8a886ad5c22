"""Publisher allow/deny classification with a per-run profile cache."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Iterable
from typing import Optional

from .logging import jlog
from .models import PublisherProfile, RunCounters

ProfileFetcher = Callable[[str], Awaitable[PublisherProfile]]
ProfileFallback = Callable[[str], PublisherProfile]

CATEGORY_SEPARATORS_RE = re.compile(r"[·•|,/]+")
CATEGORY_PATTERNS = (
    re.compile(r"Pagina\s*·\s*([^\n•|]{2,60})", re.IGNORECASE),
    re.compile(r"Page\s*·\s*([^\n•|]{2,60})", re.IGNORECASE),
    re.compile(r"Página\s*·\s*([^\n•|]{2,60})", re.IGNORECASE),
    re.compile(r"Seite\s*·\s*([^\n•|]{2,60})", re.IGNORECASE),
)
LIKES_RE = re.compile(
    r"([\d.,\s]+(?:[KkMmBb]|d\.)?)\s*(?:likes|vind-ik-leuks|mentions j.?aime|me gusta|curtidas|mi piace|Gefällt\s*mir)",
    re.IGNORECASE,
)
FOLLOWERS_RE = re.compile(
    r"([\d.,\s]+(?:[KkMmBb]|d\.)?)\s*(?:followers|volgers|abonnés|seguidores|abonnenten|seguaci)",
    re.IGNORECASE,
)


def split_categories(category: str | None) -> tuple[str, ...]:
    return tuple(part.strip() for part in CATEGORY_SEPARATORS_RE.split(category or "") if part.strip())


def category_match(category: str | None, allowed: Iterable[str]) -> bool:
    """Exact, case-sensitive match of any category part against ``allowed``; empty list matches all."""

    allowed = tuple(allowed)
    if not allowed:
        return True
    return any(part in allowed for part in split_categories(category))


def _clean_count(value: str | None) -> Optional[str]:
    cleaned = " ".join((value or "").split())
    return cleaned or None


def parse_profile_text(text: str | None) -> tuple[Optional[str], Optional[str], Optional[str], tuple[str, ...]]:
    """Return ``(likes, followers, raw_category, category_parts)`` from a profile's visible text."""

    text = text or ""
    likes_m = LIKES_RE.search(text)
    followers_m = FOLLOWERS_RE.search(text)
    raw_category = None
    for pattern in CATEGORY_PATTERNS:
        m = pattern.search(text)
        if m:
            raw_category = m.group(1).strip()
            break
    return (
        _clean_count(likes_m.group(1) if likes_m else None),
        _clean_count(followers_m.group(1) if followers_m else None),
        raw_category or None,
        split_categories(raw_category),
    )


class PublisherClassifier:
    """Decides once per publisher whether its ads are worth a snapshot visit.

    Decisions and profiles are cached for the lifetime of the object, which is
    one run. Profile fetches are serialized through a single lock because they
    share one dedicated browser tab; the cache is checked again inside the lock
    so concurrent callers never fetch the same publisher twice.
    """

    def __init__(
        self,
        fetch_profile: ProfileFetcher,
        *,
        counters: RunCounters,
        required_categories: Iterable[str] = (),
        strict_category: bool = True,
        excluded_name_pattern: re.Pattern[str] | None = None,
        fallback_profile: ProfileFallback | None = None,
    ) -> None:
        self._fetch_profile = fetch_profile
        self._counters = counters
        self.required_categories = tuple(required_categories)
        self.strict_category = strict_category
        self.excluded_name_pattern = excluded_name_pattern
        self._fallback_profile = fallback_profile or (lambda pid: PublisherProfile.empty(pid, ""))
        self._decisions: dict[str, bool] = {}
        self._profiles: dict[str, PublisherProfile] = {}
        self._seen: set[str] = set()
        self._lock = asyncio.Lock()

    def cached_decision(self, publisher_id: str) -> bool | None:
        return self._decisions.get(publisher_id)

    def cached_profile(self, publisher_id: str) -> PublisherProfile | None:
        return self._profiles.get(publisher_id)

    def _register(self, publisher_id: str) -> None:
        if publisher_id not in self._seen:
            self._seen.add(publisher_id)
            self._counters.unique_publishers += 1

    async def profile(self, publisher_id: str) -> PublisherProfile:
        cached = self._profiles.get(publisher_id)
        if cached is not None:
            return cached
        async with self._lock:
            cached = self._profiles.get(publisher_id)
            if cached is not None:
                return cached
            try:
                fetched = await self._fetch_profile(publisher_id)
            except Exception as exc:
                jlog("warning", event="profile_fetch_error", publisher_id=publisher_id, error=repr(exc))
                fetched = self._fallback_profile(publisher_id)
            self._profiles[publisher_id] = fetched
            return fetched

    async def decide_allow(self, publisher_id: str, publisher_name: str | None) -> bool:
        cached = self._decisions.get(publisher_id)
        if cached is not None:
            return cached

        if self.excluded_name_pattern and publisher_name and self.excluded_name_pattern.search(publisher_name):
            if publisher_id not in self._seen:
                self._register(publisher_id)
                self._counters.unique_name_rejected += 1
            return self._decide(publisher_id, False, reason="name_excluded")

        profile = await self.profile(publisher_id)
        self._register(publisher_id)
        category = profile.category

        if not category:
            if self.strict_category:
                self._counters.unique_category_missing += 1
                return self._decide(publisher_id, False, reason="category_missing")
            return self._decide(publisher_id, True, reason="category_missing_lenient")

        if not category_match(category, self.required_categories):
            self._counters.unique_category_rejected += 1
            RunCounters.bump(self._counters.category_rejections, category)
            return self._decide(publisher_id, False, reason="category_rejected", category=category)

        return self._decide(publisher_id, True, reason="category_allowed", category=category)

    def _decide(self, publisher_id: str, allowed: bool, *, reason: str, category: str | None = None) -> bool:
        self._decisions[publisher_id] = allowed
        jlog("info", event="publisher_decision", publisher_id=publisher_id, allowed=allowed, reason=reason, category=category)
        return allowed


__all__ = [
    "PublisherClassifier",
    "category_match",
    "parse_profile_text",
    "split_categories",
]
