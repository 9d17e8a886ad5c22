"""Call-to-action label classification."""

from __future__ import annotations

import re
from collections.abc import Iterable

# Order matters: the first pattern that matches wins.
CANONICAL_CTAS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"shop\s*now", re.IGNORECASE), "Shop Now"),
    (re.compile(r"shop\s*nu", re.IGNORECASE), "Shop Nu"),
    (re.compile(r"shoppen", re.IGNORECASE), "Shoppen"),
)
DEFAULT_ACCEPTED_CTAS: tuple[str, ...] = ("Shop Now", "Shop Nu", "Shoppen")
MAX_CTA_TEXT_CHARS = 20

_WS_RE = re.compile(r"\s+")


def classify_cta(text: str | None) -> str | None:
    """Map button text onto one of the canonical labels, or ``None``."""

    clean = (text or "").strip()
    if not clean:
        return None
    for pattern, label in CANONICAL_CTAS:
        if pattern.search(clean):
            return label
    return None


def normalize_cta(text: str | None) -> str | None:
    """Canonical label when one matches, otherwise the whitespace-collapsed text."""

    collapsed = _WS_RE.sub(" ", text or "").strip()
    if not collapsed:
        return None
    return classify_cta(collapsed) or collapsed


def pick_cta(texts: Iterable[str] | None) -> str | None:
    """Return the canonical label of the first short text that names a CTA."""

    for text in texts or ():
        text = (text or "").strip()
        if not text or len(text) > MAX_CTA_TEXT_CHARS:
            continue
        label = classify_cta(text)
        if label:
            return label
    return None


def is_accepted(label: str | None, accepted: Iterable[str]) -> bool:
    if not label:
        return False
    wanted = {a.strip().lower() for a in accepted if a and a.strip()}
    return label.lower() in wanted


__all__ = [
    "CANONICAL_CTAS",
    "DEFAULT_ACCEPTED_CTAS",
    "MAX_CTA_TEXT_CHARS",
    "classify_cta",
    "is_accepted",
    "normalize_cta",
    "pick_cta",
]
