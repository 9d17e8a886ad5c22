"""URL helpers for ad library snapshots and outbound product links."""

from __future__ import annotations

import urllib.parse

PLATFORM_HOST_SUFFIXES = ("facebook.com", "fb.com", "meta.com", "instagram.com", "messenger.com", "fbcdn.net")
REDIRECT_HOSTS = {"l.facebook.com", "lm.facebook.com"}
PROFILE_URL = "https://www.facebook.com/profile.php?id={publisher_id}&locale={locale}"
PROFILE_URL_BASIC = "https://mbasic.facebook.com/profile.php?id={publisher_id}&refid=17&locale={locale}"


def unwrap_redirect(href: str) -> str:
    """Return the destination encoded in an ``l.facebook.com/l.php?u=`` wrapper, else ``href``."""

    try:
        parsed = urllib.parse.urlparse(href)
    except ValueError:
        return href
    if (parsed.hostname or "").lower() in REDIRECT_HOSTS and parsed.path == "/l.php":
        target = urllib.parse.parse_qs(parsed.query).get("u", [None])[0]
        if target:
            return target
    return href


def is_platform_host(host: str | None) -> bool:
    host = (host or "").lower()
    return any(host == suffix or host.endswith("." + suffix) for suffix in PLATFORM_HOST_SUFFIXES)


def select_product_url(hrefs: list[str] | None) -> str | None:
    """First outbound http(s) link that does not point back at the platform."""

    for raw in hrefs or []:
        if not raw:
            continue
        href = unwrap_redirect(raw)
        try:
            parsed = urllib.parse.urlparse(href)
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            continue
        if is_platform_host(parsed.hostname):
            continue
        return href
    return None


def with_locale(url: str, locale: str) -> str:
    """Add ``locale=<locale>`` to ``url`` unless it already carries one."""

    parsed = urllib.parse.urlparse(url)
    pairs = urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
    if any(k == "locale" and v for k, v in pairs):
        return url
    pairs = [(k, v) for k, v in pairs if k != "locale"] + [("locale", locale)]
    return urllib.parse.urlunparse(parsed._replace(query=urllib.parse.urlencode(pairs)))


def host_key(url: str | None) -> str | None:
    """Hostname without a leading ``www.``, used to key the consent cache."""

    try:
        host = urllib.parse.urlparse(url or "").hostname
    except ValueError:
        return None
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def profile_url(publisher_id: str, locale: str, *, basic: bool = False) -> str:
    template = PROFILE_URL_BASIC if basic else PROFILE_URL
    return template.format(publisher_id=urllib.parse.quote(publisher_id, safe=""), locale=locale)


__all__ = [
    "PLATFORM_HOST_SUFFIXES",
    "host_key",
    "is_platform_host",
    "profile_url",
    "select_product_url",
    "unwrap_redirect",
    "with_locale",
]
