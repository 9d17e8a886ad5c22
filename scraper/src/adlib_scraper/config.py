"""Run configuration: env defaults, ad library URL parsing and validation."""

from __future__ import annotations

import os
import re
import urllib.parse
from dataclasses import dataclass

from .cta import DEFAULT_ACCEPTED_CTAS
from .errors import ConfigError
from .logging import jlog

DEFAULT_COUNTRY = "NL"
DEFAULT_LIMIT = 25
DEFAULT_CONCURRENCY = 3
DEFAULT_MAX_PAGES = 40
DEFAULT_MAX_NOPROGRESS_PAGES = 5
DEFAULT_SNAPSHOT_ATTEMPTS_PER_RESULT = 200
DEFAULT_FORCE_LOCALE = "nl-NL"
DEFAULT_GRAPH_VERSION = "v23.0"
DEFAULT_STORAGE_STATE_PATH = os.path.join("storage", "fb-state.json")

COUNTRY_LOCALES = {
    "NL": "nl-NL",
    "BE": "nl-BE",
    "FR": "fr-FR",
    "DE": "de-DE",
    "ES": "es-ES",
    "IT": "it-IT",
    "GB": "en-GB",
    "US": "en-US",
}
TOKEN_ENV_VARS = ("META_ADS_TOKEN", "META_ACCESS_TOKEN", "GRAPH_TOKEN")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RunConfig:
    url_or_query: str | None
    country: str
    keyword: str
    limit: int
    active_only: bool
    date_min: str | None
    date_max: str | None
    required_categories: tuple[str, ...]
    concurrency: int
    headless: bool
    accepted_ctas: tuple[str, ...]
    strict_category: bool
    excluded_name_pattern: re.Pattern[str] | None
    max_pages: int
    max_snapshot_attempts: int
    max_no_progress_pages: int
    locale: str
    block_stylesheets: bool
    storage_state_path: str | None
    access_token: str | None
    graph_version: str
    per_ad_delay_ms: int = 0
    debug_html: bool = False

    @property
    def cookie_locale(self) -> str:
        """``nl-NL`` -> ``nl_NL``, the form the site expects in cookies and query strings."""

        return self.locale.replace("-", "_")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _split_list(raw: str | None) -> tuple[str, ...]:
    return tuple(s.strip() for s in (raw or "").split(",") if s.strip())


def env_access_token() -> str | None:
    for name in TOKEN_ENV_VARS:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    return None


def resolve_locale(country: str) -> str:
    """``FORCE_LOCALE`` wins (``nl-NL`` unless set); an empty value falls back to the country map."""

    forced = os.getenv("FORCE_LOCALE", DEFAULT_FORCE_LOCALE).strip()
    if forced:
        return forced
    return COUNTRY_LOCALES.get((country or DEFAULT_COUNTRY).upper(), DEFAULT_FORCE_LOCALE)


def parse_library_url(url: str | None) -> dict[str, object]:
    """Pull country, query, delivery dates and active flag out of an Ad Library URL."""

    if not url:
        return {}
    params = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))
    return {
        "country": params.get("country") or params.get("ad_reached_countries") or "",
        "q": params.get("q") or params.get("search_terms") or "",
        "date_min": params.get("ad_delivery_date_min") or params.get("start_date[min]") or "",
        "date_max": params.get("ad_delivery_date_max") or params.get("start_date[max]") or "",
        "active": (params.get("active_status") or "active").lower() == "active",
    }


def _valid_date(value: str | None, field_name: str) -> str | None:
    if not value:
        return None
    if DATE_RE.match(value):
        return value
    jlog("warning", event="invalid_date_ignored", field=field_name, value=value)
    return None


def _looks_like_url(value: str | None) -> bool:
    return bool(value) and value.strip().lower().startswith(("http://", "https://"))


def build_config(
    url_or_query: str | None = None,
    *,
    country: str | None = None,
    keyword: str | None = None,
    limit: int = DEFAULT_LIMIT,
    active_only: bool | None = None,
    date_min: str | None = None,
    date_max: str | None = None,
    required_categories: str | list[str] | tuple[str, ...] | None = None,
    concurrency: int | None = None,
    headless: bool = True,
    per_ad_delay_ms: int = 0,
    debug_html: bool = False,
) -> RunConfig:
    """Merge explicit arguments, the library URL and environment defaults."""

    from_url = parse_library_url(url_or_query) if _looks_like_url(url_or_query) else {}
    if not from_url and url_or_query and not keyword:
        keyword = url_or_query

    resolved_country = (country or str(from_url.get("country") or "") or DEFAULT_COUNTRY).strip().upper()
    resolved_keyword = (keyword or str(from_url.get("q") or "")).strip()
    if not resolved_country or not resolved_keyword:
        raise ConfigError("country and keyword (or a library link with q) are required")
    if limit < 1:
        raise ConfigError(f"limit must be positive, got {limit}")

    if active_only is None:
        active_only = bool(from_url.get("active", True))

    if isinstance(required_categories, str):
        categories = _split_list(required_categories)
    elif required_categories:
        categories = tuple(c.strip() for c in required_categories if c and c.strip())
    else:
        categories = _split_list(os.getenv("ALLOWED_PAGE_CATEGORIES"))

    accepted = _split_list(os.getenv("ALLOWED_CTA")) or DEFAULT_ACCEPTED_CTAS
    name_regex = os.getenv("EXCLUDED_PAGE_NAME_REGEX")
    try:
        excluded = re.compile(name_regex, re.IGNORECASE) if name_regex else None
    except re.error as exc:
        raise ConfigError(f"EXCLUDED_PAGE_NAME_REGEX is not a valid pattern: {exc}") from exc

    workers = concurrency if concurrency is not None else _env_int("CONCURRENCY", DEFAULT_CONCURRENCY)

    return RunConfig(
        url_or_query=url_or_query,
        country=resolved_country,
        keyword=resolved_keyword,
        limit=limit,
        active_only=active_only,
        date_min=_valid_date(date_min or str(from_url.get("date_min") or ""), "date_min"),
        date_max=_valid_date(date_max or str(from_url.get("date_max") or ""), "date_max"),
        required_categories=categories,
        concurrency=max(1, workers),
        headless=headless,
        accepted_ctas=accepted,
        strict_category=_env_flag("REQUIRE_CATEGORY_STRICT", True),
        excluded_name_pattern=excluded,
        max_pages=_env_int("MAX_PAGES", DEFAULT_MAX_PAGES),
        max_snapshot_attempts=_env_int("MAX_SCANNED", limit * DEFAULT_SNAPSHOT_ATTEMPTS_PER_RESULT),
        max_no_progress_pages=_env_int("MAX_NOPROGRESS_PAGES", DEFAULT_MAX_NOPROGRESS_PAGES),
        locale=resolve_locale(resolved_country),
        block_stylesheets=_env_flag("BLOCK_STYLESHEETS", True),
        storage_state_path=os.getenv("STORAGE_STATE_PATH", DEFAULT_STORAGE_STATE_PATH) or None,
        access_token=env_access_token(),
        graph_version=os.getenv("META_GRAPH_VERSION", DEFAULT_GRAPH_VERSION),
        per_ad_delay_ms=max(0, per_ad_delay_ms),
        debug_html=debug_html,
    )


__all__ = [
    "COUNTRY_LOCALES",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_LIMIT",
    "RunConfig",
    "build_config",
    "env_access_token",
    "parse_library_url",
    "resolve_locale",
]
