"""Cursor-paginated reads from the Meta Ad Library ``ads_archive`` endpoint."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from .errors import CatalogError, ConfigError
from .logging import jlog
from .models import CandidateAd, CatalogPage

GRAPH_BASE_URL = "https://graph.facebook.com"
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 200
DEFAULT_TIMEOUT_S = 25.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_MS = 500
MAX_ERROR_BODY_CHARS = 800
USER_AGENT = "ad-research-tool/1.0"

CATALOG_FIELDS = (
    "id",
    "ad_snapshot_url",
    "page_id",
    "page_name",
    "publisher_platforms",
    "ad_delivery_start_time",
    "ad_delivery_stop_time",
    "ad_active_status",
    "media_type",
    "eu_total_reach",
)


def clamp_page_size(page_size: int) -> int:
    return min(MAX_PAGE_SIZE, max(MIN_PAGE_SIZE, int(page_size)))


class GraphTransport:
    """JSON-over-HTTP with bounded retries for transient failures.

    Timeouts, connection errors and 5xx responses are retried ``max_retries``
    times with a linear backoff; anything else raises :class:`CatalogError`
    straight away.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_ms: int = DEFAULT_BACKOFF_MS,
    ) -> None:
        self._client = client
        self.max_retries = max(0, max_retries)
        self.backoff_ms = max(0, backoff_ms)

    async def get_json(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        last_error = CatalogError(f"catalog request to {url} was not attempted")
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.get(url, params=params)
            except httpx.TransportError as exc:
                last_error = CatalogError(f"catalog request failed: {exc!r}")
            else:
                body = response.text
                if response.status_code >= 500:
                    last_error = CatalogError(
                        f"catalog server error on {url}",
                        status=response.status_code,
                        body=body[:MAX_ERROR_BODY_CHARS],
                    )
                elif not response.is_success:
                    raise CatalogError(
                        f"catalog API error on {url}",
                        status=response.status_code,
                        body=body[:MAX_ERROR_BODY_CHARS],
                    )
                else:
                    try:
                        payload = response.json()
                    except ValueError as exc:
                        raise CatalogError(
                            f"invalid JSON from {url}",
                            status=response.status_code,
                            body=body[:MAX_ERROR_BODY_CHARS],
                        ) from exc
                    if not isinstance(payload, dict):
                        raise CatalogError(
                            f"unexpected payload type from {url}",
                            status=response.status_code,
                            body=body[:MAX_ERROR_BODY_CHARS],
                        )
                    return payload

            if attempt >= self.max_retries:
                break
            delay_ms = self.backoff_ms * (attempt + 1)
            jlog("warning", event="catalog_retry", attempt=attempt + 1, delay_ms=delay_ms, error=str(last_error))
            await asyncio.sleep(delay_ms / 1000.0)

        raise last_error


def parse_candidate_ad(item: dict[str, Any]) -> CandidateAd | None:
    """Turn one ``ads_archive`` row into a :class:`CandidateAd`.

    Rows without a snapshot URL or a page id are dropped; the latter would all
    share one publisher decision.
    """

    snapshot_url = item.get("ad_snapshot_url")
    if not snapshot_url:
        return None
    if not item.get("page_id"):
        jlog("warning", event="catalog_row_skipped", ad_id=item.get("id"), reason="missing_page_id")
        return None
    reach = item.get("eu_total_reach")
    platforms = item.get("publisher_platforms") or []
    return CandidateAd(
        id=str(item.get("id") or ""),
        snapshot_url=str(snapshot_url),
        publisher_id=str(item["page_id"]),
        publisher_name=str(item.get("page_name") or ""),
        delivery_start_time=item.get("ad_delivery_start_time"),
        active_status=item.get("ad_active_status"),
        media_type=item.get("media_type"),
        platforms=tuple(str(p) for p in platforms if p),
        reach_metric=reach if isinstance(reach, int) and not isinstance(reach, bool) else None,
    )


class CatalogPager:
    """Fetches one catalog page per call; retrying is left to the transport."""

    def __init__(self, transport: GraphTransport, access_token: str | None, *, graph_version: str = "v23.0") -> None:
        self._transport = transport
        self._access_token = access_token
        self.endpoint = f"{GRAPH_BASE_URL}/{graph_version}/ads_archive"

    async def fetch_page(
        self,
        country: str,
        query: str,
        active_only: bool,
        page_size: int,
        after: str | None = None,
        date_min: str | None = None,
        date_max: str | None = None,
    ) -> CatalogPage:
        if not self._access_token:
            raise ConfigError("no catalog access token configured (set META_ADS_TOKEN)")

        params = {
            "access_token": self._access_token,
            "ad_type": "ALL",
            "ad_reached_countries": country,
            "ad_active_status": "ACTIVE" if active_only else "ALL",
            "search_terms": query or "",
            "limit": str(clamp_page_size(page_size)),
            "fields": ",".join(CATALOG_FIELDS),
        }
        if after:
            params["after"] = after
        if date_min:
            params["ad_delivery_date_min"] = date_min
        if date_max:
            params["ad_delivery_date_max"] = date_max

        payload = await self._transport.get_json(self.endpoint, params)
        data = payload.get("data")
        if data is None:
            data = []
        if not isinstance(data, list):
            raise CatalogError("catalog payload 'data' is not a list", body=str(payload)[:MAX_ERROR_BODY_CHARS])

        ads = tuple(ad for ad in (parse_candidate_ad(item) for item in data if isinstance(item, dict)) if ad)
        cursors = (payload.get("paging") or {}).get("cursors") or {}
        next_cursor = cursors.get("after") or None
        return CatalogPage(ads=ads, next_cursor=next_cursor, raw_count=len(data))


def new_http_client(timeout_s: float = DEFAULT_TIMEOUT_S) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_s, connect=10.0),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )


__all__ = [
    "CATALOG_FIELDS",
    "CatalogPager",
    "GraphTransport",
    "clamp_page_size",
    "new_http_client",
    "parse_candidate_ad",
]
