import asyncio
import json

import httpx
import pytest

from adlib_scraper.catalog import CatalogPager, GraphTransport, clamp_page_size, parse_candidate_ad
from adlib_scraper.errors import CatalogError, ConfigError


def _pager(handler, *, token="secret", max_retries=2):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CatalogPager(GraphTransport(client, max_retries=max_retries, backoff_ms=0), token), client


def _fetch(pager, client, **kw):
    async def go():
        try:
            return await pager.fetch_page(
                kw.get("country", "NL"),
                kw.get("query", "sneakers"),
                kw.get("active_only", True),
                kw.get("page_size", 25),
                kw.get("after"),
                kw.get("date_min"),
                kw.get("date_max"),
            )
        finally:
            await client.aclose()

    return asyncio.run(go())


PAGE_PAYLOAD = {
    "data": [
        {
            "id": "111",
            "ad_snapshot_url": "https://www.facebook.com/ads/archive/render_ad/?id=111",
            "page_id": "p1",
            "page_name": "Sneaker Shop",
            "publisher_platforms": ["facebook", "instagram"],
            "ad_delivery_start_time": "2025-05-01T10:00:00+0000",
            "ad_active_status": "ACTIVE",
            "media_type": "IMAGE",
            "eu_total_reach": 1234,
        },
        {"id": "112", "page_id": "p2", "page_name": "No Snapshot"},
    ],
    "paging": {"cursors": {"after": "CURSOR2"}},
}


def test_clamp_page_size_bounds():
    assert clamp_page_size(1) == 10
    assert clamp_page_size(25) == 25
    assert clamp_page_size(5000) == 200


def test_fetch_page_parses_ads_and_cursor():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=PAGE_PAYLOAD)

    pager, client = _pager(handler)
    page = _fetch(pager, client, page_size=500, after="CURSOR1", date_min="2025-01-01")

    assert page.next_cursor == "CURSOR2"
    assert page.raw_count == 2
    assert [ad.id for ad in page.ads] == ["111"]
    ad = page.ads[0]
    assert ad.publisher_id == "p1"
    assert ad.platforms == ("facebook", "instagram")
    assert ad.reach_metric == 1234

    params = seen[0].url.params
    assert seen[0].url.path == "/v23.0/ads_archive"
    assert params["limit"] == "200"
    assert params["after"] == "CURSOR1"
    assert params["ad_delivery_date_min"] == "2025-01-01"
    assert "ad_delivery_date_max" not in params
    assert params["ad_active_status"] == "ACTIVE"
    assert params["ad_reached_countries"] == "NL"


def test_missing_token_fails_before_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=PAGE_PAYLOAD)

    pager, client = _pager(handler, token=None)
    with pytest.raises(ConfigError):
        _fetch(pager, client)
    assert calls == []


def test_client_error_is_not_retried_and_keeps_body():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "Invalid parameter", "code": 100}})

    pager, client = _pager(handler)
    with pytest.raises(CatalogError) as err:
        _fetch(pager, client)
    assert len(calls) == 1
    assert err.value.status == 400
    assert "Invalid parameter" in err.value.body


def test_server_errors_are_retried_then_succeed():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json=PAGE_PAYLOAD)

    pager, client = _pager(handler)
    page = _fetch(pager, client)
    assert len(calls) == 3
    assert page.next_cursor == "CURSOR2"


def test_retry_exhaustion_raises_catalog_error():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(502, text="bad gateway")

    pager, client = _pager(handler, max_retries=2)
    with pytest.raises(CatalogError) as err:
        _fetch(pager, client)
    assert len(calls) == 3
    assert err.value.status == 502


def test_connection_errors_are_transient():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(200, json={"data": []})

    pager, client = _pager(handler)
    page = _fetch(pager, client)
    assert len(calls) == 2
    assert page.ads == ()
    assert page.next_cursor is None


def test_malformed_json_is_a_catalog_error():
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    pager, client = _pager(handler)
    with pytest.raises(CatalogError):
        _fetch(pager, client)


def test_non_object_payload_is_a_catalog_error():
    def handler(request):
        return httpx.Response(200, content=json.dumps([1, 2, 3]).encode())

    pager, client = _pager(handler)
    with pytest.raises(CatalogError):
        _fetch(pager, client)


def test_parse_candidate_ad_ignores_non_numeric_reach():
    ad = parse_candidate_ad({"id": 5, "ad_snapshot_url": "https://x", "page_id": 77, "eu_total_reach": "1K"})
    assert ad is not None
    assert ad.id == "5"
    assert ad.reach_metric is None
    assert ad.publisher_id == "77"
    assert parse_candidate_ad({"id": 6}) is None


def test_single_attempt_raises_the_server_error():
    def handler(request):
        return httpx.Response(503, text="unavailable")

    pager, client = _pager(handler, max_retries=0)
    with pytest.raises(CatalogError) as err:
        _fetch(pager, client)
    assert err.value.status == 503
    assert "not attempted" not in str(err.value)


def test_rows_without_page_id_are_skipped():
    assert parse_candidate_ad({"id": 7, "ad_snapshot_url": "https://x"}) is None
    assert parse_candidate_ad({"id": 8, "ad_snapshot_url": "https://x", "page_id": ""}) is None


def test_page_of_unusable_rows_keeps_raw_count_and_cursor():
    payload = {
        "data": [{"id": "1", "page_id": "p1"}, {"id": "2", "ad_snapshot_url": "https://x"}],
        "paging": {"cursors": {"after": "NEXT"}},
    }
    pager, client = _pager(lambda request: httpx.Response(200, json=payload))
    page = _fetch(pager, client)

    assert page.ads == ()
    assert page.raw_count == 2
    assert page.row_count == 2
    assert page.next_cursor == "NEXT"
