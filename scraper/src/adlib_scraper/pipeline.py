"""Ad library discovery-and-extraction pipeline.

Pages through the Meta Ad Library API, screens each ad's publisher once per
run, and visits the snapshot page of allowed ads in a small pool of browser
tabs to read the call-to-action and the outbound product link. Only ads whose
CTA is in the accepted set are returned.

The run ends on whichever comes first: the output limit, the page cap, the
snapshot-attempt cap, an empty page, a cursor that stops advancing, the end of
the catalog, or too many pages in a row that added nothing.

Usage (examples)
----------------
# Keyword search, three tabs
python scraper/scripts/scrape_ads.py --keyword sneakers --country NL --limit 25

# Start from an Ad Library link, keep only some page categories
python scraper/scripts/scrape_ads.py \
  --link "https://www.facebook.com/ads/library/?active_status=active&country=BE&q=kleding" \
  --require-category "Clothing (Brand),Shopping & retail" --output out.jsonl
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import httpx
from playwright.async_api import async_playwright

from .catalog import CatalogPager, GraphTransport, new_http_client
from .config import DEFAULT_CONCURRENCY, DEFAULT_LIMIT, RunConfig, build_config
from .consent import ConsentCache
from .cta import is_accepted, normalize_cta
from .debug import ensure_debug_html
from .errors import ConfigError
from .logging import adlog, jlog, logging_context
from .models import CandidateAd, CatalogPage, ExtractedRecord, PublisherProfile, RunCounters, RunResult, SnapshotBits
from .playwright import CHROMIUM_LAUNCH_ARGS, cleanup_playwright, new_scrape_context, new_worker_page
from .pool import SessionPool
from .publishers import PublisherClassifier
from .snapshot import scrape_profile, scrape_snapshot
from .urls import profile_url
from .versioning import get_scraper_version as resolve_version

PageFetcher = Callable[[Optional[str]], Awaitable[CatalogPage]]
SnapshotExtractor = Callable[[Any, str], Awaitable[SnapshotBits]]
DebugDumper = Callable[[Any, str], Awaitable[Any]]

SCRIPT_NAME = "adlib"
SCRIPT_VERSION = "2025-11-04.1"


def get_scraper_version() -> str:
    return resolve_version(SCRIPT_NAME, SCRIPT_VERSION)


# ============================
# Record assembly
# ============================


def build_record(
    ad: CandidateAd,
    bits: SnapshotBits,
    cta_label: str,
    profile: PublisherProfile,
    config: RunConfig,
) -> ExtractedRecord:
    return ExtractedRecord(
        snapshot_url=ad.snapshot_url,
        publisher_name=ad.publisher_name,
        country=config.country,
        reach=ad.reach_metric,
        product_url=bits.product_url or "",
        start_date=(ad.delivery_start_time or "")[:10],
        media_type=ad.media_type or "UNKNOWN",
        platforms=",".join(ad.platforms),
        keyword=config.keyword,
        ad_id=ad.id,
        cta_text=cta_label,
        active_status=ad.active_status or "",
        likes=profile.likes_text,
        followers=profile.followers_text,
        category=profile.category,
        profile_url=profile.profile_url or profile_url(ad.publisher_id, config.cookie_locale),
    )


# ============================
# Controller
# ============================


class PipelineController:
    """Runs the page → screen → dispatch → drain loop for one configuration.

    Collaborators are injected so the loop can run against fakes: ``fetch_page``
    takes the ``after`` cursor, ``extract`` takes a pool session and a snapshot
    URL. ``counters`` and the classifier's caches belong to this run only.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        fetch_page: PageFetcher,
        classifier: PublisherClassifier,
        extract: SnapshotExtractor,
        pool: SessionPool,
        counters: RunCounters,
        debug_dump: DebugDumper | None = None,
    ) -> None:
        self.config = config
        self.counters = counters
        self.records: list[ExtractedRecord] = []
        self._fetch_page = fetch_page
        self._classifier = classifier
        self._extract = extract
        self._pool = pool
        self._debug_dump = debug_dump
        self._concurrency = max(1, min(config.concurrency, len(pool)))

    def _stop(self, reason: str, **fields: Any) -> None:
        self.counters.stop_reason = reason
        jlog("info", event="run_stop", reason=reason, **fields)

    async def run(self) -> RunResult:
        cfg = self.config
        counters = self.counters
        after: str | None = None
        last_cursor: str | None = None
        prev_len = 0
        no_progress_pages = 0

        while True:
            if len(self.records) >= cfg.limit:
                self._stop("limit_reached", limit=cfg.limit)
                break
            if counters.pages_fetched >= cfg.max_pages:
                self._stop("max_pages", max_pages=cfg.max_pages)
                break
            if counters.attempted_snapshots >= cfg.max_snapshot_attempts:
                self._stop("max_snapshot_attempts", max_snapshot_attempts=cfg.max_snapshot_attempts)
                break

            counters.pages_fetched += 1
            page = await self._fetch_page(after)
            jlog(
                "info",
                event="catalog_page",
                page=counters.pages_fetched,
                ads=len(page.ads),
                rows=page.row_count,
                after=after,
                next_cursor=page.next_cursor,
            )
            if page.row_count == 0:
                self._stop("empty_page", page=counters.pages_fetched)
                break
            if page.next_cursor and page.next_cursor == last_cursor:
                self._stop("cursor_stalled", cursor=page.next_cursor)
                break

            await self._dispatch(page.ads)

            if len(self.records) == prev_len:
                no_progress_pages += 1
                if no_progress_pages >= cfg.max_no_progress_pages:
                    self._stop("no_progress", pages=no_progress_pages)
                    break
            else:
                no_progress_pages = 0
                prev_len = len(self.records)

            if not page.next_cursor:
                self._stop("end_of_catalog", page=counters.pages_fetched)
                break
            last_cursor = after = page.next_cursor

        return RunResult(records=self.records[: cfg.limit], counters=counters.snapshot())

    async def _dispatch(self, ads: tuple[CandidateAd, ...]) -> None:
        cfg = self.config
        counters = self.counters
        in_flight: set[asyncio.Task] = set()

        for ad in ads:
            if len(self.records) >= cfg.limit:
                break
            if counters.attempted_snapshots >= cfg.max_snapshot_attempts:
                break
            counters.seen_ads += 1

            if not await self._classifier.decide_allow(ad.publisher_id, ad.publisher_name):
                counters.pre_rejected_ads += 1
                continue

            counters.attempted_snapshots += 1
            index, session = self._pool.next()
            in_flight.add(asyncio.create_task(self._process(ad, index, session)))
            if len(in_flight) >= self._concurrency:
                _, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)

        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)

    async def _process(self, ad: CandidateAd, index: int, session: Any) -> None:
        cfg = self.config
        counters = self.counters
        try:
            bits = await self._extract(session, ad.snapshot_url)
            label = normalize_cta(bits.cta_text)
            if label is None:
                counters.no_cta += 1
                if self._debug_dump is not None:
                    await self._debug_dump(session, ad.id)
                return
            if not is_accepted(label, cfg.accepted_ctas):
                RunCounters.bump(counters.rejected_by_policy, label)
                return
            profile = await self._classifier.profile(ad.publisher_id)
            record = build_record(ad, bits, label, profile, cfg)
            self.records.append(record)
            adlog("ad_accepted", ad_id=ad.id, publisher_id=ad.publisher_id, url=ad.snapshot_url, cta=label)
        except Exception as exc:
            adlog(
                "extraction_fault",
                ad_id=ad.id,
                publisher_id=ad.publisher_id,
                url=ad.snapshot_url,
                level="warning",
                error=repr(exc),
            )
        finally:
            try:
                if cfg.per_ad_delay_ms:
                    await asyncio.sleep(cfg.per_ad_delay_ms / 1000.0)
            finally:
                self._pool.release(index)


# ============================
# Entrypoint
# ============================


def log_summary(result: RunResult, limit: int) -> None:
    jlog("info", event="run_summary", returned=len(result.records), limit=limit, **result.counters)


async def scrape_ads(config: RunConfig, *, http_client: httpx.AsyncClient | None = None) -> RunResult:
    """Run the pipeline end to end with a real browser and catalog client."""

    if not config.access_token:
        raise ConfigError("no catalog access token configured (set META_ADS_TOKEN)")

    counters = RunCounters()
    consent = ConsentCache()
    cookie_locale = config.cookie_locale
    owns_client = http_client is None
    client = http_client or new_http_client()
    pager = CatalogPager(GraphTransport(client), config.access_token, graph_version=config.graph_version)

    async def fetch_page(after: str | None) -> CatalogPage:
        return await pager.fetch_page(
            config.country,
            config.keyword,
            config.active_only,
            config.limit,
            after,
            config.date_min,
            config.date_max,
        )

    try:
        with logging_context(keyword=config.keyword, country=config.country):
            async with async_playwright() as pw:
                browser = None
                context = None
                try:
                    browser = await pw.chromium.launch(
                        headless=config.headless,
                        slow_mo=0 if config.headless else 80,
                        args=CHROMIUM_LAUNCH_ARGS,
                    )
                    context = await new_scrape_context(
                        browser,
                        locale=config.locale,
                        storage_state_path=config.storage_state_path,
                        block_stylesheets=config.block_stylesheets,
                    )
                    pool = SessionPool([await new_worker_page(context) for _ in range(config.concurrency)])
                    profile_tab = await new_worker_page(context)

                    async def fetch_profile(publisher_id: str) -> PublisherProfile:
                        return await scrape_profile(profile_tab, publisher_id, locale=cookie_locale, consent=consent)

                    async def extract(page, snapshot_url: str) -> SnapshotBits:
                        return await scrape_snapshot(page, snapshot_url, locale=cookie_locale, consent=consent)

                    classifier = PublisherClassifier(
                        fetch_profile,
                        counters=counters,
                        required_categories=config.required_categories,
                        strict_category=config.strict_category,
                        excluded_name_pattern=config.excluded_name_pattern,
                        fallback_profile=lambda pid: PublisherProfile.empty(pid, profile_url(pid, cookie_locale)),
                    )
                    controller = PipelineController(
                        config,
                        fetch_page=fetch_page,
                        classifier=classifier,
                        extract=extract,
                        pool=pool,
                        counters=counters,
                        debug_dump=ensure_debug_html if config.debug_html else None,
                    )
                    result = await controller.run()
                finally:
                    await cleanup_playwright(context, browser, config.storage_state_path)
    finally:
        if owns_client:
            await client.aclose()

    log_summary(result, config.limit)
    return result


# ============================
# Argument parsing
# ============================


def parse_args(argv: list[str] | None = None) -> tuple[RunConfig, str | None]:
    p = argparse.ArgumentParser(description="Collect ads with an accepted CTA from the Meta Ad Library")
    p.add_argument("--link", help="Ad Library URL; country, q, dates and active status are read from it")
    p.add_argument("--keyword", help="Search terms (overrides q from --link)")
    p.add_argument("--country", help="Reached country code, e.g. NL")
    p.add_argument("--limit", type=int, default=DEFAULT_LIMIT)
    p.add_argument("--include-inactive", action="store_true", help="Query ACTIVE and inactive ads")
    p.add_argument("--date-min", help="ad_delivery_date_min, YYYY-MM-DD")
    p.add_argument("--date-max", help="ad_delivery_date_max, YYYY-MM-DD")
    p.add_argument(
        "--require-category",
        help="Comma-separated page categories (case-sensitive); defaults to ALLOWED_PAGE_CATEGORIES",
    )
    p.add_argument("--concurrency", type=int, help=f"Snapshot tabs (default: CONCURRENCY or {DEFAULT_CONCURRENCY})")
    p.add_argument("--headful", action="store_true", help="Show the browser window")
    p.add_argument("--per-ad-delay-ms", type=int, default=0)
    p.add_argument("--debug-html", action="store_true", help="Dump snapshot HTML to media/debug when no CTA is found")
    p.add_argument("--output", help="Write records as JSON lines to this file instead of stdout")

    ns = p.parse_args(argv)
    if not ns.link and not ns.keyword:
        p.error("provide --link or --keyword")

    config = build_config(
        ns.link,
        country=ns.country,
        keyword=ns.keyword,
        limit=ns.limit,
        active_only=False if ns.include_inactive else None,
        date_min=ns.date_min,
        date_max=ns.date_max,
        required_categories=ns.require_category,
        concurrency=ns.concurrency,
        headless=not ns.headful,
        per_ad_delay_ms=ns.per_ad_delay_ms,
        debug_html=ns.debug_html,
    )
    return config, ns.output


def write_records(records: list[ExtractedRecord], output: str | None) -> None:
    lines = [json.dumps(r.as_dict(), ensure_ascii=False) for r in records]
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.writelines(line + "\n" for line in lines)
        return
    for line in lines:
        sys.stdout.write(line + "\n")


async def run(config: RunConfig, output: str | None = None) -> RunResult:
    """Execute one run for the CLI and write its records."""

    result = await scrape_ads(config)
    write_records(result.records, output)
    return result


__all__ = [
    "PipelineController",
    "build_record",
    "get_scraper_version",
    "parse_args",
    "run",
    "scrape_ads",
    "write_records",
]
