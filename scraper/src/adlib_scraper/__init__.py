"""Meta Ad Library CTA scraper: catalog paging, publisher screening and snapshot extraction."""

from .catalog import CatalogPager, GraphTransport, clamp_page_size, parse_candidate_ad
from .config import RunConfig, build_config, parse_library_url, resolve_locale
from .consent import ConsentCache, ensure_consent
from .cta import DEFAULT_ACCEPTED_CTAS, classify_cta, is_accepted, normalize_cta
from .errors import CatalogError, ConfigError, ScraperError
from .logging import adlog, jlog
from .models import CandidateAd, CatalogPage, ExtractedRecord, PublisherProfile, RunCounters, RunResult, SnapshotBits
from .pipeline import PipelineController, scrape_ads
from .pool import SessionPool
from .publishers import PublisherClassifier, category_match, split_categories
from .urls import select_product_url, unwrap_redirect

__all__ = [
    "adlog",
    "build_config",
    "CandidateAd",
    "CatalogError",
    "CatalogPage",
    "CatalogPager",
    "category_match",
    "clamp_page_size",
    "classify_cta",
    "ConfigError",
    "ConsentCache",
    "DEFAULT_ACCEPTED_CTAS",
    "ensure_consent",
    "ExtractedRecord",
    "GraphTransport",
    "is_accepted",
    "jlog",
    "normalize_cta",
    "parse_candidate_ad",
    "parse_library_url",
    "PipelineController",
    "PublisherClassifier",
    "PublisherProfile",
    "resolve_locale",
    "RunConfig",
    "RunCounters",
    "RunResult",
    "scrape_ads",
    "ScraperError",
    "select_product_url",
    "SessionPool",
    "SnapshotBits",
    "split_categories",
    "unwrap_redirect",
]
