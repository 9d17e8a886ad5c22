"""Value types passed between the pager, classifier, workers and controller."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class CandidateAd:
    id: str
    snapshot_url: str
    publisher_id: str
    publisher_name: str
    delivery_start_time: Optional[str]
    active_status: Optional[str]
    media_type: Optional[str]
    platforms: tuple[str, ...] = ()
    reach_metric: Optional[int] = None


@dataclass(frozen=True, slots=True)
class CatalogPage:
    ads: tuple[CandidateAd, ...]
    next_cursor: Optional[str]
    raw_count: Optional[int] = None

    @property
    def row_count(self) -> int:
        """Rows the API returned, including ones dropped while parsing."""

        return len(self.ads) if self.raw_count is None else self.raw_count


@dataclass(frozen=True, slots=True)
class PublisherProfile:
    publisher_id: str
    category: Optional[str]
    categories: tuple[str, ...]
    raw_category_text: Optional[str]
    likes_text: Optional[str]
    followers_text: Optional[str]
    profile_url: str

    @classmethod
    def empty(cls, publisher_id: str, profile_url: str) -> "PublisherProfile":
        return cls(
            publisher_id=publisher_id,
            category=None,
            categories=(),
            raw_category_text=None,
            likes_text=None,
            followers_text=None,
            profile_url=profile_url,
        )

    @property
    def has_signal(self) -> bool:
        return bool(self.likes_text or self.followers_text or self.category)


@dataclass(frozen=True, slots=True)
class SnapshotBits:
    product_url: Optional[str] = None
    cta_text: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ExtractedRecord:
    snapshot_url: str
    publisher_name: str
    country: str
    reach: Optional[int]
    product_url: str
    start_date: str
    media_type: str
    platforms: str
    keyword: str
    ad_id: str
    cta_text: str
    active_status: str
    likes: Optional[str]
    followers: Optional[str]
    category: Optional[str]
    profile_url: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RunCounters:
    """Mutable tallies owned by one pipeline run."""

    seen_ads: int = 0
    attempted_snapshots: int = 0
    pre_rejected_ads: int = 0
    no_cta: int = 0
    rejected_by_policy: dict[str, int] = field(default_factory=dict)
    unique_publishers: int = 0
    unique_name_rejected: int = 0
    unique_category_missing: int = 0
    unique_category_rejected: int = 0
    category_rejections: dict[str, int] = field(default_factory=dict)
    pages_fetched: int = 0
    stop_reason: Optional[str] = None

    @staticmethod
    def bump(tally: dict[str, int], key: str) -> None:
        tally[key] = tally.get(key, 0) + 1

    def snapshot(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RunResult:
    records: list[ExtractedRecord]
    counters: dict[str, Any]


__all__ = [
    "CandidateAd",
    "CatalogPage",
    "ExtractedRecord",
    "PublisherProfile",
    "RunCounters",
    "RunResult",
    "SnapshotBits",
]
