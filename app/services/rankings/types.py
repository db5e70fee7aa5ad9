"""Domain types for keyword rank retrieval."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

RankingSource = Literal["primary", "fallback-simple", "fallback-extended", "failed"]

SOURCE_PRIMARY: RankingSource = "primary"
SOURCE_FALLBACK_SIMPLE: RankingSource = "fallback-simple"
SOURCE_FALLBACK_EXTENDED: RankingSource = "fallback-extended"
SOURCE_FAILED: RankingSource = "failed"

MAX_POSITION = 100
DEFAULT_TOP_LIMIT = 20


@dataclass(slots=True)
class KeywordRecord:
    """One ranked keyword, uniform across every provider payload shape."""

    keyword: str
    position: float
    previous_position: float | None = None
    search_volume: int = 0
    url: str = ""
    traffic_percent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape stored in the cache row."""
        return {
            "keyword": self.keyword,
            "position": self.position,
            "previous_position": self.previous_position,
            "search_volume": self.search_volume,
            "url": self.url,
            "traffic_percent": self.traffic_percent,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "KeywordRecord":
        """Deserialize a cached keyword."""
        previous = payload.get("previous_position")
        return cls(
            keyword=str(payload.get("keyword", "")),
            position=payload.get("position", 0),
            previous_position=previous,
            search_volume=int(payload.get("search_volume") or 0),
            url=str(payload.get("url") or ""),
            traffic_percent=float(payload.get("traffic_percent") or 0.0),
        )


@dataclass(slots=True)
class FetchAttemptResult:
    """Outcome of a single strategy attempt."""

    source: RankingSource
    keywords: list[KeywordRecord] = field(default_factory=list)
    error: str | None = None
    timing_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return len(self.keywords) > 0


@dataclass(slots=True)
class RankingFetchResult:
    """Final answer of the fallback chain."""

    source: RankingSource
    keywords: list[KeywordRecord]
    error: str | None
    timing: dict[str, int]
    attempts: list[FetchAttemptResult] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def failed(self) -> bool:
        return self.source == SOURCE_FAILED

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs and API responses."""
        return {
            "source": self.source,
            "keywords": [keyword.to_dict() for keyword in self.keywords],
            "count": len(self.keywords),
            "error": self.error,
            "attempt_count": self.attempt_count,
            "timing": dict(self.timing),
        }


def is_valid_position(position: float | None) -> bool:
    """Whether a position counts as ranked (0 < position <= 100)."""
    return position is not None and 0 < position <= MAX_POSITION


def top_keywords(
    records: Iterable[KeywordRecord],
    limit: int = DEFAULT_TOP_LIMIT,
) -> list[KeywordRecord]:
    """Drop unranked records, sort ascending by position and keep the best `limit`."""
    ranked = [record for record in records if is_valid_position(record.position)]
    ranked.sort(key=lambda record: record.position)
    return ranked[:limit]
