"""Retrieval strategies: one complete way of obtaining keyword rankings each."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from app.config import settings
from app.core.exceptions import ExternalAPIError, RankTrackingError
from app.integrations.semrush import API_NAME, SemrushClient
from app.services.rankings.chain import first_success
from app.services.rankings.identity import (
    URL_MASK_BUILDERS,
    CampaignIdentity,
    UrlMaskBuilder,
    build_url_masks,
    normalize_domain,
    resolve_database,
    split_campaign_id,
)
from app.services.rankings.normalizer import normalize_tracking_data, parse_int, parse_position
from app.services.rankings.types import (
    SOURCE_FALLBACK_EXTENDED,
    SOURCE_FALLBACK_SIMPLE,
    SOURCE_PRIMARY,
    FetchAttemptResult,
    KeywordRecord,
    RankingSource,
    top_keywords,
)

logger = logging.getLogger(__name__)

NO_KEYWORDS_ERROR = "No keywords found"
NO_DATA_MARKER = "No data"
PROVIDER_ERROR_PREFIX = "ERROR"


class RetrievalStrategy(ABC):
    """Common interface of every tier in the fallback chain.

    Subclasses implement `_fetch` and may raise; `attempt` never does. It
    times the call and folds any error into the returned FetchAttemptResult.
    """

    source: RankingSource

    def __init__(self, client: SemrushClient, *, limit: int | None = None) -> None:
        self.client = client
        self.limit = limit or settings.ranking_top_limit

    async def attempt(self, identity: CampaignIdentity) -> FetchAttemptResult:
        """Run this strategy once for a campaign."""
        started = time.perf_counter()
        try:
            keywords, error = await self._fetch(identity)
        except RankTrackingError as exc:
            keywords, error = [], exc.message
        except Exception as exc:
            logger.exception(
                "Retrieval strategy raised unexpectedly",
                extra={"source": self.source, "error": str(exc)},
            )
            keywords, error = [], f"{type(exc).__name__}: {exc}"

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        return FetchAttemptResult(
            source=self.source,
            keywords=keywords,
            error=None if keywords else (error or NO_KEYWORDS_ERROR),
            timing_ms=elapsed_ms,
        )

    @abstractmethod
    async def _fetch(self, identity: CampaignIdentity) -> tuple[list[KeywordRecord], str | None]:
        """Return (keywords, error)."""


@dataclass(slots=True)
class _MaskProbe:
    mask: str
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


class PrimaryRetrievalStrategy(RetrievalStrategy):
    """Projects-API tracking report, retried across URL-mask candidates."""

    source = SOURCE_PRIMARY

    def __init__(
        self,
        client: SemrushClient,
        *,
        limit: int | None = None,
        url_mask_builders: tuple[UrlMaskBuilder, ...] = URL_MASK_BUILDERS,
        clock: Callable[[], date] = date.today,
    ) -> None:
        super().__init__(client, limit=limit)
        self.url_mask_builders = url_mask_builders
        self.clock = clock

    async def _fetch(self, identity: CampaignIdentity) -> tuple[list[KeywordRecord], str | None]:
        project_id, tracking_id = split_campaign_id(identity.campaign_id)
        domain = normalize_domain(identity.domain)
        masks = build_url_masks(domain, self.url_mask_builders)

        log_context = {"project_id": project_id, "tracking_id": tracking_id, "domain": domain}

        async def probe(mask: str) -> _MaskProbe:
            try:
                data = await self.client.get_tracking_report(project_id, url_mask=mask)
            except ExternalAPIError as exc:
                logger.warning(
                    "Tracking report request failed for URL mask",
                    extra={**log_context, "url_mask": mask, "error": exc.message},
                )
                return _MaskProbe(mask=mask, error=exc.message)

            if not data:
                logger.info("No tracking data for URL mask", extra={**log_context, "url_mask": mask})
                return _MaskProbe(mask=mask, error=f"No tracking data for URL mask {mask}")
            return _MaskProbe(mask=mask, data=data)

        winner, probes = await first_success(masks, probe, lambda result: bool(result.data))
        if winner is None:
            last_error = probes[-1].error if probes else "No URL mask candidates configured"
            return [], last_error

        keywords = normalize_tracking_data(winner.data, today=self.clock(), limit=self.limit)
        logger.info(
            "Tracking report matched URL mask",
            extra={
                **log_context,
                "url_mask": winner.mask,
                "masks_tried": len(probes),
                "entries": len(winner.data),
                "keywords": len(keywords),
            },
        )
        if not keywords:
            return [], f"Tracking data for URL mask {winner.mask} contained no ranked keywords"
        return keywords, None


def parse_rank_lines(text: str | None) -> list[KeywordRecord]:
    """Parse `keyword|position|searchVolume` lines; unusable lines are skipped."""
    records: list[KeywordRecord] = []
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("|") or NO_DATA_MARKER in line:
            continue

        parts = line.split("|")
        if len(parts) < 3:
            continue

        keyword = parts[0].strip()
        position = parse_position(parts[1])
        if not keyword or position is None:
            continue

        records.append(
            KeywordRecord(
                keyword=keyword,
                position=position,
                previous_position=None,
                search_volume=parse_int(parts[2]),
                url="",
                traffic_percent=0.0,
            )
        )
    return records


def parse_volume_lines(text: str | None) -> dict[str, int]:
    """Parse `phrase|volume` lines into a lookup keyed by exact phrase text."""
    volumes: dict[str, int] = {}
    for line in (text or "").splitlines():
        parts = line.split("|")
        if len(parts) < 2:
            continue
        phrase = parts[0].strip()
        if phrase and parts[1].strip():
            volumes[phrase] = parse_int(parts[1])
    return volumes


def _raise_for_provider_error(text: str | None) -> None:
    body = (text or "").lstrip()
    if body.startswith(PROVIDER_ERROR_PREFIX):
        raise ExternalAPIError(API_NAME, body.splitlines()[0].strip())


class _DomainRankStrategy(RetrievalStrategy):
    """Shared rank request of the analytics-API tiers (keyed by domain only)."""

    def __init__(
        self,
        client: SemrushClient,
        *,
        limit: int | None = None,
        default_database: str | None = None,
    ) -> None:
        super().__init__(client, limit=limit)
        self.default_database = default_database

    async def _fetch_ranks(self, domain: str, database: str) -> list[KeywordRecord]:
        text = await self.client.get_domain_ranks(domain, database=database)
        _raise_for_provider_error(text)
        records = parse_rank_lines(text)
        logger.info(
            "Parsed domain rank lines",
            extra={"source": self.source, "domain": domain, "database": database, "keywords": len(records)},
        )
        return records


class SimpleFallbackStrategy(_DomainRankStrategy):
    """Rank-only data from the analytics API."""

    source = SOURCE_FALLBACK_SIMPLE

    async def _fetch(self, identity: CampaignIdentity) -> tuple[list[KeywordRecord], str | None]:
        domain = normalize_domain(identity.domain)
        database = resolve_database(domain, self.default_database)

        records = await self._fetch_ranks(domain, database)
        if not records:
            return [], NO_KEYWORDS_ERROR
        return top_keywords(records, self.limit), None


class ExtendedFallbackStrategy(_DomainRankStrategy):
    """Rank data joined with a separate phrase-volume lookup."""

    source = SOURCE_FALLBACK_EXTENDED

    async def _fetch_volumes(self, database: str) -> dict[str, int]:
        try:
            text = await self.client.get_phrase_volumes(database=database)
            _raise_for_provider_error(text)
        except ExternalAPIError as exc:
            logger.warning(
                "Phrase volume lookup failed, keeping ranks without volumes",
                extra={"database": database, "error": exc.message},
            )
            return {}
        return parse_volume_lines(text)

    async def _fetch(self, identity: CampaignIdentity) -> tuple[list[KeywordRecord], str | None]:
        domain = normalize_domain(identity.domain)
        database = resolve_database(domain, self.default_database)

        records = await self._fetch_ranks(domain, database)
        if not records:
            return [], NO_KEYWORDS_ERROR

        volumes = await self._fetch_volumes(database)
        joined = [
            replace(record, search_volume=volumes.get(record.keyword, 0))
            for record in records
        ]
        return top_keywords(joined, self.limit), None
