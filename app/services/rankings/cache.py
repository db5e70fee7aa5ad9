"""Cached keyword rankings per (owner, campaign slot).

Rows are served as-is for `ranking_cache_ttl_days` (14) after they were
fetched. After that the fallback chain is asked for fresh data; when every
tier fails, the previous row is served and flagged stale instead of an empty
state. A row is deleted outright whenever the campaign identity that produced
it no longer matches the owner's configuration.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Protocol

from app.config import settings
from app.core.exceptions import CampaignNotConfiguredError, MissingDomainError
from app.models.rank_tracking import DEFAULT_CAMPAIGN_SLOT, RankingCacheEntry, TrackedCampaign
from app.services.rankings.identity import CampaignIdentity, normalize_domain
from app.services.rankings.orchestrator import fetch_fallback_rankings, fetch_keyword_rankings
from app.services.rankings.types import KeywordRecord, RankingFetchResult

logger = logging.getLogger(__name__)

CacheStatus = Literal["fresh", "refreshed", "stale", "unavailable"]

RankingFetcher = Callable[[CampaignIdentity], Awaitable[RankingFetchResult]]

REFRESH_FAILED_MESSAGE = "Refresh failed, serving cached rankings"


class RankingCacheStore(Protocol):
    async def get_campaign(self, owner_id: str, campaign_slot: str) -> TrackedCampaign | None: ...

    async def save_campaign(
        self,
        owner_id: str,
        campaign_slot: str,
        *,
        domain: str | None,
        project_id: str | None,
        tracking_id: str | None,
    ) -> TrackedCampaign: ...

    async def get_entry(self, owner_id: str, campaign_slot: str) -> RankingCacheEntry | None: ...

    async def upsert_entry(
        self,
        owner_id: str,
        campaign_slot: str,
        *,
        project_id: str | None,
        tracking_id: str | None,
        domain: str | None,
        keywords_data: list[dict[str, Any]],
        source: str,
        fetched_at: datetime,
    ) -> None: ...

    async def delete_entry(self, owner_id: str, campaign_slot: str) -> bool: ...

    async def release_read_transaction(self) -> None: ...


@dataclass(slots=True)
class CachedRankings:
    """What the dashboard gets for one campaign."""

    keywords: list[KeywordRecord]
    status: CacheStatus
    source: str | None = None
    fetched_at: datetime | None = None
    error: str | None = None
    timing: dict[str, int] = field(default_factory=dict)

    @property
    def from_cache(self) -> bool:
        return self.status in ("fresh", "stale")

    @property
    def stale(self) -> bool:
        return self.status == "stale"


async def fetch_for_identity(identity: CampaignIdentity) -> RankingFetchResult:
    """Full chain when a campaign id is known, fallback tiers otherwise."""
    if identity.campaign_id:
        return await fetch_keyword_rankings(identity.campaign_id, identity.domain)
    return await fetch_fallback_rankings(identity.domain)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_cache_fresh(fetched_at: datetime, *, now: datetime, ttl_days: int) -> bool:
    """Whether a row fetched at `fetched_at` is still inside the freshness window."""
    if fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)
    return now - fetched_at <= timedelta(days=ttl_days)


def _normalized_domain_or_empty(domain: str | None) -> str:
    try:
        return normalize_domain(domain)
    except MissingDomainError:
        return ""


def identity_key(project_id: str | None, tracking_id: str | None, domain: str | None) -> tuple[str, str, str]:
    """Comparable identity of a campaign configuration or of a cache row."""
    return (
        (project_id or "").strip(),
        (tracking_id or "").strip(),
        _normalized_domain_or_empty(domain),
    )


def campaign_identity(campaign: TrackedCampaign) -> CampaignIdentity:
    """Build the retrieval identity from a stored configuration."""
    project_id = (campaign.project_id or "").strip()
    tracking_id = (campaign.tracking_id or "").strip()
    domain = campaign.domain or ""
    if project_id and tracking_id:
        return CampaignIdentity.from_parts(project_id, tracking_id, domain)
    if not domain.strip():
        raise CampaignNotConfiguredError(campaign.owner_id, campaign.campaign_slot)
    return CampaignIdentity(campaign_id="", domain=domain)


class RankingCacheService:
    """Cache policy around the fallback chain."""

    def __init__(
        self,
        store: RankingCacheStore,
        *,
        fetcher: RankingFetcher = fetch_for_identity,
        ttl_days: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.ttl_days = ttl_days if ttl_days is not None else settings.ranking_cache_ttl_days
        self.clock = clock

    async def get_rankings(
        self,
        owner_id: str,
        campaign_slot: str = DEFAULT_CAMPAIGN_SLOT,
        *,
        force_refresh: bool = False,
    ) -> CachedRankings:
        """Return cached rankings, refreshing through the fallback chain when stale."""
        log_context = {"owner_id": owner_id, "campaign_slot": campaign_slot}

        campaign = await self.store.get_campaign(owner_id, campaign_slot)
        if campaign is None:
            raise CampaignNotConfiguredError(owner_id, campaign_slot)
        identity = campaign_identity(campaign)

        entry = await self.store.get_entry(owner_id, campaign_slot)
        if entry is not None and identity_key(
            entry.project_id, entry.tracking_id, entry.domain
        ) != identity_key(campaign.project_id, campaign.tracking_id, campaign.domain):
            await self.store.delete_entry(owner_id, campaign_slot)
            logger.info("Discarded cache row produced by a different campaign identity", extra=log_context)
            entry = None

        now = self.clock()
        if entry is not None and not force_refresh and is_cache_fresh(
            entry.fetched_at, now=now, ttl_days=self.ttl_days
        ):
            logger.info("Ranking cache hit", extra=log_context)
            return self._from_entry(entry, status="fresh")

        logger.info(
            "Refreshing rankings",
            extra={**log_context, "force_refresh": force_refresh, "had_entry": entry is not None},
        )
        await self.store.release_read_transaction()
        result = await self.fetcher(identity)

        if result.failed:
            if entry is not None:
                logger.warning("Ranking refresh failed, serving stale cache", extra={**log_context, "error": result.error})
                cached = self._from_entry(entry, status="stale")
                cached.error = REFRESH_FAILED_MESSAGE
                cached.timing = dict(result.timing)
                return cached

            logger.warning("Ranking refresh failed with nothing cached", extra={**log_context, "error": result.error})
            return CachedRankings(
                keywords=[],
                status="unavailable",
                source=result.source,
                error=result.error,
                timing=dict(result.timing),
            )

        fetched_at = self.clock()
        await self.store.upsert_entry(
            owner_id,
            campaign_slot,
            project_id=campaign.project_id,
            tracking_id=campaign.tracking_id,
            domain=campaign.domain,
            keywords_data=[keyword.to_dict() for keyword in result.keywords],
            source=result.source,
            fetched_at=fetched_at,
        )
        return CachedRankings(
            keywords=list(result.keywords),
            status="refreshed",
            source=result.source,
            fetched_at=fetched_at,
            timing=dict(result.timing),
        )

    async def update_campaign_config(
        self,
        owner_id: str,
        campaign_slot: str = DEFAULT_CAMPAIGN_SLOT,
        *,
        domain: str | None,
        project_id: str | None,
        tracking_id: str | None,
    ) -> tuple[TrackedCampaign, bool]:
        """Store a campaign configuration; drop its cache row if the identity changed.

        Only this (owner, slot) row is touched; other campaigns of the owner keep
        their cache.

        Returns:
            (saved campaign, whether the cache row was invalidated)
        """
        existing = await self.store.get_campaign(owner_id, campaign_slot)
        previous_key = (
            identity_key(existing.project_id, existing.tracking_id, existing.domain)
            if existing is not None
            else None
        )

        campaign = await self.store.save_campaign(
            owner_id,
            campaign_slot,
            domain=domain,
            project_id=project_id,
            tracking_id=tracking_id,
        )

        invalidated = False
        if previous_key is not None and previous_key != identity_key(project_id, tracking_id, domain):
            invalidated = await self.store.delete_entry(owner_id, campaign_slot)
            logger.info(
                "Campaign identity changed, cache invalidated",
                extra={"owner_id": owner_id, "campaign_slot": campaign_slot, "row_deleted": invalidated},
            )
        return campaign, invalidated

    async def clear_cache(self, owner_id: str, campaign_slot: str = DEFAULT_CAMPAIGN_SLOT) -> bool:
        """Delete one cache row on request."""
        deleted = await self.store.delete_entry(owner_id, campaign_slot)
        logger.info(
            "Ranking cache cleared",
            extra={"owner_id": owner_id, "campaign_slot": campaign_slot, "row_deleted": deleted},
        )
        return deleted

    @staticmethod
    def _from_entry(entry: RankingCacheEntry, *, status: CacheStatus) -> CachedRankings:
        return CachedRankings(
            keywords=[KeywordRecord.from_dict(item) for item in entry.keywords_data or []],
            status=status,
            source=entry.source,
            fetched_at=entry.fetched_at,
        )
