"""Repository for tracked campaigns and cached rankings."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import rollback_read_only_transaction
from app.models.rank_tracking import RankingCacheEntry, TrackedCampaign

logger = logging.getLogger(__name__)


class RankingCacheRepository:
    """Reads and writes campaign configuration and cache rows on one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_campaign(self, owner_id: str, campaign_slot: str) -> TrackedCampaign | None:
        return await self.session.get(TrackedCampaign, (owner_id, campaign_slot))

    async def save_campaign(
        self,
        owner_id: str,
        campaign_slot: str,
        *,
        domain: str | None,
        project_id: str | None,
        tracking_id: str | None,
    ) -> TrackedCampaign:
        """Create or update the campaign configuration row."""
        campaign = await self.get_campaign(owner_id, campaign_slot)
        if campaign is None:
            campaign = TrackedCampaign(owner_id=owner_id, campaign_slot=campaign_slot)
            self.session.add(campaign)

        campaign.domain = domain
        campaign.project_id = project_id
        campaign.tracking_id = tracking_id
        await self.session.flush()
        return campaign

    async def list_campaigns_due(self, fetched_before: datetime) -> list[TrackedCampaign]:
        """Campaigns with no cache row or a row fetched before the cutoff."""
        stmt = (
            select(TrackedCampaign)
            .outerjoin(
                RankingCacheEntry,
                (RankingCacheEntry.owner_id == TrackedCampaign.owner_id)
                & (RankingCacheEntry.campaign_slot == TrackedCampaign.campaign_slot),
            )
            .where(
                or_(
                    RankingCacheEntry.owner_id.is_(None),
                    RankingCacheEntry.fetched_at < fetched_before,
                )
            )
            .order_by(TrackedCampaign.owner_id, TrackedCampaign.campaign_slot)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_entry(self, owner_id: str, campaign_slot: str) -> RankingCacheEntry | None:
        return await self.session.get(RankingCacheEntry, (owner_id, campaign_slot))

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
    ) -> None:
        """Atomic insert-or-update keyed by (owner_id, campaign_slot); last writer wins."""
        values = {
            "project_id": project_id,
            "tracking_id": tracking_id,
            "domain": domain,
            "keywords_data": keywords_data,
            "source": source,
            "fetched_at": fetched_at,
        }
        stmt = pg_insert(RankingCacheEntry).values(
            owner_id=owner_id,
            campaign_slot=campaign_slot,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RankingCacheEntry.owner_id, RankingCacheEntry.campaign_slot],
            set_={**values, "updated_at": func.now()},
        )
        await self.session.execute(stmt)

        logger.info(
            "Ranking cache row written",
            extra={"owner_id": owner_id, "campaign_slot": campaign_slot, "source": source},
        )

    async def delete_entry(self, owner_id: str, campaign_slot: str) -> bool:
        """Delete exactly one cache row. Returns True when a row was removed."""
        result = await self.session.execute(
            delete(RankingCacheEntry).where(
                RankingCacheEntry.owner_id == owner_id,
                RankingCacheEntry.campaign_slot == campaign_slot,
            )
        )
        return bool(result.rowcount)

    async def release_read_transaction(self) -> None:
        """End the read transaction before slow provider I/O."""
        await rollback_read_only_transaction(self.session, context="ranking_refresh")
