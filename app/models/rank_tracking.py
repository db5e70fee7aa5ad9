"""Models for tracked campaigns and their cached keyword rankings."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

DEFAULT_CAMPAIGN_SLOT = "default"


class TrackedCampaign(Base, TimestampMixin):
    """Owner-supplied rank-tracking configuration for one campaign slot."""

    __tablename__ = "tracked_campaigns"

    owner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    campaign_slot: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=DEFAULT_CAMPAIGN_SLOT,
    )

    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tracking_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class RankingCacheEntry(Base, TimestampMixin):
    """Cached top keywords for one (owner, campaign slot).

    The identity columns record which project/tracking/domain produced the
    cached rows, so a configuration change can be detected and the row
    discarded.
    """

    __tablename__ = "ranking_cache_entries"

    owner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    campaign_slot: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=DEFAULT_CAMPAIGN_SLOT,
    )

    # Identity used to produce keywords_data
    project_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tracking_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)

    keywords_data: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
