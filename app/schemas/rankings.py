"""Keyword ranking schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class KeywordRankingResponse(BaseModel):
    """One ranked keyword."""

    model_config = ConfigDict(from_attributes=True)

    keyword: str
    position: float
    previous_position: float | None
    search_volume: int
    url: str
    traffic_percent: float


class RankingsResponse(BaseModel):
    """Top keywords of a campaign, cached or freshly fetched."""

    keywords: list[KeywordRankingResponse]
    source: str | None
    status: str
    from_cache: bool
    stale: bool
    last_fetched: datetime | None
    error: str | None = None
    timing: dict[str, int] = Field(default_factory=dict)


class FallbackRankingsResponse(BaseModel):
    """Uncached result of the domain-only fallback tiers."""

    keywords: list[KeywordRankingResponse]
    source: str
    count: int
    error: str | None
    attempt_count: int
    timing: dict[str, int]


class CampaignConfigUpdate(BaseModel):
    """Schema for storing a campaign's rank-tracking configuration."""

    domain: str | None = Field(default=None, max_length=255)
    project_id: str | None = Field(default=None, max_length=64)
    tracking_id: str | None = Field(default=None, max_length=64)

    @field_validator("domain", "project_id", "tracking_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value


class CampaignConfigResponse(BaseModel):
    """Stored campaign configuration."""

    model_config = ConfigDict(from_attributes=True)

    owner_id: str
    campaign_slot: str
    domain: str | None
    project_id: str | None
    tracking_id: str | None
    cache_invalidated: bool = False


class CacheClearResponse(BaseModel):
    """Result of an explicit cache clear."""

    owner_id: str
    campaign_slot: str
    deleted: bool
