"""Keyword rankings API endpoints."""

import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, HTTPException, Path, Query, status

from app.api.v1.dependencies import RankingService
from app.api.v1.rankings.constants import (
    CAMPAIGN_NOT_CONFIGURED_DETAIL,
    PROVIDER_NOT_CONFIGURED_DETAIL,
    SLOT_PATTERN,
)
from app.core.exceptions import (
    APIKeyMissingError,
    CampaignNotConfiguredError,
    RankTrackingError,
    ValidationError,
)
from app.schemas.rankings import (
    CacheClearResponse,
    CampaignConfigResponse,
    CampaignConfigUpdate,
    FallbackRankingsResponse,
    KeywordRankingResponse,
    RankingsResponse,
)
from app.services.rankings.orchestrator import fetch_fallback_rankings

logger = logging.getLogger(__name__)

router = APIRouter()

OwnerId = Annotated[str, Path(min_length=1, max_length=64)]
CampaignSlot = Annotated[str, Path(pattern=SLOT_PATTERN)]


def _raise_http_error(exc: RankTrackingError) -> NoReturn:
    """Map configuration-level errors onto HTTP responses."""
    if isinstance(exc, CampaignNotConfiguredError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CAMPAIGN_NOT_CONFIGURED_DETAIL) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message) from exc
    if isinstance(exc, APIKeyMissingError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=PROVIDER_NOT_CONFIGURED_DETAIL) from exc
    raise exc


@router.get(
    "/fallback",
    response_model=FallbackRankingsResponse,
    summary="Fetch rankings by domain",
    description="Run the domain-only fallback tiers without touching the cache.",
)
async def get_fallback_rankings(
    domain: str = Query(..., min_length=1, max_length=255),
) -> FallbackRankingsResponse:
    """Domain-only retrieval."""
    try:
        result = await fetch_fallback_rankings(domain)
    except RankTrackingError as exc:
        _raise_http_error(exc)

    return FallbackRankingsResponse(
        keywords=[KeywordRankingResponse.model_validate(keyword.to_dict()) for keyword in result.keywords],
        source=result.source,
        count=len(result.keywords),
        error=result.error,
        attempt_count=result.attempt_count,
        timing=result.timing,
    )


@router.get(
    "/{owner_id}/{campaign_slot}",
    response_model=RankingsResponse,
    summary="Get campaign rankings",
    description=(
        "Return the campaign's top keywords. Served from cache for 14 days; a stale "
        "cache is served with `stale=true` when every provider tier fails."
    ),
)
async def get_rankings(
    service: RankingService,
    owner_id: OwnerId,
    campaign_slot: CampaignSlot,
    force_refresh: bool = Query(False),
) -> RankingsResponse:
    """Cached or refreshed rankings for one campaign."""
    try:
        cached = await service.get_rankings(owner_id, campaign_slot, force_refresh=force_refresh)
    except RankTrackingError as exc:
        _raise_http_error(exc)

    return RankingsResponse(
        keywords=[KeywordRankingResponse.model_validate(keyword.to_dict()) for keyword in cached.keywords],
        source=cached.source,
        status=cached.status,
        from_cache=cached.from_cache,
        stale=cached.stale,
        last_fetched=cached.fetched_at,
        error=cached.error,
        timing=cached.timing,
    )


@router.put(
    "/{owner_id}/{campaign_slot}/config",
    response_model=CampaignConfigResponse,
    summary="Store campaign configuration",
    description="Save domain, project id and tracking id; a changed identity invalidates this campaign's cache.",
)
async def update_campaign_config(
    payload: CampaignConfigUpdate,
    service: RankingService,
    owner_id: OwnerId,
    campaign_slot: CampaignSlot,
) -> CampaignConfigResponse:
    """Create or update a campaign configuration."""
    if bool(payload.project_id) != bool(payload.tracking_id):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="project_id and tracking_id must be set together",
        )
    if not payload.domain and not payload.project_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Either a domain or a project_id/tracking_id pair is required",
        )

    campaign, invalidated = await service.update_campaign_config(
        owner_id,
        campaign_slot,
        domain=payload.domain,
        project_id=payload.project_id,
        tracking_id=payload.tracking_id,
    )
    return CampaignConfigResponse(
        owner_id=campaign.owner_id,
        campaign_slot=campaign.campaign_slot,
        domain=campaign.domain,
        project_id=campaign.project_id,
        tracking_id=campaign.tracking_id,
        cache_invalidated=invalidated,
    )


@router.delete(
    "/{owner_id}/{campaign_slot}/cache",
    response_model=CacheClearResponse,
    summary="Clear campaign cache",
)
async def clear_campaign_cache(
    service: RankingService,
    owner_id: OwnerId,
    campaign_slot: CampaignSlot,
) -> CacheClearResponse:
    """Delete the cached rankings of one campaign."""
    deleted = await service.clear_cache(owner_id, campaign_slot)
    return CacheClearResponse(owner_id=owner_id, campaign_slot=campaign_slot, deleted=deleted)
