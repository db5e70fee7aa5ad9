"""Shared dependencies for ranking routes."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.repositories.ranking_cache_repository import RankingCacheRepository
from app.services.rankings.cache import RankingCacheService

DbSession = Annotated[AsyncSession, Depends(get_session)]


async def get_ranking_cache_service(session: DbSession) -> RankingCacheService:
    """Build the cache service on the request-scoped session."""
    return RankingCacheService(RankingCacheRepository(session))


RankingService = Annotated[RankingCacheService, Depends(get_ranking_cache_service)]
