"""Reusable API dependencies shared across v1 routes."""

from app.api.v1.dependencies.rankings import DbSession, RankingService, get_ranking_cache_service

__all__ = ["DbSession", "RankingService", "get_ranking_cache_service"]
