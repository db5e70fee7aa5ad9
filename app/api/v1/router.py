"""API v1 router aggregator."""

from fastapi import APIRouter

from app.api.v1.rankings.routes import router as rankings_router

api_router = APIRouter()

api_router.include_router(rankings_router, prefix="/rankings", tags=["Rankings"])
