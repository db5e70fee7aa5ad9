"""SQLAlchemy database models."""
from dotenv import load_dotenv
from app.models.base import Base
from app.models.rank_tracking import RankingCacheEntry, TrackedCampaign


load_dotenv()

__all__ = [
    "Base",
    "TrackedCampaign",
    "RankingCacheEntry",
]
