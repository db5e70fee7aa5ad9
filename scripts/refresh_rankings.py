"""Refresh ranking cache rows that are missing or older than the cache TTL."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from app.config import settings
from app.core.database import close_db, get_session_context
from app.core.exceptions import RankTrackingError
from app.core.logging import setup_logging
from app.repositories.ranking_cache_repository import RankingCacheRepository
from app.services.rankings.cache import RankingCacheService, utc_now

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--ttl-days",
        type=int,
        default=settings.ranking_cache_ttl_days,
        help="Refresh rows fetched more than this many days ago (default: cache TTL)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Refresh at most this many campaigns",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List due campaigns without calling Semrush",
    )
    return parser.parse_args(argv)


def refresh_cutoff(now: datetime, ttl_days: int) -> datetime:
    """Rows fetched before this instant are due."""
    return now - timedelta(days=ttl_days)


def summarize(statuses: list[str]) -> dict[str, Any]:
    """Count refresh outcomes by cache status."""
    counts = Counter(statuses)
    return {
        "campaigns": len(statuses),
        "refreshed": counts.get("refreshed", 0),
        "stale": counts.get("stale", 0),
        "unavailable": counts.get("unavailable", 0),
        "errors": counts.get("error", 0),
    }


async def list_due_campaigns(cutoff: datetime, limit: int | None) -> list[tuple[str, str]]:
    async with get_session_context() as session:
        campaigns = await RankingCacheRepository(session).list_campaigns_due(cutoff)
    keys = [(campaign.owner_id, campaign.campaign_slot) for campaign in campaigns]
    return keys[:limit] if limit is not None else keys


async def refresh_campaign(owner_id: str, campaign_slot: str, *, ttl_days: int) -> str:
    """Refresh one campaign in its own session; returns the resulting cache status."""
    try:
        async with get_session_context() as session:
            service = RankingCacheService(RankingCacheRepository(session), ttl_days=ttl_days)
            cached = await service.get_rankings(owner_id, campaign_slot)
    except RankTrackingError as exc:
        logger.warning(
            "Skipping campaign",
            extra={"owner_id": owner_id, "campaign_slot": campaign_slot, "error": exc.message},
        )
        return "error"
    return cached.status


async def async_main(argv: list[str] | None = None) -> int:
    """Async entrypoint."""
    args = parse_args(argv)
    setup_logging()

    if not settings.semrush_enabled and not args.dry_run:
        print("SEMRUSH_API_KEY is not configured", file=sys.stderr)
        return 1

    cutoff = refresh_cutoff(utc_now(), args.ttl_days)
    try:
        due = await list_due_campaigns(cutoff, args.limit)

        if args.dry_run:
            print(f"DRY RUN ranking refresh: due={len(due)} cutoff={cutoff.isoformat()}")
            for owner_id, campaign_slot in due:
                print(f"  - {owner_id}/{campaign_slot}")
            return 0

        statuses = [
            await refresh_campaign(owner_id, campaign_slot, ttl_days=args.ttl_days)
            for owner_id, campaign_slot in due
        ]
    finally:
        await close_db()

    summary = summarize(statuses)
    print(
        "Ranking cache refreshed: "
        f"campaigns={summary['campaigns']} refreshed={summary['refreshed']} "
        f"stale={summary['stale']} unavailable={summary['unavailable']} errors={summary['errors']}"
    )
    return 0 if summary["unavailable"] == 0 and summary["errors"] == 0 else 2


def main() -> int:
    """Sync wrapper."""
    return asyncio.run(async_main())


if __name__ == "__main__":
    raise SystemExit(main())
