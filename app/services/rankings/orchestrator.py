"""Three-tier fallback chain for keyword rankings.

Tiers run strictly one after another so a later (billed) tier is only called
when every earlier one came back empty. "Success" means at least one keyword;
an empty answer without an error is treated exactly like a failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from app.config import settings
from app.integrations.semrush import SemrushClient, SemrushConfig
from app.services.rankings.chain import first_success
from app.services.rankings.identity import CampaignIdentity, normalize_domain, split_campaign_id
from app.services.rankings.strategies import (
    ExtendedFallbackStrategy,
    PrimaryRetrievalStrategy,
    RetrievalStrategy,
    SimpleFallbackStrategy,
)
from app.services.rankings.types import (
    SOURCE_FAILED,
    FetchAttemptResult,
    RankingFetchResult,
)

logger = logging.getLogger(__name__)


def timing_key(source: str) -> str:
    """Per-tier timing field name, e.g. `fallback-simple` -> `fallback_simple_ms`."""
    return f"{source.replace('-', '_')}_ms"


class FallbackOrchestrator:
    """Runs an ordered list of retrieval strategies until one yields keywords."""

    def __init__(
        self,
        strategies: Sequence[RetrievalStrategy],
        *,
        overall_timeout_seconds: float | None = None,
    ) -> None:
        if not strategies:
            raise ValueError("FallbackOrchestrator needs at least one strategy")
        self.strategies = list(strategies)
        self.overall_timeout_seconds = (
            overall_timeout_seconds
            if overall_timeout_seconds is not None
            else settings.semrush_fetch_timeout_seconds
        )

    @property
    def tier_names(self) -> list[str]:
        return [strategy.source for strategy in self.strategies]

    async def _attempt(self, strategy: RetrievalStrategy, identity: CampaignIdentity) -> FetchAttemptResult:
        logger.info("Trying ranking tier", extra={"source": strategy.source, "domain": identity.domain})
        result = await strategy.attempt(identity)
        if result.succeeded:
            logger.info(
                "Ranking tier succeeded",
                extra={"source": result.source, "keywords": len(result.keywords), "timing_ms": result.timing_ms},
            )
        else:
            logger.warning(
                "Ranking tier returned no keywords",
                extra={"source": result.source, "error": result.error, "timing_ms": result.timing_ms},
            )
        return result

    async def run(self, identity: CampaignIdentity) -> RankingFetchResult:
        """Run the chain for one campaign. Never raises for "no data" outcomes."""
        started = time.perf_counter()
        attempts: list[FetchAttemptResult] = []
        timed_out = False
        winner: FetchAttemptResult | None = None

        try:
            winner, _ = await asyncio.wait_for(
                first_success(
                    self.strategies,
                    lambda strategy: self._attempt(strategy, identity),
                    lambda result: result.succeeded,
                    attempts=attempts,
                ),
                timeout=self.overall_timeout_seconds,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.error(
                "Ranking fetch hit overall timeout",
                extra={"timeout_seconds": self.overall_timeout_seconds, "attempts": len(attempts)},
            )

        timing = {timing_key(strategy.source): 0 for strategy in self.strategies}
        for attempt in attempts:
            timing[timing_key(attempt.source)] = attempt.timing_ms
        timing["total_ms"] = int((time.perf_counter() - started) * 1000)

        if winner is not None:
            return RankingFetchResult(
                source=winner.source,
                keywords=winner.keywords,
                error=None,
                timing=timing,
                attempts=attempts,
            )

        error = self._compose_failure(attempts, timed_out=timed_out)
        logger.error("All ranking tiers failed", extra={"error": error, "timing": timing})
        return RankingFetchResult(
            source=SOURCE_FAILED,
            keywords=[],
            error=error,
            timing=timing,
            attempts=attempts,
        )

    def _compose_failure(self, attempts: list[FetchAttemptResult], *, timed_out: bool) -> str:
        tried = ", ".join(self.tier_names)
        message = f"Could not fetch keywords from any source (tried: {tried})"
        if timed_out:
            message = f"{message}; overall timeout of {self.overall_timeout_seconds:g}s exceeded"
        details = "; ".join(f"{attempt.source}: {attempt.error}" for attempt in attempts if attempt.error)
        return f"{message}. {details}" if details else message


def build_strategies(
    client: SemrushClient,
    *,
    include_primary: bool = True,
) -> list[RetrievalStrategy]:
    """Default tier order: primary, fallback-simple, fallback-extended."""
    strategies: list[RetrievalStrategy] = []
    if include_primary:
        strategies.append(PrimaryRetrievalStrategy(client))
    strategies.append(SimpleFallbackStrategy(client))
    strategies.append(ExtendedFallbackStrategy(client))
    return strategies


async def fetch_keyword_rankings(
    campaign_id: str,
    domain: str,
    *,
    config: SemrushConfig | None = None,
) -> RankingFetchResult:
    """Fetch top keywords for a tracked campaign through the full fallback chain.

    Raises:
        InvalidCampaignIdError: campaign id is not exactly two parts
        MissingDomainError: no domain supplied
        APIKeyMissingError: no provider key configured
    """
    split_campaign_id(campaign_id)
    normalize_domain(domain)
    identity = CampaignIdentity(campaign_id=campaign_id, domain=domain)

    async with SemrushClient(config) as client:
        orchestrator = FallbackOrchestrator(build_strategies(client))
        return await orchestrator.run(identity)


async def fetch_fallback_rankings(
    domain: str,
    *,
    config: SemrushConfig | None = None,
) -> RankingFetchResult:
    """Fetch top keywords by domain only (fallback tiers, no campaign needed)."""
    normalize_domain(domain)
    identity = CampaignIdentity(campaign_id="", domain=domain)

    async with SemrushClient(config) as client:
        orchestrator = FallbackOrchestrator(build_strategies(client, include_primary=False))
        return await orchestrator.run(identity)


async def run_diagnostics(
    campaign_id: str,
    domain: str,
    *,
    config: SemrushConfig | None = None,
) -> dict[str, Any]:
    """Run every tier independently (no short-circuit) and report per-tier health."""
    identity = CampaignIdentity(campaign_id=campaign_id, domain=domain)
    results: dict[str, Any] = {}

    async with SemrushClient(config) as client:
        for strategy in build_strategies(client):
            attempt = await strategy.attempt(identity)
            results[attempt.source] = {
                "success": attempt.succeeded,
                "keywords": len(attempt.keywords),
                "timing_ms": attempt.timing_ms,
                "error": attempt.error,
            }

    diagnostics = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "campaign_id": campaign_id,
        "domain": domain,
        "results": results,
    }
    logger.info("Ranking diagnostics complete", extra={"results": results})
    return diagnostics
