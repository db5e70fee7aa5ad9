"""Unit tests for ranking API endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.api.v1.dependencies import get_ranking_cache_service
from app.config import settings
from app.core.exceptions import APIKeyMissingError, CampaignNotConfiguredError, MissingDomainError
from app.main import create_app
from app.models.rank_tracking import TrackedCampaign
from app.services.rankings.cache import CachedRankings
from app.services.rankings.types import KeywordRecord, RankingFetchResult

FETCHED_AT = datetime(2026, 10, 10, 8, 30, tzinfo=timezone.utc)
PREFIX = f"{settings.api_v1_prefix}/rankings"


class FakeRankingService:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.error: Exception | None = None

    async def get_rankings(self, owner_id: str, campaign_slot: str, *, force_refresh: bool = False) -> CachedRankings:
        self.calls.append(("get", {"owner_id": owner_id, "campaign_slot": campaign_slot, "force_refresh": force_refresh}))
        if self.error is not None:
            raise self.error
        return CachedRankings(
            keywords=[KeywordRecord(keyword="seo tools", position=3, previous_position=5, search_volume=1300)],
            status="stale",
            source="fallback-simple",
            fetched_at=FETCHED_AT,
            error="Refresh failed, serving cached rankings",
        )

    async def update_campaign_config(
        self,
        owner_id: str,
        campaign_slot: str,
        *,
        domain: str | None,
        project_id: str | None,
        tracking_id: str | None,
    ) -> tuple[TrackedCampaign, bool]:
        self.calls.append(("config", {"domain": domain, "project_id": project_id, "tracking_id": tracking_id}))
        campaign = TrackedCampaign(
            owner_id=owner_id,
            campaign_slot=campaign_slot,
            domain=domain,
            project_id=project_id,
            tracking_id=tracking_id,
        )
        return campaign, True

    async def clear_cache(self, owner_id: str, campaign_slot: str) -> bool:
        self.calls.append(("clear", {"owner_id": owner_id, "campaign_slot": campaign_slot}))
        return True


@pytest.fixture
def service() -> FakeRankingService:
    return FakeRankingService()


@pytest.fixture
def client(service: FakeRankingService) -> Iterator[TestClient]:
    original_environment = settings.environment
    settings.environment = "production"
    app = create_app()
    app.dependency_overrides[get_ranking_cache_service] = lambda: service
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        settings.environment = original_environment


def test_health_reports_provider_configuration(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "healthy"
    assert payload["semrush_configured"] == settings.semrush_enabled


def test_get_rankings_returns_cached_payload(client: TestClient, service: FakeRankingService) -> None:
    response = client.get(f"{PREFIX}/owner-1/default", params={"force_refresh": "true"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "stale"
    assert payload["stale"] is True
    assert payload["from_cache"] is True
    assert payload["source"] == "fallback-simple"
    assert payload["last_fetched"].startswith("2026-10-10T08:30:00")
    assert payload["keywords"][0]["keyword"] == "seo tools"
    assert payload["keywords"][0]["previous_position"] == 5
    assert service.calls == [("get", {"owner_id": "owner-1", "campaign_slot": "default", "force_refresh": True})]


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (CampaignNotConfiguredError("owner-1", "default"), 404),
        (MissingDomainError(), 422),
        (APIKeyMissingError("Semrush"), 503),
    ],
)
def test_get_rankings_maps_errors(
    client: TestClient,
    service: FakeRankingService,
    error: Exception,
    status_code: int,
) -> None:
    service.error = error

    response = client.get(f"{PREFIX}/owner-1/default")

    assert response.status_code == status_code


def test_invalid_campaign_slot_is_rejected(client: TestClient, service: FakeRankingService) -> None:
    response = client.get(f"{PREFIX}/owner-1/bad%20slot")

    assert response.status_code == 422
    assert service.calls == []


def test_update_config_requires_paired_ids(client: TestClient, service: FakeRankingService) -> None:
    response = client.put(f"{PREFIX}/owner-1/default/config", json={"domain": "example.com", "project_id": "12345"})

    assert response.status_code == 422
    assert response.json()["detail"] == "project_id and tracking_id must be set together"
    assert service.calls == []


def test_update_config_requires_domain_or_project(client: TestClient) -> None:
    response = client.put(f"{PREFIX}/owner-1/default/config", json={"domain": "  "})

    assert response.status_code == 422


def test_update_config_reports_invalidation(client: TestClient, service: FakeRankingService) -> None:
    response = client.put(
        f"{PREFIX}/owner-1/secondary/config",
        json={"domain": "example.com", "project_id": "12345", "tracking_id": " 67890 "},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["campaign_slot"] == "secondary"
    assert payload["tracking_id"] == "67890"
    assert payload["cache_invalidated"] is True
    assert service.calls == [("config", {"domain": "example.com", "project_id": "12345", "tracking_id": "67890"})]


def test_clear_cache(client: TestClient) -> None:
    response = client.delete(f"{PREFIX}/owner-1/default/cache")

    assert response.status_code == 200
    assert response.json() == {"owner_id": "owner-1", "campaign_slot": "default", "deleted": True}


def test_fallback_endpoint_runs_domain_tiers(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    requested: list[str] = []

    async def fake_fetch_fallback_rankings(domain: str) -> RankingFetchResult:
        requested.append(domain)
        return RankingFetchResult(
            source="fallback-extended",
            keywords=[KeywordRecord(keyword="rank tracker", position=1, search_volume=880)],
            error=None,
            timing={"fallback_simple_ms": 12, "fallback_extended_ms": 30, "total_ms": 43},
        )

    monkeypatch.setattr("app.api.v1.rankings.routes.fetch_fallback_rankings", fake_fetch_fallback_rankings)

    response = client.get(f"{PREFIX}/fallback", params={"domain": "example.com"})

    assert response.status_code == 200
    payload = response.json()
    assert requested == ["example.com"]
    assert payload["source"] == "fallback-extended"
    assert payload["count"] == 1
    assert payload["timing"]["total_ms"] == 43


def test_fallback_endpoint_requires_domain(client: TestClient) -> None:
    response = client.get(f"{PREFIX}/fallback")

    assert response.status_code == 422
