"""Tests for the rank-tracking CLI helpers."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

import pytest

from app.core.exceptions import APIKeyMissingError
from scripts import rank_tracking_diagnostics as diagnostics
from scripts import refresh_rankings as refresh


def test_refresh_cutoff_subtracts_ttl() -> None:
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    assert refresh.refresh_cutoff(now, 14) == datetime(2026, 10, 4, 12, 0, tzinfo=timezone.utc)


def test_summarize_counts_outcomes() -> None:
    summary = refresh.summarize(["refreshed", "refreshed", "stale", "unavailable", "error"])

    assert summary == {
        "campaigns": 5,
        "refreshed": 2,
        "stale": 1,
        "unavailable": 1,
        "errors": 1,
    }


def test_refresh_parse_args_defaults_to_cache_ttl() -> None:
    args = refresh.parse_args([])

    assert args.ttl_days == refresh.settings.ranking_cache_ttl_days
    assert args.limit is None
    assert args.dry_run is False


def test_diagnostics_prints_json_report(monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
    async def fake_run_diagnostics(campaign_id: str, domain: str) -> dict[str, Any]:
        return {
            "timestamp": "2026-10-18T12:00:00+00:00",
            "campaign_id": campaign_id,
            "domain": domain,
            "results": {
                "primary": {"success": False, "keywords": 0, "timing_ms": 10, "error": "No keywords found"},
                "fallback-simple": {"success": True, "keywords": 12, "timing_ms": 20, "error": None},
            },
        }

    monkeypatch.setattr(diagnostics, "run_diagnostics", fake_run_diagnostics)

    exit_code = asyncio.run(diagnostics.async_main(["12345_67890", "example.com"]))

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert report["campaign_id"] == "12345_67890"
    assert report["results"]["fallback-simple"]["keywords"] == 12


def test_diagnostics_reports_unhealthy_chain(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_run_diagnostics(campaign_id: str, domain: str) -> dict[str, Any]:
        return {"results": {"primary": {"success": False}}}

    monkeypatch.setattr(diagnostics, "run_diagnostics", fake_run_diagnostics)

    assert asyncio.run(diagnostics.async_main(["12345_67890", "example.com"])) == 2


def test_diagnostics_fails_without_provider_key(monkeypatch: pytest.MonkeyPatch, capsys: Any) -> None:
    async def fake_run_diagnostics(campaign_id: str, domain: str) -> dict[str, Any]:
        raise APIKeyMissingError("Semrush")

    monkeypatch.setattr(diagnostics, "run_diagnostics", fake_run_diagnostics)

    assert asyncio.run(diagnostics.async_main(["12345_67890", "example.com"])) == 1
    assert "API key not configured" in capsys.readouterr().err
