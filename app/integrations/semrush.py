"""Semrush API integration for position tracking and domain rank data.

Two API generations are used:
- the projects API (`reports/v1`) serves the tracking report of a
  position-tracking campaign as JSON;
- the older analytics API (`api/v2`) serves domain ranks and phrase volumes as
  pipe-delimited plain text, keyed by domain only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.config import Settings, settings
from app.core.exceptions import APIKeyMissingError, ExternalAPIError, RateLimitExceededError

logger = logging.getLogger(__name__)

API_NAME = "Semrush"


@dataclass(frozen=True, slots=True)
class SemrushConfig:
    """Explicit provider configuration handed to the client at construction time."""

    api_key: str | None
    projects_base_url: str
    fallback_base_url: str
    timeout_seconds: float = 15.0
    display_limit: int = 50
    default_database: str = "de"

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "SemrushConfig":
        cfg = source or settings
        return cls(
            api_key=cfg.semrush_api_key,
            projects_base_url=cfg.semrush_projects_base_url,
            fallback_base_url=cfg.semrush_fallback_base_url,
            timeout_seconds=cfg.semrush_request_timeout_seconds,
            display_limit=cfg.semrush_display_limit,
            default_database=cfg.semrush_default_database,
        )


class SemrushClient:
    """Client for the Semrush projects and analytics APIs.

    Provides methods for:
    - Position-tracking report of a project for one URL mask (JSON)
    - Organic domain ranks (plain text)
    - Phrase search volumes (plain text)
    """

    TRACKING_REPORT_TYPE = "tracking_position_organic"
    DOMAIN_RANK_TYPE = "rank"
    PHRASE_VOLUME_TYPE = "phrase_volume"

    def __init__(self, config: SemrushConfig | None = None) -> None:
        self.config = config or SemrushConfig.from_settings()
        self._client: httpx.AsyncClient | None = None

        if not self.config.api_key:
            raise APIKeyMissingError(API_NAME)

    async def __aenter__(self) -> "SemrushClient":
        self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client must be used as async context manager")
        return self._client

    async def _get(
        self,
        url: str,
        params: dict[str, Any],
        *,
        accept: str = "application/json",
    ) -> httpx.Response:
        """Issue one GET; any transport failure surfaces as ExternalAPIError."""
        log_params = {k: v for k, v in params.items() if k != "key"}
        logger.info("Semrush API request", extra={"url": url, "params": log_params})

        try:
            response = await self.client.get(
                url,
                params={"key": self.config.api_key, **params},
                headers={"Accept": accept},
            )

            if response.status_code == 429:
                logger.warning("Semrush rate limit hit", extra={"url": url})
                raise RateLimitExceededError(API_NAME)

            response.raise_for_status()
            return response

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Semrush HTTP error", extra={"url": url, "error": str(e)})
            raise ExternalAPIError(API_NAME, str(e) or type(e).__name__) from e

    async def get_tracking_report(
        self,
        project_id: str,
        *,
        url_mask: str,
    ) -> dict[str, Any]:
        """Get the organic position-tracking report for one URL mask.

        Args:
            project_id: Semrush project id (embedded in the path)
            url_mask: Wildcard pattern the tracked keywords are matched against

        Returns:
            The report's `data` map keyed by an opaque per-keyword index; empty
            when the provider found nothing for this mask.
        """
        url = f"{self.config.projects_base_url.rstrip('/')}/projects/{project_id}/tracking/"
        response = await self._get(
            url,
            {
                "type": self.TRACKING_REPORT_TYPE,
                "action": "report",
                "url": url_mask,
                "display_limit": self.config.display_limit,
            },
        )

        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalAPIError(API_NAME, "Tracking report is not valid JSON") from e

        if not isinstance(payload, dict):
            return {}
        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    async def get_domain_ranks(
        self,
        domain: str,
        *,
        database: str | None = None,
        limit: int | None = None,
    ) -> str:
        """Get organic ranks for a domain as `keyword|position|searchVolume` lines."""
        response = await self._get(
            self.config.fallback_base_url,
            {
                "type": self.DOMAIN_RANK_TYPE,
                "domain": domain,
                "database": database or self.config.default_database,
                "limit": limit or self.config.display_limit,
            },
            accept="text/plain",
        )
        return response.text

    async def get_phrase_volumes(self, *, database: str | None = None) -> str:
        """Get search volumes as `phrase|volume` lines."""
        response = await self._get(
            self.config.fallback_base_url,
            {
                "type": self.PHRASE_VOLUME_TYPE,
                "phrase": "*",
                "database": database or self.config.default_database,
            },
            accept="text/plain",
        )
        return response.text
