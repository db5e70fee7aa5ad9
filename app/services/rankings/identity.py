"""Campaign identity helpers: campaign id parsing, domain and URL-mask handling."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlparse

from app.config import settings
from app.core.exceptions import InvalidCampaignIdError, MissingDomainError

UrlMaskBuilder = Callable[[str], str]

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")

# Broadest-with-path first, bare domain last.
URL_MASK_BUILDERS: tuple[UrlMaskBuilder, ...] = (
    lambda domain: f"*.{domain}/*",
    lambda domain: f"*.{domain}",
    lambda domain: domain,
)

DATABASE_BY_TLD: dict[str, str] = {
    ".at": "at",
    ".ch": "ch",
    ".com": "us",
}


@dataclass(frozen=True, slots=True)
class CampaignIdentity:
    """Which remote tracking project a set of rankings belongs to."""

    campaign_id: str
    domain: str

    @classmethod
    def from_parts(
        cls,
        project_id: str,
        tracking_id: str,
        domain: str,
        separator: str | None = None,
    ) -> "CampaignIdentity":
        """Build an identity from separately stored project and tracking ids."""
        sep = separator or settings.campaign_id_separator
        return cls(campaign_id=f"{project_id}{sep}{tracking_id}", domain=domain)


def split_campaign_id(campaign_id: str, separator: str | None = None) -> tuple[str, str]:
    """Split a composite campaign id into (project_id, tracking_id).

    Raises:
        InvalidCampaignIdError: when the id does not have exactly two non-empty parts.
    """
    sep = separator or settings.campaign_id_separator
    parts = [part.strip() for part in str(campaign_id or "").split(sep)]
    if len(parts) != 2 or not all(parts):
        raise InvalidCampaignIdError(str(campaign_id), sep)
    return parts[0], parts[1]


def normalize_domain(domain: str | None) -> str:
    """Reduce user-entered domain text to a bare hostname.

    `https://www.Example.com:443/path` and `www.example.com` both become `example.com`;
    ports and credentials never reach the URL masks.
    """
    raw = (domain or "").strip()
    has_scheme = bool(_SCHEME_RE.match(raw))
    try:
        host = urlparse(raw if has_scheme else f"https://{raw}").hostname or ""
    except ValueError:
        host = ""

    host = host.strip().lower()
    if host.startswith("www."):
        host = host[len("www."):]
    host = host.rstrip(".")
    if not host:
        raise MissingDomainError()
    return host


def build_url_masks(
    domain: str,
    builders: tuple[UrlMaskBuilder, ...] = URL_MASK_BUILDERS,
) -> list[str]:
    """Return the ordered URL-mask candidates for an already normalized domain."""
    return [build(domain) for build in builders]


def resolve_database(domain: str, default: str | None = None) -> str:
    """Pick the provider's regional database from the domain's TLD."""
    for suffix, database in DATABASE_BY_TLD.items():
        if domain.endswith(suffix):
            return database
    return default or settings.semrush_default_database
