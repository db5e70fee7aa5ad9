"""Custom exception classes for the application."""

from typing import Any


class RankTrackingError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# Campaign Errors
class CampaignNotConfiguredError(RankTrackingError):
    """No tracked campaign is configured for the owner/slot."""

    def __init__(self, owner_id: str, campaign_slot: str) -> None:
        super().__init__(
            f"No rank-tracking campaign configured for {owner_id}/{campaign_slot}",
            details={"owner_id": owner_id, "campaign_slot": campaign_slot},
        )


# External API Errors
class ExternalAPIError(RankTrackingError):
    """Error calling external API."""

    def __init__(self, api_name: str, message: str) -> None:
        super().__init__(f"{api_name} API error: {message}")


class RateLimitExceededError(ExternalAPIError):
    """Rate limit exceeded for external API."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "Rate limit exceeded")


class APIKeyMissingError(ExternalAPIError):
    """API key not configured."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "API key not configured")


# Validation Errors
class ValidationError(RankTrackingError):
    """Data validation failed."""

    pass


class InvalidCampaignIdError(ValidationError):
    """Campaign id is not exactly `<project_id><sep><tracking_id>`."""

    def __init__(self, campaign_id: str, separator: str) -> None:
        super().__init__(
            f"Invalid campaign id {campaign_id!r}: expected two parts joined by {separator!r}",
            details={"campaign_id": campaign_id},
        )


class MissingDomainError(ValidationError):
    """No usable domain was supplied."""

    def __init__(self) -> None:
        super().__init__("A domain is required to fetch keyword rankings")
