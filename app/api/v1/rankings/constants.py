"""Constants for ranking routes."""

CAMPAIGN_NOT_CONFIGURED_DETAIL = "No rank-tracking campaign configured"
PROVIDER_NOT_CONFIGURED_DETAIL = "Rank-tracking provider is not configured"
SLOT_PATTERN = r"^[A-Za-z0-9_.-]{1,64}$"
