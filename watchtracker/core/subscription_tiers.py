"""
Subscription tier configuration.

Single source of truth for tier names, prices and feature flags.
"""
from typing import Dict, List, Any

DEFAULT_TIER = "free"

SUBSCRIPTION_TIERS: Dict[str, Dict[str, Any]] = {
    "free": {
        "name": "Free Tracker",
        "price": 0,
        "features": ["basic_tracking"],
    },
    "platinum": {
        "name": "Platinum Tracker",
        "price": 98,
        "features": ["all_features", "priority_support", "advanced_analytics"],
    },
    "operandi": {
        "name": "Operandi Challenge Tracker",
        "price": 80,
        "features": ["operandi_challenge", "premium_features", "exclusive_access"],
    },
}

SUBSCRIPTION_STATUSES: List[str] = ["active", "past_due", "canceled", "free"]

USER_STATUSES: List[str] = ["pending", "active", "suspended", "invited"]


def is_valid_tier(tier: str) -> bool:
    return bool(tier) and tier.lower() in SUBSCRIPTION_TIERS


def is_valid_subscription_status(status: str) -> bool:
    return status in SUBSCRIPTION_STATUSES


def get_subscription_tier_info(tier: str) -> Dict[str, Any]:
    """
    Get display name, monthly price and features for a tier.

    Unknown or empty tiers fall back to the free tier.
    """
    tier = tier.lower() if tier else DEFAULT_TIER
    return SUBSCRIPTION_TIERS.get(tier, SUBSCRIPTION_TIERS[DEFAULT_TIER])


def get_tier_price(tier: str) -> float:
    return get_subscription_tier_info(tier)["price"]


def default_status_for_tier(tier: str) -> str:
    """Paid tiers start ``active``; the free tier carries the ``free`` status."""
    return "free" if (tier or DEFAULT_TIER).lower() == DEFAULT_TIER else "active"
