"""
Unit tests for the shared field validators and subscription tier helpers.
"""
from datetime import date, datetime

import pytest

from watchtracker.core.subscription_tiers import (
    default_status_for_tier,
    get_subscription_tier_info,
    get_tier_price,
    is_valid_tier,
)
from watchtracker.core.validators import (
    blank_to_none,
    is_valid_email,
    is_valid_phone,
    validate_date,
    validate_email,
    validate_positive_number,
)


@pytest.mark.parametrize("value, expected", [
    ("trader@example.com", True),
    ("first.last+tag@sub.example.co.uk", True),
    ("trader@example", False),
    ("trader example@example.com", False),
    ("", False),
    (None, False),
])
def test_is_valid_email(value, expected):
    assert is_valid_email(value) is expected


@pytest.mark.parametrize("value, expected", [
    ("+1 (555) 123-4567", True),
    ("5551234567", True),
    ("0123", False),
    ("call me", False),
    ("", False),
])
def test_is_valid_phone(value, expected):
    assert is_valid_phone(value) is expected


def test_validate_email():
    assert validate_email(" trader@example.com ") == "trader@example.com"
    assert validate_email("") is None
    with pytest.raises(ValueError, match="Invalid email format"):
        validate_email("nope")


def test_validate_date():
    assert validate_date("2024-02-29") == date(2024, 2, 29)
    assert validate_date(datetime(2024, 2, 29, 10, 0)) == date(2024, 2, 29)
    assert validate_date(None) is None
    with pytest.raises(ValueError):
        validate_date("2023-02-29")
    with pytest.raises(ValueError, match="custom"):
        validate_date("29/02/2024", "custom")


def test_validate_positive_number():
    assert validate_positive_number("12.5", "price") == 12.5
    assert validate_positive_number(0, "price") == 0
    assert validate_positive_number("", "price") is None
    for bad in (-1, "abc", True, float("nan"), float("inf"), "Infinity", 10 ** 400):
        with pytest.raises(ValueError, match="price must be a valid positive number"):
            validate_positive_number(bad, "price")


def test_blank_to_none():
    assert blank_to_none("   ") is None
    assert blank_to_none(" x ") == " x "
    assert blank_to_none(0) == 0


def test_subscription_tiers():
    assert is_valid_tier("Platinum")
    assert not is_valid_tier("gold")
    assert get_tier_price("platinum") == 98
    assert get_tier_price("operandi") == 80
    assert get_subscription_tier_info("unknown")["name"] == "Free Tracker"
    assert default_status_for_tier("free") == "free"
    assert default_status_for_tier("operandi") == "active"
