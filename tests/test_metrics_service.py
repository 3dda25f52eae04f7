"""
Unit tests for profit, hold-time and 100K goal calculations.
"""
from datetime import date
from types import SimpleNamespace

from watchtracker.services.metrics_service import (
    calculate_hold_time,
    calculate_net_profit,
    goal_progress,
    is_sold,
    summarize_metrics,
)


def make_watch(**fields):
    defaults = {
        "purchase_price": None,
        "accessories_cost": None,
        "price_sold": None,
        "fees": None,
        "shipping": None,
        "taxes": None,
        "in_date": None,
        "date_sold": None,
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


def test_net_profit_subtracts_every_cost():
    watch = make_watch(purchase_price=9000, accessories_cost=200, price_sold=11000, fees=300, shipping=50, taxes=100)

    assert calculate_net_profit(watch) == 1350


def test_net_profit_treats_missing_values_as_zero():
    assert calculate_net_profit(make_watch(price_sold=500)) == 500


def test_hold_time():
    assert calculate_hold_time(date(2024, 1, 1), date(2024, 1, 31)) == 30
    assert calculate_hold_time(date(2024, 1, 31), date(2024, 1, 1)) is None
    assert calculate_hold_time(date(2024, 1, 1), date(2024, 1, 1)) is None
    assert calculate_hold_time(None, date(2024, 1, 1)) is None


def test_is_sold_needs_date_and_both_prices():
    assert is_sold(make_watch(date_sold=date(2024, 1, 1), price_sold=10, purchase_price=5))
    assert not is_sold(make_watch(date_sold=date(2024, 1, 1), price_sold=10))
    assert not is_sold(make_watch(price_sold=10, purchase_price=5))


def test_summarize_metrics_empty():
    assert summarize_metrics([]) == {"totalProfit": 0, "avgHoldTime": 0, "totalSold": 0, "avgProfit": 0}


def test_summarize_metrics():
    watches = [
        make_watch(purchase_price=1000, price_sold=1500, in_date=date(2024, 1, 1), date_sold=date(2024, 1, 11)),
        make_watch(purchase_price=2000, price_sold=1800, in_date=date(2024, 2, 1), date_sold=date(2024, 2, 21)),
        make_watch(purchase_price=3000),
    ]

    assert summarize_metrics(watches) == {
        "totalProfit": 300,
        "avgHoldTime": 15,
        "totalSold": 2,
        "avgProfit": 150,
    }


def test_goal_progress_mid_year():
    watches = [
        make_watch(purchase_price=10000, price_sold=40000, date_sold=date(2024, 1, 15)),
        make_watch(purchase_price=10000, price_sold=40000, date_sold=date(2024, 3, 15)),
        make_watch(purchase_price=10000, price_sold=99000, date_sold=date(2023, 6, 1)),
    ]

    progress = goal_progress(watches, today=date(2024, 7, 1))

    assert progress["year"] == 2024
    assert progress["currentYearProfit"] == 60000
    assert progress["progressPercentage"] == 60
    assert progress["remainingAmount"] == 40000
    assert progress["daysLeftInYear"] == 183
    assert progress["dailyTargetNeeded"] == 218.58
    assert progress["isOnTrack"] is True
    assert progress["projectedEndAmount"] == 120000

    january, march, july = (progress["monthlyBreakdown"][i] for i in (0, 2, 6))
    assert january == {"month": "Jan", "target": 8333.33, "actual": 30000, "isComplete": True}
    assert march["actual"] == 30000
    assert july["isComplete"] is False


def test_goal_progress_caps_percentage_and_handles_past_year():
    watches = [make_watch(purchase_price=0.01, price_sold=150000, date_sold=date(2023, 5, 1))]

    progress = goal_progress(watches, today=date(2024, 7, 1), year=2023)

    assert progress["progressPercentage"] == 100
    assert progress["remainingAmount"] == 0
    assert progress["daysLeftInYear"] == 0
    assert progress["dailyTargetNeeded"] == 0
    assert progress["isOnTrack"] is True
    assert all(month["isComplete"] for month in progress["monthlyBreakdown"])


def test_goal_progress_future_year():
    progress = goal_progress([], today=date(2024, 7, 1), year=2025)

    assert progress["daysLeftInYear"] == 365
    assert progress["projectedEndAmount"] == 0
    assert progress["isOnTrack"] is True
