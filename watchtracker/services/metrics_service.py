"""
Profit and 100K-goal calculations over a user's watches.

Functions take any object exposing the watch columns as attributes, so they
work on ORM rows and on plain test doubles alike.
"""
import calendar
from datetime import date
from typing import Iterable, List, Optional

GOAL_AMOUNT = 100000


def calculate_net_profit(watch) -> float:
    """price_sold - (purchase_price + accessories_cost) - fees - shipping - taxes; missing values count as 0."""
    total_in = (watch.purchase_price or 0) + (watch.accessories_cost or 0)
    return (
        (watch.price_sold or 0)
        - total_in
        - (watch.fees or 0)
        - (watch.shipping or 0)
        - (watch.taxes or 0)
    )


def calculate_hold_time(in_date: Optional[date], date_sold: Optional[date]) -> Optional[int]:
    """Days held, only when the sale is after acquisition."""
    if not in_date or not date_sold:
        return None
    if date_sold > in_date:
        return (date_sold - in_date).days
    return None


def is_sold(watch) -> bool:
    return bool(watch.date_sold and watch.price_sold and watch.purchase_price)


def summarize_metrics(watches: Iterable) -> dict:
    sold = [watch for watch in watches if is_sold(watch)]

    total_profit = sum(calculate_net_profit(watch) for watch in sold)
    hold_times = [
        days for days in (calculate_hold_time(watch.in_date, watch.date_sold) for watch in sold)
        if days is not None
    ]
    avg_hold_time = round(sum(hold_times) / len(hold_times)) if hold_times else 0
    avg_profit = total_profit / len(sold) if sold else 0

    return {
        "totalProfit": round(total_profit, 2),
        "avgHoldTime": avg_hold_time,
        "totalSold": len(sold),
        "avgProfit": round(avg_profit, 2),
    }


def goal_progress(watches: Iterable, today: Optional[date] = None, year: Optional[int] = None,
                  goal_amount: float = GOAL_AMOUNT) -> dict:
    """
    Progress toward the yearly profit goal.

    ``isOnTrack`` compares the share of the goal reached with the share of the
    year elapsed; ``projectedEndAmount`` extrapolates the current pace to
    December 31st.
    """
    today = today or date.today()
    year = year or today.year

    year_sales = [watch for watch in watches if is_sold(watch) and watch.date_sold.year == year]
    current_year_profit = sum(calculate_net_profit(watch) for watch in year_sales)

    progress_percentage = min((current_year_profit / goal_amount) * 100, 100)
    remaining_amount = max(goal_amount - current_year_profit, 0)

    start_of_year = date(year, 1, 1)
    total_days = (date(year, 12, 31) - start_of_year).days + 1
    if today.year < year:
        days_passed = 0
    elif today.year > year:
        days_passed = total_days
    else:
        days_passed = (today - start_of_year).days + 1
    days_left = max(total_days - days_passed, 0)

    daily_target = remaining_amount / days_left if days_left > 0 else 0
    time_progress = days_passed / total_days
    is_on_track = progress_percentage / 100 >= time_progress
    projected = current_year_profit / time_progress if time_progress > 0 else current_year_profit

    monthly: List[dict] = []
    for month in range(1, 13):
        month_end = date(year, month, calendar.monthrange(year, month)[1])
        actual = sum(
            calculate_net_profit(watch) for watch in year_sales
            if watch.date_sold.month == month
        )
        monthly.append({
            "month": calendar.month_abbr[month],
            "target": round(goal_amount / 12, 2),
            "actual": round(actual, 2),
            "isComplete": month_end < today,
        })

    return {
        "year": year,
        "goalAmount": goal_amount,
        "currentYearProfit": round(current_year_profit, 2),
        "progressPercentage": round(progress_percentage, 2),
        "remainingAmount": round(remaining_amount, 2),
        "daysLeftInYear": days_left,
        "dailyTargetNeeded": round(daily_target, 2),
        "isOnTrack": is_on_track,
        "projectedEndAmount": round(projected, 2),
        "monthlyBreakdown": monthly,
    }
