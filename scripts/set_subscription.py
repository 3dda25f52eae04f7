"""
Set a user's subscription tier and status.
Run: python -m scripts.set_subscription <username> <tier> [--status active] [--price 98] [--end-date 2025-12-31]
"""
import argparse
import logging
import os
import sys
from datetime import date

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from watchtracker.core.subscription_tiers import (
    SUBSCRIPTION_TIERS,
    SUBSCRIPTION_STATUSES,
    default_status_for_tier,
    get_tier_price,
)
from watchtracker.core.validators import validate_date
from watchtracker.db.session import SessionLocal
from watchtracker.db.models.user import User

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def set_subscription(username: str, tier: str, status: str = None, price: float = None,
                     end_date: date = None, session_factory=SessionLocal) -> bool:
    """Status defaults to the tier's default and price to the tier price."""
    db = session_factory()
    try:
        user = db.query(User).filter(User.username == username).first()
        if not user:
            logger.error(f"User not found: {username}")
            return False

        user.subscription_tier = tier
        user.subscription_status = status or default_status_for_tier(tier)
        user.subscription_price = price if price is not None else get_tier_price(tier)
        user.subscription_start_date = user.subscription_start_date or date.today()
        user.subscription_end_date = end_date
        db.commit()
        logger.info(f"Subscription for {username} set to {tier}/{user.subscription_status} at ${user.subscription_price}")
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Error setting subscription: {e}", exc_info=True)
        return False
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Set a 100K Tracker user's subscription")
    parser.add_argument("username")
    parser.add_argument("tier", choices=list(SUBSCRIPTION_TIERS))
    parser.add_argument("--status", choices=SUBSCRIPTION_STATUSES)
    parser.add_argument("--price", type=float)
    parser.add_argument("--end-date", help="YYYY-MM-DD")
    args = parser.parse_args(argv)

    try:
        end_date = validate_date(args.end_date, "end date must be in YYYY-MM-DD format")
    except ValueError as e:
        print(f"\n[ERROR] {e}")
        return 1

    if set_subscription(args.username, args.tier, args.status, args.price, end_date):
        print(f"\n[SUCCESS] {args.username} is now on the {args.tier} tier")
        return 0
    print(f"\n[ERROR] Failed to update subscription for {args.username}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
