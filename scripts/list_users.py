"""
List user accounts with their status and subscription.
Run: python -m scripts.list_users [--status active] [--tier platinum]
"""
import argparse
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from watchtracker.db.session import SessionLocal
from watchtracker.db.models.user import User

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

COLUMNS = ["id", "username", "email", "status", "tier", "subscription", "admin", "last login"]


def list_users(status: str = None, tier: str = None, session_factory=SessionLocal) -> list:
    db = session_factory()
    try:
        query = db.query(User)
        if status:
            query = query.filter(User.status == status)
        if tier:
            query = query.filter(User.subscription_tier == tier)

        return [
            [
                user.id,
                user.username,
                user.email or "-",
                user.status,
                user.subscription_tier,
                user.subscription_status,
                "yes" if user.is_admin else "",
                user.last_login_at.strftime("%Y-%m-%d %H:%M") if user.last_login_at else "never",
            ]
            for user in query.order_by(User.id).all()
        ]
    finally:
        db.close()


def format_table(rows: list) -> str:
    widths = [len(column) for column in COLUMNS]
    for row in rows:
        widths = [max(width, len(str(value))) for width, value in zip(widths, row)]

    lines = ["  ".join(column.ljust(width) for column, width in zip(COLUMNS, widths))]
    lines.append("  ".join("-" * width for width in widths))
    for row in rows:
        lines.append("  ".join(str(value).ljust(width) for value, width in zip(row, widths)))
    return "\n".join(lines)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="List 100K Tracker users")
    parser.add_argument("--status")
    parser.add_argument("--tier")
    args = parser.parse_args(argv)

    rows = list_users(args.status, args.tier)
    print(format_table(rows))
    print(f"\n{len(rows)} user(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
