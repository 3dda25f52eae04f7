"""
Create a user account from the command line.
Run: python -m scripts.add_user <username> <password> [--email ...] [--tier ...] [--admin]
"""
import argparse
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from watchtracker.core.subscription_tiers import SUBSCRIPTION_TIERS
from watchtracker.core.validators import is_valid_email
from watchtracker.db.session import SessionLocal
from watchtracker.db.models.user import User
from watchtracker.services.provisioning_service import build_user

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def add_user(username: str, password: str, email: str = None, tier: str = "free",
             is_admin: bool = False, temporary: bool = False, session_factory=SessionLocal) -> bool:
    """Create an active user. Returns False when the username or email is taken."""
    if email and not is_valid_email(email):
        logger.error(f"Invalid email: {email}")
        return False

    db = session_factory()
    try:
        if db.query(User).filter(User.username == username).first():
            logger.error(f"Username already exists: {username}")
            return False

        email = email.lower() if email else None
        if email and db.query(User).filter(User.email == email).first():
            logger.error(f"Email already registered: {email}")
            return False

        user = build_user(username, password, email, tier, status="active", temporary_password=temporary)
        user.is_admin = is_admin
        db.add(user)
        db.commit()
        logger.info(f"Created user {username} (ID: {user.id}, tier: {tier}, admin: {is_admin})")
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Error creating user: {e}", exc_info=True)
        return False
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create a 100K Tracker user")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--email")
    parser.add_argument("--tier", default="free", choices=list(SUBSCRIPTION_TIERS))
    parser.add_argument("--admin", action="store_true", help="Grant admin access")
    parser.add_argument("--temporary", action="store_true", help="Force a password change on first login")
    args = parser.parse_args(argv)

    if add_user(args.username, args.password, args.email, args.tier, args.admin, args.temporary):
        print(f"\n[SUCCESS] User {args.username} created")
        return 0
    print(f"\n[ERROR] Failed to create user {args.username}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
