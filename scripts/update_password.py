"""
Reset a user's password.
Run: python -m scripts.update_password <username> <new_password> [--temporary]
"""
import argparse
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from watchtracker.core.security import hash_password
from watchtracker.db.session import SessionLocal
from watchtracker.db.models.user import User

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def update_password(username: str, new_password: str, temporary: bool = False,
                    session_factory=SessionLocal) -> bool:
    db = session_factory()
    try:
        user = db.query(User).filter(User.username == username).first()
        if not user:
            logger.error(f"User not found: {username}")
            return False

        user.hashed_password = hash_password(new_password)
        user.temporary_password = temporary
        db.commit()
        logger.info(f"Password updated for {username} (temporary: {temporary})")
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating password: {e}", exc_info=True)
        return False
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reset a 100K Tracker user's password")
    parser.add_argument("username")
    parser.add_argument("new_password")
    parser.add_argument("--temporary", action="store_true", help="Force a password change on next login")
    args = parser.parse_args(argv)

    if len(args.new_password) < 6:
        print("\n[ERROR] Password must be at least 6 characters long")
        return 1

    if update_password(args.username, args.new_password, args.temporary):
        print(f"\n[SUCCESS] Password updated for {args.username}")
        return 0
    print(f"\n[ERROR] Failed to update password for {args.username}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
