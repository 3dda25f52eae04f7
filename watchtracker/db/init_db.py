"""
Table creation and optional admin bootstrap.
"""
import logging

from watchtracker.core import config
from watchtracker.core.security import hash_password
from watchtracker.db.base import Base
from watchtracker.db.session import engine, SessionLocal
from watchtracker.db.models import User

logger = logging.getLogger(__name__)


def init_db(bind=None) -> None:
    """Create all tables (no-op for existing ones) and seed the admin account if requested."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured")

    if config.SEED_ADMIN:
        seed_admin()


def seed_admin() -> None:
    if not config.ADMIN_PASSWORD:
        logger.warning("SEED_ADMIN=1 but ADMIN_PASSWORD is not set - skipping admin bootstrap")
        return

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.username == config.ADMIN_USERNAME).first()
        if existing:
            if not existing.is_admin:
                existing.is_admin = True
                db.commit()
                logger.info(f"Promoted existing user to admin: {config.ADMIN_USERNAME}")
            return

        admin = User(
            username=config.ADMIN_USERNAME,
            hashed_password=hash_password(config.ADMIN_PASSWORD),
            status="active",
            is_admin=True,
            subscription_tier="platinum",
            subscription_status="active",
        )
        db.add(admin)
        db.commit()
        logger.info(f"Admin account created: {config.ADMIN_USERNAME}")
    except Exception:
        db.rollback()
        logger.exception("Failed to seed admin account")
        raise
    finally:
        db.close()
