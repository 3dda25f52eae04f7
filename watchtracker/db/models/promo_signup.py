from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from watchtracker.db.base import Base

PROMO_SIGNUP_STATUSES = ["pending", "approved", "rejected"]


class PromoSignup(Base):
    __tablename__ = "promo_signups"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    business_name = Column(String, nullable=False)
    referral_source = Column(String, nullable=True)
    experience_level = Column(String, nullable=True)
    interests = Column(Text, nullable=True)
    comments = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending")
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
