from sqlalchemy import Column, Integer, String, DateTime, Date, Float, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from watchtracker.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    full_name = Column(String, nullable=True)

    # pending | active | suspended | invited
    status = Column(String, nullable=False, default="active")
    is_admin = Column(Boolean, nullable=False, default=False)
    temporary_password = Column(Boolean, nullable=False, default=False)
    first_login_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    # Subscription
    subscription_tier = Column(String, nullable=False, default="free")
    subscription_status = Column(String, nullable=False, default="free")
    subscription_price = Column(Float, nullable=True)
    subscription_start_date = Column(Date, nullable=True)
    subscription_end_date = Column(Date, nullable=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)

    # Per-user Stripe account used for invoicing
    stripe_secret_key = Column(String, nullable=True)
    stripe_publishable_key = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    watches = relationship("Watch", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    contacts = relationship("Contact", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    leads = relationship("Lead", cascade="all, delete-orphan", passive_deletes=True)
    invoices = relationship("Invoice", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_first_login(self) -> bool:
        return self.first_login_at is None
