from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from watchtracker.db.base import Base

CONTACT_TYPES = ["Lead", "Customer", "Watch Trader", "Jeweler"]


class Contact(Base):
    __tablename__ = "user_contacts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    contact_source = Column(String, nullable=True)
    contact_type = Column(String, nullable=True)
    business_name = Column(String, nullable=True)
    street_address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    website = Column(String, nullable=True)
    time_zone = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # Stripe customer mirror
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_default_payment_method = Column(String, nullable=True)
    last_stripe_sync = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="contacts")
    cards = relationship(
        "Card",
        back_populates="contact",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Card.id",
    )

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Card(Base):
    """Display-only card metadata. Full card numbers are never stored."""
    __tablename__ = "user_cards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    contact_id = Column(Integer, ForeignKey("user_contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    cardholder_name = Column(String, nullable=False)
    last4 = Column(String(4), nullable=False)
    expiry_month = Column(String(2), nullable=False)
    expiry_year = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    contact = relationship("Contact", back_populates="cards")
