from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Float, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from watchtracker.db.base import Base

COLLECTION_METHODS = ["charge_automatically", "send_invoice"]


class Invoice(Base):
    """Local mirror of a Stripe (or Square) invoice."""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("user_contacts.id", ondelete="SET NULL"), nullable=True)

    stripe_invoice_id = Column(String, unique=True, index=True, nullable=True)
    square_invoice_id = Column(String, unique=True, index=True, nullable=True)
    stripe_customer_id = Column(String, nullable=True)

    status = Column(String, nullable=False, default="draft")
    total_amount = Column(Float, nullable=False, default=0)
    currency = Column(String, nullable=False, default="usd")
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    collection_method = Column(String, nullable=False, default="charge_automatically")

    hosted_invoice_url = Column(String, nullable=True)
    invoice_pdf = Column(String, nullable=True)
    payment_intent = Column(String, nullable=True, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    amount_paid = Column(Float, nullable=True)
    last_payment_error = Column(Text, nullable=True)
    payment_attempt_count = Column(Integer, nullable=False, default=0)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    invoice_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    contact = relationship("Contact")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceItem.id",
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    watch_id = Column(Integer, ForeignKey("user_watches.id", ondelete="SET NULL"), nullable=True)
    description = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    invoice = relationship("Invoice", back_populates="items")
