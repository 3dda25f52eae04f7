from sqlalchemy import Column, Integer, String, Text, DateTime, Date, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from watchtracker.db.base import Base

LEAD_STATUSES = [
    "Monitoring",
    "Contacted",
    "Negotiating",
    "Offer Rejected",
    "Follow Up",
    "Offer Accepted",
    "Deal Finalized",
]


class Lead(Base):
    __tablename__ = "user_leads"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    status = Column(String, nullable=False, default="Monitoring")
    contact_id = Column(Integer, ForeignKey("user_contacts.id", ondelete="SET NULL"), nullable=True)
    watch_reference = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    reminder_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    contact = relationship("Contact")
