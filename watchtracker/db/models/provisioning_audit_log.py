from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean
from sqlalchemy.sql import func
from watchtracker.db.base import Base


class ProvisioningAuditLog(Base):
    """One row per step of an admin account-provisioning attempt."""
    __tablename__ = "provisioning_audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    subscription_tier = Column(String, nullable=True)
    admin_user = Column(String, nullable=True)
    step_completed = Column(String, nullable=False)
    success = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
