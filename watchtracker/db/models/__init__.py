"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.
"""
from watchtracker.db.models.user import User
from watchtracker.db.models.contact import Contact, Card, CONTACT_TYPES
from watchtracker.db.models.watch import Watch, WatchHistory, WATCH_SETS, NUMERIC_FIELDS
from watchtracker.db.models.lead import Lead, LEAD_STATUSES
from watchtracker.db.models.invoice import Invoice, InvoiceItem, COLLECTION_METHODS
from watchtracker.db.models.promo_signup import PromoSignup, PROMO_SIGNUP_STATUSES
from watchtracker.db.models.provisioning_audit_log import ProvisioningAuditLog

__all__ = [
    "User",
    "Contact",
    "Card",
    "Watch",
    "WatchHistory",
    "Lead",
    "Invoice",
    "InvoiceItem",
    "PromoSignup",
    "ProvisioningAuditLog",
    "CONTACT_TYPES",
    "WATCH_SETS",
    "NUMERIC_FIELDS",
    "LEAD_STATUSES",
    "COLLECTION_METHODS",
    "PROMO_SIGNUP_STATUSES",
]
