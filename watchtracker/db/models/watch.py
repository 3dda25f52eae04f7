from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Float, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from watchtracker.db.base import Base
from watchtracker.services.metrics_service import calculate_net_profit, calculate_hold_time, is_sold as watch_is_sold

WATCH_SETS = ["Watch Only", "Watch & Box", "Watch & Papers", "Full Set"]

NUMERIC_FIELDS = [
    "purchase_price",
    "liquidation_price",
    "accessories_cost",
    "price_sold",
    "fees",
    "shipping",
    "taxes",
]


class Watch(Base):
    __tablename__ = "user_watches"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    brand = Column(String, nullable=False)
    model = Column(String, nullable=False)
    reference_number = Column(String, nullable=False, index=True)
    serial_number = Column(String, nullable=True)
    watch_set = Column(String, nullable=True)

    # Acquisition
    in_date = Column(Date, nullable=True)
    platform_purchased = Column(String, nullable=True)
    purchase_price = Column(Float, nullable=True)
    liquidation_price = Column(Float, nullable=True)
    accessories = Column(Text, nullable=True)
    accessories_cost = Column(Float, nullable=True)

    # Disposition
    date_sold = Column(Date, nullable=True)
    platform_sold = Column(String, nullable=True)
    price_sold = Column(Float, nullable=True)
    fees = Column(Float, nullable=True)
    shipping = Column(Float, nullable=True)
    taxes = Column(Float, nullable=True)

    notes = Column(Text, nullable=True)

    buyer_contact_id = Column(Integer, ForeignKey("user_contacts.id", ondelete="SET NULL"), nullable=True)
    seller_contact_id = Column(Integer, ForeignKey("user_contacts.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="watches")
    buyer = relationship("Contact", foreign_keys=[buyer_contact_id])
    seller = relationship("Contact", foreign_keys=[seller_contact_id])
    history = relationship(
        "WatchHistory",
        back_populates="watch",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WatchHistory.id",
    )

    @property
    def is_sold(self) -> bool:
        return watch_is_sold(self)

    @property
    def net_profit(self):
        """Sale price less purchase, accessories, fees, shipping and taxes; ``None`` until sold."""
        if not self.price_sold:
            return None
        return round(calculate_net_profit(self), 2)

    @property
    def hold_days(self):
        return calculate_hold_time(self.in_date, self.date_sold)


class WatchHistory(Base):
    __tablename__ = "watch_history"

    id = Column(Integer, primary_key=True, index=True)
    watch_id = Column(Integer, ForeignKey("user_watches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action = Column(String, nullable=False)  # created | updated | imported
    field_name = Column(String, nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), server_default=func.now())

    watch = relationship("Watch", back_populates="history")
