from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, Enum, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from cyclebees.db.base_class import Base

ALL_ITEMS_TAG = "all"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Float, nullable=False)  # Percentage or fixed amount in rupees

    min_amount = Column(Float, default=0.0, nullable=False)
    max_discount = Column(Float, nullable=True)  # Cap for percentage type

    # Item-category tags, e.g. ["repair_services", "delivery_charges"] or ["all"]
    applicable_items = Column(JSON, nullable=False, default=list)

    usage_limit = Column(Integer, default=1, nullable=False)  # Per user

    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    # Ledger rows outlive the coupon; coupons are only ever deactivated
    usages = relationship("CouponUsage", back_populates="coupon", passive_deletes="all")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def applies_to(self, item_tags) -> bool:
        tags = set(self.applicable_items or [])
        return any(ALL_ITEMS_TAG in tags or tag in tags for tag in item_tags)
