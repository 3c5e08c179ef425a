from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from cyclebees.db.base_class import Base
from cyclebees.models.enums import RequestType


class CouponUsage(Base):
    __tablename__ = "coupon_usage"

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    request_type = Column(Enum(RequestType), nullable=False)
    request_id = Column(Integer, nullable=False)
    discount_amount = Column(Float, nullable=False, default=0.0)

    # Nth redemption of this coupon by this user, 1..usage_limit
    usage_slot = Column(Integer, nullable=False)

    used_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    coupon = relationship("Coupon", back_populates="usages")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("coupon_id", "user_id", "usage_slot", name="uq_coupon_usage_user_slot"),
        UniqueConstraint("request_type", "request_id", name="uq_coupon_usage_request"),
        CheckConstraint("usage_slot >= 1", name="check_coupon_usage_slot_positive"),
    )
