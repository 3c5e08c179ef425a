from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, Text, Boolean, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from cyclebees.db.base_class import Base
from cyclebees.models.enums import DurationType, PaymentMethod, RequestStatus


class Bicycle(Base):
    __tablename__ = "bicycles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    model = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    specifications = Column(Text, nullable=True)  # JSON string from the admin form

    daily_rate = Column(Float, nullable=False)
    weekly_rate = Column(Float, nullable=False)
    delivery_charge = Column(Float, default=0.0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def rate_for(self, duration_type: DurationType) -> float:
        if duration_type == DurationType.WEEKLY:
            return self.weekly_rate
        return self.daily_rate


class RentalRequest(Base):
    __tablename__ = "rental_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    bicycle_id = Column(Integer, ForeignKey("bicycles.id"), nullable=False)

    # Contact & delivery
    contact_number = Column(String(15), nullable=False)
    alternate_number = Column(String(15), nullable=True)
    email = Column(String(100), nullable=True)
    delivery_address = Column(Text, nullable=False)
    special_instructions = Column(Text, nullable=True)

    duration_type = Column(Enum(DurationType), nullable=False)
    duration_count = Column(Integer, nullable=False)

    # Pricing
    rental_amount = Column(Float, nullable=False)
    delivery_charge = Column(Float, default=0.0, nullable=False)
    total_amount = Column(Float, nullable=False)  # Before discount
    discount_amount = Column(Float, default=0.0, nullable=False)
    net_amount = Column(Float, nullable=False)
    coupon_code = Column(String(50), nullable=True)
    payment_method = Column(Enum(PaymentMethod), nullable=False)

    # Lifecycle
    status = Column(Enum(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True)
    rejection_note = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="rental_requests")
    bicycle = relationship("Bicycle")

    __table_args__ = (
        Index("ix_rental_requests_status_expires_at", "status", "expires_at"),
        CheckConstraint("duration_count > 0", name="check_rental_duration_count_positive"),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == RequestStatus.COMPLETED
