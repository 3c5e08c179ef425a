from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Date, Enum, Text, Boolean, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from cyclebees.db.base_class import Base
from cyclebees.models.enums import PaymentMethod, RequestStatus


class RepairService(Base):
    __tablename__ = "repair_services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    special_instructions = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    start_time = Column(String(10), nullable=False)  # "09:00"
    end_time = Column(String(10), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class ServiceMechanicCharge(Base):
    """Visit charge added to every repair booking; the latest active row applies."""

    __tablename__ = "service_mechanic_charge"

    id = Column(Integer, primary_key=True, index=True)
    amount = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class RepairRequest(Base):
    __tablename__ = "repair_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Contact & scheduling
    contact_number = Column(String(15), nullable=False)
    alternate_number = Column(String(15), nullable=True)
    email = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    preferred_date = Column(Date, nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=False)

    # Pricing
    mechanic_charge = Column(Float, default=0.0, nullable=False)
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
    user = relationship("User", back_populates="repair_requests")
    time_slot = relationship("TimeSlot")
    services = relationship("RepairRequestService", back_populates="repair_request", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_repair_requests_status_expires_at", "status", "expires_at"),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == RequestStatus.COMPLETED


class RepairRequestService(Base):
    __tablename__ = "repair_request_services"

    id = Column(Integer, primary_key=True, index=True)
    repair_request_id = Column(Integer, ForeignKey("repair_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    repair_service_id = Column(Integer, ForeignKey("repair_services.id"), nullable=False)

    service_name = Column(String(100), nullable=False)  # Snapshot at booking time
    price = Column(Float, nullable=False)

    # Relationships
    repair_request = relationship("RepairRequest", back_populates="services")
    repair_service = relationship("RepairService")
