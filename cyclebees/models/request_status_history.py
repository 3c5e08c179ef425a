from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Enum, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from cyclebees.db.base_class import Base
from cyclebees.models.enums import RequestType


class RequestStatusHistory(Base):
    __tablename__ = "request_status_history"

    id = Column(Integer, primary_key=True, index=True)
    request_type = Column(Enum(RequestType), nullable=False)
    request_id = Column(Integer, nullable=False)

    old_status = Column(String(50), nullable=True)  # Null on creation
    new_status = Column(String(50), nullable=False)

    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)  # Admin who changed it, null for system
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    changer = relationship("User")

    __table_args__ = (
        Index("ix_request_status_history_request", "request_type", "request_id"),
    )
