from pydantic import BaseModel, Field, EmailStr
from typing import List, Optional
from datetime import date, datetime
from cyclebees.models.enums import DurationType, PaymentMethod, RequestStatus, RequestType

PHONE_PATTERN = r"^[0-9]{10}$"


class RepairBookingCreate(BaseModel):
    contact_number: str = Field(..., pattern=PHONE_PATTERN)
    alternate_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None
    notes: Optional[str] = Field(None, max_length=1000)
    preferred_date: date
    time_slot_id: int
    payment_method: PaymentMethod
    service_ids: List[int] = Field(default_factory=list)
    coupon_code: Optional[str] = Field(None, max_length=50)


class RentalBookingCreate(BaseModel):
    bicycle_id: int
    contact_number: str = Field(..., pattern=PHONE_PATTERN)
    alternate_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None
    delivery_address: str = Field(..., min_length=1, max_length=500)
    special_instructions: Optional[str] = Field(None, max_length=1000)
    duration_type: DurationType
    duration_count: int = Field(..., ge=1)
    payment_method: PaymentMethod
    coupon_code: Optional[str] = Field(None, max_length=50)


class BookingResponse(BaseModel):
    request_id: int
    request_type: RequestType
    total_amount: float
    discount_amount: float
    net_amount: float
    coupon_code: Optional[str]
    status: RequestStatus
    expires_at: datetime
