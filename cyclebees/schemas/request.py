from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from cyclebees.models.enums import DurationType, PaymentMethod, RequestStatus, RequestType


class StatusTransitionRequest(BaseModel):
    status: RequestStatus
    rejection_note: Optional[str] = Field(None, max_length=1000)


class StatusHistoryResponse(BaseModel):
    id: int
    old_status: Optional[str]
    new_status: str
    changed_by: Optional[int]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class RequestServiceLine(BaseModel):
    repair_service_id: int
    service_name: str
    price: float

    class Config:
        from_attributes = True


class BaseRequestResponse(BaseModel):
    id: int
    user_id: int
    status: RequestStatus
    total_amount: float
    discount_amount: float
    net_amount: float
    coupon_code: Optional[str]
    payment_method: PaymentMethod
    rejection_note: Optional[str]
    contact_number: str
    alternate_number: Optional[str]
    email: Optional[str]
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RepairRequestResponse(BaseRequestResponse):
    request_type: RequestType = RequestType.REPAIR
    notes: Optional[str]
    preferred_date: date
    time_slot_id: int
    mechanic_charge: float
    services: List[RequestServiceLine] = []


class RentalRequestResponse(BaseRequestResponse):
    request_type: RequestType = RequestType.RENTAL
    bicycle_id: int
    delivery_address: str
    special_instructions: Optional[str]
    duration_type: DurationType
    duration_count: int
    rental_amount: float
    delivery_charge: float
