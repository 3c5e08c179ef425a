from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime

SLOT_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _reject_null(value):
    # Omit a field to leave it unchanged; required columns cannot be cleared
    if value is None:
        raise ValueError("Field cannot be null")
    return value


class RepairServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    special_instructions: Optional[str]
    price: float

    class Config:
        from_attributes = True


class TimeSlotResponse(BaseModel):
    id: int
    start_time: str
    end_time: str

    class Config:
        from_attributes = True


class BicycleResponse(BaseModel):
    id: int
    name: str
    model: Optional[str]
    description: Optional[str]
    specifications: Optional[str]
    daily_rate: float
    weekly_rate: float
    delivery_charge: float

    class Config:
        from_attributes = True


# Admin

class RepairServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    price: float = Field(..., ge=0)


class RepairServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    special_instructions: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("name", "price", "is_active")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class AdminRepairServiceResponse(RepairServiceResponse):
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class MechanicChargeUpdate(BaseModel):
    amount: float = Field(..., ge=0)


class TimeSlotCreate(BaseModel):
    start_time: str = Field(..., pattern=SLOT_TIME_PATTERN)  # "09:00"
    end_time: str = Field(..., pattern=SLOT_TIME_PATTERN)

    @model_validator(mode="after")
    def check_order(self):
        # Zero-padded HH:MM strings compare chronologically
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class AdminTimeSlotResponse(TimeSlotResponse):
    is_active: bool


class BicycleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    specifications: Optional[str] = None
    daily_rate: float = Field(..., ge=0)
    weekly_rate: float = Field(..., ge=0)
    delivery_charge: float = Field(default=0.0, ge=0)


class BicycleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    specifications: Optional[str] = None
    daily_rate: Optional[float] = Field(None, ge=0)
    weekly_rate: Optional[float] = Field(None, ge=0)
    delivery_charge: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("name", "daily_rate", "weekly_rate", "delivery_charge", "is_active")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class AdminBicycleResponse(BicycleResponse):
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
