from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime, timezone
from cyclebees.core.exceptions import CouponFailureReason
from cyclebees.models.coupon import DiscountType
from cyclebees.models.enums import RequestType


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Timestamps are stored as naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=50)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: float = Field(..., gt=0)
    min_amount: float = Field(default=0.0, ge=0)
    max_discount: Optional[float] = Field(None, gt=0)
    applicable_items: List[str] = Field(..., min_length=1)
    usage_limit: int = Field(default=1, ge=1)
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("expires_at")
    @classmethod
    def normalize_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(value)


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=3, max_length=50)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(None, gt=0)
    min_amount: Optional[float] = Field(None, ge=0)
    max_discount: Optional[float] = Field(None, gt=0)
    applicable_items: Optional[List[str]] = Field(None, min_length=1)
    usage_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator(
        "code",
        "discount_type",
        "discount_value",
        "min_amount",
        "applicable_items",
        "usage_limit",
        "is_active",
    )
    @classmethod
    def reject_null(cls, value):
        # Omit a field to leave it unchanged; these columns cannot be cleared
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("expires_at")
    @classmethod
    def normalize_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(value)


class CouponResponse(BaseModel):
    id: int
    code: str
    description: Optional[str]
    discount_type: DiscountType
    discount_value: float
    min_amount: float
    max_discount: Optional[float]
    applicable_items: List[str]
    usage_limit: int
    is_active: bool
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicCouponResponse(BaseModel):
    """What a customer may see about a coupon: no limits, no redemption data."""

    id: int
    code: str
    description: Optional[str]
    discount_type: DiscountType
    discount_value: float
    min_amount: float
    max_discount: Optional[float]
    applicable_items: List[str]
    expires_at: Optional[datetime]

    class Config:
        from_attributes = True


class CouponEvaluateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    request_type: RequestType
    items: List[str] = Field(default_factory=list)  # e.g. ["repair_services", "service_mechanic_charge"]
    total_amount: float = Field(..., ge=0)


class CouponEvaluateResponse(BaseModel):
    valid: bool
    discount_amount: float
    reason: Optional[CouponFailureReason] = None
    message: Optional[str] = None
    coupon: Optional[PublicCouponResponse] = None
