from fastapi import status
from typing import Any, List, Optional
import enum


class APIError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class ValidationError(APIError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, errors)


class PersistenceError(APIError):
    def __init__(self, message: str = "Storage temporarily unavailable"):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, message)


class RequestNotFound(APIError):
    def __init__(self, request_type: str, request_id: int):
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            f"{request_type.capitalize()} request not found",
        )
        self.request_type = request_type
        self.request_id = request_id


class InvalidTransition(APIError):
    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            status.HTTP_409_CONFLICT,
            message or f"Cannot move request from {current} to {target}",
            [{"current_status": current, "target_status": target}],
        )
        self.current = current
        self.target = target


class ConcurrencyConflict(APIError):
    def __init__(self, message: str = "Request was modified concurrently, please retry"):
        super().__init__(status.HTTP_409_CONFLICT, message)


class CouponFailureReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    NOT_APPLICABLE = "not_applicable"
    BELOW_MINIMUM = "below_minimum"


class CouponError(APIError):
    reason: CouponFailureReason

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code, message, [{"reason": self.reason.value}])


class CouponNotFound(CouponError):
    reason = CouponFailureReason.NOT_FOUND

    def __init__(self):
        super().__init__("Coupon not found or inactive", status.HTTP_404_NOT_FOUND)


class CouponExpired(CouponError):
    reason = CouponFailureReason.EXPIRED

    def __init__(self):
        super().__init__("Coupon expired")


class CouponUsageLimitReached(CouponError):
    reason = CouponFailureReason.USAGE_LIMIT_REACHED

    def __init__(self):
        super().__init__("Coupon usage limit reached")


class CouponNotApplicable(CouponError):
    reason = CouponFailureReason.NOT_APPLICABLE

    def __init__(self):
        super().__init__("Coupon not applicable to selected items")


class CouponBelowMinimum(CouponError):
    reason = CouponFailureReason.BELOW_MINIMUM

    def __init__(self, min_amount: float):
        super().__init__(f"Minimum amount for coupon is ₹{min_amount:g}")
        self.min_amount = min_amount


class CouponCodeExists(APIError):
    def __init__(self):
        super().__init__(status.HTTP_409_CONFLICT, "Coupon code already exists")


class CouponRecordNotFound(APIError):
    def __init__(self):
        super().__init__(status.HTTP_404_NOT_FOUND, "Coupon not found")


class CatalogItemNotFound(APIError):
    def __init__(self, item: str):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{item} not found")
        self.item = item
