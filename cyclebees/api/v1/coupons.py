from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from cyclebees.core.config import settings
from cyclebees.core.rate_limiter import limiter
from cyclebees.db.session import get_db
from cyclebees.api.deps import get_current_active_user, require_admin
from cyclebees.models.user import User
from cyclebees.schemas.coupon import (
    CouponCreate,
    CouponEvaluateRequest,
    CouponEvaluateResponse,
    CouponUpdate,
    PublicCouponResponse,
)
from cyclebees.services.coupon_engine import CouponEngine
from cyclebees.services.coupon_service import CouponService
from cyclebees.utils.response import paginated_response, success

router = APIRouter()


@router.post("/evaluate", response_model=dict)
@limiter.limit("30/minute")
def evaluate_coupon(
    request: Request,
    payload: CouponEvaluateRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Preview a coupon against a candidate order. Never records usage."""
    evaluation = CouponEngine(db).evaluate(
        payload.code.strip(),
        current_user.id,
        payload.request_type,
        payload.items,
        payload.total_amount,
    )
    result = CouponEvaluateResponse(
        valid=evaluation.valid,
        discount_amount=evaluation.discount_amount,
        reason=evaluation.reason,
        message=evaluation.message,
        coupon=PublicCouponResponse.model_validate(evaluation.coupon) if evaluation.coupon else None,
    )
    return success(
        data=result.model_dump(),
        message="Coupon validated" if evaluation.valid else evaluation.message,
    )


@router.get("/available", response_model=dict)
@limiter.limit("30/minute")
def list_available_coupons(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Coupons the caller can still redeem."""
    coupons = CouponEngine(db).list_available(current_user.id)
    return success(
        data=[PublicCouponResponse.model_validate(coupon).model_dump() for coupon in coupons],
        message="Available coupons retrieved",
    )


# Admin

@router.get("/admin", response_model=dict)
def list_coupons(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    search: Optional[str] = Query(None, max_length=50),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List all coupons (admin only)."""
    coupons, total = CouponService.list_coupons(db, page=page, limit=limit, search=search)
    return paginated_response(
        [coupon.model_dump() for coupon in coupons],
        total,
        page,
        limit,
        message="Coupons retrieved successfully",
    )


@router.post("/admin", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_coupon(
    coupon_data: CouponCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Create a new coupon (admin only)."""
    coupon = CouponService.create_coupon(db, coupon_data)
    return success(data=coupon.model_dump(), message="Coupon created successfully")


@router.get("/admin/{coupon_id}", response_model=dict)
def get_coupon(
    coupon_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Get a coupon by ID (admin only)."""
    coupon = CouponService.get_coupon(db, coupon_id)
    return success(data=coupon.model_dump(), message="Coupon retrieved successfully")


@router.put("/admin/{coupon_id}", response_model=dict)
def update_coupon(
    coupon_id: int,
    coupon_data: CouponUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update a coupon (admin only)."""
    coupon = CouponService.update_coupon(db, coupon_id, coupon_data)
    return success(data=coupon.model_dump(), message="Coupon updated successfully")


@router.delete("/admin/{coupon_id}", response_model=dict)
def delete_coupon(
    coupon_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Deactivate a coupon (admin only)."""
    coupon = CouponService.delete_coupon(db, coupon_id)
    return success(data=coupon.model_dump(), message="Coupon deactivated successfully")
