from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from cyclebees.core.config import settings
from cyclebees.core.rate_limiter import limiter
from cyclebees.db.session import get_db
from cyclebees.api.deps import get_current_active_user, require_admin
from cyclebees.models.enums import RequestStatus, RequestType
from cyclebees.models.rental import Bicycle, RentalRequest
from cyclebees.models.user import User
from cyclebees.schemas.booking import BookingResponse, RentalBookingCreate
from cyclebees.schemas.catalog import BicycleCreate, BicycleResponse, BicycleUpdate
from cyclebees.schemas.request import RentalRequestResponse, StatusHistoryResponse, StatusTransitionRequest
from cyclebees.services.booking_orchestrator import BookingOrchestrator
from cyclebees.services.catalog_service import CatalogService
from cyclebees.services.expiry_enforcer import effective_status
from cyclebees.services.request_lifecycle import RequestLifecycle
from cyclebees.utils.response import paginated_response, success

router = APIRouter()


def _serialize_request(rental_request: RentalRequest, now: datetime) -> dict:
    response = RentalRequestResponse.model_validate(rental_request)
    return response.model_copy(update={"status": effective_status(rental_request, now)}).model_dump()


# Catalog

@router.get("/bicycles", response_model=dict)
def list_bicycles(db: Session = Depends(get_db)):
    """Bicycles currently available for rent."""
    bicycles = (
        db.query(Bicycle)
        .filter(Bicycle.is_active == True)
        .order_by(Bicycle.name)
        .all()
    )
    return success(
        data=[BicycleResponse.model_validate(bicycle).model_dump() for bicycle in bicycles],
        message="Bicycles retrieved",
    )


@router.get("/bicycles/{bicycle_id}", response_model=dict)
def get_bicycle(bicycle_id: int, db: Session = Depends(get_db)):
    bicycle = (
        db.query(Bicycle)
        .filter(Bicycle.id == bicycle_id, Bicycle.is_active == True)
        .first()
    )
    if not bicycle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bicycle not found",
        )
    return success(data=BicycleResponse.model_validate(bicycle).model_dump(), message="Bicycle retrieved")


# Customer requests

@router.post(
    "/requests",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Submit rental request",
    description="""
Creates a rental request for the authenticated user.

Process:
1. Prices the bicycle for the chosen duration plus its delivery charge
2. Validates the coupon, if any, against that total
3. Creates the request as pending, expiring after the configured window
4. Records the coupon usage in the same transaction
""",
    responses={
        201: {"description": "Rental request created"},
        400: {"description": "Bicycle unavailable or coupon rejected"},
        401: {"description": "Authentication required"},
        404: {"description": "Coupon not found"},
        503: {"description": "Storage temporarily unavailable"},
    },
    tags=["Rental"],
)
@limiter.limit("10/minute")
def create_rental_request(
    request: Request,
    booking: RentalBookingCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    rental_request = BookingOrchestrator(db).submit(current_user.id, RequestType.RENTAL, booking)
    result = BookingResponse(
        request_id=rental_request.id,
        request_type=RequestType.RENTAL,
        total_amount=rental_request.total_amount,
        discount_amount=rental_request.discount_amount,
        net_amount=rental_request.net_amount,
        coupon_code=rental_request.coupon_code,
        status=rental_request.status,
        expires_at=rental_request.expires_at,
    )
    return success(data=result.model_dump(), message="Rental request submitted successfully")


@router.get("/requests", response_model=dict)
@limiter.limit("30/minute")
def list_my_rental_requests(
    request: Request,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Get the caller's rental requests, newest first."""
    now = datetime.utcnow()
    requests, total = RequestLifecycle(db).list_requests(
        RequestType.RENTAL,
        user_id=current_user.id,
        status=status_filter,
        page=page,
        limit=limit,
        now=now,
    )
    return paginated_response(
        [_serialize_request(item, now) for item in requests],
        total,
        page,
        limit,
        message="Rental requests retrieved",
    )


@router.get("/requests/{request_id}", response_model=dict)
@limiter.limit("30/minute")
def get_my_rental_request(
    request: Request,
    request_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    lifecycle = RequestLifecycle(db)
    rental_request = lifecycle.get(RequestType.RENTAL, request_id, user_id=current_user.id)

    data = _serialize_request(rental_request, datetime.utcnow())
    data["status_history"] = [
        StatusHistoryResponse.model_validate(entry).model_dump()
        for entry in lifecycle.history(RequestType.RENTAL, request_id)
    ]
    return success(data=data, message="Rental request retrieved")


# Admin

@router.get("/admin/requests", response_model=dict)
def list_rental_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All rental requests (admin only)."""
    now = datetime.utcnow()
    requests, total = RequestLifecycle(db).list_requests(
        RequestType.RENTAL,
        status=status_filter,
        page=page,
        limit=limit,
        now=now,
    )
    return paginated_response(
        [_serialize_request(item, now) for item in requests],
        total,
        page,
        limit,
        message="Rental requests retrieved",
    )


@router.patch("/admin/requests/{request_id}/status", response_model=dict)
@limiter.limit("20/minute")
def update_rental_request_status(
    request: Request,
    request_id: int,
    status_update: StatusTransitionRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Move a rental request through its lifecycle (admin only)."""
    rental_request = RequestLifecycle(db).transition(
        RequestType.RENTAL,
        request_id,
        status_update.status,
        rejection_note=status_update.rejection_note,
        changed_by=current_user.id,
    )
    return success(
        data=_serialize_request(rental_request, datetime.utcnow()),
        message="Rental request status updated",
    )


# Admin catalog

@router.get("/admin/bicycles", response_model=dict)
def admin_list_bicycles(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All bicycles, including retired ones (admin only)."""
    bicycles = CatalogService.list_bicycles(db)
    return success(data=[bicycle.model_dump() for bicycle in bicycles], message="Bicycles retrieved")


@router.post("/admin/bicycles", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_bicycle(
    bicycle_data: BicycleCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    bicycle = CatalogService.create_bicycle(db, bicycle_data)
    return success(data=bicycle.model_dump(), message="Bicycle created successfully")


@router.get("/admin/bicycles/{bicycle_id}", response_model=dict)
def admin_get_bicycle(
    bicycle_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    bicycle = CatalogService.get_bicycle(db, bicycle_id)
    return success(data=bicycle.model_dump(), message="Bicycle retrieved")


@router.put("/admin/bicycles/{bicycle_id}", response_model=dict)
def update_bicycle(
    bicycle_id: int,
    bicycle_data: BicycleUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update a bicycle; rates apply to rentals booked afterwards."""
    bicycle = CatalogService.update_bicycle(db, bicycle_id, bicycle_data)
    return success(data=bicycle.model_dump(), message="Bicycle updated successfully")


@router.delete("/admin/bicycles/{bicycle_id}", response_model=dict)
def delete_bicycle(
    bicycle_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    bicycle = CatalogService.deactivate_bicycle(db, bicycle_id)
    return success(data=bicycle.model_dump(), message="Bicycle deactivated successfully")
