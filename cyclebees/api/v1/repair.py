from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from cyclebees.core.config import settings
from cyclebees.core.rate_limiter import limiter
from cyclebees.db.session import get_db
from cyclebees.api.deps import get_current_active_user, require_admin
from cyclebees.models.enums import RequestStatus, RequestType
from cyclebees.models.repair import RepairRequest, RepairService, TimeSlot
from cyclebees.models.user import User
from cyclebees.schemas.booking import BookingResponse, RepairBookingCreate
from cyclebees.schemas.catalog import (
    MechanicChargeUpdate,
    RepairServiceCreate,
    RepairServiceResponse,
    RepairServiceUpdate,
    TimeSlotCreate,
    TimeSlotResponse,
)
from cyclebees.schemas.request import RepairRequestResponse, StatusHistoryResponse, StatusTransitionRequest
from cyclebees.services.booking_orchestrator import BookingOrchestrator, current_mechanic_charge
from cyclebees.services.catalog_service import CatalogService
from cyclebees.services.expiry_enforcer import effective_status
from cyclebees.services.request_lifecycle import RequestLifecycle
from cyclebees.utils.response import paginated_response, success

router = APIRouter()


def _serialize_request(repair_request: RepairRequest, now: datetime) -> dict:
    response = RepairRequestResponse.model_validate(repair_request)
    return response.model_copy(update={"status": effective_status(repair_request, now)}).model_dump()


# Catalog

@router.get("/services", response_model=dict)
def list_repair_services(db: Session = Depends(get_db)):
    """Active repair services with their current prices."""
    services = (
        db.query(RepairService)
        .filter(RepairService.is_active == True)
        .order_by(RepairService.name)
        .all()
    )
    return success(
        data=[RepairServiceResponse.model_validate(service).model_dump() for service in services],
        message="Repair services retrieved",
    )


@router.get("/time-slots", response_model=dict)
def list_time_slots(db: Session = Depends(get_db)):
    slots = (
        db.query(TimeSlot)
        .filter(TimeSlot.is_active == True)
        .order_by(TimeSlot.start_time)
        .all()
    )
    return success(
        data=[TimeSlotResponse.model_validate(slot).model_dump() for slot in slots],
        message="Time slots retrieved",
    )


@router.get("/mechanic-charge", response_model=dict)
def get_mechanic_charge(db: Session = Depends(get_db)):
    return success(
        data={"amount": current_mechanic_charge(db)},
        message="Service mechanic charge retrieved",
    )


# Customer requests

@router.post(
    "/requests",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Submit repair request",
    description="""
Creates a repair request for the authenticated user.

Process:
1. Prices the selected services and the mechanic charge from the catalog
2. Validates the coupon, if any, against that total
3. Creates the request as pending, expiring after the configured window
4. Records the coupon usage in the same transaction
""",
    responses={
        201: {"description": "Repair request created"},
        400: {"description": "Unknown services, unavailable slot or coupon rejected"},
        401: {"description": "Authentication required"},
        404: {"description": "Coupon not found"},
        503: {"description": "Storage temporarily unavailable"},
    },
    tags=["Repair"],
)
@limiter.limit("10/minute")
def create_repair_request(
    request: Request,
    booking: RepairBookingCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    repair_request = BookingOrchestrator(db).submit(current_user.id, RequestType.REPAIR, booking)
    result = BookingResponse(
        request_id=repair_request.id,
        request_type=RequestType.REPAIR,
        total_amount=repair_request.total_amount,
        discount_amount=repair_request.discount_amount,
        net_amount=repair_request.net_amount,
        coupon_code=repair_request.coupon_code,
        status=repair_request.status,
        expires_at=repair_request.expires_at,
    )
    return success(data=result.model_dump(), message="Repair request submitted successfully")


@router.get("/requests", response_model=dict)
@limiter.limit("30/minute")
def list_my_repair_requests(
    request: Request,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Get the caller's repair requests, newest first."""
    now = datetime.utcnow()
    requests, total = RequestLifecycle(db).list_requests(
        RequestType.REPAIR,
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
        message="Repair requests retrieved",
    )


@router.get("/requests/{request_id}", response_model=dict)
@limiter.limit("30/minute")
def get_my_repair_request(
    request: Request,
    request_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    lifecycle = RequestLifecycle(db)
    repair_request = lifecycle.get(RequestType.REPAIR, request_id, user_id=current_user.id)

    data = _serialize_request(repair_request, datetime.utcnow())
    data["status_history"] = [
        StatusHistoryResponse.model_validate(entry).model_dump()
        for entry in lifecycle.history(RequestType.REPAIR, request_id)
    ]
    return success(data=data, message="Repair request retrieved")


# Admin

@router.get("/admin/requests", response_model=dict)
def list_repair_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All repair requests (admin only)."""
    now = datetime.utcnow()
    requests, total = RequestLifecycle(db).list_requests(
        RequestType.REPAIR,
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
        message="Repair requests retrieved",
    )


@router.patch("/admin/requests/{request_id}/status", response_model=dict)
@limiter.limit("20/minute")
def update_repair_request_status(
    request: Request,
    request_id: int,
    status_update: StatusTransitionRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Move a repair request through its lifecycle (admin only)."""
    repair_request = RequestLifecycle(db).transition(
        RequestType.REPAIR,
        request_id,
        status_update.status,
        rejection_note=status_update.rejection_note,
        changed_by=current_user.id,
    )
    return success(
        data=_serialize_request(repair_request, datetime.utcnow()),
        message="Repair request status updated",
    )


# Admin catalog

@router.get("/admin/services", response_model=dict)
def admin_list_repair_services(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All repair services, including retired ones (admin only)."""
    services = CatalogService.list_repair_services(db)
    return success(data=[service.model_dump() for service in services], message="Repair services retrieved")


@router.post("/admin/services", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_repair_service(
    service_data: RepairServiceCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = CatalogService.create_repair_service(db, service_data)
    return success(data=service.model_dump(), message="Repair service created successfully")


@router.put("/admin/services/{service_id}", response_model=dict)
def update_repair_service(
    service_id: int,
    service_data: RepairServiceUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Update a repair service; submitted requests keep their snapshotted price."""
    service = CatalogService.update_repair_service(db, service_id, service_data)
    return success(data=service.model_dump(), message="Repair service updated successfully")


@router.delete("/admin/services/{service_id}", response_model=dict)
def delete_repair_service(
    service_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = CatalogService.deactivate_repair_service(db, service_id)
    return success(data=service.model_dump(), message="Repair service deactivated successfully")


@router.get("/admin/mechanic-charge", response_model=dict)
def admin_get_mechanic_charge(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(
        data={"amount": CatalogService.get_mechanic_charge(db)},
        message="Service mechanic charge retrieved",
    )


@router.put("/admin/mechanic-charge", response_model=dict)
def update_mechanic_charge(
    charge_data: MechanicChargeUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Set the mechanic charge applied to new repair bookings (admin only)."""
    amount = CatalogService.set_mechanic_charge(db, charge_data.amount)
    return success(data={"amount": amount}, message="Mechanic charge updated successfully")


@router.get("/admin/time-slots", response_model=dict)
def admin_list_time_slots(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    slots = CatalogService.list_time_slots(db)
    return success(data=[slot.model_dump() for slot in slots], message="Time slots retrieved")


@router.post("/admin/time-slots", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_time_slot(
    slot_data: TimeSlotCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    slot = CatalogService.create_time_slot(db, slot_data)
    return success(data=slot.model_dump(), message="Time slot created successfully")


@router.delete("/admin/time-slots/{slot_id}", response_model=dict)
def delete_time_slot(
    slot_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    slot = CatalogService.deactivate_time_slot(db, slot_id)
    return success(data=slot.model_dump(), message="Time slot deactivated successfully")
