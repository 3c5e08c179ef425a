"""Turns a customer booking into a persisted request.

Pricing, coupon validation, request creation and the coupon usage entry all
happen in one transaction: either the request and its usage entry are both
committed, or neither is.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cyclebees.core.exceptions import APIError, PersistenceError, ValidationError
from cyclebees.models.enums import RequestType
from cyclebees.models.rental import Bicycle
from cyclebees.models.repair import RepairRequestService, RepairService, ServiceMechanicCharge, TimeSlot
from cyclebees.schemas.booking import RentalBookingCreate, RepairBookingCreate
from cyclebees.services.coupon_engine import CouponEngine
from cyclebees.services.request_lifecycle import RequestLifecycle

logger = structlog.get_logger()

# Item tags a coupon's applicable_items may name
REPAIR_SERVICES_TAG = "repair_services"
MECHANIC_CHARGE_TAG = "service_mechanic_charge"
RENTAL_BICYCLES_TAG = "rental_bicycles"
DELIVERY_CHARGES_TAG = "delivery_charges"


@dataclass
class PricedBooking:
    candidate_total: float
    item_tags: List[str]
    details: Dict[str, Any] = field(default_factory=dict)


def current_mechanic_charge(db: Session) -> float:
    charge = (
        db.query(ServiceMechanicCharge)
        .filter(ServiceMechanicCharge.is_active == True)
        .order_by(ServiceMechanicCharge.created_at.desc(), ServiceMechanicCharge.id.desc())
        .first()
    )
    return charge.amount if charge else 0.0


class BookingOrchestrator:

    def __init__(
        self,
        db: Session,
        coupon_engine: Optional[CouponEngine] = None,
        lifecycle: Optional[RequestLifecycle] = None,
    ):
        self.db = db
        self.coupon_engine = coupon_engine or CouponEngine(db)
        self.lifecycle = lifecycle or RequestLifecycle(db)

    def price(
        self,
        request_type: RequestType,
        booking: Union[RepairBookingCreate, RentalBookingCreate],
    ) -> PricedBooking:
        if request_type == RequestType.REPAIR:
            return self._price_repair(booking)
        return self._price_rental(booking)

    def _price_repair(self, booking: RepairBookingCreate) -> PricedBooking:
        # Preserve the caller's order, drop repeats
        service_ids = list(dict.fromkeys(booking.service_ids))
        if not service_ids:
            raise ValidationError("At least one repair service is required")

        services = {
            service.id: service
            for service in (
                self.db.query(RepairService)
                .filter(RepairService.id.in_(service_ids), RepairService.is_active == True)
                .all()
            )
        }
        missing = [service_id for service_id in service_ids if service_id not in services]
        if missing:
            raise ValidationError(
                "Unknown or inactive repair services",
                errors=[{"field": "service_ids", "invalid": missing}],
            )

        time_slot = (
            self.db.query(TimeSlot)
            .filter(TimeSlot.id == booking.time_slot_id, TimeSlot.is_active == True)
            .first()
        )
        if not time_slot:
            raise ValidationError(
                "Time slot not available",
                errors=[{"field": "time_slot_id", "invalid": booking.time_slot_id}],
            )

        mechanic_charge = current_mechanic_charge(self.db)
        services_total = sum(services[service_id].price for service_id in service_ids)

        item_tags = [REPAIR_SERVICES_TAG]
        if mechanic_charge > 0:
            item_tags.append(MECHANIC_CHARGE_TAG)

        lines = [
            RepairRequestService(
                repair_service_id=service_id,
                service_name=services[service_id].name,
                price=services[service_id].price,
            )
            for service_id in service_ids
        ]

        return PricedBooking(
            candidate_total=round(services_total + mechanic_charge, 2),
            item_tags=item_tags,
            details={
                "contact_number": booking.contact_number,
                "alternate_number": booking.alternate_number,
                "email": booking.email,
                "notes": booking.notes,
                "preferred_date": booking.preferred_date,
                "time_slot_id": time_slot.id,
                "mechanic_charge": mechanic_charge,
                "services": lines,
            },
        )

    def _price_rental(self, booking: RentalBookingCreate) -> PricedBooking:
        bicycle = (
            self.db.query(Bicycle)
            .filter(Bicycle.id == booking.bicycle_id, Bicycle.is_active == True)
            .first()
        )
        if not bicycle:
            raise ValidationError(
                "Bicycle not available",
                errors=[{"field": "bicycle_id", "invalid": booking.bicycle_id}],
            )

        rental_amount = round(bicycle.rate_for(booking.duration_type) * booking.duration_count, 2)
        delivery_charge = bicycle.delivery_charge or 0.0

        item_tags = [RENTAL_BICYCLES_TAG]
        if delivery_charge > 0:
            item_tags.append(DELIVERY_CHARGES_TAG)

        return PricedBooking(
            candidate_total=round(rental_amount + delivery_charge, 2),
            item_tags=item_tags,
            details={
                "bicycle_id": bicycle.id,
                "contact_number": booking.contact_number,
                "alternate_number": booking.alternate_number,
                "email": booking.email,
                "delivery_address": booking.delivery_address,
                "special_instructions": booking.special_instructions,
                "duration_type": booking.duration_type,
                "duration_count": booking.duration_count,
                "rental_amount": rental_amount,
                "delivery_charge": delivery_charge,
            },
        )

    def submit(
        self,
        user_id: int,
        request_type: RequestType,
        booking: Union[RepairBookingCreate, RentalBookingCreate],
        now: Optional[datetime] = None,
    ):
        """
        Price, discount and persist a booking as a new pending request.

        Args:
            user_id (int): Customer placing the booking
            request_type (RequestType): repair or rental
            booking: Validated booking payload
            now (datetime): Reference time, defaults to utcnow

        Returns:
            RepairRequest | RentalRequest: The committed request

        Raises:
            ValidationError: Unknown catalog items or empty service list
            CouponError: Coupon rejected (the booking is not created)
            PersistenceError: Storage failed; nothing was written
        """
        now = now or datetime.utcnow()
        coupon_code = (booking.coupon_code or "").strip() or None

        try:
            priced = self.price(request_type, booking)

            coupon = None
            discount_amount = 0.0
            if coupon_code:
                coupon, discount_amount = self.coupon_engine.validate(
                    coupon_code,
                    user_id,
                    request_type,
                    priced.item_tags,
                    priced.candidate_total,
                    now=now,
                    lock=True,
                )

            request = self.lifecycle.create(
                request_type,
                user_id=user_id,
                total_amount=priced.candidate_total,
                discount_amount=discount_amount,
                net_amount=round(priced.candidate_total - discount_amount, 2),
                payment_method=booking.payment_method,
                coupon_code=coupon.code if coupon else None,
                now=now,
                **priced.details,
            )

            if coupon:
                self.coupon_engine.record_usage(
                    coupon.id,
                    user_id,
                    request_type,
                    request.id,
                    discount_amount,
                    now=now,
                )

            self.db.commit()
            self.db.refresh(request)
        except APIError as exc:
            self.db.rollback()
            logger.info(
                "booking_rejected",
                user_id=user_id,
                request_type=request_type.value,
                coupon_code=coupon_code,
                reason=exc.message,
            )
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception(
                "booking_failed",
                user_id=user_id,
                request_type=request_type.value,
                coupon_code=coupon_code,
            )
            raise PersistenceError() from exc

        logger.info(
            "booking_submitted",
            user_id=user_id,
            request_type=request_type.value,
            request_id=request.id,
            total_amount=request.total_amount,
            discount_amount=request.discount_amount,
            net_amount=request.net_amount,
            coupon_code=request.coupon_code,
        )
        return request
