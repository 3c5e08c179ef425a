from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from cyclebees.core.exceptions import (
    CouponBelowMinimum,
    CouponNotApplicable,
    CouponNotFound,
    CouponUsageLimitReached,
    PersistenceError,
    ValidationError,
)
from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.coupon import DiscountType
from cyclebees.models.enums import DurationType, PaymentMethod, RequestStatus, RequestType
from cyclebees.models.rental import RentalRequest
from cyclebees.models.repair import RepairRequest
from cyclebees.schemas.booking import RentalBookingCreate, RepairBookingCreate
from cyclebees.services.booking_orchestrator import BookingOrchestrator
from cyclebees.services.coupon_engine import CouponEngine
from cyclebees.services.usage_ledger import UsageLedger


def _repair_booking(catalog: dict, **overrides) -> RepairBookingCreate:
    values = {
        "contact_number": "9876543210",
        "preferred_date": date.today() + timedelta(days=1),
        "time_slot_id": catalog["slot"].id,
        "payment_method": PaymentMethod.ONLINE,
        "service_ids": [service.id for service in catalog["services"]],
    }
    values.update(overrides)
    return RepairBookingCreate(**values)


def _rental_booking(bicycle, **overrides) -> RentalBookingCreate:
    values = {
        "bicycle_id": bicycle.id,
        "contact_number": "9876543210",
        "delivery_address": "12 MG Road, Pune",
        "duration_type": DurationType.DAILY,
        "duration_count": 2,
        "payment_method": PaymentMethod.OFFLINE,
    }
    values.update(overrides)
    return RentalBookingCreate(**values)


def test_welcome_coupon_end_to_end(db_session: Session, user, repair_catalog, make_coupon):
    make_coupon()
    orchestrator = BookingOrchestrator(db_session)

    request = orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="WELCOME10"))

    assert request.status == RequestStatus.PENDING
    assert (request.total_amount, request.discount_amount, request.net_amount) == (500.0, 50.0, 450.0)
    assert request.coupon_code == "WELCOME10"
    assert [line.service_name for line in request.services] == ["Puncture Repair", "Tune Up"]

    usage = db_session.query(CouponUsage).one()
    assert (usage.request_type, usage.request_id, usage.discount_amount) == (RequestType.REPAIR, request.id, 50.0)

    with pytest.raises(CouponUsageLimitReached):
        orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="WELCOME10"))

    assert db_session.query(RepairRequest).count() == 1


def test_usage_limit_allows_exactly_n_bookings(db_session: Session, user, repair_catalog, make_coupon):
    make_coupon(code="THRICE", usage_limit=3)
    orchestrator = BookingOrchestrator(db_session)

    for _ in range(3):
        orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="THRICE"))

    result = CouponEngine(db_session).evaluate("THRICE", user.id, RequestType.REPAIR, ["repair_services"], 500.0)
    assert result.reason.value == "usage_limit_reached"
    assert UsageLedger(db_session).count_for(db_session.query(CouponUsage).first().coupon_id, user.id) == 3


def test_booking_without_coupon(db_session: Session, user, repair_catalog):
    request = BookingOrchestrator(db_session).submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog))

    assert (request.total_amount, request.discount_amount, request.net_amount) == (500.0, 0.0, 500.0)
    assert request.coupon_code is None
    assert db_session.query(CouponUsage).count() == 0


def test_mechanic_charge_is_priced_and_tagged(db_session: Session, user, repair_catalog, mechanic_charge, make_coupon):
    make_coupon(code="VISIT50", discount_type=DiscountType.FIXED, discount_value=50.0, applicable_items=["service_mechanic_charge"])

    request = BookingOrchestrator(db_session).submit(
        user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="VISIT50")
    )

    assert request.mechanic_charge == 100.0
    assert (request.total_amount, request.discount_amount, request.net_amount) == (600.0, 50.0, 550.0)


def test_rental_pricing_with_delivery(db_session: Session, user, bicycle, make_coupon):
    make_coupon(code="RIDE20", discount_value=20.0, max_discount=100.0, applicable_items=["rental_bicycles"])
    orchestrator = BookingOrchestrator(db_session)

    daily = orchestrator.submit(user.id, RequestType.RENTAL, _rental_booking(bicycle, coupon_code="RIDE20"))
    weekly = orchestrator.submit(
        user.id, RequestType.RENTAL, _rental_booking(bicycle, duration_type=DurationType.WEEKLY, duration_count=1)
    )

    assert (daily.rental_amount, daily.delivery_charge, daily.total_amount) == (500.0, 50.0, 550.0)
    assert (daily.discount_amount, daily.net_amount) == (100.0, 450.0)
    assert (weekly.rental_amount, weekly.total_amount) == (1500.0, 1550.0)


def test_coupon_failure_creates_nothing(db_session: Session, user, repair_catalog, make_coupon):
    make_coupon(code="BIGSPEND", min_amount=1000.0)
    make_coupon(code="RENTONLY", applicable_items=["rental_bicycles"])
    orchestrator = BookingOrchestrator(db_session)

    with pytest.raises(CouponNotFound):
        orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="MISSING"))
    with pytest.raises(CouponBelowMinimum):
        orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="BIGSPEND"))
    with pytest.raises(CouponNotApplicable):
        orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="RENTONLY"))

    assert db_session.query(RepairRequest).count() == 0
    assert db_session.query(CouponUsage).count() == 0


def test_unknown_items_are_validation_errors(db_session: Session, user, repair_catalog, bicycle):
    orchestrator = BookingOrchestrator(db_session)

    with pytest.raises(ValidationError):
        orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, service_ids=[]))
    with pytest.raises(ValidationError) as exc_info:
        orchestrator.submit(
            user.id, RequestType.REPAIR, _repair_booking(repair_catalog, service_ids=[repair_catalog["retired"].id, 999])
        )
    assert exc_info.value.errors == [{"field": "service_ids", "invalid": [repair_catalog["retired"].id, 999]}]

    with pytest.raises(ValidationError):
        orchestrator.submit(user.id, RequestType.REPAIR, _repair_booking(repair_catalog, time_slot_id=999))
    with pytest.raises(ValidationError):
        orchestrator.submit(user.id, RequestType.RENTAL, _rental_booking(bicycle, bicycle_id=999))

    assert db_session.query(RepairRequest).count() == 0
    assert db_session.query(RentalRequest).count() == 0


def test_duplicate_service_ids_are_priced_once(db_session: Session, user, repair_catalog):
    puncture = repair_catalog["services"][0]
    request = BookingOrchestrator(db_session).submit(
        user.id, RequestType.REPAIR, _repair_booking(repair_catalog, service_ids=[puncture.id, puncture.id])
    )
    assert request.total_amount == 200.0
    assert len(request.services) == 1


def test_submit_is_all_or_nothing_when_usage_write_fails(db_session: Session, user, repair_catalog, make_coupon, monkeypatch):
    make_coupon()

    def failing_append(self, *args, **kwargs):
        raise OperationalError("INSERT INTO coupon_usage", {}, Exception("database is locked"))

    monkeypatch.setattr(UsageLedger, "append", failing_append)

    with pytest.raises(PersistenceError) as exc_info:
        BookingOrchestrator(db_session).submit(
            user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="WELCOME10")
        )

    assert exc_info.value.status_code == 503
    assert db_session.query(RepairRequest).count() == 0
    assert db_session.query(CouponUsage).count() == 0

    # The coupon is still redeemable once storage recovers
    monkeypatch.undo()
    request = BookingOrchestrator(db_session).submit(
        user.id, RequestType.REPAIR, _repair_booking(repair_catalog, coupon_code="WELCOME10")
    )
    assert request.discount_amount == 50.0
