from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from cyclebees.core.exceptions import (
    CouponBelowMinimum,
    CouponExpired,
    CouponFailureReason,
    CouponNotApplicable,
    CouponNotFound,
    CouponUsageLimitReached,
)
from cyclebees.models.coupon import Coupon, DiscountType
from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.enums import RequestType
from cyclebees.services.coupon_engine import CouponEngine, compute_discount


def _use_coupon(db: Session, coupon: Coupon, user_id: int, request_id: int) -> None:
    CouponEngine(db).record_usage(coupon.id, user_id, RequestType.REPAIR, request_id, 10.0)
    db.commit()


def test_percentage_discount_is_capped_by_max_discount():
    coupon = Coupon(discount_type=DiscountType.PERCENTAGE, discount_value=50.0, max_discount=100.0)
    assert compute_discount(coupon, 1000.0) == 100.0


def test_fixed_discount_never_exceeds_order_total():
    coupon = Coupon(discount_type=DiscountType.FIXED, discount_value=500.0)
    assert compute_discount(coupon, 300.0) == 300.0


def test_percentage_above_hundred_is_clipped_to_total():
    coupon = Coupon(discount_type=DiscountType.PERCENTAGE, discount_value=150.0)
    assert compute_discount(coupon, 200.0) == 200.0


def test_non_positive_max_discount_means_uncapped():
    coupon = Coupon(discount_type=DiscountType.PERCENTAGE, discount_value=20.0, max_discount=0.0)
    assert compute_discount(coupon, 1000.0) == 200.0


def test_evaluate_valid_coupon(db_session: Session, user, make_coupon):
    coupon = make_coupon()

    result = CouponEngine(db_session).evaluate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 500.0)

    assert result.valid is True
    assert result.discount_amount == 50.0
    assert result.reason is None
    assert result.coupon.id == coupon.id


def test_unknown_and_inactive_coupons_are_not_found(db_session: Session, user, make_coupon):
    make_coupon(code="SLEEPING", is_active=False)
    engine = CouponEngine(db_session)

    for code in ("NOPE", "SLEEPING"):
        result = engine.evaluate(code, user.id, RequestType.REPAIR, ["repair_services"], 500.0)
        assert result.valid is False
        assert result.discount_amount == 0.0
        assert result.reason == CouponFailureReason.NOT_FOUND


def test_code_lookup_is_case_sensitive(db_session: Session, user, make_coupon):
    make_coupon()
    with pytest.raises(CouponNotFound):
        CouponEngine(db_session).validate("welcome10", user.id, RequestType.REPAIR, ["repair_services"], 500.0)


def test_expired_coupon(db_session: Session, user, make_coupon):
    now = datetime.utcnow()
    make_coupon(expires_at=now - timedelta(minutes=1))

    with pytest.raises(CouponExpired):
        CouponEngine(db_session).validate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 500.0, now=now)


def test_not_applicable_to_items(db_session: Session, user, make_coupon):
    make_coupon(applicable_items=["rental_bicycles"])
    engine = CouponEngine(db_session)

    with pytest.raises(CouponNotApplicable):
        engine.validate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 500.0)

    with pytest.raises(CouponNotApplicable):
        engine.validate("WELCOME10", user.id, RequestType.RENTAL, [], 500.0)


def test_wildcard_matches_any_item(db_session: Session, user, make_coupon):
    make_coupon(applicable_items=["all"])
    result = CouponEngine(db_session).evaluate("WELCOME10", user.id, RequestType.RENTAL, ["delivery_charges"], 300.0)
    assert result.valid is True
    assert result.discount_amount == 30.0


def test_below_minimum_amount(db_session: Session, user, make_coupon):
    make_coupon(min_amount=1000.0)

    with pytest.raises(CouponBelowMinimum) as exc_info:
        CouponEngine(db_session).validate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 999.0)

    assert exc_info.value.message == "Minimum amount for coupon is ₹1000"


def test_checks_stop_at_first_failure(db_session: Session, user, make_coupon):
    now = datetime.utcnow()
    # Expired, not applicable and below minimum: expiry is reported
    make_coupon(
        expires_at=now - timedelta(days=1),
        applicable_items=["rental_bicycles"],
        min_amount=10000.0,
    )

    result = CouponEngine(db_session).evaluate(
        "WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 100.0, now=now
    )
    assert result.reason == CouponFailureReason.EXPIRED


def test_evaluate_has_no_side_effects(db_session: Session, user, make_coupon):
    make_coupon()
    engine = CouponEngine(db_session)

    first = engine.evaluate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 500.0)
    second = engine.evaluate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 500.0)

    assert first == second
    assert db_session.query(CouponUsage).count() == 0


def test_usage_limit_is_per_user(db_session: Session, user, other_user, make_coupon):
    coupon = make_coupon(usage_limit=2)
    engine = CouponEngine(db_session)

    _use_coupon(db_session, coupon, user.id, request_id=1)
    assert engine.evaluate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 500.0).valid is True

    _use_coupon(db_session, coupon, user.id, request_id=2)
    result = engine.evaluate("WELCOME10", user.id, RequestType.REPAIR, ["repair_services"], 500.0)
    assert result.valid is False
    assert result.reason == CouponFailureReason.USAGE_LIMIT_REACHED

    # Another customer still has both redemptions
    assert engine.evaluate("WELCOME10", other_user.id, RequestType.REPAIR, ["repair_services"], 500.0).valid is True


def test_list_available_hides_spent_expired_and_inactive(db_session: Session, user, make_coupon):
    now = datetime.utcnow()
    spent = make_coupon(code="ONCEONLY")
    make_coupon(code="OLDDEAL", expires_at=now - timedelta(days=1))
    make_coupon(code="PAUSED", is_active=False)
    make_coupon(code="FRESH", expires_at=now + timedelta(days=7))
    make_coupon(code="FOREVER")

    _use_coupon(db_session, spent, user.id, request_id=1)

    codes = {coupon.code for coupon in CouponEngine(db_session).list_available(user.id, now=now)}
    assert codes == {"FRESH", "FOREVER"}


def test_record_usage_rejects_a_redemption_past_the_limit(db_session: Session, user, make_coupon):
    coupon = make_coupon()
    _use_coupon(db_session, coupon, user.id, request_id=1)

    with pytest.raises(CouponUsageLimitReached):
        CouponEngine(db_session).record_usage(coupon.id, user.id, RequestType.REPAIR, 2, 10.0)
    db_session.rollback()

    assert db_session.query(CouponUsage).count() == 1
