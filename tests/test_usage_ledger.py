import pytest
from sqlalchemy.orm import Session

from cyclebees.core.exceptions import ConcurrencyConflict, CouponUsageLimitReached
from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.enums import RequestType
from cyclebees.services.usage_ledger import UsageLedger


def test_append_claims_consecutive_slots(db_session: Session, user, make_coupon):
    coupon = make_coupon(usage_limit=3)
    ledger = UsageLedger(db_session)

    first = ledger.append(coupon, user.id, RequestType.REPAIR, 1, 50.0)
    second = ledger.append(coupon, user.id, RequestType.RENTAL, 1, 25.0)
    db_session.commit()

    assert (first.usage_slot, second.usage_slot) == (1, 2)
    assert ledger.count_for(coupon.id, user.id) == 2


def test_count_is_scoped_to_user(db_session: Session, user, other_user, make_coupon):
    coupon = make_coupon(usage_limit=2)
    ledger = UsageLedger(db_session)

    ledger.append(coupon, user.id, RequestType.REPAIR, 1, 50.0)
    db_session.commit()

    assert ledger.count_for(coupon.id, user.id) == 1
    assert ledger.count_for(coupon.id, other_user.id) == 0


def test_append_beyond_limit_is_rejected(db_session: Session, user, make_coupon):
    coupon = make_coupon(usage_limit=1)
    ledger = UsageLedger(db_session)
    ledger.append(coupon, user.id, RequestType.REPAIR, 1, 50.0)
    db_session.commit()

    with pytest.raises(CouponUsageLimitReached):
        ledger.append(coupon, user.id, RequestType.REPAIR, 2, 50.0)


def test_stale_count_cannot_overshoot_limit(db_session: Session, user, make_coupon, monkeypatch):
    coupon = make_coupon(usage_limit=1)
    ledger = UsageLedger(db_session)
    ledger.append(coupon, user.id, RequestType.REPAIR, 1, 50.0)
    db_session.commit()

    # A second booking that read the count before the first one committed
    monkeypatch.setattr(UsageLedger, "count_for", lambda self, coupon_id, user_id: 0)

    with pytest.raises(CouponUsageLimitReached):
        ledger.append(coupon, user.id, RequestType.REPAIR, 2, 50.0)
    db_session.rollback()

    assert db_session.query(CouponUsage).filter(CouponUsage.user_id == user.id).count() == 1


def test_one_entry_per_request(db_session: Session, user, make_coupon):
    coupon = make_coupon(usage_limit=5)
    ledger = UsageLedger(db_session)
    ledger.append(coupon, user.id, RequestType.RENTAL, 7, 30.0)
    db_session.commit()

    with pytest.raises(ConcurrencyConflict):
        ledger.append(coupon, user.id, RequestType.RENTAL, 7, 30.0)

    entries = ledger.entries_for_request(RequestType.RENTAL, 7)
    assert len(entries) == 1
    assert entries[0].discount_amount == 30.0
