"""Coupon eligibility checks and discount calculation for bookings."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from cyclebees.core.exceptions import (
    CouponBelowMinimum,
    CouponError,
    CouponExpired,
    CouponFailureReason,
    CouponNotApplicable,
    CouponNotFound,
    CouponUsageLimitReached,
)
from cyclebees.models.coupon import Coupon, DiscountType
from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.enums import RequestType
from cyclebees.services.usage_ledger import UsageLedger

logger = structlog.get_logger()


@dataclass
class CouponEvaluation:
    """Outcome of a coupon preview."""

    valid: bool
    discount_amount: float
    reason: Optional[CouponFailureReason] = None
    message: Optional[str] = None
    coupon: Optional[Coupon] = None


def compute_discount(coupon: Coupon, candidate_total: float) -> float:
    """Discount for ``candidate_total``, never more than the total itself."""
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = candidate_total * coupon.discount_value / 100
        if coupon.max_discount and coupon.max_discount > 0 and discount > coupon.max_discount:
            discount = coupon.max_discount
    else:  # FIXED
        discount = coupon.discount_value

    if discount > candidate_total:
        discount = candidate_total
    return round(discount, 2)


class CouponEngine:
    """Validates coupons against a candidate order.

    Previews (``evaluate``/``validate``) never write. Redemptions are recorded
    through ``record_usage``, which only the booking orchestrator calls, inside
    the same transaction that creates the request.
    """

    def __init__(self, db: Session, ledger: Optional[UsageLedger] = None):
        self.db = db
        self.ledger = ledger or UsageLedger(db)

    def _get_active_coupon(self, code: str, lock: bool = False) -> Optional[Coupon]:
        query = self.db.query(Coupon).filter(Coupon.code == code, Coupon.is_active == True)
        if lock:
            query = query.with_for_update()
        return query.first()

    def validate(
        self,
        code: str,
        user_id: int,
        request_type: RequestType,
        item_tags: Iterable[str],
        candidate_total: float,
        now: Optional[datetime] = None,
        lock: bool = False,
    ) -> Tuple[Coupon, float]:
        """Return the coupon and its discount, or raise the matching CouponError.

        Checks run in a fixed order and stop at the first failure: existence,
        expiry, per-user usage, item applicability, minimum amount.
        """
        now = now or datetime.utcnow()

        coupon = self._get_active_coupon(code, lock=lock)
        if not coupon:
            raise CouponNotFound()

        if coupon.is_expired(now):
            raise CouponExpired()

        if self.ledger.count_for(coupon.id, user_id) >= coupon.usage_limit:
            raise CouponUsageLimitReached()

        if not coupon.applies_to(list(item_tags)):
            raise CouponNotApplicable()

        if coupon.min_amount and coupon.min_amount > 0 and candidate_total < coupon.min_amount:
            raise CouponBelowMinimum(coupon.min_amount)

        return coupon, compute_discount(coupon, candidate_total)

    def evaluate(
        self,
        code: str,
        user_id: int,
        request_type: RequestType,
        item_tags: Iterable[str],
        candidate_total: float,
        now: Optional[datetime] = None,
    ) -> CouponEvaluation:
        """Preview a coupon without side effects."""
        try:
            coupon, discount_amount = self.validate(
                code, user_id, request_type, item_tags, candidate_total, now=now
            )
        except CouponError as exc:
            logger.info(
                "coupon_preview_rejected",
                code=code,
                user_id=user_id,
                request_type=request_type.value,
                reason=exc.reason.value,
            )
            return CouponEvaluation(
                valid=False,
                discount_amount=0.0,
                reason=exc.reason,
                message=exc.message,
            )

        return CouponEvaluation(
            valid=True,
            discount_amount=discount_amount,
            message="Coupon applied successfully",
            coupon=coupon,
        )

    def list_available(self, user_id: int, now: Optional[datetime] = None) -> List[Coupon]:
        """Active, unexpired coupons the user still has redemptions left on."""
        now = now or datetime.utcnow()

        usage_counts = (
            self.db.query(
                CouponUsage.coupon_id.label("coupon_id"),
                func.count(CouponUsage.id).label("used"),
            )
            .filter(CouponUsage.user_id == user_id)
            .group_by(CouponUsage.coupon_id)
            .subquery()
        )

        return (
            self.db.query(Coupon)
            .outerjoin(usage_counts, usage_counts.c.coupon_id == Coupon.id)
            .filter(
                Coupon.is_active == True,
                or_(Coupon.expires_at.is_(None), Coupon.expires_at > now),
                func.coalesce(usage_counts.c.used, 0) < Coupon.usage_limit,
            )
            .order_by(Coupon.created_at.desc(), Coupon.id.desc())
            .all()
        )

    def record_usage(
        self,
        coupon_id: int,
        user_id: int,
        request_type: RequestType,
        request_id: int,
        discount_amount: float,
        now: Optional[datetime] = None,
    ) -> CouponUsage:
        coupon = self.db.query(Coupon).filter(Coupon.id == coupon_id).with_for_update().first()
        if not coupon:
            raise CouponNotFound()

        usage = self.ledger.append(
            coupon,
            user_id,
            request_type,
            request_id,
            discount_amount,
            used_at=now,
        )
        logger.info(
            "coupon_usage_recorded",
            coupon_id=coupon_id,
            user_id=user_id,
            request_type=request_type.value,
            request_id=request_id,
            discount_amount=discount_amount,
            usage_slot=usage.usage_slot,
        )
        return usage
