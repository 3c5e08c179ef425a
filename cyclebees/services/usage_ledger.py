from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cyclebees.core.exceptions import ConcurrencyConflict, CouponUsageLimitReached
from cyclebees.models.coupon import Coupon
from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.enums import RequestType


class UsageLedger:
    """Append-only access to coupon redemptions.

    Each redemption claims the next per-user slot for its coupon. The
    ``(coupon_id, user_id, usage_slot)`` unique constraint makes the store
    reject a redemption that would push the user past ``usage_limit``, even
    when two bookings read the same count concurrently.
    """

    def __init__(self, db: Session):
        self.db = db

    def count_for(self, coupon_id: int, user_id: int) -> int:
        return self.db.query(func.count(CouponUsage.id)).filter(
            and_(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id)
        ).scalar() or 0

    def entries_for_request(self, request_type: RequestType, request_id: int) -> List[CouponUsage]:
        return (
            self.db.query(CouponUsage)
            .filter(
                CouponUsage.request_type == request_type,
                CouponUsage.request_id == request_id,
            )
            .all()
        )

    def append(
        self,
        coupon: Coupon,
        user_id: int,
        request_type: RequestType,
        request_id: int,
        discount_amount: float,
        used_at: Optional[datetime] = None,
    ) -> CouponUsage:
        """Record one redemption inside the caller's transaction (flush only)."""
        if self.entries_for_request(request_type, request_id):
            raise ConcurrencyConflict("Coupon usage already recorded for this booking")

        slot = self.count_for(coupon.id, user_id) + 1
        if slot > coupon.usage_limit:
            raise CouponUsageLimitReached()

        usage = CouponUsage(
            coupon_id=coupon.id,
            user_id=user_id,
            request_type=request_type,
            request_id=request_id,
            discount_amount=discount_amount,
            usage_slot=slot,
            used_at=used_at or datetime.utcnow(),
        )
        self.db.add(usage)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # A concurrent booking claimed the same slot first
            raise CouponUsageLimitReached() from exc
        return usage
