from sqlalchemy.orm import Session
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from typing import Optional, Tuple, List
import structlog

from cyclebees.core.exceptions import CouponCodeExists, CouponRecordNotFound
from cyclebees.models.coupon import Coupon
from cyclebees.schemas.coupon import CouponCreate, CouponUpdate, CouponResponse

logger = structlog.get_logger()


class CouponService:

    @staticmethod
    def _get_or_404(db: Session, coupon_id: int) -> Coupon:
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise CouponRecordNotFound()
        return coupon

    @staticmethod
    def _commit_or_conflict(db: Session):
        # The code pre-check can race another admin; the unique index decides
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise CouponCodeExists()

    @staticmethod
    def create_coupon(db: Session, coupon_data: CouponCreate) -> CouponResponse:
        """Create a new coupon (admin only)."""
        existing = db.query(Coupon).filter(Coupon.code == coupon_data.code).first()
        if existing:
            raise CouponCodeExists()

        coupon = Coupon(**coupon_data.model_dump())

        db.add(coupon)
        CouponService._commit_or_conflict(db)
        db.refresh(coupon)

        logger.info("coupon_created", coupon_id=coupon.id, code=coupon.code)
        return CouponResponse.model_validate(coupon)

    @staticmethod
    def update_coupon(db: Session, coupon_id: int, coupon_data: CouponUpdate) -> CouponResponse:
        """Update a coupon (admin only)."""
        coupon = CouponService._get_or_404(db, coupon_id)

        update_data = coupon_data.model_dump(exclude_unset=True)
        new_code = update_data.get("code")
        if new_code and new_code != coupon.code:
            clash = db.query(Coupon).filter(Coupon.code == new_code, Coupon.id != coupon_id).first()
            if clash:
                raise CouponCodeExists()

        for key, value in update_data.items():
            setattr(coupon, key, value)

        CouponService._commit_or_conflict(db)
        db.refresh(coupon)

        logger.info("coupon_updated", coupon_id=coupon.id, fields=sorted(update_data))
        return CouponResponse.model_validate(coupon)

    @staticmethod
    def delete_coupon(db: Session, coupon_id: int) -> CouponResponse:
        """
        Retire a coupon (admin only).

        The row is deactivated rather than removed so its usage ledger, and
        the per-user limits counted from it, survive.
        """
        coupon = CouponService._get_or_404(db, coupon_id)

        coupon.is_active = False
        db.commit()
        db.refresh(coupon)

        logger.info("coupon_deactivated", coupon_id=coupon_id)
        return CouponResponse.model_validate(coupon)

    @staticmethod
    def get_coupon(db: Session, coupon_id: int) -> CouponResponse:
        """Get a coupon by ID."""
        return CouponResponse.model_validate(CouponService._get_or_404(db, coupon_id))

    @staticmethod
    def list_coupons(
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Tuple[List[CouponResponse], int]:
        """List coupons, newest first, optionally filtered by code/description."""
        query = db.query(Coupon)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Coupon.code.ilike(pattern), Coupon.description.ilike(pattern)))

        total = query.count()
        coupons = (
            query.order_by(Coupon.created_at.desc(), Coupon.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return [CouponResponse.model_validate(coupon) for coupon in coupons], total
