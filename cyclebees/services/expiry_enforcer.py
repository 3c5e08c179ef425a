from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from cyclebees.models import REQUEST_MODELS
from cyclebees.models.enums import EXPIRABLE_STATUSES, RequestStatus
from cyclebees.services.request_lifecycle import RequestLifecycle, is_stale

logger = structlog.get_logger()


def effective_status(request, now: Optional[datetime] = None) -> RequestStatus:
    """Status as users should see it, without waiting for the next sweep."""
    now = now or datetime.utcnow()
    if is_stale(request, now):
        return RequestStatus.EXPIRED
    return request.status


class ExpiryEnforcer:

    def __init__(self, db: Session, lifecycle: Optional[RequestLifecycle] = None):
        self.db = db
        self.lifecycle = lifecycle or RequestLifecycle(db)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Expire pending/waiting_payment requests past their deadline.

        Args:
            now (datetime): Reference time, defaults to utcnow

        Returns:
            int: Number of requests expired by this run
        """
        now = now or datetime.utcnow()
        expired_count = 0

        try:
            for request_type, model in REQUEST_MODELS.items():
                stale_requests = (
                    self.db.query(model)
                    .filter(
                        model.status.in_(list(EXPIRABLE_STATUSES)),
                        model.expires_at < now,
                    )
                    .order_by(model.id)
                    .all()
                )

                for request in stale_requests:
                    previous_status = request.status
                    if not self.lifecycle.expire(request_type, request, now):
                        continue
                    logger.info(
                        "request_expired",
                        request_type=request_type.value,
                        request_id=request.id,
                        user_id=request.user_id,
                        previous_status=previous_status.value,
                    )
                    expired_count += 1

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return expired_count
