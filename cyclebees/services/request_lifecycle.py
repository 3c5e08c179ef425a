"""State machine for repair and rental requests.

Status only moves forward:

- pending -> waiting_payment (approved, online payment)
- pending -> active | arranging_delivery (approved, offline payment)
- pending -> rejected (with a note)
- pending | waiting_payment -> expired (past expires_at)
- waiting_payment -> active | arranging_delivery (payment confirmed)
- arranging_delivery -> active_rental (rental delivered)
- active | active_rental -> completed

Repair requests use ``active``; rental requests go through
``arranging_delivery`` and ``active_rental`` instead.

Every write of ``status`` is a single conditional UPDATE guarded by the status
the caller observed, so two writers racing on one request resolve to exactly
one winner.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import structlog
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from cyclebees.core.config import settings
from cyclebees.core.exceptions import ConcurrencyConflict, InvalidTransition, RequestNotFound, ValidationError
from cyclebees.models import REQUEST_MODELS
from cyclebees.models.enums import (
    EXPIRABLE_STATUSES,
    TERMINAL_STATUSES,
    PaymentMethod,
    RequestStatus,
    RequestType,
)
from cyclebees.models.request_status_history import RequestStatusHistory

logger = structlog.get_logger()


# Where an approved request goes once it no longer waits on payment
FULFILMENT_STATUS = {
    RequestType.REPAIR: RequestStatus.ACTIVE,
    RequestType.RENTAL: RequestStatus.ARRANGING_DELIVERY,
}

_ALLOWED_TRANSITIONS = {
    RequestType.REPAIR: {
        RequestStatus.PENDING: {
            RequestStatus.WAITING_PAYMENT,
            RequestStatus.ACTIVE,
            RequestStatus.REJECTED,
            RequestStatus.EXPIRED,
        },
        RequestStatus.WAITING_PAYMENT: {RequestStatus.ACTIVE, RequestStatus.EXPIRED},
        RequestStatus.ACTIVE: {RequestStatus.COMPLETED},
    },
    RequestType.RENTAL: {
        RequestStatus.PENDING: {
            RequestStatus.WAITING_PAYMENT,
            RequestStatus.ARRANGING_DELIVERY,
            RequestStatus.REJECTED,
            RequestStatus.EXPIRED,
        },
        RequestStatus.WAITING_PAYMENT: {RequestStatus.ARRANGING_DELIVERY, RequestStatus.EXPIRED},
        RequestStatus.ARRANGING_DELIVERY: {RequestStatus.ACTIVE_RENTAL},
        RequestStatus.ACTIVE_RENTAL: {RequestStatus.COMPLETED},
    },
}


def allowed_targets(request_type: RequestType, current: RequestStatus) -> frozenset:
    return frozenset(_ALLOWED_TRANSITIONS[request_type].get(current, set()))


def is_stale(request, now: datetime) -> bool:
    """True when the request sits in an expirable state past its deadline."""
    return request.status in EXPIRABLE_STATUSES and request.expires_at < now


def effective_status_clause(model, status: RequestStatus, now: datetime):
    """SQL filter matching requests whose *effective* status is ``status``."""
    stale = and_(model.status.in_(list(EXPIRABLE_STATUSES)), model.expires_at < now)
    if status == RequestStatus.EXPIRED:
        return or_(model.status == RequestStatus.EXPIRED, stale)
    if status in EXPIRABLE_STATUSES:
        return and_(model.status == status, model.expires_at >= now)
    return model.status == status


class RequestLifecycle:
    """Creates requests and moves them through the transition table."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        request_type: RequestType,
        *,
        user_id: int,
        total_amount: float,
        discount_amount: float,
        net_amount: float,
        payment_method: PaymentMethod,
        now: Optional[datetime] = None,
        **details,
    ):
        """Add a new ``pending`` request to the current transaction (flush only)."""
        now = now or datetime.utcnow()
        model = REQUEST_MODELS[request_type]

        request = model(
            user_id=user_id,
            status=RequestStatus.PENDING,
            total_amount=total_amount,
            discount_amount=discount_amount,
            net_amount=net_amount,
            payment_method=payment_method,
            expires_at=now + timedelta(minutes=settings.REQUEST_EXPIRY_MINUTES),
            created_at=now,
            updated_at=now,
            **details,
        )
        self.db.add(request)
        self.db.flush()

        self._record_history(request_type, request.id, None, RequestStatus.PENDING, None, "Booking submitted", now)
        self.db.flush()
        return request

    def get(
        self,
        request_type: RequestType,
        request_id: int,
        user_id: Optional[int] = None,
    ):
        model = REQUEST_MODELS[request_type]
        query = self.db.query(model).filter(model.id == request_id)
        if user_id is not None:
            query = query.filter(model.user_id == user_id)

        request = query.first()
        if not request:
            raise RequestNotFound(request_type.value, request_id)
        return request

    def list_requests(
        self,
        request_type: RequestType,
        user_id: Optional[int] = None,
        status: Optional[RequestStatus] = None,
        page: int = 1,
        limit: int = 10,
        now: Optional[datetime] = None,
    ) -> Tuple[List, int]:
        """Requests newest first; ``status`` filters on the effective status."""
        now = now or datetime.utcnow()
        model = REQUEST_MODELS[request_type]

        query = self.db.query(model)
        if user_id is not None:
            query = query.filter(model.user_id == user_id)
        if status is not None:
            query = query.filter(effective_status_clause(model, status, now))

        total = query.count()
        requests = (
            query.order_by(model.created_at.desc(), model.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return requests, total

    def history(self, request_type: RequestType, request_id: int) -> List[RequestStatusHistory]:
        return (
            self.db.query(RequestStatusHistory)
            .filter(
                RequestStatusHistory.request_type == request_type,
                RequestStatusHistory.request_id == request_id,
            )
            .order_by(RequestStatusHistory.created_at, RequestStatusHistory.id)
            .all()
        )

    def completed_revenue(self, request_type: Optional[RequestType] = None) -> float:
        """Net revenue of completed requests, the figure analytics aggregates."""
        types = [request_type] if request_type else list(REQUEST_MODELS)
        revenue = 0.0
        for kind in types:
            model = REQUEST_MODELS[kind]
            revenue += (
                self.db.query(func.coalesce(func.sum(model.net_amount), 0.0))
                .filter(model.status == RequestStatus.COMPLETED)
                .scalar()
            )
        return round(revenue, 2)

    def transition(
        self,
        request_type: RequestType,
        request_id: int,
        target: RequestStatus,
        rejection_note: Optional[str] = None,
        changed_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ):
        """Apply an admin status change and commit it.

        Returns the refreshed request. Raises ``RequestNotFound``,
        ``InvalidTransition`` when the table (or a guard) forbids the move,
        ``ValidationError`` for a rejection without a note and
        ``ConcurrencyConflict`` when another writer changed the status first.
        """
        now = now or datetime.utcnow()
        request = self.get(request_type, request_id)

        if target == RequestStatus.EXPIRED and request.status == RequestStatus.EXPIRED:
            return request

        if target != RequestStatus.EXPIRED and is_stale(request, now):
            # Persist what readers already see before refusing the move
            if self.expire(request_type, request, now):
                self.db.commit()
            raise InvalidTransition(
                RequestStatus.EXPIRED.value,
                target.value,
                "Request has expired",
            )

        self._check_transition(request_type, request, target, rejection_note, now)

        applied = self._apply(
            request_type,
            request,
            request.status,
            target,
            changed_by=changed_by,
            rejection_note=rejection_note if target == RequestStatus.REJECTED else None,
            now=now,
        )
        if applied is None:
            raise ConcurrencyConflict()

        self.db.commit()
        self.db.refresh(request)
        return request

    def expire(self, request_type: RequestType, request, now: Optional[datetime] = None) -> bool:
        """Expire a stale request inside the current transaction.

        Returns False (and writes nothing) when the request is already expired,
        is not stale, or another writer moved it first.
        """
        now = now or datetime.utcnow()
        if request.status == RequestStatus.EXPIRED or not is_stale(request, now):
            return False

        return bool(
            self._apply(
                request_type,
                request,
                request.status,
                RequestStatus.EXPIRED,
                notes="Expired before approval/payment",
                now=now,
            )
        )

    def _check_transition(
        self,
        request_type: RequestType,
        request,
        target: RequestStatus,
        rejection_note: Optional[str],
        now: datetime,
    ):
        current = request.status

        if current in TERMINAL_STATUSES or target not in allowed_targets(request_type, current):
            raise InvalidTransition(current.value, target.value)

        if current == RequestStatus.PENDING:
            if target == RequestStatus.WAITING_PAYMENT and request.payment_method != PaymentMethod.ONLINE:
                raise InvalidTransition(
                    current.value,
                    target.value,
                    "Offline payment requests skip waiting_payment",
                )
            if target == FULFILMENT_STATUS[request_type] and request.payment_method != PaymentMethod.OFFLINE:
                raise InvalidTransition(
                    current.value,
                    target.value,
                    "Online payment requests must be paid first",
                )

        if target == RequestStatus.REJECTED and not (rejection_note or "").strip():
            raise ValidationError("Rejection note is required")

        if target == RequestStatus.EXPIRED and not is_stale(request, now):
            raise InvalidTransition(current.value, target.value, "Request has not expired yet")

    def _apply(
        self,
        request_type: RequestType,
        request,
        expected: RequestStatus,
        target: RequestStatus,
        changed_by: Optional[int] = None,
        rejection_note: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[bool]:
        """Conditional status write plus history row.

        Returns True when written, False when the request already holds
        ``target`` (no-op), None when another writer won the race.
        """
        now = now or datetime.utcnow()
        model = REQUEST_MODELS[request_type]

        values = {"status": target, "updated_at": now}
        if rejection_note is not None:
            values["rejection_note"] = rejection_note.strip()

        updated = (
            self.db.query(model)
            .filter(model.id == request.id, model.status == expected)
            .update(values, synchronize_session=False)
        )
        self.db.refresh(request)

        if updated == 0:
            if request.status == target:
                return False
            logger.warning(
                "request_transition_lost_race",
                request_type=request_type.value,
                request_id=request.id,
                expected_status=expected.value,
                actual_status=request.status.value,
                target_status=target.value,
            )
            return None

        self._record_history(
            request_type,
            request.id,
            expected,
            target,
            changed_by,
            notes or rejection_note,
            now,
        )
        self.db.flush()

        logger.info(
            "request_status_changed",
            request_type=request_type.value,
            request_id=request.id,
            old_status=expected.value,
            new_status=target.value,
            changed_by=changed_by,
        )
        return True

    def _record_history(
        self,
        request_type: RequestType,
        request_id: int,
        old_status: Optional[RequestStatus],
        new_status: RequestStatus,
        changed_by: Optional[int],
        notes: Optional[str],
        now: datetime,
    ):
        self.db.add(
            RequestStatusHistory(
                request_type=request_type,
                request_id=request_id,
                old_status=old_status.value if old_status else None,
                new_status=new_status.value,
                changed_by=changed_by,
                notes=notes,
                created_at=now,
            )
        )
