import enum


class RequestType(str, enum.Enum):
    REPAIR = "repair"
    RENTAL = "rental"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    WAITING_PAYMENT = "waiting_payment"
    ARRANGING_DELIVERY = "arranging_delivery"  # Rental only
    ACTIVE = "active"  # Repair only
    ACTIVE_RENTAL = "active_rental"  # Rental only
    COMPLETED = "completed"
    REJECTED = "rejected"
    EXPIRED = "expired"


class PaymentMethod(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class DurationType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


TERMINAL_STATUSES = frozenset(
    {RequestStatus.COMPLETED, RequestStatus.REJECTED, RequestStatus.EXPIRED}
)

# Only these states carry a live expiry deadline
EXPIRABLE_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.WAITING_PAYMENT})
