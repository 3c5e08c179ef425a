from cyclebees.models.enums import RequestType, RequestStatus, PaymentMethod, DurationType
from cyclebees.models.user import User, UserRole
from cyclebees.models.coupon import Coupon, DiscountType
from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.repair import RepairService, TimeSlot, ServiceMechanicCharge, RepairRequest, RepairRequestService
from cyclebees.models.rental import Bicycle, RentalRequest
from cyclebees.models.request_status_history import RequestStatusHistory

REQUEST_MODELS = {
    RequestType.REPAIR: RepairRequest,
    RequestType.RENTAL: RentalRequest,
}
