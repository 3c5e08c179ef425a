from cyclebees.db.base_class import Base


# IMPORT ALL MODELS HERE (THIS REGISTERS THEM WITH Base.metadata)
from cyclebees.models.user import User
from cyclebees.models.coupon import Coupon
from cyclebees.models.coupon_usage import CouponUsage
from cyclebees.models.repair import RepairService, TimeSlot, ServiceMechanicCharge, RepairRequest, RepairRequestService
from cyclebees.models.rental import Bicycle, RentalRequest
from cyclebees.models.request_status_history import RequestStatusHistory
