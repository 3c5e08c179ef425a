from sqlalchemy.orm import Session
from typing import List
import structlog

from cyclebees.core.exceptions import CatalogItemNotFound
from cyclebees.models.rental import Bicycle
from cyclebees.models.repair import RepairService, ServiceMechanicCharge, TimeSlot
from cyclebees.schemas.catalog import (
    AdminBicycleResponse,
    AdminRepairServiceResponse,
    AdminTimeSlotResponse,
    BicycleCreate,
    BicycleUpdate,
    RepairServiceCreate,
    RepairServiceUpdate,
    TimeSlotCreate,
)
from cyclebees.services.booking_orchestrator import current_mechanic_charge

logger = structlog.get_logger()


class CatalogService:
    """
    Admin maintenance of the tables bookings are priced from.

    Nothing here is ever hard-deleted: requests keep foreign keys to slots,
    bicycles and services, so retiring an item only clears is_active. Price
    edits apply to bookings made afterwards; submitted repair requests keep
    the name and price snapshotted on their service lines.
    """

    @staticmethod
    def _get_or_404(db: Session, model, item_id: int, label: str):
        item = db.query(model).filter(model.id == item_id).first()
        if not item:
            raise CatalogItemNotFound(label)
        return item

    # Repair services

    @staticmethod
    def list_repair_services(db: Session) -> List[AdminRepairServiceResponse]:
        services = db.query(RepairService).order_by(RepairService.name, RepairService.id).all()
        return [AdminRepairServiceResponse.model_validate(service) for service in services]

    @staticmethod
    def create_repair_service(db: Session, service_data: RepairServiceCreate) -> AdminRepairServiceResponse:
        service = RepairService(**service_data.model_dump())
        db.add(service)
        db.commit()
        db.refresh(service)

        logger.info("repair_service_created", service_id=service.id, price=service.price)
        return AdminRepairServiceResponse.model_validate(service)

    @staticmethod
    def update_repair_service(
        db: Session, service_id: int, service_data: RepairServiceUpdate
    ) -> AdminRepairServiceResponse:
        service = CatalogService._get_or_404(db, RepairService, service_id, "Repair service")

        update_data = service_data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(service, key, value)

        db.commit()
        db.refresh(service)

        logger.info("repair_service_updated", service_id=service_id, fields=sorted(update_data))
        return AdminRepairServiceResponse.model_validate(service)

    @staticmethod
    def deactivate_repair_service(db: Session, service_id: int) -> AdminRepairServiceResponse:
        service = CatalogService._get_or_404(db, RepairService, service_id, "Repair service")

        service.is_active = False
        db.commit()
        db.refresh(service)

        logger.info("repair_service_deactivated", service_id=service_id)
        return AdminRepairServiceResponse.model_validate(service)

    # Mechanic charge

    @staticmethod
    def get_mechanic_charge(db: Session) -> float:
        return current_mechanic_charge(db)

    @staticmethod
    def set_mechanic_charge(db: Session, amount: float) -> float:
        """Replace the active mechanic charge; earlier rows stay as history."""
        db.query(ServiceMechanicCharge).filter(ServiceMechanicCharge.is_active == True).update(
            {"is_active": False}, synchronize_session=False
        )
        charge = ServiceMechanicCharge(amount=amount, is_active=True)
        db.add(charge)
        db.commit()
        db.refresh(charge)

        logger.info("mechanic_charge_updated", charge_id=charge.id, amount=amount)
        return charge.amount

    # Time slots

    @staticmethod
    def list_time_slots(db: Session) -> List[AdminTimeSlotResponse]:
        slots = db.query(TimeSlot).order_by(TimeSlot.start_time, TimeSlot.id).all()
        return [AdminTimeSlotResponse.model_validate(slot) for slot in slots]

    @staticmethod
    def create_time_slot(db: Session, slot_data: TimeSlotCreate) -> AdminTimeSlotResponse:
        slot = TimeSlot(**slot_data.model_dump())
        db.add(slot)
        db.commit()
        db.refresh(slot)

        logger.info("time_slot_created", slot_id=slot.id, start_time=slot.start_time, end_time=slot.end_time)
        return AdminTimeSlotResponse.model_validate(slot)

    @staticmethod
    def deactivate_time_slot(db: Session, slot_id: int) -> AdminTimeSlotResponse:
        slot = CatalogService._get_or_404(db, TimeSlot, slot_id, "Time slot")

        slot.is_active = False
        db.commit()
        db.refresh(slot)

        logger.info("time_slot_deactivated", slot_id=slot_id)
        return AdminTimeSlotResponse.model_validate(slot)

    # Bicycles

    @staticmethod
    def list_bicycles(db: Session) -> List[AdminBicycleResponse]:
        bicycles = db.query(Bicycle).order_by(Bicycle.name, Bicycle.id).all()
        return [AdminBicycleResponse.model_validate(bicycle) for bicycle in bicycles]

    @staticmethod
    def get_bicycle(db: Session, bicycle_id: int) -> AdminBicycleResponse:
        return AdminBicycleResponse.model_validate(
            CatalogService._get_or_404(db, Bicycle, bicycle_id, "Bicycle")
        )

    @staticmethod
    def create_bicycle(db: Session, bicycle_data: BicycleCreate) -> AdminBicycleResponse:
        bicycle = Bicycle(**bicycle_data.model_dump())
        db.add(bicycle)
        db.commit()
        db.refresh(bicycle)

        logger.info("bicycle_created", bicycle_id=bicycle.id, daily_rate=bicycle.daily_rate)
        return AdminBicycleResponse.model_validate(bicycle)

    @staticmethod
    def update_bicycle(db: Session, bicycle_id: int, bicycle_data: BicycleUpdate) -> AdminBicycleResponse:
        bicycle = CatalogService._get_or_404(db, Bicycle, bicycle_id, "Bicycle")

        update_data = bicycle_data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(bicycle, key, value)

        db.commit()
        db.refresh(bicycle)

        logger.info("bicycle_updated", bicycle_id=bicycle_id, fields=sorted(update_data))
        return AdminBicycleResponse.model_validate(bicycle)

    @staticmethod
    def deactivate_bicycle(db: Session, bicycle_id: int) -> AdminBicycleResponse:
        bicycle = CatalogService._get_or_404(db, Bicycle, bicycle_id, "Bicycle")

        bicycle.is_active = False
        db.commit()
        db.refresh(bicycle)

        logger.info("bicycle_deactivated", bicycle_id=bicycle_id)
        return AdminBicycleResponse.model_validate(bicycle)
