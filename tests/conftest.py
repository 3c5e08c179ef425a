import os
import tempfile
from collections.abc import Generator
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-booking-service-0123456789")

import cyclebees.models  # noqa: F401
from cyclebees.core.security import create_access_token
from cyclebees.db.base_class import Base
from cyclebees.db.session import get_db
from cyclebees.main import app
from cyclebees.models.coupon import Coupon, DiscountType
from cyclebees.models.rental import Bicycle
from cyclebees.models.repair import RepairService, ServiceMechanicCharge, TimeSlot
from cyclebees.models.user import User, UserRole


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_file.close()

    engine = create_engine(
        f"sqlite:///{db_file.name}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        os.unlink(db_file.name)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def user(db_session: Session) -> User:
    customer = User(full_name="Ravi Kumar", phone="9876543210", email="ravi@example.com")
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer


@pytest.fixture()
def other_user(db_session: Session) -> User:
    customer = User(full_name="Asha Patel", phone="9876543211", email="asha@example.com")
    db_session.add(customer)
    db_session.commit()
    db_session.refresh(customer)
    return customer


@pytest.fixture()
def admin_user(db_session: Session) -> User:
    admin = User(full_name="Shop Admin", phone="9000000001", role=UserRole.ADMIN)
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin


def bearer_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers(user: User) -> dict:
    return bearer_headers(user)


@pytest.fixture()
def admin_headers(admin_user: User) -> dict:
    return bearer_headers(admin_user)


@pytest.fixture()
def repair_catalog(db_session: Session) -> dict:
    """Two services worth ₹500 together, no mechanic charge, one open slot."""
    puncture = RepairService(name="Puncture Repair", price=200.0)
    tune_up = RepairService(name="Tune Up", price=300.0)
    retired = RepairService(name="Retired Service", price=150.0, is_active=False)
    slot = TimeSlot(start_time="09:00", end_time="11:00")
    db_session.add_all([puncture, tune_up, retired, slot])
    db_session.commit()
    return {"services": [puncture, tune_up], "retired": retired, "slot": slot}


@pytest.fixture()
def mechanic_charge(db_session: Session) -> ServiceMechanicCharge:
    charge = ServiceMechanicCharge(amount=100.0)
    db_session.add(charge)
    db_session.commit()
    return charge


@pytest.fixture()
def bicycle(db_session: Session) -> Bicycle:
    cycle = Bicycle(
        name="City Cruiser",
        model="CC-21",
        daily_rate=250.0,
        weekly_rate=1500.0,
        delivery_charge=50.0,
    )
    db_session.add(cycle)
    db_session.commit()
    db_session.refresh(cycle)
    return cycle


@pytest.fixture()
def make_coupon(db_session: Session):
    def _make_coupon(**overrides) -> Coupon:
        values = {
            "code": "WELCOME10",
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": 10.0,
            "min_amount": 0.0,
            "applicable_items": ["repair_services"],
            "usage_limit": 1,
        }
        values.update(overrides)
        coupon = Coupon(**values)
        db_session.add(coupon)
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _make_coupon


def repair_payload(catalog: dict, **overrides) -> dict:
    payload = {
        "contact_number": "9876543210",
        "preferred_date": (date.today() + timedelta(days=1)).isoformat(),
        "time_slot_id": catalog["slot"].id,
        "payment_method": "online",
        "service_ids": [service.id for service in catalog["services"]],
    }
    payload.update(overrides)
    return payload


def rental_payload(bicycle: Bicycle, **overrides) -> dict:
    payload = {
        "bicycle_id": bicycle.id,
        "contact_number": "9876543210",
        "delivery_address": "12 MG Road, Pune",
        "duration_type": "daily",
        "duration_count": 2,
        "payment_method": "offline",
    }
    payload.update(overrides)
    return payload
