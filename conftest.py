"""Shared fixtures for the booking core and API tests"""
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from application.inventory import InventoryLedger, AvailabilityCalculator
from application.services import ReservationAllocator, ReservationLifecycleManager, RoomTypeService, PaymentService
from domain.entities import RoomType
from domain.enums import RoomCategory
from infrastructure.clock import FixedClock
from infrastructure.repositories.in_memory_repositories import (
    InMemoryReservationRepository, InMemoryInventoryRepository,
    InMemoryRoomTypeRepository, InMemoryPaymentRepository
)
from main import app, get_container, ServiceContainer


BOOKING_MOMENT = datetime(2024, 5, 20, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(BOOKING_MOMENT)


@pytest.fixture
def hotel_id():
    return uuid4()


@pytest.fixture
def guest_id():
    return uuid4()


@pytest.fixture
def reservation_repository():
    return InMemoryReservationRepository()


@pytest.fixture
def inventory_repository():
    return InMemoryInventoryRepository(lock_timeout=0.5)


@pytest.fixture
def room_type_repository():
    return InMemoryRoomTypeRepository()


@pytest.fixture
def payment_repository():
    return InMemoryPaymentRepository()


@pytest.fixture
def ledger(inventory_repository, room_type_repository, clock):
    return InventoryLedger(inventory_repository, room_type_repository, clock, max_attempts=3, retry_backoff=0)


@pytest.fixture
def calculator(inventory_repository, room_type_repository):
    return AvailabilityCalculator(inventory_repository, room_type_repository)


@pytest.fixture
def allocator(reservation_repository, ledger, room_type_repository, clock):
    return ReservationAllocator(
        reservation_repository, ledger, room_type_repository, clock, currency="USD", max_stay_nights=30
    )


@pytest.fixture
def lifecycle(reservation_repository, ledger, payment_repository, clock):
    return ReservationLifecycleManager(reservation_repository, ledger, payment_repository, clock)


@pytest.fixture
def room_type_service(room_type_repository):
    return RoomTypeService(room_type_repository)


@pytest.fixture
def payment_service(payment_repository, reservation_repository, clock):
    return PaymentService(payment_repository, reservation_repository, clock)


@pytest.fixture
async def room_type(room_type_repository, hotel_id):
    """Deluxe room type with two units per day"""
    return await room_type_repository.save(RoomType(
        hotel_id=hotel_id,
        room_category=RoomCategory.DELUXE,
        type_name="Deluxe King",
        price_per_night=Decimal("150.00"),
        max_adults=2,
        max_children=1,
        total_units_per_day=2
    ))


# ============================================================================
# API FIXTURES
# ============================================================================

@pytest.fixture
def api_container():
    """Fresh repositories behind the app, pinned to the booking moment"""
    services = ServiceContainer(FixedClock(BOOKING_MOMENT))
    app.dependency_overrides[get_container] = lambda: services
    yield services
    app.dependency_overrides = {}


@pytest.fixture
def client(api_container):
    """FastAPI test client"""
    with TestClient(app) as test_client:
        yield test_client


def _login(client, username, password):
    response = client.post("/token", data={"username": username, "password": password})
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client):
    """Manager token (admin)"""
    return _login(client, "admin", "admin123")


@pytest.fixture
def front_desk_headers(client):
    return _login(client, "frontdesk", "frontdesk123")
