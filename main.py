import logging
from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Room types
    CreateRoomTypeRequest, ChangeRateRequest, RoomTypeResponse,
    # Inventory & availability
    ConfigureInventoryRequest, InventoryDayResponse, CheckAvailabilityRequest,
    AvailabilityResponse, SearchAvailabilityRequest,
    # Reservations
    CreateReservationRequest, CancelReservationRequest, ReservationResponse,
    # Payments
    RecordPaymentRequest, PaymentResponse,
    # Errors & auth
    ErrorResponse, Token, UserResponse
)
from api.dependencies import get_current_active_user, get_inventory_manager, fake_users_db, get_user
from application.inventory import InventoryLedger, AvailabilityCalculator
from application.services import ReservationAllocator, ReservationLifecycleManager, RoomTypeService, PaymentService
from domain.auth import User
from domain.clock import Clock
from domain.entities import Reservation, RoomType, InventoryDay, Payment
from domain.enums import ReservationStatus, PaymentStatus, PaymentMethod, RoomCategory
from domain.exceptions import (
    BookingError, ValidationError, PaymentRequired, InsufficientInventory, InvalidStateTransition,
    Contention, ConfigurationError, ReservationNotFound
)
from domain.value_objects import DateRange
from infrastructure.clock import SystemClock
from infrastructure.config import settings
from infrastructure.repositories.in_memory_repositories import (
    InMemoryReservationRepository, InMemoryInventoryRepository,
    InMemoryRoomTypeRepository, InMemoryPaymentRepository
)
from infrastructure.security import verify_password, create_access_token, ACCESS_TOKEN_EXPIRE_MINUTES

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Room-type inventory allocation and reservation lifecycle",
    version="1.0.0",
    debug=settings.DEBUG
)


class ServiceContainer:
    """Repositories and services sharing one clock and one ledger"""

    def __init__(self, clock: Clock):
        self.clock = clock
        self.reservation_repo = InMemoryReservationRepository()
        self.inventory_repo = InMemoryInventoryRepository(lock_timeout=settings.INVENTORY_LOCK_TIMEOUT_SECONDS)
        self.room_type_repo = InMemoryRoomTypeRepository()
        self.payment_repo = InMemoryPaymentRepository()

        self.ledger = InventoryLedger(self.inventory_repo, self.room_type_repo, clock)
        self.calculator = AvailabilityCalculator(self.inventory_repo, self.room_type_repo)
        self.allocator = ReservationAllocator(self.reservation_repo, self.ledger, self.room_type_repo, clock)
        self.lifecycle = ReservationLifecycleManager(self.reservation_repo, self.ledger, self.payment_repo, clock)
        self.room_types = RoomTypeService(self.room_type_repo)
        self.payments = PaymentService(self.payment_repo, self.reservation_repo, clock)


container = ServiceContainer(SystemClock())


# Dependency injection
def get_container() -> ServiceContainer:
    return container

def get_allocator(services: ServiceContainer = Depends(get_container)) -> ReservationAllocator:
    return services.allocator

def get_lifecycle_manager(services: ServiceContainer = Depends(get_container)) -> ReservationLifecycleManager:
    return services.lifecycle

def get_ledger(services: ServiceContainer = Depends(get_container)) -> InventoryLedger:
    return services.ledger

def get_calculator(services: ServiceContainer = Depends(get_container)) -> AvailabilityCalculator:
    return services.calculator

def get_room_type_service(services: ServiceContainer = Depends(get_container)) -> RoomTypeService:
    return services.room_types

def get_payment_service(services: ServiceContainer = Depends(get_container)) -> PaymentService:
    return services.payments


# ============================================================================
# ERROR HANDLING
# ============================================================================

_ERROR_STATUS = [
    (PaymentRequired, 402),
    (ValidationError, 400),
    (InsufficientInventory, 409),
    (InvalidStateTransition, 409),
    (Contention, 503),
    (ConfigurationError, 422),
    (ReservationNotFound, 404),
]


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = next((code for error_type, code in _ERROR_STATUS if isinstance(exc, error_type)), 400)
    body = ErrorResponse(
        detail=str(exc),
        error=type(exc).__name__,
        blocking_date=getattr(exc, "blocking_date", None),
        retryable=exc.retryable
    )
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [item.name for item in ReservationStatus],
        "description": "Reservation status values: PENDING, CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED, NO_SHOW"
    }

@app.get("/api/enums/room-category", tags=["Enum Reference"])
async def get_room_categories():
    """Get all RoomCategory enum values"""
    return {
        "values": [item.name for item in RoomCategory],
        "description": "Room category values: SINGLE, DOUBLE, SUITE, DELUXE, STUDIO"
    }

@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get all PaymentStatus enum values"""
    return {
        "values": [item.name for item in PaymentStatus],
        "description": "Payment status values: PENDING, PROCESSING, SUCCESS, FAILED, REFUNDED, CANCELLED"
    }

@app.get("/api/enums/payment-method", tags=["Enum Reference"])
async def get_payment_methods():
    """Get all PaymentMethod enum values"""
    return {"values": [item.name for item in PaymentMethod]}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        {"sub": user.username, "role": user.role.value}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM TYPE ENDPOINTS
# ============================================================================

@app.post("/api/room-types", response_model=RoomTypeResponse, status_code=201, tags=["Room Types"])
async def create_room_type(
    request: CreateRoomTypeRequest,
    service: RoomTypeService = Depends(get_room_type_service),
    current_user: User = Depends(get_inventory_manager)
):
    """Configure a room type and its daily inventory template"""
    room_type = await service.create_room_type(
        hotel_id=request.hotel_id,
        room_category=request.room_category,
        type_name=request.type_name,
        price_per_night=request.price_per_night,
        max_adults=request.max_adults,
        max_children=request.max_children,
        total_units_per_day=request.total_units_per_day,
        bed_info=request.bed_info,
        description=request.description
    )
    return _room_type_to_response(room_type)

@app.get("/api/room-types/{room_type_id}", response_model=RoomTypeResponse, tags=["Room Types"])
async def get_room_type(
    room_type_id: UUID,
    service: RoomTypeService = Depends(get_room_type_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get room type by ID"""
    room_type = await service.get_room_type(room_type_id)
    if not room_type:
        raise HTTPException(status_code=404, detail="Room type not found")
    return _room_type_to_response(room_type)

@app.get("/api/hotels/{hotel_id}/room-types", response_model=List[RoomTypeResponse], tags=["Room Types"])
async def get_hotel_room_types(
    hotel_id: UUID,
    active_only: bool = False,
    service: RoomTypeService = Depends(get_room_type_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get all room types of a hotel"""
    room_types = await service.get_hotel_room_types(hotel_id, active_only)
    return [_room_type_to_response(rt) for rt in room_types]

@app.put("/api/room-types/{room_type_id}/rate", response_model=RoomTypeResponse, tags=["Room Types"])
async def change_room_type_rate(
    room_type_id: UUID,
    request: ChangeRateRequest,
    service: RoomTypeService = Depends(get_room_type_service),
    current_user: User = Depends(get_inventory_manager)
):
    """Change the nightly rate for future bookings"""
    room_type = await service.change_rate(room_type_id, request.price_per_night)
    return _room_type_to_response(room_type)

# ============================================================================
# INVENTORY & AVAILABILITY ENDPOINTS
# ============================================================================

@app.put("/api/inventory", response_model=List[InventoryDayResponse], tags=["Inventory"])
async def configure_inventory(
    request: ConfigureInventoryRequest,
    ledger: InventoryLedger = Depends(get_ledger),
    current_user: User = Depends(get_inventory_manager)
):
    """Set total units for every night of a date range"""
    days = await ledger.configure_days(
        request.hotel_id,
        request.room_type_id,
        DateRange.between(request.start_date, request.end_date),
        request.total_units
    )
    return [_inventory_day_to_response(d) for d in days]

@app.get("/api/inventory/{hotel_id}/{room_type_id}", response_model=List[InventoryDayResponse], tags=["Inventory"])
async def get_inventory_calendar(
    hotel_id: UUID,
    room_type_id: UUID,
    start_date: date,
    end_date: date,
    calculator: AvailabilityCalculator = Depends(get_calculator),
    current_user: User = Depends(get_current_active_user)
):
    """Per-night total, reserved and available units"""
    days = await calculator.daily_availability(hotel_id, room_type_id, start_date, end_date)
    return [_inventory_day_to_response(d) for d in days]

@app.post("/api/availability/check", response_model=AvailabilityResponse, tags=["Availability"])
async def check_availability(
    request: CheckAvailabilityRequest,
    calculator: AvailabilityCalculator = Depends(get_calculator),
    current_user: User = Depends(get_current_active_user)
):
    """Check if a room type has enough units on every night of a stay"""
    result = await calculator.check_availability(
        hotel_id=request.hotel_id,
        room_type_id=request.room_type_id,
        check_in=request.check_in,
        check_out=request.check_out,
        units=request.units
    )
    return AvailabilityResponse(**result.model_dump())

@app.post("/api/availability/search", response_model=List[RoomTypeResponse], tags=["Availability"])
async def search_availability(
    request: SearchAvailabilityRequest,
    calculator: AvailabilityCalculator = Depends(get_calculator),
    current_user: User = Depends(get_current_active_user)
):
    """Room types of a hotel available for a stay, cheapest first"""
    room_types = await calculator.search_available_room_types(
        hotel_id=request.hotel_id,
        check_in=request.check_in,
        check_out=request.check_out,
        units=request.units,
        adults=request.adults,
        children=request.children
    )
    return [_room_type_to_response(rt) for rt in room_types]

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    allocator: ReservationAllocator = Depends(get_allocator),
    current_user: User = Depends(get_current_active_user)
):
    """Allocate inventory and create a PENDING reservation"""
    reservation = await allocator.allocate(
        guest_id=request.guest_id,
        hotel_id=request.hotel_id,
        room_type_id=request.room_type_id,
        check_in_date=request.check_in,
        check_out_date=request.check_out,
        number_of_adults=request.adults,
        number_of_children=request.children,
        number_of_units=request.units,
        special_requests=request.special_requests
    )
    return _reservation_to_response(reservation)

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Get reservation by ID"""
    return _reservation_to_response(await manager.get_reservation(reservation_id))

@app.get("/api/reservations/code/{confirmation_code}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation_by_code(
    confirmation_code: str,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Get reservation by confirmation code"""
    reservation = await manager.get_reservation_by_confirmation_code(confirmation_code)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return _reservation_to_response(reservation)

@app.get("/api/reservations/guest/{guest_id}", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_guest_reservations(
    guest_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Get all reservations for a guest"""
    reservations = await manager.get_reservations_by_guest(guest_id)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/hotels/{hotel_id}/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_hotel_reservations(
    hotel_id: UUID,
    status: Optional[ReservationStatus] = None,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Get reservations of a hotel, optionally by status"""
    reservations = await manager.get_reservations_by_hotel(hotel_id, status)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/hotels/{hotel_id}/arrivals/{arrival_date}", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_arrivals(
    hotel_id: UUID,
    arrival_date: date,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Expected arrivals for a date"""
    reservations = await manager.get_arrivals(hotel_id, arrival_date)
    return [_reservation_to_response(r) for r in reservations]

@app.post("/api/reservations/{reservation_id}/confirm", response_model=ReservationResponse, tags=["Reservations"])
async def confirm_reservation(
    reservation_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Confirm reservation once payments cover the total"""
    return _reservation_to_response(await manager.confirm(reservation_id))

@app.post("/api/reservations/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Reservations"])
async def check_in_guest(
    reservation_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Check in guest"""
    return _reservation_to_response(await manager.check_in(reservation_id))

@app.post("/api/reservations/{reservation_id}/check-out", response_model=ReservationResponse, tags=["Reservations"])
async def check_out_guest(
    reservation_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Check out guest"""
    return _reservation_to_response(await manager.check_out(reservation_id))

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    request: CancelReservationRequest,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel reservation and return its inventory"""
    return _reservation_to_response(await manager.cancel(reservation_id, request.reason))

@app.post("/api/reservations/{reservation_id}/no-show", response_model=ReservationResponse, tags=["Reservations"])
async def mark_no_show(
    reservation_id: UUID,
    manager: ReservationLifecycleManager = Depends(get_lifecycle_manager),
    current_user: User = Depends(get_current_active_user)
):
    """Mark guest as no-show and return its inventory"""
    return _reservation_to_response(await manager.mark_no_show(reservation_id))

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/reservations/{reservation_id}/payments", response_model=PaymentResponse, status_code=201, tags=["Payments"])
async def record_payment(
    reservation_id: UUID,
    request: RecordPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_active_user)
):
    """Record a payment outcome reported by the payment gateway"""
    payment = await service.record_payment(
        reservation_id=reservation_id,
        amount=request.amount,
        status=request.status,
        payment_method=request.payment_method,
        transaction_id=request.transaction_id
    )
    return _payment_to_response(payment)

@app.get("/api/reservations/{reservation_id}/payments", response_model=List[PaymentResponse], tags=["Payments"])
async def get_payments(
    reservation_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get payments recorded for a reservation"""
    payments = await service.get_payments(reservation_id)
    return [_payment_to_response(p) for p in payments]

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _reservation_to_response(reservation: Reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        confirmation_code=reservation.confirmation_code,
        guest_id=reservation.guest_id,
        hotel_id=reservation.hotel_id,
        room_type_id=reservation.room_type_id,
        check_in=reservation.check_in_date,
        check_out=reservation.check_out_date,
        nights=reservation.get_nights(),
        adults=reservation.guest_count.adults,
        children=reservation.guest_count.children,
        units=reservation.number_of_units,
        price_per_night=reservation.price_per_night.amount,
        total_amount=reservation.total_amount.amount,
        amount_paid=reservation.amount_paid.amount,
        remaining_balance=reservation.remaining_balance().amount,
        currency=reservation.total_amount.currency,
        status=reservation.status.value,
        special_requests=reservation.special_requests,
        cancellation_reason=reservation.cancellation_reason,
        cancelled_at=reservation.cancelled_at,
        created_at=reservation.created_at,
        updated_at=reservation.updated_at,
        version=reservation.version
    )

def _room_type_to_response(room_type: RoomType) -> RoomTypeResponse:
    """Convert RoomType entity to RoomTypeResponse"""
    return RoomTypeResponse(
        room_type_id=room_type.room_type_id,
        hotel_id=room_type.hotel_id,
        room_category=room_type.room_category.value,
        type_name=room_type.type_name,
        display_name=room_type.display_name,
        price_per_night=room_type.price_per_night,
        max_adults=room_type.max_adults,
        max_children=room_type.max_children,
        total_units_per_day=room_type.total_units_per_day,
        bed_info=room_type.bed_info,
        description=room_type.description,
        is_active=room_type.is_active
    )

def _inventory_day_to_response(day: InventoryDay) -> InventoryDayResponse:
    """Convert InventoryDay entity to InventoryDayResponse"""
    return InventoryDayResponse(
        hotel_id=day.hotel_id,
        room_type_id=day.room_type_id,
        inventory_date=day.inventory_date,
        total_units=day.total_units,
        reserved_units=day.reserved_units,
        available_units=day.available_units,
        version=day.version,
        last_updated=day.last_updated
    )

def _payment_to_response(payment: Payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.payment_id,
        reservation_id=payment.reservation_id,
        amount=payment.amount.amount,
        currency=payment.amount.currency,
        status=payment.status.value,
        payment_method=payment.payment_method.value,
        transaction_id=payment.transaction_id,
        created_at=payment.created_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
