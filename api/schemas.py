"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.auth import StaffRole
from domain.enums import PaymentMethod, PaymentStatus, RoomCategory


# ============================================================================
# ROOM TYPE SCHEMAS
# ============================================================================

class CreateRoomTypeRequest(BaseModel):
    """Create room type request DTO"""
    hotel_id: UUID
    room_category: RoomCategory
    type_name: str = Field(min_length=1, max_length=100)
    price_per_night: Decimal = Field(gt=0)
    max_adults: int = Field(ge=1)
    max_children: int = Field(ge=0, default=0)
    total_units_per_day: int = Field(ge=0)
    bed_info: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)


class ChangeRateRequest(BaseModel):
    """Change nightly rate request DTO"""
    price_per_night: Decimal = Field(gt=0)


class RoomTypeResponse(BaseModel):
    """Room type response DTO"""
    room_type_id: UUID
    hotel_id: UUID
    room_category: str
    type_name: str
    display_name: str
    price_per_night: Decimal
    max_adults: int
    max_children: int
    total_units_per_day: int
    bed_info: Optional[str] = None
    description: Optional[str] = None
    is_active: bool


# ============================================================================
# INVENTORY & AVAILABILITY SCHEMAS
# ============================================================================

class ConfigureInventoryRequest(BaseModel):
    """Set total units for every night of a range"""
    hotel_id: UUID
    room_type_id: UUID
    start_date: date
    end_date: date
    total_units: int = Field(ge=0)


class InventoryDayResponse(BaseModel):
    """Ledger row response DTO"""
    hotel_id: UUID
    room_type_id: UUID
    inventory_date: date
    total_units: int
    reserved_units: int
    available_units: int
    version: int
    last_updated: Optional[datetime] = None


class CheckAvailabilityRequest(BaseModel):
    """Check availability request DTO"""
    hotel_id: UUID
    room_type_id: UUID
    check_in: date
    check_out: date
    units: int = Field(default=1)


class AvailabilityResponse(BaseModel):
    """Availability check response DTO"""
    available: bool
    first_blocking_date: Optional[date] = None
    nights: int
    units: int


class SearchAvailabilityRequest(BaseModel):
    """Search room types of a hotel available for a stay"""
    hotel_id: UUID
    check_in: date
    check_out: date
    units: int = Field(default=1)
    adults: Optional[int] = Field(default=None, ge=1)
    children: int = Field(default=0, ge=0)


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    guest_id: UUID
    hotel_id: UUID
    room_type_id: UUID
    check_in: date
    check_out: date
    adults: int = Field(default=1)
    children: int = Field(default=0)
    units: int = Field(default=1)
    special_requests: Optional[str] = Field(default=None, max_length=500)


class CancelReservationRequest(BaseModel):
    """Cancel reservation request DTO"""
    reason: str = Field(default="Guest changed plans", max_length=500)


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    confirmation_code: str
    guest_id: UUID
    hotel_id: UUID
    room_type_id: UUID
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    units: int
    price_per_night: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    currency: str
    status: str
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class RecordPaymentRequest(BaseModel):
    """Record payment outcome request DTO"""
    amount: Decimal = Field(gt=0)
    status: PaymentStatus = PaymentStatus.SUCCESS
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    transaction_id: Optional[str] = Field(default=None, max_length=100)


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    reservation_id: UUID
    amount: Decimal
    currency: str
    status: str
    payment_method: str
    transaction_id: Optional[str] = None
    created_at: datetime


# ============================================================================
# ERROR & AUTH SCHEMAS
# ============================================================================

class ErrorResponse(BaseModel):
    """Error body for domain failures"""
    detail: str
    error: str
    blocking_date: Optional[date] = None
    retryable: bool = False


class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: StaffRole
    disabled: bool
