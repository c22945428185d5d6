"""Domain Entities - Aggregates"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import NamedTuple, Optional
from decimal import Decimal
import random
import string

from domain.enums import ReservationStatus, PaymentStatus, PaymentMethod, RoomCategory
from domain.exceptions import ValidationError
from domain.value_objects import DateRange, GuestCount, Money, RoomTypeCapacity


# Statuses whose reservation still accounts for reserved units in the ledger
INVENTORY_HOLDING_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.CHECKED_IN,
    ReservationStatus.CHECKED_OUT,
})

CANCELLABLE_STATUSES = frozenset({
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
})

SPECIAL_REQUESTS_MAX_LENGTH = 500


class InventoryKey(NamedTuple):
    """Ledger row identity, ordered by (date, room type, hotel) for lock ordering"""
    inventory_date: date
    room_type_id: UUID
    hotel_id: UUID


class RoomType(BaseModel):
    """RoomType Entity - capacity template for a hotel's bookable room category"""

    room_type_id: UUID = Field(default_factory=uuid4)
    hotel_id: UUID
    room_category: RoomCategory
    type_name: str = Field(min_length=1, max_length=100)

    price_per_night: Decimal = Field(gt=0)
    max_adults: int = Field(ge=1)
    max_children: int = Field(ge=0, default=0)
    total_units_per_day: int = Field(ge=0)

    bed_info: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)

    @property
    def capacity(self) -> RoomTypeCapacity:
        return RoomTypeCapacity(
            total_units_per_day=self.total_units_per_day,
            max_adults_per_unit=self.max_adults,
            max_children_per_unit=self.max_children,
            price_per_night=self.price_per_night
        )

    @property
    def display_name(self) -> str:
        return f"{self.type_name} ({self.room_category.value.title()})"

    def can_accommodate(self, adults: int, children: int, units: int = 1) -> bool:
        """Check if occupancy is within limits for the given number of units"""
        return self.capacity.fits(GuestCount(adults=adults, children=children), units)


class InventoryDay(BaseModel):
    """Ledger row: total and reserved units of one room type on one night"""

    hotel_id: UUID
    room_type_id: UUID
    inventory_date: date

    total_units: int = Field(ge=0)
    reserved_units: int = Field(ge=0, default=0)

    # Incremented on every committed write; 0 means never committed
    version: int = 0
    last_updated: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def reserved_within_total(self) -> "InventoryDay":
        if self.reserved_units > self.total_units:
            raise ValueError("Reserved units cannot exceed total units")
        return self

    @property
    def key(self) -> InventoryKey:
        return InventoryKey(self.inventory_date, self.room_type_id, self.hotel_id)

    @property
    def available_units(self) -> int:
        return self.total_units - self.reserved_units

    @property
    def is_fully_reserved(self) -> bool:
        return self.available_units <= 0

    def can_reserve(self, units: int) -> bool:
        return self.available_units >= units

    def with_reserved(self, units: int, now: datetime) -> "InventoryDay":
        """Copy with units added; caller must have checked can_reserve"""
        if not self.can_reserve(units):
            raise ValidationError(
                f"Cannot reserve {units} units on {self.inventory_date}: only {self.available_units} left"
            )
        return self.model_copy(update={"reserved_units": self.reserved_units + units, "last_updated": now})

    def with_released(self, units: int, now: datetime) -> "InventoryDay":
        """Copy with units returned, floored at zero"""
        return self.model_copy(update={"reserved_units": max(0, self.reserved_units - units), "last_updated": now})

    def with_total(self, total_units: int, now: datetime) -> "InventoryDay":
        if total_units < self.reserved_units:
            raise ValidationError(
                f"Cannot set total units to {total_units} on {self.inventory_date}: "
                f"{self.reserved_units} already reserved"
            )
        return self.model_copy(update={"total_units": total_units, "last_updated": now})


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity"""

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)
    confirmation_code: str

    # References to other contexts
    guest_id: UUID
    hotel_id: UUID
    room_type_id: UUID

    # Value Objects
    date_range: DateRange
    guest_count: GuestCount
    number_of_units: int = Field(ge=1, default=1)
    price_per_night: Money
    total_amount: Money
    amount_paid: Money

    status: ReservationStatus = ReservationStatus.PENDING
    special_requests: Optional[str] = Field(default=None, max_length=SPECIAL_REQUESTS_MAX_LENGTH)
    cancellation_reason: Optional[str] = Field(default=None, max_length=500)
    cancelled_at: Optional[datetime] = None

    # Reservations are never hard deleted
    is_active: bool = True

    # Metadata
    created_at: datetime
    updated_at: datetime
    version: int = 1

    model_config = ConfigDict(from_attributes=True)

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        guest_id: UUID,
        hotel_id: UUID,
        room_type_id: UUID,
        date_range: DateRange,
        guest_count: GuestCount,
        number_of_units: int,
        price_per_night: Money,
        now: datetime,
        special_requests: Optional[str] = None
    ) -> "Reservation":
        """Create a PENDING reservation priced from the rate snapshot"""
        if number_of_units < 1:
            raise ValidationError("At least one unit must be reserved")

        total = price_per_night.amount * date_range.nights() * number_of_units

        return Reservation(
            confirmation_code=Reservation._generate_confirmation_code(),
            guest_id=guest_id,
            hotel_id=hotel_id,
            room_type_id=room_type_id,
            date_range=date_range,
            guest_count=guest_count,
            number_of_units=number_of_units,
            price_per_night=price_per_night,
            total_amount=Money(amount=total, currency=price_per_night.currency),
            amount_paid=Money(amount=Decimal("0"), currency=price_per_night.currency),
            status=ReservationStatus.PENDING,
            special_requests=special_requests,
            created_at=now,
            updated_at=now
        )

    # ==================== QUERY METHODS ====================
    @property
    def check_in_date(self) -> date:
        return self.date_range.check_in

    @property
    def check_out_date(self) -> date:
        return self.date_range.check_out

    def get_nights(self) -> int:
        return self.date_range.nights()

    def total_guests(self) -> int:
        return self.guest_count.total

    def is_fully_paid(self) -> bool:
        return self.amount_paid.covers(self.total_amount)

    def remaining_balance(self) -> Money:
        remaining = max(Decimal("0"), self.total_amount.amount - self.amount_paid.amount)
        return Money(amount=remaining, currency=self.total_amount.currency)

    def is_cancellable(self) -> bool:
        """Only PENDING and CONFIRMED reservations can be cancelled"""
        return self.status in CANCELLABLE_STATUSES

    def holds_inventory(self) -> bool:
        return self.status in INVENTORY_HOLDING_STATUSES

    @staticmethod
    def _generate_confirmation_code() -> str:
        """Generate unique confirmation code"""
        return ''.join(random.choices(string.ascii_uppercase + string.digits, k=8))


class Payment(BaseModel):
    """Payment record observed by the booking core; owned by the payment context"""

    payment_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    amount: Money
    status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_successful(self) -> bool:
        return self.status == PaymentStatus.SUCCESS
