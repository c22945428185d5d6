"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Callable, Optional, List, Dict, Iterable
from uuid import UUID
from datetime import date
from decimal import Decimal

from domain.entities import Reservation, InventoryDay, InventoryKey, RoomType, Payment
from domain.enums import ReservationStatus


class ReservationRepository(ABC):
    """Repository interface for Reservation Aggregate"""

    @abstractmethod
    async def save(self, reservation: Reservation) -> Reservation:
        """Save new reservation"""
        pass

    @abstractmethod
    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        pass

    @abstractmethod
    async def find_by_confirmation_code(self, code: str) -> Optional[Reservation]:
        """Find reservation by confirmation code"""
        pass

    @abstractmethod
    async def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        """Find reservations by guest ID"""
        pass

    @abstractmethod
    async def find_by_hotel_id(self, hotel_id: UUID, status: Optional[ReservationStatus] = None) -> List[Reservation]:
        """Find reservations of a hotel, optionally filtered by status"""
        pass

    @abstractmethod
    async def find_by_check_in_date(self, hotel_id: UUID, check_in_date: date) -> List[Reservation]:
        """Find reservations arriving on a date"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        pass

    @abstractmethod
    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation; version must be exactly one past the stored one"""
        pass


class InventoryRepository(ABC):
    """Repository interface for the per-day inventory ledger rows"""

    @abstractmethod
    async def find_day(self, key: InventoryKey) -> Optional[InventoryDay]:
        """Find a stored ledger row"""
        pass

    @abstractmethod
    async def find_days(self, hotel_id: UUID, room_type_id: UUID, dates: Iterable[date]) -> Dict[date, InventoryDay]:
        """Find stored rows for the given dates; missing dates are omitted"""
        pass

    @abstractmethod
    async def add_if_absent(self, day: InventoryDay) -> InventoryDay:
        """Insert a row unless one exists, returning the stored row"""
        pass

    @abstractmethod
    async def commit(
        self,
        days: List[InventoryDay],
        change: Callable[[InventoryDay], InventoryDay],
        release_key: Optional[UUID] = None
    ) -> List[InventoryDay]:
        """Atomically apply `change` to every row or to none.

        `change` runs on the current stored row (or on the given row if none is
        stored yet) while the rows are locked, in the order given. If it raises
        for any row, nothing is written. A lock wait past the timeout raises
        Contention. When release_key is given it is recorded in the same step;
        a previously recorded key raises VersionConflict.
        """
        pass

    @abstractmethod
    async def is_released(self, release_key: UUID) -> bool:
        """Check if a release with this key was already committed"""
        pass


class RoomTypeRepository(ABC):
    """Repository interface for room type configuration"""

    @abstractmethod
    async def save(self, room_type: RoomType) -> RoomType:
        pass

    @abstractmethod
    async def find_by_id(self, room_type_id: UUID) -> Optional[RoomType]:
        pass

    @abstractmethod
    async def find_by_hotel_id(self, hotel_id: UUID, active_only: bool = False) -> List[RoomType]:
        pass


class PaymentRepository(ABC):
    """Read/record access to payments of the payment context"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def find_by_reservation_id(self, reservation_id: UUID) -> List[Payment]:
        pass

    @abstractmethod
    async def sum_successful_amount(self, reservation_id: UUID) -> Decimal:
        """Sum of SUCCESS payment amounts for a reservation"""
        pass
