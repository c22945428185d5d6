"""In-Memory Repository Implementations"""
import asyncio
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable, Optional, List, Dict, Iterable, Set
from uuid import UUID

from domain.repositories import ReservationRepository, InventoryRepository, RoomTypeRepository, PaymentRepository
from domain.entities import Reservation, InventoryDay, InventoryKey, RoomType, Payment
from domain.enums import ReservationStatus
from domain.exceptions import Contention, VersionConflict, ReservationNotFound

logger = logging.getLogger(__name__)


class InMemoryReservationRepository(ReservationRepository):
    """In-memory implementation of ReservationRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Reservation] = {}

    async def save(self, reservation: Reservation) -> Reservation:
        """Save reservation to memory"""
        self._storage[reservation.reservation_id] = reservation
        return reservation

    async def find_by_id(self, reservation_id: UUID) -> Optional[Reservation]:
        """Find reservation by ID"""
        return self._storage.get(reservation_id)

    async def find_by_confirmation_code(self, code: str) -> Optional[Reservation]:
        """Find reservation by confirmation code"""
        for reservation in self._storage.values():
            if reservation.confirmation_code == code:
                return reservation
        return None

    async def find_by_guest_id(self, guest_id: UUID) -> List[Reservation]:
        """Find reservations by guest ID"""
        return [r for r in self._storage.values() if r.guest_id == guest_id]

    async def find_by_hotel_id(self, hotel_id: UUID, status: Optional[ReservationStatus] = None) -> List[Reservation]:
        return [
            r for r in self._storage.values()
            if r.hotel_id == hotel_id and (status is None or r.status == status)
        ]

    async def find_by_check_in_date(self, hotel_id: UUID, check_in_date: date) -> List[Reservation]:
        return [
            r for r in self._storage.values()
            if r.hotel_id == hotel_id and r.check_in_date == check_in_date
        ]

    async def find_all(self) -> List[Reservation]:
        """Find all reservations"""
        return list(self._storage.values())

    async def update(self, reservation: Reservation) -> Reservation:
        """Update reservation"""
        stored = self._storage.get(reservation.reservation_id)
        if stored is None:
            raise ReservationNotFound(reservation.reservation_id)
        if reservation.version != stored.version + 1:
            raise VersionConflict(
                f"Reservation {reservation.reservation_id} changed concurrently "
                f"(stored version {stored.version}, update version {reservation.version})"
            )
        self._storage[reservation.reservation_id] = reservation
        return reservation


class InMemoryInventoryRepository(InventoryRepository):
    """In-memory ledger storage; writes hold ordered per-row locks"""

    def __init__(self, lock_timeout: float = 2.0):
        self._storage: Dict[InventoryKey, InventoryDay] = {}
        self._locks: Dict[InventoryKey, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._released: Set[UUID] = set()
        self._lock_timeout = lock_timeout

    async def find_day(self, key: InventoryKey) -> Optional[InventoryDay]:
        day = self._storage.get(key)
        return day.model_copy() if day else None

    async def find_days(self, hotel_id: UUID, room_type_id: UUID, dates: Iterable[date]) -> Dict[date, InventoryDay]:
        results = {}
        for d in dates:
            day = self._storage.get(InventoryKey(d, room_type_id, hotel_id))
            if day is not None:
                results[d] = day.model_copy()
        return results

    async def add_if_absent(self, day: InventoryDay) -> InventoryDay:
        stored = self._storage.get(day.key)
        if stored is None:
            stored = day.model_copy(update={"version": 1})
            self._storage[day.key] = stored
        return stored.model_copy()

    async def commit(
        self,
        days: List[InventoryDay],
        change: Callable[[InventoryDay], InventoryDay],
        release_key: Optional[UUID] = None
    ) -> List[InventoryDay]:
        keys = sorted({day.key for day in days})
        acquired: List[asyncio.Lock] = []
        try:
            for key in keys:
                lock = self._locks[key]
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self._lock_timeout)
                except asyncio.TimeoutError:
                    raise Contention(f"Timed out waiting for inventory row {key.inventory_date} lock")
                acquired.append(lock)

            if release_key is not None and release_key in self._released:
                raise VersionConflict(f"Release {release_key} already committed")

            # Compute every new row before writing any
            updated = []
            for day in days:
                current = self._storage.get(day.key) or day.model_copy(update={"version": 0})
                new_day = change(current.model_copy())
                updated.append(new_day.model_copy(update={"version": current.version + 1}))

            committed = []
            for new_day in updated:
                self._storage[new_day.key] = new_day
                committed.append(new_day.model_copy())
            if release_key is not None:
                self._released.add(release_key)
            logger.debug("Committed %d inventory rows", len(committed))
            return committed
        finally:
            for lock in reversed(acquired):
                lock.release()

    async def is_released(self, release_key: UUID) -> bool:
        return release_key in self._released

    async def find_all(self) -> List[InventoryDay]:
        """Every stored ledger row"""
        return [day.model_copy() for day in self._storage.values()]


class InMemoryRoomTypeRepository(RoomTypeRepository):
    """In-memory implementation of RoomTypeRepository"""

    def __init__(self):
        self._storage: Dict[UUID, RoomType] = {}

    async def save(self, room_type: RoomType) -> RoomType:
        self._storage[room_type.room_type_id] = room_type
        return room_type

    async def find_by_id(self, room_type_id: UUID) -> Optional[RoomType]:
        return self._storage.get(room_type_id)

    async def find_by_hotel_id(self, hotel_id: UUID, active_only: bool = False) -> List[RoomType]:
        return [
            rt for rt in self._storage.values()
            if rt.hotel_id == hotel_id and (rt.is_active or not active_only)
        ]


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Payment] = {}

    async def save(self, payment: Payment) -> Payment:
        self._storage[payment.payment_id] = payment
        return payment

    async def find_by_reservation_id(self, reservation_id: UUID) -> List[Payment]:
        return [p for p in self._storage.values() if p.reservation_id == reservation_id]

    async def sum_successful_amount(self, reservation_id: UUID) -> Decimal:
        return sum(
            (p.amount.amount for p in self._storage.values()
             if p.reservation_id == reservation_id and p.is_successful()),
            Decimal("0")
        )
