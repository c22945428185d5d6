"""Inventory ledger and availability calculation

The ledger is the only writer of per-day inventory rows. Every write covers a
whole date range and goes through one commit that checks and changes the
locked rows together, retried a bounded number of times on contention.
"""
import asyncio
import logging
from datetime import date
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from domain.clock import Clock
from domain.entities import InventoryDay, InventoryKey, RoomType
from domain.exceptions import ConfigurationError, Contention, InsufficientInventory, ValidationError
from domain.repositories import InventoryRepository, RoomTypeRepository
from domain.value_objects import DateRange, GuestCount
from infrastructure.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AvailabilityResult(BaseModel):
    """Outcome of an advisory availability check"""
    available: bool
    first_blocking_date: Optional[date] = None
    nights: int
    units: int


def first_blocking_date(days: Iterable[InventoryDay], units: int) -> Optional[date]:
    """First day, in check-in order, that cannot take `units` more"""
    for day in sorted(days, key=lambda d: d.inventory_date):
        if not day.can_reserve(units):
            return day.inventory_date
    return None


def require_units(units: int) -> None:
    if not isinstance(units, int) or isinstance(units, bool) or units < 1:
        raise ValidationError("Number of units must be at least 1")


async def load_room_type(repository: RoomTypeRepository, hotel_id: UUID, room_type_id: UUID) -> RoomType:
    """Fetch the capacity template, failing when it is not configured for the hotel"""
    room_type = await repository.find_by_id(room_type_id)
    if room_type is None:
        raise ConfigurationError(f"Room type {room_type_id} has no configured capacity")
    if room_type.hotel_id != hotel_id:
        raise ConfigurationError(f"Room type {room_type_id} is not configured for hotel {hotel_id}")
    return room_type


def template_day(room_type: RoomType, day: date) -> InventoryDay:
    """Uncommitted ledger row seeded from the room type's daily inventory"""
    return InventoryDay(
        hotel_id=room_type.hotel_id,
        room_type_id=room_type.room_type_id,
        inventory_date=day,
        total_units=room_type.total_units_per_day,
        reserved_units=0,
        version=0
    )


class InventoryLedger:
    """Per (hotel, room type, date) counters of total and reserved units"""

    def __init__(
        self,
        repository: InventoryRepository,
        room_type_repo: RoomTypeRepository,
        clock: Clock,
        max_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None
    ):
        self.repository = repository
        self.room_type_repo = room_type_repo
        self.clock = clock
        self.max_attempts = settings.INVENTORY_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.retry_backoff = settings.INVENTORY_RETRY_BACKOFF_SECONDS if retry_backoff is None else retry_backoff
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    async def get_or_init_day(self, hotel_id: UUID, room_type_id: UUID, day: date) -> InventoryDay:
        """Return the row for a day, creating it from the room type template if absent"""
        existing = await self.repository.find_day(InventoryKey(day, room_type_id, hotel_id))
        if existing is not None:
            return existing
        room_type = await load_room_type(self.room_type_repo, hotel_id, room_type_id)
        return await self.repository.add_if_absent(template_day(room_type, day))

    async def get_days(self, hotel_id: UUID, room_type_id: UUID, date_range: DateRange) -> List[InventoryDay]:
        """Initialised rows for every night of the range"""
        return await self._load_range(hotel_id, room_type_id, date_range)

    async def reserve(self, hotel_id: UUID, room_type_id: UUID, date_range: DateRange, units: int) -> List[InventoryDay]:
        """Add `units` to every night of the range, or to none of them"""
        require_units(units)

        now = self.clock.now()

        def take(day: InventoryDay) -> InventoryDay:
            if not day.can_reserve(units):
                raise InsufficientInventory(day.inventory_date)
            return day.with_reserved(units, now)

        async def attempt() -> List[InventoryDay]:
            days = await self._load_range(hotel_id, room_type_id, date_range)
            # Capacity is checked against the locked rows, night by night in check-in order
            return await self.repository.commit(days, take)

        committed = await self._with_retry("reserve", attempt)
        logger.info(
            "Reserved %d unit(s) of room type %s for %s..%s",
            units, room_type_id, date_range.check_in, date_range.check_out
        )
        return committed

    async def release(
        self,
        hotel_id: UUID,
        room_type_id: UUID,
        date_range: DateRange,
        units: int,
        release_key: Optional[UUID] = None
    ) -> bool:
        """Return `units` on every night of the range, floored at zero.

        With a release_key, only the first release for that key changes the
        ledger; later calls return False.
        """
        require_units(units)

        async def attempt() -> bool:
            if release_key is not None and await self.repository.is_released(release_key):
                return False
            days = await self._load_range(hotel_id, room_type_id, date_range)
            now = self.clock.now()
            await self.repository.commit(days, lambda day: day.with_released(units, now), release_key=release_key)
            return True

        released = await self._with_retry("release", attempt)
        if released:
            logger.info(
                "Released %d unit(s) of room type %s for %s..%s",
                units, room_type_id, date_range.check_in, date_range.check_out
            )
        else:
            logger.info("Release %s already applied, ledger unchanged", release_key)
        return released

    async def configure_days(
        self,
        hotel_id: UUID,
        room_type_id: UUID,
        date_range: DateRange,
        total_units: int
    ) -> List[InventoryDay]:
        """Set total units for every night of the range"""
        if total_units < 0:
            raise ValidationError("Total units cannot be negative")
        room_type = await load_room_type(self.room_type_repo, hotel_id, room_type_id)

        async def attempt() -> List[InventoryDay]:
            now = self.clock.now()
            days = [template_day(room_type, d) for d in date_range.dates()]
            return await self.repository.commit(days, lambda day: day.with_total(total_units, now))

        committed = await self._with_retry("configure", attempt)
        logger.info(
            "Configured %d unit(s) per day of room type %s for %s..%s",
            total_units, room_type_id, date_range.check_in, date_range.check_out
        )
        return committed

    async def _load_range(self, hotel_id: UUID, room_type_id: UUID, date_range: DateRange) -> List[InventoryDay]:
        dates = date_range.dates()
        stored = await self.repository.find_days(hotel_id, room_type_id, dates)
        missing = [d for d in dates if d not in stored]
        if missing:
            room_type = await load_room_type(self.room_type_repo, hotel_id, room_type_id)
            for d in missing:
                stored[d] = await self.repository.add_if_absent(template_day(room_type, d))
        return [stored[d] for d in dates]

    async def _with_retry(self, operation: str, attempt: Callable[[], Awaitable[T]]) -> T:
        for number in range(1, self.max_attempts + 1):
            try:
                return await attempt()
            except Contention as e:
                logger.warning(
                    "Inventory %s attempt %d/%d hit contention: %s",
                    operation, number, self.max_attempts, e
                )
                if number == self.max_attempts:
                    raise Contention(
                        f"Inventory {operation} gave up after {self.max_attempts} attempts"
                    ) from e
                await asyncio.sleep(self.retry_backoff * number)
        raise Contention(f"Inventory {operation} was not attempted")


class AvailabilityCalculator:
    """Read-only capacity checks over the ledger"""

    def __init__(self, repository: InventoryRepository, room_type_repo: RoomTypeRepository):
        self.repository = repository
        self.room_type_repo = room_type_repo

    async def check_availability(
        self,
        hotel_id: UUID,
        room_type_id: UUID,
        check_in: date,
        check_out: date,
        units: int = 1
    ) -> AvailabilityResult:
        """Check if every night of [check_in, check_out) has `units` free"""
        date_range = DateRange.between(check_in, check_out)
        require_units(units)

        room_type = await load_room_type(self.room_type_repo, hotel_id, room_type_id)
        days = await self._project_days(room_type, date_range)
        blocking = first_blocking_date(days, units)
        return AvailabilityResult(
            available=blocking is None,
            first_blocking_date=blocking,
            nights=date_range.nights(),
            units=units
        )

    async def daily_availability(
        self,
        hotel_id: UUID,
        room_type_id: UUID,
        check_in: date,
        check_out: date
    ) -> List[InventoryDay]:
        """Calendar of every night, without creating missing rows"""
        date_range = DateRange.between(check_in, check_out)
        room_type = await load_room_type(self.room_type_repo, hotel_id, room_type_id)
        return await self._project_days(room_type, date_range)

    async def search_available_room_types(
        self,
        hotel_id: UUID,
        check_in: date,
        check_out: date,
        units: int = 1,
        adults: Optional[int] = None,
        children: int = 0
    ) -> List[RoomType]:
        """Active room types of a hotel that can take the request on every night"""
        date_range = DateRange.between(check_in, check_out)
        require_units(units)
        guest_count = GuestCount(adults=adults, children=children) if adults is not None else None

        matches = []
        for room_type in await self.room_type_repo.find_by_hotel_id(hotel_id, active_only=True):
            if guest_count is not None and not room_type.capacity.fits(guest_count, units):
                continue
            days = await self._project_days(room_type, date_range)
            if first_blocking_date(days, units) is None:
                matches.append(room_type)
        return sorted(matches, key=lambda rt: rt.price_per_night)

    async def _project_days(self, room_type: RoomType, date_range: DateRange) -> List[InventoryDay]:
        dates = date_range.dates()
        stored: Dict[date, InventoryDay] = await self.repository.find_days(
            room_type.hotel_id, room_type.room_type_id, dates
        )
        return [stored.get(d) or template_day(room_type, d) for d in dates]
