"""Application Services - Business use cases"""
import asyncio
import logging
import weakref
from uuid import UUID
from datetime import date
from decimal import Decimal
from typing import List, Optional

from application.inventory import InventoryLedger, load_room_type, require_units
from domain.clock import Clock
from domain.entities import SPECIAL_REQUESTS_MAX_LENGTH, Reservation, RoomType, Payment
from domain.enums import ReservationEvent, ReservationStatus, PaymentStatus, PaymentMethod, RoomCategory
from domain.exceptions import (
    ConfigurationError, InsufficientInventory, PaymentRequired, ReservationNotFound, ValidationError
)
from domain.repositories import ReservationRepository, RoomTypeRepository, PaymentRepository
from domain.state_machine import RELEASING_EVENTS, apply_transition, ensure_transition
from domain.value_objects import DateRange, GuestCount, Money
from infrastructure.config import settings

logger = logging.getLogger(__name__)


class ReservationAllocator:
    """Grants a booking only if the ledger can reserve every night of it"""

    def __init__(
        self,
        repository: ReservationRepository,
        ledger: InventoryLedger,
        room_type_repo: RoomTypeRepository,
        clock: Clock,
        currency: Optional[str] = None,
        max_stay_nights: Optional[int] = None
    ):
        self.repository = repository
        self.ledger = ledger
        self.room_type_repo = room_type_repo
        self.clock = clock
        self.currency = currency or settings.CURRENCY
        self.max_stay_nights = settings.MAX_STAY_NIGHTS if max_stay_nights is None else max_stay_nights

    async def allocate(
        self,
        guest_id: UUID,
        hotel_id: UUID,
        room_type_id: UUID,
        check_in_date: date,
        check_out_date: date,
        number_of_adults: int,
        number_of_children: int = 0,
        number_of_units: int = 1,
        special_requests: Optional[str] = None
    ) -> Reservation:
        """Reserve inventory and create a PENDING reservation, or change nothing"""
        date_range = self._validate_stay(check_in_date, check_out_date)
        require_units(number_of_units)
        guest_count = self._validate_guest_count(number_of_adults, number_of_children)
        if special_requests is not None and len(special_requests) > SPECIAL_REQUESTS_MAX_LENGTH:
            raise ValidationError(f"Special requests cannot exceed {SPECIAL_REQUESTS_MAX_LENGTH} characters")

        room_type = await load_room_type(self.room_type_repo, hotel_id, room_type_id)
        if not room_type.is_active:
            raise ConfigurationError(f"Room type {room_type_id} is not bookable")
        if not room_type.capacity.fits(guest_count, number_of_units):
            raise ValidationError(
                f"{guest_count.adults} adult(s) and {guest_count.children} child(ren) exceed the occupancy "
                f"of {number_of_units} x {room_type.display_name} "
                f"(max {room_type.max_adults} adults, {room_type.max_children} children per unit)"
            )

        # Entity validation completes before the ledger is touched
        reservation = Reservation.create(
            guest_id=guest_id,
            hotel_id=hotel_id,
            room_type_id=room_type_id,
            date_range=date_range,
            guest_count=guest_count,
            number_of_units=number_of_units,
            price_per_night=Money(amount=room_type.price_per_night, currency=self.currency),
            now=self.clock.now(),
            special_requests=special_requests
        )

        try:
            await self.ledger.reserve(hotel_id, room_type_id, date_range, number_of_units)
        except InsufficientInventory as e:
            logger.warning(
                "Rejected allocation of %d unit(s) of room type %s for %s..%s: no availability on %s",
                number_of_units, room_type_id, check_in_date, check_out_date, e.blocking_date
            )
            raise

        try:
            saved = await self.repository.save(reservation)
        except Exception:
            logger.exception("Saving reservation %s failed, returning its inventory", reservation.reservation_id)
            await self.ledger.release(
                hotel_id, room_type_id, date_range, number_of_units, release_key=reservation.reservation_id
            )
            raise

        logger.info(
            "Allocated reservation %s (%s) for guest %s: %d night(s) x %d unit(s), total %s %s",
            saved.reservation_id, saved.confirmation_code, guest_id, date_range.nights(),
            number_of_units, saved.total_amount.amount, saved.total_amount.currency
        )
        return saved

    def _validate_stay(self, check_in_date: date, check_out_date: date) -> DateRange:
        date_range = DateRange.between(check_in_date, check_out_date)
        if check_in_date < self.clock.today():
            raise ValidationError("Check-in date must be today or later")
        if date_range.nights() > self.max_stay_nights:
            raise ValidationError(f"Maximum stay is {self.max_stay_nights} nights")
        return date_range

    @staticmethod
    def _validate_guest_count(adults: int, children: int) -> GuestCount:
        if adults is None or adults < 1:
            raise ValidationError("At least 1 adult is required")
        if children is None or children < 0:
            raise ValidationError("Number of children cannot be negative")
        return GuestCount(adults=adults, children=children)


class ReservationLifecycleManager:
    """Owns accepted reservations and every status change after allocation"""

    def __init__(
        self,
        repository: ReservationRepository,
        ledger: InventoryLedger,
        payment_repo: PaymentRepository,
        clock: Clock
    ):
        self.repository = repository
        self.ledger = ledger
        self.payment_repo = payment_repo
        self.clock = clock
        # One lock per reservation being changed; unrelated reservations never wait
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ==================== QUERIES ====================
    async def get_reservation(self, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.find_by_id(reservation_id)
        if reservation is None:
            raise ReservationNotFound(reservation_id)
        return reservation

    async def get_reservation_by_confirmation_code(self, code: str) -> Optional[Reservation]:
        return await self.repository.find_by_confirmation_code(code)

    async def get_reservations_by_guest(self, guest_id: UUID) -> List[Reservation]:
        return await self.repository.find_by_guest_id(guest_id)

    async def get_reservations_by_hotel(
        self,
        hotel_id: UUID,
        status: Optional[ReservationStatus] = None
    ) -> List[Reservation]:
        reservations = await self.repository.find_by_hotel_id(hotel_id, status)
        return sorted(reservations, key=lambda r: (r.check_in_date, r.created_at))

    async def get_arrivals(self, hotel_id: UUID, arrival_date: date) -> List[Reservation]:
        """Reservations due to check in on a date that are still expected"""
        reservations = await self.repository.find_by_check_in_date(hotel_id, arrival_date)
        return [
            r for r in reservations
            if r.status in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)
        ]

    # ==================== TRANSITIONS ====================
    async def confirm(self, reservation_id: UUID) -> Reservation:
        """PENDING -> CONFIRMED once successful payments cover the total"""
        async with self._lock_for(reservation_id):
            reservation = await self.get_reservation(reservation_id)
            now = self.clock.now()
            ensure_transition(reservation, ReservationEvent.CONFIRM, now)

            paid = Money(
                amount=await self.payment_repo.sum_successful_amount(reservation_id),
                currency=reservation.total_amount.currency
            )
            if not paid.covers(reservation.total_amount):
                raise PaymentRequired(
                    f"Payment of {paid.amount} does not cover total {reservation.total_amount.amount} "
                    f"{reservation.total_amount.currency}"
                )

            updated = apply_transition(reservation, ReservationEvent.CONFIRM, now, amount_paid=paid)
            return await self._store(updated, ReservationEvent.CONFIRM)

    async def check_in(self, reservation_id: UUID) -> Reservation:
        return await self._transition(reservation_id, ReservationEvent.CHECK_IN)

    async def check_out(self, reservation_id: UUID) -> Reservation:
        """CHECKED_IN -> CHECKED_OUT; the stay's inventory stays consumed"""
        return await self._transition(reservation_id, ReservationEvent.CHECK_OUT)

    async def cancel(self, reservation_id: UUID, reason: Optional[str] = None) -> Reservation:
        """Release the reservation's units, then move it to CANCELLED"""
        return await self._transition(
            reservation_id, ReservationEvent.CANCEL, reason=reason or "Guest requested cancellation"
        )

    async def mark_no_show(self, reservation_id: UUID) -> Reservation:
        return await self._transition(reservation_id, ReservationEvent.NO_SHOW)

    async def _transition(
        self,
        reservation_id: UUID,
        event: ReservationEvent,
        reason: Optional[str] = None
    ) -> Reservation:
        async with self._lock_for(reservation_id):
            reservation = await self.get_reservation(reservation_id)
            now = self.clock.now()
            ensure_transition(reservation, event, now)

            if event in RELEASING_EVENTS:
                await self.ledger.release(
                    reservation.hotel_id,
                    reservation.room_type_id,
                    reservation.date_range,
                    reservation.number_of_units,
                    release_key=reservation.reservation_id
                )

            updated = apply_transition(reservation, event, now, reason=reason)
            return await self._store(updated, event)

    async def _store(self, reservation: Reservation, event: ReservationEvent) -> Reservation:
        saved = await self.repository.update(reservation)
        logger.info(
            "Reservation %s %s -> %s", saved.reservation_id, event.value, saved.status.value
        )
        return saved

    def _lock_for(self, reservation_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(reservation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[reservation_id] = lock
        return lock


class RoomTypeService:
    """Room type configuration: the capacity template the ledger seeds days from"""

    def __init__(self, repository: RoomTypeRepository):
        self.repository = repository

    async def create_room_type(
        self,
        hotel_id: UUID,
        room_category: RoomCategory,
        type_name: str,
        price_per_night: Decimal,
        max_adults: int,
        total_units_per_day: int,
        max_children: int = 0,
        bed_info: Optional[str] = None,
        description: Optional[str] = None
    ) -> RoomType:
        """Create a room type, rejecting duplicate names within a hotel"""
        for existing in await self.repository.find_by_hotel_id(hotel_id):
            if existing.type_name.lower() == type_name.lower():
                raise ValidationError(f"Room type '{type_name}' already exists for hotel {hotel_id}")

        room_type = RoomType(
            hotel_id=hotel_id,
            room_category=room_category,
            type_name=type_name,
            price_per_night=price_per_night,
            max_adults=max_adults,
            max_children=max_children,
            total_units_per_day=total_units_per_day,
            bed_info=bed_info,
            description=description
        )
        saved = await self.repository.save(room_type)
        logger.info("Configured room type %s (%s) for hotel %s", saved.room_type_id, saved.display_name, hotel_id)
        return saved

    async def get_room_type(self, room_type_id: UUID) -> Optional[RoomType]:
        return await self.repository.find_by_id(room_type_id)

    async def get_hotel_room_types(self, hotel_id: UUID, active_only: bool = False) -> List[RoomType]:
        return await self.repository.find_by_hotel_id(hotel_id, active_only)

    async def change_rate(self, room_type_id: UUID, price_per_night: Decimal) -> RoomType:
        """Change the nightly rate; existing reservations keep their snapshot"""
        room_type = await self.repository.find_by_id(room_type_id)
        if room_type is None:
            raise ConfigurationError(f"Room type {room_type_id} has no configured capacity")
        if price_per_night <= 0:
            raise ValidationError("Price per night must be greater than 0")
        return await self.repository.save(room_type.model_copy(update={"price_per_night": price_per_night}))

    async def deactivate(self, room_type_id: UUID) -> RoomType:
        """Stop new bookings for a room type; existing ones are unaffected"""
        room_type = await self.repository.find_by_id(room_type_id)
        if room_type is None:
            raise ConfigurationError(f"Room type {room_type_id} has no configured capacity")
        return await self.repository.save(room_type.model_copy(update={"is_active": False}))


class PaymentService:
    """Records payment outcomes reported by the payment context"""

    def __init__(self, repository: PaymentRepository, reservation_repo: ReservationRepository, clock: Clock):
        self.repository = repository
        self.reservation_repo = reservation_repo
        self.clock = clock

    async def record_payment(
        self,
        reservation_id: UUID,
        amount: Decimal,
        status: PaymentStatus = PaymentStatus.SUCCESS,
        payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD,
        transaction_id: Optional[str] = None
    ) -> Payment:
        reservation = await self.reservation_repo.find_by_id(reservation_id)
        if reservation is None:
            raise ReservationNotFound(reservation_id)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")

        payment = Payment(
            reservation_id=reservation_id,
            amount=Money(amount=amount, currency=reservation.total_amount.currency),
            status=status,
            payment_method=payment_method,
            transaction_id=transaction_id,
            created_at=self.clock.now()
        )
        return await self.repository.save(payment)

    async def get_payments(self, reservation_id: UUID) -> List[Payment]:
        return await self.repository.find_by_reservation_id(reservation_id)
