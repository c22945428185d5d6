"""Reservation lifecycle state machine

Transitions are pure: they take a reservation and return an updated copy,
leaving persistence and inventory release to the application layer.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple

from domain.entities import Reservation
from domain.enums import ReservationEvent, ReservationStatus
from domain.exceptions import InvalidStateTransition
from domain.value_objects import Money


TRANSITIONS: Dict[ReservationEvent, Tuple[FrozenSet[ReservationStatus], ReservationStatus]] = {
    ReservationEvent.CONFIRM: (frozenset({ReservationStatus.PENDING}), ReservationStatus.CONFIRMED),
    ReservationEvent.CHECK_IN: (frozenset({ReservationStatus.CONFIRMED}), ReservationStatus.CHECKED_IN),
    ReservationEvent.CHECK_OUT: (frozenset({ReservationStatus.CHECKED_IN}), ReservationStatus.CHECKED_OUT),
    ReservationEvent.CANCEL: (
        frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED}),
        ReservationStatus.CANCELLED,
    ),
    ReservationEvent.NO_SHOW: (
        frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED}),
        ReservationStatus.NO_SHOW,
    ),
}

# Events after which the reservation's units go back to the ledger
RELEASING_EVENTS = frozenset({ReservationEvent.CANCEL, ReservationEvent.NO_SHOW})

TERMINAL_STATUSES = frozenset({
    ReservationStatus.CHECKED_OUT,
    ReservationStatus.CANCELLED,
    ReservationStatus.NO_SHOW,
})


def can_transition(status: ReservationStatus, event: ReservationEvent) -> bool:
    allowed_from, _ = TRANSITIONS[event]
    return status in allowed_from


def ensure_transition(reservation: Reservation, event: ReservationEvent, now: datetime) -> ReservationStatus:
    """Validate an event against status and dates, returning the target status"""
    allowed_from, target = TRANSITIONS[event]
    if reservation.status not in allowed_from:
        raise InvalidStateTransition(reservation.status, event)

    today = now.date()
    if event == ReservationEvent.CHECK_IN:
        if today < reservation.check_in_date:
            raise InvalidStateTransition(
                reservation.status, event, "Cannot check in before check-in date"
            )
        if today >= reservation.check_out_date:
            raise InvalidStateTransition(
                reservation.status, event, "Cannot check in after the stay has ended"
            )
    elif event == ReservationEvent.NO_SHOW and today < reservation.check_in_date:
        raise InvalidStateTransition(
            reservation.status, event, "Cannot mark as no-show before check-in date"
        )
    return target


def apply_transition(
    reservation: Reservation,
    event: ReservationEvent,
    now: datetime,
    reason: Optional[str] = None,
    amount_paid: Optional[Money] = None
) -> Reservation:
    """Return a copy of the reservation moved to the event's target status"""
    target = ensure_transition(reservation, event, now)

    update = {
        "status": target,
        "updated_at": now,
        "version": reservation.version + 1,
    }
    if event == ReservationEvent.CONFIRM and amount_paid is not None:
        update["amount_paid"] = amount_paid
    if event == ReservationEvent.CANCEL:
        update["cancellation_reason"] = reason
        update["cancelled_at"] = now

    return reservation.model_copy(update=update)
