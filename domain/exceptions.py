"""Domain Exceptions"""
from datetime import date
from typing import Optional
from uuid import UUID

from domain.enums import ReservationEvent, ReservationStatus


class BookingError(Exception):
    """Base class for all booking core errors"""
    retryable = False


class ValidationError(BookingError, ValueError):
    """Malformed or contradictory input"""


class PaymentRequired(ValidationError):
    """Successful payments do not cover the reservation total yet"""


class ConfigurationError(BookingError):
    """Room type is missing or has no configured capacity"""


class InsufficientInventory(BookingError):
    """At least one day in the requested range lacks capacity"""

    def __init__(self, blocking_date: date, message: Optional[str] = None):
        self.blocking_date = blocking_date
        super().__init__(message or f"No availability on {blocking_date.isoformat()}")


class InvalidStateTransition(BookingError):
    """Lifecycle event not allowed from the reservation's current status"""

    def __init__(self, status: ReservationStatus, event: ReservationEvent, message: Optional[str] = None):
        self.status = status
        self.event = event
        super().__init__(message or f"Cannot {event.value.lower()} reservation with status {status.value}")


class Contention(BookingError):
    """Transient lock timeout or concurrent change on inventory rows"""
    retryable = True


class VersionConflict(Contention):
    """A record or release key was already changed by a concurrent commit"""


class ReservationNotFound(BookingError):

    def __init__(self, reservation_id: UUID):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation {reservation_id} not found")
