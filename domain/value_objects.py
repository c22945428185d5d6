"""Domain Value Objects"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List

from domain.exceptions import ValidationError


class DateRange(BaseModel):
    """Half-open stay interval: check_in included, check_out excluded"""
    check_in: date
    check_out: date

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_out_after_check_in(self) -> "DateRange":
        if self.check_out <= self.check_in:
            raise ValueError("Check-out must be after check-in")
        return self

    @classmethod
    def between(cls, check_in: date, check_out: date) -> "DateRange":
        """Build a range, raising the domain ValidationError on bad input"""
        if not isinstance(check_in, date) or not isinstance(check_out, date):
            raise ValidationError("Check-in and check-out must be calendar dates")
        if isinstance(check_in, datetime) or isinstance(check_out, datetime):
            raise ValidationError("Check-in and check-out must be calendar dates without a time of day")
        if check_out == check_in:
            raise ValidationError("Check-out must be after check-in (zero-night stay)")
        if check_out < check_in:
            raise ValidationError("Check-out must be after check-in")
        return cls(check_in=check_in, check_out=check_out)

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def dates(self) -> List[date]:
        """Every night of the stay in check-in order"""
        return [self.check_in + timedelta(days=offset) for offset in range(self.nights())]

    def contains(self, day: date) -> bool:
        return self.check_in <= day < self.check_out

    def overlaps(self, other: "DateRange") -> bool:
        return self.check_in < other.check_out and other.check_in < self.check_out


class Money(BaseModel):
    """Value Object for monetary amounts"""
    amount: Decimal = Field(ge=0)
    currency: str = "USD"

    model_config = ConfigDict(frozen=True)

    def __add__(self, other: "Money") -> "Money":
        if self.currency != other.currency:
            raise ValidationError(f"Cannot add {other.currency} to {self.currency}")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def covers(self, other: "Money") -> bool:
        return self.currency == other.currency and self.amount >= other.amount


class GuestCount(BaseModel):
    """Value Object for guest count"""
    adults: int = Field(ge=1)
    children: int = Field(ge=0, default=0)

    model_config = ConfigDict(frozen=True)

    @property
    def total(self) -> int:
        return self.adults + self.children


class RoomTypeCapacity(BaseModel):
    """Per-unit occupancy, daily inventory and nightly rate of a room type"""
    total_units_per_day: int = Field(ge=0)
    max_adults_per_unit: int = Field(ge=1)
    max_children_per_unit: int = Field(ge=0)
    price_per_night: Decimal = Field(gt=0)

    model_config = ConfigDict(frozen=True)

    def fits(self, guest_count: GuestCount, units: int) -> bool:
        """Check if the party can be split across the requested units"""
        if guest_count.adults > self.max_adults_per_unit * units:
            return False
        if guest_count.children > self.max_children_per_unit * units:
            return False
        return guest_count.total <= (self.max_adults_per_unit + self.max_children_per_unit) * units
