from enum import Enum
from typing import List

from pydantic import BaseModel, Field, field_validator

# Nombres canónicos en inglés, indexados como date.weekday() (0 = lunes)
WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"


class SalonStatus(str, Enum):
    pending = "pending"
    approved = "approved"


class UserRole(str, Enum):
    user = "user"
    shop_owner = "shop_owner"
    admin = "admin"


class SeatStatus(str, Enum):
    available = "available"
    booked = "booked"


class DaySchedule(BaseModel):
    day: str
    timeSlots: List[str] = Field(min_length=1)
    totalSeats: int = Field(ge=1)

    @field_validator("day")
    @classmethod
    def canonical_day(cls, value):
        for name in WEEKDAYS:
            if value.strip().lower() == name.lower():
                return name
        raise ValueError(f"unknown weekday '{value}'")

    @field_validator("timeSlots")
    @classmethod
    def unique_slots(cls, value):
        labels = [slot.strip() for slot in value]
        if any(not label for label in labels):
            raise ValueError("time slot labels must not be empty")
        if len(set(labels)) != len(labels):
            raise ValueError("duplicate time slot label")
        return labels


class WeeklySchedule(BaseModel):
    salonId: str = Field(min_length=1)
    weeklySchedule: List[DaySchedule] = Field(min_length=1)

    @field_validator("weeklySchedule")
    @classmethod
    def one_entry_per_day(cls, value):
        days = [d.day for d in value]
        if len(set(days)) != len(days):
            raise ValueError("each weekday may appear only once")
        return value

    def day(self, name):
        return next((d for d in self.weeklySchedule if d.day == name), None)
