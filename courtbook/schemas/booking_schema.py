"""Booking, slot and reservation data models."""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from courtbook.scheduling.time_interval import to_minutes


class ExistingBooking(BaseModel):
    """A booked half-open interval [start_time, end_time) on one court and day."""
    model_config = ConfigDict(frozen=True)

    venue_id: str
    court_name: str
    sport: str
    date: dt.date
    start_time: str
    end_time: str
    id: str = ""
    status: Literal["pending", "confirmed", "declined"] = "confirmed"

    @field_validator("start_time", "end_time")
    @classmethod
    def check_clock_time(cls, value: str) -> str:
        to_minutes(value)
        return value

    @property
    def blocks_slots(self) -> bool:
        return self.status != "declined"


class CandidateSlot(BaseModel):
    """A derived, never persisted start time annotated with its availability."""
    model_config = ConfigDict(frozen=True)

    start_time: str
    end_time: str
    court_id: str
    court_name: str
    is_booked: bool
    ends_next_day: bool = False


class ReservationPayload(BaseModel):
    """The exact request handed to the reservation service."""
    model_config = ConfigDict(frozen=True)

    venue_id: str
    court_id: str
    date: dt.date
    start_time: str
    sport: str


class BookingConfirmation(BaseModel):
    """Reservation service acknowledgement for a created booking."""

    booking_id: str
    request_id: str
    status: Literal["pending", "confirmed"] = "pending"
    venue_id: str
    court_id: str
    date: dt.date
    start_time: str
    end_time: str
    sport: str
    created_at: dt.datetime


class BookingRequest(BaseModel):
    """A reservation awaiting the venue owner's decision."""

    id: str
    booking_id: str
    venue_name: str
    court_name: str
    date: dt.date
    slot: str
    status: Literal["pending", "approved", "declined"] = "pending"
    timestamp: dt.datetime
