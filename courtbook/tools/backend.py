"""
Reservation collaborator contract and its in-memory mock.

In production the port would be backed by the venue platform's API. The
mock keeps one independent set of tables per instance, so separate
sessions and tests never share state through module globals.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Iterable, Literal, Optional

from courtbook.schemas.booking_schema import (
    BookingConfirmation,
    BookingRequest,
    ExistingBooking,
    ReservationPayload,
)
from courtbook.schemas.venue_schema import Venue
from courtbook.scheduling.time_interval import add_duration, slot_label
from courtbook.tools.venues import default_venues

logger = logging.getLogger(__name__)

DateRange = tuple[date, date]


class BookingBackend(ABC):
    """Reference data source plus the single mutating reservation call."""

    @abstractmethod
    def fetch_venues(self) -> list[Venue]:
        """Return read-only venue snapshots."""
        raise NotImplementedError

    @abstractmethod
    def fetch_existing_bookings(self, venue_id: str, date_range: DateRange) -> list[ExistingBooking]:
        """Return bookings of one venue whose date lies in the inclusive range."""
        raise NotImplementedError

    @abstractmethod
    async def create_booking(
        self, payload: ReservationPayload, duration_hours: float
    ) -> BookingConfirmation:
        """Create a reservation. Raises on failure; never retried by the caller."""
        raise NotImplementedError

    def get_venue(self, venue_id: str) -> Optional[Venue]:
        for venue in self.fetch_venues():
            if venue.id == venue_id:
                return venue
        return None


class MockBookingBackend(BookingBackend):
    """
    Single-writer in-memory backend.

    Submitted reservations are stored as pending bookings that already
    block their slot, together with an owner request. Declining the
    request frees the slot again.
    """

    def __init__(
        self,
        venues: Optional[Iterable[Venue]] = None,
        bookings: Optional[Iterable[ExistingBooking]] = None,
        latency: float = 0.0,
    ) -> None:
        self._venues: list[Venue] = list(venues) if venues is not None else default_venues()
        self._bookings: dict[str, ExistingBooking] = {}
        self._requests: dict[str, BookingRequest] = {}
        self.submitted: list[ReservationPayload] = []
        self.latency = latency
        self._next_failure: Optional[Exception] = None
        for booking in bookings or ():
            self.add_existing_booking(booking)

    # ------------------------------------------------------------------ #
    # Reference data
    # ------------------------------------------------------------------ #

    def fetch_venues(self) -> list[Venue]:
        return list(self._venues)

    def fetch_existing_bookings(self, venue_id: str, date_range: DateRange) -> list[ExistingBooking]:
        first, last = date_range
        return [
            booking
            for booking in self._bookings.values()
            if booking.venue_id == venue_id and first <= booking.date <= last
        ]

    def add_existing_booking(self, booking: ExistingBooking) -> ExistingBooking:
        """Seed a booking, assigning an id when it has none."""
        if not booking.id:
            booking = booking.model_copy(update={"id": _new_ref("BK")})
        self._bookings[booking.id] = booking
        return booking

    # ------------------------------------------------------------------ #
    # Reservations
    # ------------------------------------------------------------------ #

    def fail_next_submission(self, error: Optional[Exception] = None) -> None:
        """Make the next create_booking call raise ``error``."""
        self._next_failure = error or ConnectionError("Reservation service unavailable")

    async def create_booking(
        self, payload: ReservationPayload, duration_hours: float
    ) -> BookingConfirmation:
        if self.latency:
            await asyncio.sleep(self.latency)
        self.submitted.append(payload)

        if self._next_failure is not None:
            error, self._next_failure = self._next_failure, None
            logger.warning("Reservation for %s/%s rejected: %s", payload.venue_id, payload.court_id, error)
            raise error

        venue = self.get_venue(payload.venue_id)
        if venue is None:
            raise LookupError(f"Unknown venue: {payload.venue_id}")
        court = venue.get_court(payload.court_id)
        if court is None:
            raise LookupError(f"Unknown court {payload.court_id} at venue {payload.venue_id}")

        end_time = add_duration(payload.start_time, duration_hours)
        booking = self.add_existing_booking(ExistingBooking(
            venue_id=venue.id,
            court_name=court.name,
            sport=payload.sport,
            date=payload.date,
            start_time=payload.start_time,
            end_time=end_time,
            status="pending",
        ))
        now = datetime.now(timezone.utc)
        request = BookingRequest(
            id=_new_ref("REQ"),
            booking_id=booking.id,
            venue_name=venue.name,
            court_name=court.name,
            date=payload.date,
            slot=slot_label(payload.start_time, end_time),
            timestamp=now,
        )
        self._requests[request.id] = request
        logger.info(
            "Booking created: %s at %s %s on %s %s",
            booking.id, venue.id, court.id, payload.date.isoformat(), request.slot,
        )

        return BookingConfirmation(
            booking_id=booking.id,
            request_id=request.id,
            status="pending",
            venue_id=venue.id,
            court_id=court.id,
            date=payload.date,
            start_time=payload.start_time,
            end_time=end_time,
            sport=payload.sport,
            created_at=now,
        )

    # ------------------------------------------------------------------ #
    # Owner review
    # ------------------------------------------------------------------ #

    def list_booking_requests(self, status: Optional[str] = None) -> list[BookingRequest]:
        """Owner-facing requests, oldest first, optionally filtered by status."""
        requests = sorted(self._requests.values(), key=lambda r: r.timestamp)
        if status is not None:
            requests = [r for r in requests if r.status == status]
        return requests

    def handle_booking_request(
        self, request_id: str, action: Literal["approve", "decline"]
    ) -> Optional[BookingRequest]:
        """Approve or decline a pending request. Returns None for unknown ids."""
        if action not in ("approve", "decline"):
            raise ValueError(f"Unknown action {action!r}, expected 'approve' or 'decline'")
        request = self._requests.get(request_id)
        if request is None:
            return None
        if request.status != "pending":
            raise ValueError(f"Request {request_id} is already {request.status}")

        approved = action == "approve"
        request = request.model_copy(update={"status": "approved" if approved else "declined"})
        self._requests[request_id] = request

        booking = self._bookings.get(request.booking_id)
        if booking is not None:
            self._bookings[booking.id] = booking.model_copy(
                update={"status": "confirmed" if approved else "declined"}
            )
        logger.info("Booking request %s %s", request_id, request.status)
        return request

    def get_booking(self, booking_id: str) -> Optional[ExistingBooking]:
        return self._bookings.get(booking_id)

    def reset(self) -> None:
        """Clear all bookings, requests and recorded submissions. Used by test fixtures."""
        self._bookings.clear()
        self._requests.clear()
        self.submitted.clear()
        self._next_failure = None


def _new_ref(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:6].upper()}"
