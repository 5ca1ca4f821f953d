"""
Final validation and hand-off of a checkout draft to the reservation service.

The slot is re-checked against a freshly fetched bookings snapshot before
the service is called, since the user may have lingered on checkout while
someone else booked the court. Nothing is retried here; retry policy
belongs to the caller.
"""

from datetime import datetime

from courtbook.errors import (
    IncompleteSelectionError,
    InvalidSelectionError,
    StaleSlotError,
    SubmissionFailure,
)
from courtbook.logging_context import get_session_logger
from courtbook.schemas.booking_schema import BookingConfirmation, ReservationPayload
from courtbook.schemas.draft_schema import BookingDraft
from courtbook.scheduling.availability import annotate_slots
from courtbook.scheduling.slot_generator import ensure_in_window, generate_start_times
from courtbook.tools.backend import BookingBackend

logger = get_session_logger(__name__)

REQUIRED_FIELDS = (
    "sport", "venue", "date", "duration", "selected_start_time", "selected_court_id",
)


def build_payload(draft: BookingDraft) -> ReservationPayload:
    """The exact five-field reservation request for a complete draft."""
    missing = [name for name in REQUIRED_FIELDS if getattr(draft, name) is None]
    if missing:
        raise IncompleteSelectionError(missing, stage="checkout")
    return ReservationPayload(
        venue_id=draft.venue.id,
        court_id=draft.selected_court_id,
        date=draft.date,
        start_time=draft.selected_start_time,
        sport=draft.sport,
    )


def ensure_slot_still_free(draft: BookingDraft, backend: BookingBackend, now: datetime) -> None:
    """Raise StaleSlotError if the selected slot is no longer bookable."""
    court = draft.selected_court
    if court is None or court.sport != draft.sport:
        raise InvalidSelectionError(
            f"Court {draft.selected_court_id!r} is not a {draft.sport} court "
            f"of venue {draft.venue.id!r}"
        )
    ensure_in_window(draft.date, now.date())

    start_time = draft.selected_start_time
    if start_time not in generate_start_times(draft.date, now):
        raise StaleSlotError(
            f"{start_time} on {draft.date.isoformat()} has already started"
        )

    fresh = backend.fetch_existing_bookings(draft.venue.id, (draft.date, draft.date))
    [slot] = annotate_slots([start_time], draft.venue.id, court, draft.date, draft.duration, fresh)
    if slot.is_booked:
        raise StaleSlotError(
            f"{court.name} at {start_time} on {draft.date.isoformat()} was booked meanwhile"
        )


async def submit_booking(
    draft: BookingDraft, backend: BookingBackend, now: datetime
) -> BookingConfirmation:
    """
    Validate ``draft`` and create the reservation.

    Raises:
        IncompleteSelectionError: a required field is unset.
        StaleSlotError: the slot was taken or has started since it was picked.
        SubmissionFailure: the reservation service raised; safe to retry.
    """
    payload = build_payload(draft)
    try:
        ensure_slot_still_free(draft, backend, now)
    except StaleSlotError as exc:
        logger.warning("Submission rejected: %s", exc)
        raise

    logger.info(
        "Submitting booking: venue=%s court=%s date=%s start=%s sport=%s",
        payload.venue_id, payload.court_id, payload.date.isoformat(),
        payload.start_time, payload.sport,
    )
    try:
        confirmation = await backend.create_booking(payload, duration_hours=draft.duration)
    except Exception as exc:
        logger.warning("Reservation service failed: %s", exc)
        raise SubmissionFailure(f"Could not create the booking: {exc}") from exc

    logger.info("Booking confirmed: %s (request %s)", confirmation.booking_id, confirmation.request_id)
    return confirmation
