"""
Conflict detection between candidate slots and existing bookings.

A candidate is booked when any blocking booking on the same venue, court
name and date overlaps it under the half-open rule. Courts never affect
each other. The result is recomputed from scratch whenever the date,
duration, venue or court changes.
"""

import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from courtbook.schemas.booking_schema import CandidateSlot, ExistingBooking
from courtbook.schemas.venue_schema import Court, Venue
from courtbook.scheduling.time_interval import (
    MINUTES_PER_DAY,
    add_duration,
    duration_minutes,
    overlaps,
    to_minutes,
)

logger = logging.getLogger(__name__)


def _bookings_for_court(
    bookings: Iterable[ExistingBooking], venue_id: str, court: Court, on_date: date
) -> list[tuple[int, int]]:
    intervals = []
    for booking in bookings:
        if not booking.blocks_slots:
            continue
        if booking.venue_id != venue_id or booking.court_name != court.name:
            continue
        if booking.date != on_date:
            continue
        start = to_minutes(booking.start_time)
        end = to_minutes(booking.end_time)
        if end <= start:
            end += MINUTES_PER_DAY
        intervals.append((start, end))
    return intervals


def annotate_slots(
    start_times: Sequence[str],
    venue_id: str,
    court: Court,
    on_date: date,
    duration: float,
    bookings: Iterable[ExistingBooking],
) -> list[CandidateSlot]:
    """Mark each candidate start time of one court as booked or free, keeping input order."""
    taken = _bookings_for_court(bookings, venue_id, court, on_date)
    length = duration_minutes(duration)

    slots = []
    for start_time in start_times:
        start = to_minutes(start_time)
        # Overlap uses the unwrapped end so a late slot still collides after midnight.
        end = start + length
        is_booked = any(overlaps(start, end, b_start, b_end) for b_start, b_end in taken)
        slots.append(CandidateSlot(
            start_time=start_time,
            end_time=add_duration(start_time, duration),
            court_id=court.id,
            court_name=court.name,
            is_booked=is_booked,
            ends_next_day=end > MINUTES_PER_DAY,
        ))
    return slots


def annotate_venue_slots(
    start_times: Sequence[str],
    venue: Venue,
    sport: str,
    on_date: date,
    duration: float,
    bookings: Iterable[ExistingBooking],
) -> list[CandidateSlot]:
    """
    Run :func:`annotate_slots` for every court of ``venue`` that hosts ``sport``.

    The per-court lists are merged by start time. Inside one start time
    courts keep venue order.
    """
    bookings = list(bookings)
    merged: list[CandidateSlot] = []
    for court in venue.courts_for_sport(sport):
        merged.extend(annotate_slots(start_times, venue.id, court, on_date, duration, bookings))
    merged.sort(key=lambda slot: to_minutes(slot.start_time))
    free = sum(1 for slot in merged if not slot.is_booked)
    logger.debug(
        "Venue %s on %s (%s, %.1fh): %d of %d slots free",
        venue.id, on_date.isoformat(), sport, duration, free, len(merged),
    )
    return merged


def find_slot(
    slots: Iterable[CandidateSlot], start_time: str, court_id: str
) -> Optional[CandidateSlot]:
    """Look up the candidate for one start time and court."""
    for slot in slots:
        if slot.start_time == start_time and slot.court_id == court_id:
            return slot
    return None
