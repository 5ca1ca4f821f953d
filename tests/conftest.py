"""Shared test fixtures and helpers."""

from datetime import date, datetime
from typing import Optional

import pytest

from courtbook.schemas.booking_schema import ExistingBooking
from courtbook.tools.backend import MockBookingBackend
from courtbook.tools.venues import default_venues
from courtbook.wizard.state_machine import BookingWizard

# Monday morning; today's 07:00 to 10:00 starts have already begun.
NOW = datetime(2026, 3, 16, 10, 30)
TODAY = NOW.date()


@pytest.fixture
def venues():
    return {venue.id: venue for venue in default_venues()}


@pytest.fixture
def backend():
    return MockBookingBackend()


@pytest.fixture
def wizard(backend):
    return BookingWizard(backend, clock=lambda: NOW, session_id="SES-TEST")


@pytest.fixture
def football_wizard(wizard):
    """Wizard at the schedule stage for football at Arena Copacabana (v1)."""
    wizard.pick_sport("football")
    wizard.pick_venue("v1")
    return wizard


def make_booking(
    court_name: str = "Quadra 2 (Sintético)",
    start_time: str = "18:00",
    end_time: str = "19:00",
    on_date: Optional[date] = None,
    venue_id: str = "v1",
    sport: str = "football",
    status: str = "confirmed",
) -> ExistingBooking:
    """Helper to create an ExistingBooking with sensible defaults."""
    return ExistingBooking(
        venue_id=venue_id,
        court_name=court_name,
        sport=sport,
        date=on_date or TODAY,
        start_time=start_time,
        end_time=end_time,
        status=status,
    )
