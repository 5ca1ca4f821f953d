"""Tests for the in-memory reservation backend and owner review."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from courtbook.schemas.booking_schema import ReservationPayload
from courtbook.tools.backend import BookingBackend, MockBookingBackend
from courtbook.tools.venues import default_venues, get_all_sports, venues_offering
from tests.conftest import TODAY, make_booking


def _payload(court_id: str = "c2", start_time: str = "18:00") -> ReservationPayload:
    return ReservationPayload(
        venue_id="v1", court_id=court_id, date=TODAY, start_time=start_time, sport="football",
    )


class TestVenueCatalog:
    def test_three_venues(self, backend):
        assert [v.id for v in backend.fetch_venues()] == ["v1", "v2", "v3"]

    def test_get_venue(self, backend):
        assert backend.get_venue("v2").name == "São Paulo Tennis Club"
        assert backend.get_venue("v99") is None

    def test_courts_match_listed_sports(self):
        for venue in default_venues():
            assert {court.sport for court in venue.courts} <= venue.sports

    def test_all_sports_sorted(self):
        sports = get_all_sports(default_venues())
        assert sports == sorted(sports)
        assert "football" in sports
        assert "tennis" in sports

    def test_venues_offering(self):
        assert [v.id for v in venues_offering(default_venues(), "tennis")] == ["v2"]

    def test_venues_are_frozen(self, venues):
        with pytest.raises(ValidationError):
            venues["v1"].name = "Renamed"

    def test_backend_is_abstract(self):
        with pytest.raises(TypeError):
            BookingBackend()


class TestExistingBookings:
    def test_seeded_booking_gets_id(self, backend):
        booking = backend.add_existing_booking(make_booking())
        assert booking.id.startswith("BK-")
        assert backend.get_booking(booking.id) == booking

    def test_fetch_filters_venue_and_dates(self, backend):
        backend.add_existing_booking(make_booking())
        backend.add_existing_booking(make_booking(on_date=TODAY + timedelta(days=3)))
        backend.add_existing_booking(make_booking(venue_id="v3", court_name="Quadra Externa 2"))

        assert len(backend.fetch_existing_bookings("v1", (TODAY, TODAY))) == 1
        assert len(backend.fetch_existing_bookings("v1", (TODAY, TODAY + timedelta(days=6)))) == 2
        assert len(backend.fetch_existing_bookings("v3", (TODAY, TODAY))) == 1

    def test_constructor_seeds_bookings(self):
        backend = MockBookingBackend(bookings=[
            make_booking(),
            make_booking(start_time="20:00", end_time="21:00"),
        ])
        assert len(backend.fetch_existing_bookings("v1", (TODAY, TODAY))) == 2

    def test_invalid_clock_time_rejected(self):
        with pytest.raises(ValueError):
            make_booking(start_time="6pm")

    def test_trailing_newline_rejected(self):
        with pytest.raises(ValidationError):
            make_booking(start_time="18:00\n")


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_creates_pending_booking_and_request(self, backend):
        confirmation = await backend.create_booking(_payload(), duration_hours=2.0)

        assert confirmation.booking_id.startswith("BK-")
        assert confirmation.request_id.startswith("REQ-")
        assert confirmation.end_time == "20:00"
        booking = backend.get_booking(confirmation.booking_id)
        assert booking.status == "pending"
        assert booking.court_name == "Quadra 2 (Sintético)"

        [request] = backend.list_booking_requests()
        assert request.slot == "18:00 - 20:00"
        assert request.venue_name == "Arena Copacabana"
        assert request.status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_court(self, backend):
        with pytest.raises(LookupError):
            await backend.create_booking(_payload(court_id="c99"), duration_hours=1.0)

    @pytest.mark.asyncio
    async def test_injected_failure_is_one_shot(self, backend):
        backend.fail_next_submission()
        with pytest.raises(ConnectionError):
            await backend.create_booking(_payload(), duration_hours=1.0)
        await backend.create_booking(_payload(), duration_hours=1.0)
        assert len(backend.submitted) == 2


class TestOwnerReview:
    @pytest.mark.asyncio
    async def test_approve_confirms_booking(self, backend):
        confirmation = await backend.create_booking(_payload(), duration_hours=1.0)

        request = backend.handle_booking_request(confirmation.request_id, "approve")

        assert request.status == "approved"
        assert backend.get_booking(confirmation.booking_id).status == "confirmed"
        assert backend.list_booking_requests(status="pending") == []

    @pytest.mark.asyncio
    async def test_decline_frees_slot(self, backend):
        confirmation = await backend.create_booking(_payload(), duration_hours=1.0)

        backend.handle_booking_request(confirmation.request_id, "decline")

        booking = backend.get_booking(confirmation.booking_id)
        assert booking.status == "declined"
        assert not booking.blocks_slots

    @pytest.mark.asyncio
    async def test_request_handled_once(self, backend):
        confirmation = await backend.create_booking(_payload(), duration_hours=1.0)
        backend.handle_booking_request(confirmation.request_id, "approve")
        with pytest.raises(ValueError, match="already approved"):
            backend.handle_booking_request(confirmation.request_id, "decline")

    def test_unknown_request(self, backend):
        assert backend.handle_booking_request("REQ-NOPE", "approve") is None

    def test_unknown_action(self, backend):
        with pytest.raises(ValueError, match="Unknown action"):
            backend.handle_booking_request("REQ-NOPE", "maybe")

    @pytest.mark.asyncio
    async def test_requests_oldest_first(self, backend):
        first = await backend.create_booking(_payload(start_time="18:00"), duration_hours=1.0)
        second = await backend.create_booking(_payload(start_time="20:00"), duration_hours=1.0)
        ids = [r.id for r in backend.list_booking_requests()]
        assert ids.index(first.request_id) < ids.index(second.request_id)


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_clears_state(self, backend):
        backend.add_existing_booking(make_booking())
        backend.fail_next_submission()
        with pytest.raises(ConnectionError):
            await backend.create_booking(_payload(), duration_hours=1.0)

        backend.reset()

        assert backend.fetch_existing_bookings("v1", (TODAY, TODAY)) == []
        assert backend.list_booking_requests() == []
        assert backend.submitted == []
        await backend.create_booking(_payload(), duration_hours=1.0)

    def test_instances_do_not_share_state(self):
        first = MockBookingBackend()
        second = MockBookingBackend()
        first.add_existing_booking(make_booking())
        assert second.fetch_existing_bookings("v1", (TODAY, TODAY)) == []
