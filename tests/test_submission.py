"""Tests for checkout submission, stale-slot checks and the re-entrancy guard."""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from courtbook.errors import (
    IncompleteSelectionError,
    InvalidSelectionError,
    OutOfRangeError,
    StaleSlotError,
    SubmissionFailure,
    SubmissionInProgressError,
)
from courtbook.schemas.booking_schema import ReservationPayload
from courtbook.schemas.draft_schema import BookingDraft
from courtbook.tools.backend import MockBookingBackend
from courtbook.wizard.state_machine import BookingWizard, InvalidTransitionError, WizardStage
from courtbook.wizard.submission import build_payload, ensure_slot_still_free, submit_booking
from tests.conftest import NOW, TODAY, make_booking


@pytest.fixture
def checkout_wizard(football_wizard):
    football_wizard.change_duration(1.5)
    football_wizard.pick_slot("18:00", "c2")
    return football_wizard


class TestBuildPayload:
    def test_exact_five_fields(self, checkout_wizard):
        payload = build_payload(checkout_wizard.draft)
        assert payload.model_dump() == {
            "venue_id": "v1",
            "court_id": "c2",
            "date": TODAY,
            "start_time": "18:00",
            "sport": "football",
        }

    def test_incomplete_draft(self):
        with pytest.raises(IncompleteSelectionError) as exc_info:
            build_payload(BookingDraft(sport="football"))
        assert exc_info.value.stage == "checkout"
        assert "venue" in exc_info.value.missing
        assert "selected_court_id" in exc_info.value.missing


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_football_booking(self, checkout_wizard, backend):
        assert checkout_wizard.draft.total_price == Decimal("225")

        confirmation = await checkout_wizard.submit()

        assert checkout_wizard.current_stage == WizardStage.SUCCESS
        assert checkout_wizard.is_terminal()
        assert checkout_wizard.confirmation == confirmation
        assert backend.submitted == [ReservationPayload(
            venue_id="v1", court_id="c2", date=TODAY, start_time="18:00", sport="football",
        )]
        assert confirmation.status == "pending"
        assert confirmation.end_time == "19:30"
        assert backend.get_booking(confirmation.booking_id).status == "pending"

    @pytest.mark.asyncio
    async def test_submitted_booking_blocks_next_session(self, checkout_wizard, backend):
        await checkout_wizard.submit()

        other = BookingWizard(backend, clock=lambda: NOW)
        other.pick_sport("football")
        other.pick_venue("v1")
        slots = {(s.start_time, s.court_id): s.is_booked for s in other.available_slots()}
        assert slots[("18:00", "c2")] is True
        assert slots[("19:00", "c2")] is True
        assert slots[("20:00", "c2")] is False
        assert slots[("18:00", "c3")] is False

    @pytest.mark.asyncio
    async def test_submit_before_checkout(self, football_wizard, backend):
        with pytest.raises(InvalidTransitionError):
            await football_wizard.submit()
        assert backend.submitted == []

    @pytest.mark.asyncio
    async def test_submit_twice(self, checkout_wizard, backend):
        await checkout_wizard.submit()
        with pytest.raises(InvalidTransitionError):
            await checkout_wizard.submit()
        assert len(backend.submitted) == 1


class TestStaleSlot:
    @pytest.mark.asyncio
    async def test_booked_meanwhile(self, checkout_wizard, backend):
        backend.add_existing_booking(make_booking(start_time="19:00", end_time="20:00"))

        with pytest.raises(StaleSlotError):
            await checkout_wizard.submit()

        assert checkout_wizard.current_stage == WizardStage.CHECKOUT
        assert checkout_wizard.draft.selected_start_time == "18:00"
        assert backend.submitted == []

    @pytest.mark.asyncio
    async def test_recover_by_going_back(self, checkout_wizard, backend):
        backend.add_existing_booking(make_booking(start_time="19:00", end_time="20:00"))
        with pytest.raises(StaleSlotError):
            await checkout_wizard.submit()

        checkout_wizard.go_back()
        assert checkout_wizard.available_slots(court_id="c2")[7].is_booked
        checkout_wizard.pick_slot("18:00", "c3")
        confirmation = await checkout_wizard.submit()
        assert confirmation.court_id == "c3"

    @pytest.mark.asyncio
    async def test_slot_started_meanwhile(self, backend):
        clock = [NOW]
        wizard = BookingWizard(backend, clock=lambda: clock[0])
        wizard.pick_sport("football")
        wizard.pick_venue("v1")
        wizard.pick_slot("11:00", "c2")

        clock[0] = NOW.replace(hour=11, minute=5)
        with pytest.raises(StaleSlotError, match="already started"):
            await wizard.submit()
        assert wizard.current_stage == WizardStage.CHECKOUT

    def test_declined_booking_is_not_stale(self, checkout_wizard, backend):
        backend.add_existing_booking(make_booking(status="declined"))
        ensure_slot_still_free(checkout_wizard.draft, backend, NOW)

    def test_court_of_other_sport(self, backend, venues):
        draft = BookingDraft(
            sport="football", venue=venues["v1"], date=TODAY,
            selected_start_time="18:00", selected_court_id="c1",
        )
        with pytest.raises(InvalidSelectionError):
            ensure_slot_still_free(draft, backend, NOW)


class TestSubmissionFailure:
    @pytest.mark.asyncio
    async def test_failure_keeps_checkout(self, checkout_wizard, backend):
        backend.fail_next_submission()

        with pytest.raises(SubmissionFailure) as exc_info:
            await checkout_wizard.submit()

        assert exc_info.value.retryable
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert checkout_wizard.current_stage == WizardStage.CHECKOUT
        assert not checkout_wizard.is_submitting
        assert checkout_wizard.confirmation is None
        assert checkout_wizard.draft.selected_court_id == "c2"

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, checkout_wizard, backend):
        backend.fail_next_submission(TimeoutError("gateway timeout"))
        with pytest.raises(SubmissionFailure, match="gateway timeout"):
            await checkout_wizard.submit()

        confirmation = await checkout_wizard.submit()
        assert confirmation is not None
        assert checkout_wizard.current_stage == WizardStage.SUCCESS
        assert len(backend.submitted) == 2

    @pytest.mark.asyncio
    async def test_submit_booking_wraps_errors(self, checkout_wizard, backend):
        backend.fail_next_submission(RuntimeError("boom"))
        with pytest.raises(SubmissionFailure):
            await submit_booking(checkout_wizard.draft, backend, NOW)


class TestReentrancy:
    @pytest.fixture
    def slow_wizard(self):
        backend = MockBookingBackend(latency=0.05)
        wizard = BookingWizard(backend, clock=lambda: NOW)
        wizard.pick_sport("football")
        wizard.pick_venue("v1")
        wizard.pick_slot("18:00", "c2")
        return wizard, backend

    @pytest.mark.asyncio
    async def test_second_submit_rejected(self, slow_wizard):
        wizard, backend = slow_wizard
        task = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)

        assert wizard.is_submitting
        with pytest.raises(SubmissionInProgressError):
            await wizard.submit()

        confirmation = await task
        assert confirmation is not None
        assert len(backend.submitted) == 1
        assert not wizard.is_submitting

    @pytest.mark.asyncio
    async def test_edits_rejected_while_in_flight(self, slow_wizard):
        wizard, _ = slow_wizard
        task = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)

        with pytest.raises(SubmissionInProgressError):
            wizard.go_back()
        with pytest.raises(SubmissionInProgressError):
            wizard.set_payment_method("venue")
        assert wizard.current_stage == WizardStage.CHECKOUT

        await task
        assert wizard.current_stage == WizardStage.SUCCESS

    @pytest.mark.asyncio
    async def test_cancel_discards_late_result(self, slow_wizard):
        wizard, backend = slow_wizard
        task = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)

        wizard.cancel()
        assert not wizard.is_submitting

        assert await task is None
        assert wizard.current_stage == WizardStage.CANCELLED
        assert wizard.confirmation is None
        assert len(backend.submitted) == 1

    @pytest.mark.asyncio
    async def test_cancel_discards_late_failure(self, slow_wizard):
        wizard, backend = slow_wizard
        backend.fail_next_submission()
        task = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)

        wizard.cancel()

        assert await task is None
        assert wizard.current_stage == WizardStage.CANCELLED
        assert not wizard.is_submitting

    @pytest.mark.asyncio
    async def test_reset_discards_late_failure(self, slow_wizard):
        wizard, backend = slow_wizard
        backend.fail_next_submission()
        task = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)

        wizard.reset()

        assert await task is None
        assert wizard.current_stage == WizardStage.SELECT_SPORT

    @pytest.mark.asyncio
    async def test_task_cancellation_releases_guard(self, slow_wizard):
        wizard, _ = slow_wizard
        task = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not wizard.is_submitting
        assert wizard.current_stage == WizardStage.CHECKOUT
        assert wizard.draft.selected_start_time == "18:00"

    @pytest.mark.asyncio
    async def test_reset_discards_late_result(self, slow_wizard):
        wizard, _ = slow_wizard
        task = asyncio.create_task(wizard.submit())
        await asyncio.sleep(0)

        wizard.reset()
        assert await task is None
        assert wizard.current_stage == WizardStage.SELECT_SPORT
        assert wizard.get_stage_trace() == ["select_sport"]


class TestWindowAtSubmission:
    @pytest.mark.asyncio
    async def test_date_left_window(self, backend):
        clock = [NOW]
        wizard = BookingWizard(backend, clock=lambda: clock[0])
        wizard.pick_sport("football")
        wizard.pick_venue("v1")
        wizard.change_date(TODAY + timedelta(days=1))
        wizard.pick_slot("18:00", "c2")

        clock[0] = NOW + timedelta(days=2)
        with pytest.raises(OutOfRangeError):
            await wizard.submit()
        assert wizard.current_stage == WizardStage.CHECKOUT
