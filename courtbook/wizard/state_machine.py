"""
Finite state machine for the multi-step court booking flow.

Four ordered stages (sport, venue, schedule, checkout) lead to a terminal
success stage; any unfinished stage can be cancelled. Every move is an
explicit transition with an event. Picking a new upstream value clears the
selections downstream of it, while going back keeps everything so the user
can return forward unchanged.

Usage:
    wizard = BookingWizard(MockBookingBackend())
    wizard.pick_sport("football")
    wizard.pick_venue("v1")
    slots = wizard.available_slots()
    wizard.pick_slot("18:00", "c2")
    confirmation = await wizard.submit()
"""

import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from courtbook.config import settings
from courtbook.errors import (
    BookingError,
    IncompleteSelectionError,
    InvalidSelectionError,
    SlotUnavailableError,
    SubmissionInProgressError,
)
from courtbook.logging_context import bound_to_session, get_session_logger, session_scope
from courtbook.schemas.booking_schema import BookingConfirmation, CandidateSlot, ExistingBooking
from courtbook.schemas.draft_schema import BookingDraft, PaymentMethod
from courtbook.schemas.venue_schema import Venue
from courtbook.scheduling.availability import annotate_venue_slots, find_slot
from courtbook.scheduling.slot_generator import booking_window, ensure_in_window, generate_start_times
from courtbook.scheduling.time_interval import to_minutes
from courtbook.tools.backend import BookingBackend
from courtbook.tools.venues import venues_offering
from courtbook.wizard.submission import submit_booking

logger = get_session_logger(__name__)


class WizardStage(str, Enum):
    """All stages of a booking session."""
    SELECT_SPORT = "select_sport"
    SELECT_VENUE = "select_venue"
    SELECT_SCHEDULE = "select_schedule"
    CHECKOUT = "checkout"
    SUCCESS = "success"
    CANCELLED = "cancelled"

    @property
    def number(self) -> Optional[int]:
        """1-based position of an ordered stage; None for success and cancelled."""
        return _STAGE_NUMBERS.get(self)


_STAGE_NUMBERS = {
    WizardStage.SELECT_SPORT: 1,
    WizardStage.SELECT_VENUE: 2,
    WizardStage.SELECT_SCHEDULE: 3,
    WizardStage.CHECKOUT: 4,
}

# Draft fields that must be set before a stage can be entered.
STAGE_PREREQUISITES: dict[WizardStage, tuple[str, ...]] = {
    WizardStage.SELECT_SPORT: (),
    WizardStage.SELECT_VENUE: ("sport",),
    WizardStage.SELECT_SCHEDULE: ("sport", "venue", "date", "duration"),
    WizardStage.CHECKOUT: (
        "sport", "venue", "date", "duration", "selected_start_time", "selected_court_id",
    ),
}


class WizardEvent(str, Enum):
    """Events that cause stage transitions."""
    PICK_SPORT = "pick_sport"
    PICK_VENUE = "pick_venue"
    CHANGE_DATE = "change_date"
    CHANGE_DURATION = "change_duration"
    PICK_SLOT = "pick_slot"
    GO_BACK = "go_back"
    ADVANCE = "advance"
    BOOKING_CONFIRMED = "booking_confirmed"
    CANCEL = "cancel"


@dataclass
class Transition:
    """A single valid stage transition."""
    from_stage: WizardStage
    to_stage: WizardStage
    event: WizardEvent


@dataclass
class StageEntry:
    """Recorded history entry for a stage visit."""
    stage: WizardStage
    entered_at: datetime
    event: Optional[WizardEvent] = None


class InvalidTransitionError(BookingError):
    """Raised when an event is not valid from the current stage."""


_S = WizardStage
_E = WizardEvent


class BookingWizard:
    """
    One user's booking session.

    Holds the draft, validates every selection against the live slot
    availability and hands the finished draft to the submission step.
    Failed calls never change the stage or the draft.
    """

    TRANSITIONS: list[Transition] = [
        # --- Upstream picks, also allowed from later stages ---
        Transition(_S.SELECT_SPORT, _S.SELECT_VENUE, _E.PICK_SPORT),
        Transition(_S.SELECT_VENUE, _S.SELECT_VENUE, _E.PICK_SPORT),
        Transition(_S.SELECT_SCHEDULE, _S.SELECT_VENUE, _E.PICK_SPORT),
        Transition(_S.CHECKOUT, _S.SELECT_VENUE, _E.PICK_SPORT),

        Transition(_S.SELECT_VENUE, _S.SELECT_SCHEDULE, _E.PICK_VENUE),
        Transition(_S.SELECT_SCHEDULE, _S.SELECT_SCHEDULE, _E.PICK_VENUE),
        Transition(_S.CHECKOUT, _S.SELECT_SCHEDULE, _E.PICK_VENUE),

        # --- Schedule edits ---
        Transition(_S.SELECT_SCHEDULE, _S.SELECT_SCHEDULE, _E.CHANGE_DATE),
        Transition(_S.CHECKOUT, _S.SELECT_SCHEDULE, _E.CHANGE_DATE),
        Transition(_S.SELECT_SCHEDULE, _S.SELECT_SCHEDULE, _E.CHANGE_DURATION),
        Transition(_S.CHECKOUT, _S.SELECT_SCHEDULE, _E.CHANGE_DURATION),
        Transition(_S.SELECT_SCHEDULE, _S.CHECKOUT, _E.PICK_SLOT),

        # --- Navigation with preserved selections ---
        Transition(_S.SELECT_VENUE, _S.SELECT_SPORT, _E.GO_BACK),
        Transition(_S.SELECT_SCHEDULE, _S.SELECT_VENUE, _E.GO_BACK),
        Transition(_S.CHECKOUT, _S.SELECT_SCHEDULE, _E.GO_BACK),
        Transition(_S.SELECT_SPORT, _S.SELECT_VENUE, _E.ADVANCE),
        Transition(_S.SELECT_VENUE, _S.SELECT_SCHEDULE, _E.ADVANCE),
        Transition(_S.SELECT_SCHEDULE, _S.CHECKOUT, _E.ADVANCE),

        # --- Submission ---
        Transition(_S.CHECKOUT, _S.SUCCESS, _E.BOOKING_CONFIRMED),

        # --- Abandon ---
        Transition(_S.SELECT_SPORT, _S.CANCELLED, _E.CANCEL),
        Transition(_S.SELECT_VENUE, _S.CANCELLED, _E.CANCEL),
        Transition(_S.SELECT_SCHEDULE, _S.CANCELLED, _E.CANCEL),
        Transition(_S.CHECKOUT, _S.CANCELLED, _E.CANCEL),
    ]

    def __init__(
        self,
        backend: BookingBackend,
        clock: Callable[[], datetime] = datetime.now,
        session_id: Optional[str] = None,
    ) -> None:
        self._backend = backend
        self._clock = clock
        self.session_id = session_id or f"SES-{uuid.uuid4().hex[:8]}"
        self._submission_token = 0
        self._start_session()

    def _start_session(self) -> None:
        self._stage = WizardStage.SELECT_SPORT
        self._draft = BookingDraft()
        self._history: list[StageEntry] = [
            StageEntry(stage=WizardStage.SELECT_SPORT, entered_at=datetime.now(timezone.utc))
        ]
        self._bookings_snapshot: list[ExistingBooking] = []
        self._submitting = False
        self._confirmation: Optional[BookingConfirmation] = None

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def current_stage(self) -> WizardStage:
        return self._stage

    @property
    def draft(self) -> BookingDraft:
        return self._draft

    @property
    def confirmation(self) -> Optional[BookingConfirmation]:
        return self._confirmation

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    def today(self) -> date:
        return self._clock().date()

    def booking_window(self) -> list[date]:
        """The dates the user may pick, starting today."""
        return booking_window(self.today())

    def is_terminal(self) -> bool:
        return self._stage in (WizardStage.SUCCESS, WizardStage.CANCELLED)

    def get_valid_events(self) -> list[WizardEvent]:
        """Return all events valid from the current stage."""
        events: list[WizardEvent] = []
        for t in self.TRANSITIONS:
            if t.from_stage == self._stage and t.event not in events:
                events.append(t.event)
        return events

    def get_history(self) -> list[StageEntry]:
        return list(self._history)

    def get_stage_trace(self) -> list[str]:
        """Return ordered list of stage names visited."""
        return [entry.stage.value for entry in self._history]

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _ensure_idle(self) -> None:
        if self._submitting:
            raise SubmissionInProgressError(
                "A booking submission is in progress; wait for it to finish"
            )

    def _resolve(self, event: WizardEvent) -> WizardStage:
        for t in self.TRANSITIONS:
            if t.from_stage == self._stage and t.event == event:
                return t.to_stage
        valid = [e.value for e in self.get_valid_events()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._stage.value}' "
            f"with event '{event.value}'. Valid events: {valid}"
        )

    def _enter(self, stage: WizardStage, event: WizardEvent) -> WizardStage:
        old_stage = self._stage
        self._stage = stage
        self._history.append(StageEntry(
            stage=stage,
            entered_at=datetime.now(timezone.utc),
            event=event,
        ))
        logger.debug(
            "Stage transition: %s -> %s (event: %s)",
            old_stage.value, stage.value, event.value,
        )
        return stage

    def _missing_for(self, stage: WizardStage, draft: Optional[BookingDraft] = None) -> list[str]:
        draft = draft or self._draft
        return [
            name for name in STAGE_PREREQUISITES.get(stage, ())
            if getattr(draft, name) is None
        ]

    def _require(self, stage: WizardStage, draft: Optional[BookingDraft] = None) -> None:
        missing = self._missing_for(stage, draft)
        if missing:
            raise IncompleteSelectionError(missing, stage=stage.value)

    def _fetch_snapshot(self, venue: Venue) -> list[ExistingBooking]:
        window = self.booking_window()
        return self._backend.fetch_existing_bookings(venue.id, (window[0], window[-1]))

    def _slots_for(self, draft: BookingDraft, bookings: list[ExistingBooking]) -> list[CandidateSlot]:
        start_times = generate_start_times(draft.date, self._clock())
        return annotate_venue_slots(
            start_times, draft.venue, draft.sport, draft.date, draft.duration, bookings,
        )

    def _check_slot(self, draft: BookingDraft, start_time: str, court_id: str) -> None:
        """Raise unless (start_time, court_id) is a free candidate for the draft."""
        to_minutes(start_time)
        court = draft.venue.get_court(court_id)
        if court is None:
            raise InvalidSelectionError(
                f"Court {court_id!r} does not belong to venue {draft.venue.id!r}"
            )
        if court.sport != draft.sport:
            raise InvalidSelectionError(
                f"Court {court_id!r} is for {court.sport}, not {draft.sport}"
            )
        slot = find_slot(self._slots_for(draft, self._bookings_snapshot), start_time, court_id)
        if slot is None:
            raise InvalidSelectionError(
                f"{start_time} is not a selectable start time on {draft.date.isoformat()}"
            )
        if slot.is_booked:
            raise SlotUnavailableError(
                f"{court.name} is already booked around {start_time} on {draft.date.isoformat()}"
            )

    def _date_in_window(self, value: Optional[date]) -> bool:
        window = self.booking_window()
        return value is not None and window[0] <= value <= window[-1]

    # ------------------------------------------------------------------ #
    # Stage 1: sport
    # ------------------------------------------------------------------ #

    @bound_to_session
    def pick_sport(self, sport: str) -> WizardStage:
        """Choose the sport. A different sport clears venue, date and slot."""
        self._ensure_idle()
        target = self._resolve(WizardEvent.PICK_SPORT)
        if not sport or not sport.strip():
            raise IncompleteSelectionError(["sport"], stage=target.value)
        sport = sport.strip()

        if sport != self._draft.sport:
            self._draft.sport = sport
            self._draft.clear_venue()
        return self._enter(target, WizardEvent.PICK_SPORT)

    # ------------------------------------------------------------------ #
    # Stage 2: venue
    # ------------------------------------------------------------------ #

    @bound_to_session
    def venues_for_sport(self) -> list[Venue]:
        """Venues that offer the chosen sport."""
        self._require(WizardStage.SELECT_VENUE)
        return venues_offering(self._backend.fetch_venues(), self._draft.sport)

    @bound_to_session
    def pick_venue(self, venue: Union[Venue, str]) -> WizardStage:
        """
        Choose the venue and enter the schedule stage.

        A different venue resets the date to the first day of the window and
        clears the slot. The existing-bookings snapshot is fetched here.
        """
        self._ensure_idle()
        target = self._resolve(WizardEvent.PICK_VENUE)
        self._require(WizardStage.SELECT_VENUE)

        if isinstance(venue, str):
            venue_id = venue
            venue = self._backend.get_venue(venue_id)
            if venue is None:
                raise InvalidSelectionError(f"Unknown venue: {venue_id!r}")
        if not venue.offers(self._draft.sport):
            raise InvalidSelectionError(
                f"Venue {venue.id!r} does not offer {self._draft.sport}"
            )

        snapshot = self._fetch_snapshot(venue)

        changed = self._draft.venue is None or self._draft.venue.id != venue.id
        self._draft.venue = venue
        if changed or not self._date_in_window(self._draft.date):
            self._draft.date = self.booking_window()[0]
            self._draft.clear_slot()
        self._bookings_snapshot = snapshot
        return self._enter(target, WizardEvent.PICK_VENUE)

    # ------------------------------------------------------------------ #
    # Stage 3: schedule
    # ------------------------------------------------------------------ #

    @bound_to_session
    def change_date(self, new_date: date) -> WizardStage:
        """Pick another day inside the window. A different day clears the slot."""
        self._ensure_idle()
        target = self._resolve(WizardEvent.CHANGE_DATE)
        self._require(WizardStage.SELECT_SCHEDULE)
        ensure_in_window(new_date, self.today())
        snapshot = self._fetch_snapshot(self._draft.venue) if self._stage != target else None

        if new_date != self._draft.date:
            self._draft.date = new_date
            self._draft.clear_slot()
        if snapshot is not None:
            self._bookings_snapshot = snapshot
        return self._enter(target, WizardEvent.CHANGE_DATE)

    @bound_to_session
    def change_duration(self, hours: float) -> WizardStage:
        """Pick another duration. A different duration clears the slot."""
        self._ensure_idle()
        target = self._resolve(WizardEvent.CHANGE_DURATION)
        self._require(WizardStage.SELECT_SCHEDULE)
        allowed = settings.booking.allowed_durations
        try:
            hours = float(hours)
        except (TypeError, ValueError):
            raise InvalidSelectionError(f"Duration must be a number, got {hours!r}") from None
        if hours not in allowed:
            raise InvalidSelectionError(
                f"Duration must be one of {list(allowed)} hours, got {hours}"
            )
        snapshot = self._fetch_snapshot(self._draft.venue) if self._stage != target else None

        if hours != self._draft.duration:
            self._draft.duration = hours
            self._draft.clear_slot()
        if snapshot is not None:
            self._bookings_snapshot = snapshot
        return self._enter(target, WizardEvent.CHANGE_DURATION)

    @bound_to_session
    def available_slots(self, court_id: Optional[str] = None) -> list[CandidateSlot]:
        """
        Candidate slots for the draft's venue, sport, date and duration.

        Computed fresh on every call from the snapshot taken when the
        schedule stage was entered. Pass ``court_id`` to restrict the list
        to one court.
        """
        self._require(WizardStage.SELECT_SCHEDULE)
        slots = self._slots_for(self._draft, self._bookings_snapshot)
        if court_id is not None:
            slots = [slot for slot in slots if slot.court_id == court_id]
        return slots

    @bound_to_session
    def pick_slot(self, start_time: Optional[str], court_id: Optional[str]) -> WizardStage:
        """Choose a free start time and court, entering checkout."""
        self._ensure_idle()
        target = self._resolve(WizardEvent.PICK_SLOT)
        missing = self._missing_for(WizardStage.SELECT_SCHEDULE)
        if not start_time:
            missing.append("selected_start_time")
        if not court_id:
            missing.append("selected_court_id")
        if missing:
            raise IncompleteSelectionError(missing, stage=target.value)

        self._check_slot(self._draft, start_time, court_id)

        self._draft.selected_start_time = start_time
        self._draft.selected_court_id = court_id
        return self._enter(target, WizardEvent.PICK_SLOT)

    # ------------------------------------------------------------------ #
    # Navigation
    # ------------------------------------------------------------------ #

    @bound_to_session
    def go_back(self) -> WizardStage:
        """Return to the previous stage, keeping every selection."""
        self._ensure_idle()
        target = self._resolve(WizardEvent.GO_BACK)
        if target == WizardStage.SELECT_SCHEDULE:
            self._bookings_snapshot = self._fetch_snapshot(self._draft.venue)
        return self._enter(target, WizardEvent.GO_BACK)

    @bound_to_session
    def advance(self) -> WizardStage:
        """
        Move forward one stage using the selections already in the draft.

        Used after going back without changing anything. Prerequisites are
        checked as for an explicit pick and a preserved slot must still be
        free.
        """
        self._ensure_idle()
        target = self._resolve(WizardEvent.ADVANCE)
        self._require(target)

        if target == WizardStage.SELECT_SCHEDULE:
            snapshot = self._fetch_snapshot(self._draft.venue)
            if not self._date_in_window(self._draft.date):
                self._draft.date = self.booking_window()[0]
                self._draft.clear_slot()
            self._bookings_snapshot = snapshot
        elif target == WizardStage.CHECKOUT:
            self._check_slot(
                self._draft, self._draft.selected_start_time, self._draft.selected_court_id
            )
        return self._enter(target, WizardEvent.ADVANCE)

    @bound_to_session
    def cancel(self) -> WizardStage:
        """Abandon the session. An in-flight submission result will be discarded."""
        target = self._resolve(WizardEvent.CANCEL)
        if self._submitting:
            logger.info("Cancelling with a submission in flight; its result will be discarded")
            self._submission_token += 1
            self._submitting = False
        return self._enter(target, WizardEvent.CANCEL)

    @bound_to_session
    def reset(self) -> None:
        """Start a new booking session from the sport stage."""
        if self._submitting:
            self._submission_token += 1
        self._start_session()
        logger.debug("Wizard reset")

    # ------------------------------------------------------------------ #
    # Stage 4: checkout
    # ------------------------------------------------------------------ #

    @bound_to_session
    def set_payment_method(self, method: Union[PaymentMethod, str]) -> PaymentMethod:
        self._ensure_idle()
        if self._stage != WizardStage.CHECKOUT:
            raise InvalidTransitionError(
                f"Payment method can only be chosen at checkout, not '{self._stage.value}'"
            )
        try:
            method = PaymentMethod(method)
        except ValueError:
            valid = [m.value for m in PaymentMethod]
            raise InvalidSelectionError(
                f"Unknown payment method {method!r}. Valid methods: {valid}"
            ) from None
        self._draft.payment_method = method
        return method

    async def submit(self) -> Optional[BookingConfirmation]:
        """
        Submit the checkout draft to the reservation service.

        Returns the confirmation and enters SUCCESS only after the service
        confirms. On StaleSlotError or SubmissionFailure the wizard stays at
        checkout with the draft untouched. Returns None if the session was
        cancelled or reset while the call was in flight, whatever its outcome.
        """
        with session_scope(self.session_id):
            self._ensure_idle()
            self._resolve(WizardEvent.BOOKING_CONFIRMED)
            self._require(WizardStage.CHECKOUT)

            draft = replace(self._draft)
            self._submission_token += 1
            token = self._submission_token
            self._submitting = True
            try:
                confirmation = await submit_booking(draft, self._backend, self._clock())
            except BookingError as exc:
                if token != self._submission_token:
                    logger.info("Discarding %s for an abandoned session: %s", type(exc).__name__, exc)
                    return None
                raise
            finally:
                if token == self._submission_token:
                    self._submitting = False

            if token != self._submission_token:
                logger.info(
                    "Discarding confirmation %s for an abandoned session", confirmation.booking_id
                )
                return None

            self._confirmation = confirmation
            self._enter(WizardStage.SUCCESS, WizardEvent.BOOKING_CONFIRMED)
            return confirmation
