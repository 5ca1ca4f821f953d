"""
Offline console demo: walks through a court booking without any services.

Drives the real booking wizard, slot generator and availability filter
against the in-memory mock backend. No network calls. Designed for demo
walkthroughs and quick manual checks.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario conflict
    python console_demo.py --scenario owner
"""

import argparse
import asyncio
from datetime import date, timedelta
from typing import Optional

from courtbook.config import settings
from courtbook.errors import BookingError
from courtbook.schemas.booking_schema import ExistingBooking
from courtbook.tools.backend import MockBookingBackend
from courtbook.tools.venues import get_all_sports
from courtbook.wizard.state_machine import BookingWizard, WizardStage

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"


class ConsoleSession:
    """Runs one booking wizard session in the terminal."""

    def __init__(self, backend: Optional[MockBookingBackend] = None) -> None:
        self.backend = backend or MockBookingBackend()
        self.wizard = BookingWizard(self.backend)

    def app_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[{settings.app_name}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def error(self, text: str) -> None:
        print(f"{RED}  !! {text}{RESET}")

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "booking": [
            "football",
            "v1",
            "date +1",
            "duration 1.5",
            "18:00 c2",
            "pay credit_card",
            "confirm",
        ],
        "conflict": [
            "football",
            "v1",
            "date +1",
            "19:00 c2",
            "19:00 c3",
            "back",
            "20:00 c2",
            "confirm",
        ],
        "owner": [
            "tennis",
            "v2",
            "date +2",
            "09:00 c4",
            "confirm",
            "requests",
            "approve",
            "requests",
        ],
    }

    MAX_INPUT_LENGTH = 200

    def _seed_conflicts(self) -> None:
        tomorrow = self.wizard.today() + timedelta(days=1)
        self.backend.add_existing_booking(ExistingBooking(
            venue_id="v1",
            court_name="Quadra 2 (Sintético)",
            sport="football",
            date=tomorrow,
            start_time="19:00",
            end_time="20:00",
        ))

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        if scenario == "conflict":
            self._seed_conflicts()

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  COURT BOOKING - Scenario: {scenario}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()
        self._prompt()

        for step in steps:
            print(f"\n{BLUE}[User] {RESET}{step}")
            self._process_input(step)
            self.system_log(f"Stage: {self.wizard.current_stage.value}")
            if not self._handles_owner_commands(step):
                self._prompt()

        self._summary(f"Scenario '{scenario}' complete.")

    def run(self) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  COURT BOOKING - Console Demo{RESET}")
        print(f"{BOLD}  Commands: back, cancel, date YYYY-MM-DD|+N, duration H,{RESET}")
        print(f"{BOLD}            HH:MM COURT, pay METHOD, confirm, requests, quit{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()
        self._prompt()

        while True:
            user_input = input(f"\n{BLUE}[User] {RESET}").strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                break
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.error("Input too long.")
                continue

            self._process_input(user_input)
            self.system_log(f"Stage: {self.wizard.current_stage.value}")
            if not self._handles_owner_commands(user_input):
                self._prompt()
            if self.wizard.current_stage == WizardStage.CANCELLED:
                break

        self._summary("Session complete.")

    def _summary(self, title: str) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{DIM}  Stage trace: {' -> '.join(self.wizard.get_stage_trace())}{RESET}")
        print(f"{DIM}  Submitted payloads: {len(self.backend.submitted)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    @staticmethod
    def _handles_owner_commands(text: str) -> bool:
        return text.split()[0].lower() in ("requests", "approve", "decline")

    # ------------------------------------------------------------------ #
    # Prompts per stage
    # ------------------------------------------------------------------ #

    def _prompt(self) -> None:
        stage = self.wizard.current_stage
        draft = self.wizard.draft

        if stage == WizardStage.SELECT_SPORT:
            sports = get_all_sports(self.backend.fetch_venues())
            self.app_say(f"Pick a sport: {', '.join(sports)}")
        elif stage == WizardStage.SELECT_VENUE:
            venues = self.wizard.venues_for_sport()
            if not venues:
                self.app_say(f"No venues offer {draft.sport}. Type 'back' to pick another sport.")
                return
            self.app_say(f"Venues for {draft.sport}:")
            for venue in venues:
                print(
                    f"    {venue.id}: {venue.name} ({venue.distance_km} km, "
                    f"{venue.price_per_hour}/h, rating {venue.rating})"
                )
        elif stage == WizardStage.SELECT_SCHEDULE:
            slots = self.wizard.available_slots()
            self.app_say(
                f"{draft.venue.name} on {draft.date.isoformat()}, {draft.duration}h. "
                f"Pick 'HH:MM COURT':"
            )
            if not slots:
                print(f"    {DIM}No slots left on this day.{RESET}")
            for slot in slots:
                label = f"{slot.start_time}-{slot.end_time} {slot.court_id} ({slot.court_name})"
                if slot.is_booked:
                    print(f"    {YELLOW}{label} booked{RESET}")
                else:
                    print(f"    {label}")
        elif stage == WizardStage.CHECKOUT:
            self.app_say(
                f"Checkout: {draft.venue.name}, {draft.selected_court.name}, "
                f"{draft.date.isoformat()} {draft.selected_start_time} for {draft.duration}h. "
                f"Total {draft.total_price}. Payment: {draft.payment_method.value}. "
                f"Type 'confirm' to book."
            )
        elif stage == WizardStage.SUCCESS:
            confirmation = self.wizard.confirmation
            self.app_say(
                f"Request sent. Booking {confirmation.booking_id} is {confirmation.status} "
                f"until the venue owner approves it."
            )
        elif stage == WizardStage.CANCELLED:
            self.app_say("Booking cancelled.")

    # ------------------------------------------------------------------ #
    # Input handling
    # ------------------------------------------------------------------ #

    def _process_input(self, text: str) -> None:
        try:
            self._dispatch(text)
        except BookingError as exc:
            self.error(f"{type(exc).__name__}: {exc}")

    def _dispatch(self, text: str) -> None:
        parts = text.split()
        command = parts[0].lower()
        stage = self.wizard.current_stage

        if command == "back":
            self.wizard.go_back()
        elif command == "cancel":
            self.wizard.cancel()
        elif command == "requests":
            self._show_requests()
        elif command in ("approve", "decline"):
            self._review_oldest_request(command)
        elif command == "date" and len(parts) == 2:
            self.wizard.change_date(self._parse_date(parts[1]))
        elif command == "duration" and len(parts) == 2:
            self.wizard.change_duration(parts[1])
        elif command == "pay" and len(parts) == 2:
            method = self.wizard.set_payment_method(parts[1])
            self.system_log(f"Payment method: {method.value}")
        elif command == "confirm":
            confirmation = asyncio.run(self.wizard.submit())
            if confirmation is not None:
                self.system_log(f"Confirmation: {confirmation.model_dump_json()}")
        elif stage == WizardStage.SELECT_SPORT:
            self.wizard.pick_sport(text)
        elif stage == WizardStage.SELECT_VENUE:
            self.wizard.pick_venue(parts[0])
        elif stage == WizardStage.SELECT_SCHEDULE and len(parts) == 2:
            self.wizard.pick_slot(parts[0], parts[1])
        else:
            self.error(f"Not understood here. Valid events: "
                       f"{[e.value for e in self.wizard.get_valid_events()]}")

    def _parse_date(self, value: str) -> date:
        if value.startswith("+"):
            return self.wizard.today() + timedelta(days=int(value[1:]))
        return date.fromisoformat(value)

    # ------------------------------------------------------------------ #
    # Owner side
    # ------------------------------------------------------------------ #

    def _show_requests(self) -> None:
        requests = self.backend.list_booking_requests()
        if not requests:
            self.app_say("No booking requests.")
            return
        self.app_say("Booking requests:")
        for request in requests:
            print(
                f"    {request.id}: {request.venue_name} / {request.court_name} "
                f"{request.date.isoformat()} {request.slot} [{request.status}]"
            )

    def _review_oldest_request(self, command: str) -> None:
        pending = self.backend.list_booking_requests(status="pending")
        if not pending:
            self.app_say("Nothing pending.")
            return
        request = self.backend.handle_booking_request(pending[0].id, command)
        self.app_say(f"Request {request.id} {request.status}.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline court booking console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
