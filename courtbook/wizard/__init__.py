from courtbook.wizard.state_machine import (
    BookingWizard,
    InvalidTransitionError,
    WizardEvent,
    WizardStage,
)
from courtbook.wizard.submission import build_payload, submit_booking

__all__ = [
    "BookingWizard",
    "WizardStage",
    "WizardEvent",
    "InvalidTransitionError",
    "build_payload",
    "submit_booking",
]
