"""Booking core exceptions.

Every error leaves the wizard in the state it had before the failing call,
so callers recover by re-prompting or returning to an earlier stage.
"""

from typing import Iterable, Optional


class BookingError(Exception):
    """Base class for all booking core errors."""


class ParseError(BookingError, ValueError):
    """A clock time string is not a valid zero-padded HH:MM value."""


class OutOfRangeError(BookingError):
    """A date lies outside the selectable booking window."""


class IncompleteSelectionError(BookingError):
    """A stage was entered before all of its prerequisites were chosen."""

    def __init__(self, missing: Iterable[str], stage: Optional[str] = None) -> None:
        self.missing = list(missing)
        self.stage = stage
        target = f" for stage '{stage}'" if stage else ""
        super().__init__(f"Missing selections{target}: {', '.join(self.missing)}")


class InvalidSelectionError(BookingError, ValueError):
    """A selected value is outside its domain or does not fit the draft."""


class SlotUnavailableError(BookingError):
    """The chosen slot overlaps an existing booking on that court."""


class StaleSlotError(SlotUnavailableError):
    """The chosen slot was booked by someone else before submission."""


class SubmissionFailure(BookingError):
    """The reservation service failed. The draft is untouched and can be resubmitted."""

    retryable = True


class SubmissionInProgressError(BookingError):
    """A submission is in flight; the wizard rejects changes until it resolves."""
