"""Per-session booking draft held by the wizard."""

from dataclasses import dataclass, field
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from courtbook.config import settings
from courtbook.schemas.venue_schema import Court, Venue


class PaymentMethod(str, Enum):
    """How the player intends to pay at checkout."""
    PIX = "pix"
    CREDIT_CARD = "credit_card"
    VENUE = "venue"


@dataclass
class BookingDraft:
    """
    The in-progress selection of one wizard session.

    Fields are filled in stage order. Changing an upstream selection
    clears everything downstream of it; going back clears nothing.
    """
    sport: Optional[str] = None
    venue: Optional[Venue] = None
    date: Optional[dt.date] = None
    duration: float = settings.booking.default_duration
    selected_start_time: Optional[str] = None
    selected_court_id: Optional[str] = None
    payment_method: PaymentMethod = field(
        default_factory=lambda: PaymentMethod(settings.booking.default_payment_method)
    )

    def clear_slot(self) -> None:
        self.selected_start_time = None
        self.selected_court_id = None

    def clear_venue(self) -> None:
        self.venue = None
        self.date = None
        self.clear_slot()

    @property
    def selected_court(self) -> Optional[Court]:
        if self.venue is None or self.selected_court_id is None:
            return None
        return self.venue.get_court(self.selected_court_id)

    @property
    def total_price(self) -> Optional[Decimal]:
        """Price per hour times duration, or None until a venue is chosen."""
        if self.venue is None:
            return None
        return self.venue.price_per_hour * Decimal(str(self.duration))
