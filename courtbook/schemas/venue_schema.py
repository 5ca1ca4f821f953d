"""Venue and court reference data models."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Court(BaseModel):
    """A single bookable court. Belongs to exactly one venue."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    sport: str


class Venue(BaseModel):
    """Read-only venue snapshot as returned by the reference data source."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    address: str
    rating: float = 0.0
    image_url: str = ""
    sports: frozenset[str] = Field(default_factory=frozenset)
    price_per_hour: Decimal
    distance_km: float = 0.0
    courts: tuple[Court, ...] = ()
    owner_id: Optional[str] = None

    def get_court(self, court_id: str) -> Optional[Court]:
        for court in self.courts:
            if court.id == court_id:
                return court
        return None

    def courts_for_sport(self, sport: str) -> list[Court]:
        """Courts of this venue for one sport, in venue order."""
        return [court for court in self.courts if court.sport == sport]

    def offers(self, sport: str) -> bool:
        return sport in self.sports
