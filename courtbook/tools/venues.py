"""Reference venue catalog used to seed the mock backend."""

import logging
from decimal import Decimal
from typing import Iterable

from courtbook.schemas.venue_schema import Court, Venue

logger = logging.getLogger(__name__)

VENUE_CATALOG: list[dict] = [
    {
        "id": "v1",
        "owner_id": "o1",
        "name": "Arena Copacabana",
        "address": "Av. Atlântica, Rio de Janeiro",
        "rating": 4.8,
        "image_url": "https://images.unsplash.com/photo-1575361204480-aadea25e6e68",
        "sports": ["football", "beach_volleyball", "beach_tennis"],
        "price_per_hour": "150",
        "distance_km": 2.5,
        "courts": [
            {"id": "c1", "name": "Quadra 1 (Areia)", "sport": "beach_volleyball"},
            {"id": "c2", "name": "Quadra 2 (Sintético)", "sport": "football"},
            {"id": "c3", "name": "Quadra 3 (Sintético)", "sport": "football"},
            {"id": "c8", "name": "Arena Beach Tennis", "sport": "beach_tennis"},
        ],
    },
    {
        "id": "v2",
        "owner_id": "o1",
        "name": "São Paulo Tennis Club",
        "address": "Jardins, São Paulo",
        "rating": 4.9,
        "image_url": "https://images.unsplash.com/photo-1622279457486-62dcc4a431d6",
        "sports": ["tennis", "badminton"],
        "price_per_hour": "200",
        "distance_km": 5.0,
        "courts": [
            {"id": "c4", "name": "Quadra Central (Saibro)", "sport": "tennis"},
            {"id": "c5", "name": "Quadra Coberta", "sport": "tennis"},
            {"id": "c9", "name": "Quadra Badminton 1", "sport": "badminton"},
        ],
    },
    {
        "id": "v3",
        "owner_id": "o2",
        "name": "Parque Ibirapuera Courts",
        "address": "Vila Mariana, São Paulo",
        "rating": 4.2,
        "image_url": "https://images.unsplash.com/photo-1546519638-68e109498ee3",
        "sports": ["basketball", "football", "volleyball"],
        "price_per_hour": "80",
        "distance_km": 1.2,
        "courts": [
            {"id": "c6", "name": "Quadra Externa 1", "sport": "basketball"},
            {"id": "c7", "name": "Quadra Externa 2", "sport": "football"},
            {"id": "c10", "name": "Quadra Poliesportiva", "sport": "volleyball"},
        ],
    },
]


def build_venue(record: dict) -> Venue:
    """Build an immutable Venue from a catalog record."""
    return Venue(
        id=record["id"],
        owner_id=record.get("owner_id"),
        name=record["name"],
        address=record["address"],
        rating=record.get("rating", 0.0),
        image_url=record.get("image_url", ""),
        sports=frozenset(record["sports"]),
        price_per_hour=Decimal(record["price_per_hour"]),
        distance_km=record.get("distance_km", 0.0),
        courts=tuple(Court(**court) for court in record["courts"]),
    )


def default_venues() -> list[Venue]:
    """Fresh Venue snapshots of the reference catalog."""
    return [build_venue(record) for record in VENUE_CATALOG]


def venues_offering(venues: Iterable[Venue], sport: str) -> list[Venue]:
    """Venues that list ``sport``, in catalog order."""
    return [venue for venue in venues if venue.offers(sport)]


def get_all_sports(venues: Iterable[Venue]) -> list[str]:
    """Every sport offered by at least one venue, sorted."""
    return sorted({sport for venue in venues for sport in venue.sports})
