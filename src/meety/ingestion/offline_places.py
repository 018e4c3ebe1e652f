"""
Offline venue generator.

Stands in for the live provider when there is no API key (tests, demos, CI) or when the
provider fails. Venues are synthesised from per-category name templates and scattered
0.5-2.5 km around the center. With a fixed seed the output depends only on
(seed, category, center, count), so repeated runs return identical venues.
"""

from __future__ import annotations

import math
import random
import re

from meety.config.settings import FallbackSettings
from meety.domain.models import Coordinate, RawCandidate

PLACE_TEMPLATES: dict[str, list[str]] = {
    "restaurant": [
        "Central Bistro", "The Meeting Place", "Midpoint Cafe", "Fusion Kitchen", "Corner Table",
        "Downtown Diner", "City Grill", "Metro Restaurant", "Urban Eatery", "Plaza Kitchen",
        "Riverside Bistro", "Garden Restaurant", "Skyline Diner", "Harbor Grill", "Summit Cafe",
    ],
    "outdoor": [
        "Central Park", "Riverside Walk", "Community Garden", "Outdoor Plaza", "Green Space",
        "City Park", "Nature Trail", "Public Garden", "Waterfront Park", "Recreation Area",
        "Botanical Garden", "Lakeside Park", "Mountain View Trail", "Sunset Point", "Forest Walk",
    ],
    "sports": [
        "Sports Bar & Grill", "Game Zone", "Athletic Club", "Sports Lounge", "Victory Pub",
        "Champions Bar", "Stadium Grill", "Sports Center", "Active Zone", "Fitness Hub",
        "Arena Sports Bar", "Playoff Lounge", "Court Side Cafe", "Field House", "Training Ground",
    ],
    "entertainment": [
        "Cinema Complex", "Entertainment Center", "Arcade Zone", "Theater District", "Fun Palace",
        "Movie Theater", "Gaming Lounge", "Entertainment Hub", "Activity Center", "Amusement Zone",
        "Comedy Club", "Live Music Venue", "Performance Hall", "Arts Theater", "Concert Hall",
    ],
    "shopping": [
        "Shopping Center", "Market Square", "Retail Plaza", "Mall Central", "Boutique District",
        "Shopping Mall", "Retail Hub", "Market Place", "Commercial Center", "Shopping District",
        "Fashion Plaza", "Trade Center", "Outlet Mall", "Artisan Market", "Designer District",
    ],
    "coffee": [
        "Central Perk", "Coffee Corner", "Bean There", "Brew Point", "Cafe Central",
        "Coffee House", "Espresso Bar", "Cafe Metro", "Coffee Station", "Brew & Bean",
        "Roastery Cafe", "Morning Grind", "Latte Lounge", "Caffeine Corner", "Steam & Bean",
    ],
    "culture": [
        "Art Gallery", "Cultural Center", "Museum Quarter", "Heritage Hall", "Creative Space",
        "Art Museum", "Cultural Hub", "Gallery District", "Arts Center", "Creative Quarter",
        "History Museum", "Science Center", "Modern Art Gallery", "Cultural Institute", "Exhibition Hall",
    ],
    "nightlife": [
        "Night Spot", "Evening Lounge", "After Hours", "Night Scene", "Late Night Cafe",
        "Night Club", "Cocktail Bar", "Evening Bar", "Night Lounge", "After Dark",
        "Rooftop Bar", "Jazz Club", "Wine Bar", "Speakeasy", "Dance Club",
    ],
}


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def venue_name(category: str, index: int) -> str:
    """Name for the `index`-th venue of a category; templates repeat with a numeric suffix."""
    templates = PLACE_TEMPLATES.get(category) or PLACE_TEMPLATES["restaurant"]
    base = templates[index % len(templates)]
    cycle = index // len(templates)
    return base if cycle == 0 else f"{base} {cycle + 1}"


class OfflinePlaceGenerator:
    """Deterministic (when seeded) stand-in for the live place-search provider."""

    def __init__(self, settings: FallbackSettings | None = None, *, seed: int | None = None):
        self._settings = settings or FallbackSettings()
        self._seed = seed if seed is not None else self._settings.seed

    @property
    def seed(self) -> int | None:
        return self._seed

    def is_available(self) -> bool:
        return True

    def _rng(self, center: Coordinate, category: str, count: int) -> random.Random:
        if self._seed is None:
            return random.Random()
        return random.Random(f"{self._seed}:{category}:{center.lat:.6f}:{center.lng:.6f}:{count}")

    def search(
        self,
        center: Coordinate,
        category: str,
        *,
        radius_km: float,
        max_results: int,
        open_now: bool = False,
    ) -> list[RawCandidate]:
        # The synthetic spread (~0.5-2.5 km) already sits inside any sensible search radius.
        count = max(0, int(max_results))
        if count == 0:
            return []
        s = self._settings
        rng = self._rng(center, category, count)

        out: list[RawCandidate] = []
        for index in range(count):
            name = venue_name(category, index)
            radius_deg = s.radius_min_deg + rng.random() * s.radius_spread_deg
            angle = math.radians(index * (360 / count) + rng.random() * s.angle_jitter_deg)
            lat = max(-90.0, min(90.0, center.lat + radius_deg * math.cos(angle)))
            lng = center.lng + radius_deg * math.sin(angle)
            lng = (lng + 180.0) % 360.0 - 180.0
            rating = round(s.rating_min + rng.random() * (s.rating_max - s.rating_min), 1)
            out.append(
                RawCandidate(
                    name=name,
                    coordinate=Coordinate(lat=lat, lng=lng, address=f"{name}, {lat:.4f}, {lng:.4f}"),
                    rating=rating,
                    external_ref=f"offline:{category}:{slugify(name)}",
                    price_level=rng.randint(1, 4),
                    is_open_now=True if open_now else None,
                )
            )
        return out
