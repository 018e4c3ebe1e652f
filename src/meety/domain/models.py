"""
Domain models (Pydantic).

These types are the contract between layers:
- participant/session state (`Participant`, `Session`)
- the sourcing boundary (`RawCandidate`): provider JSON never gets past it
- engine output (`Suggestion`, `SuggestionRun`)
- API/CLI inputs (`SuggestionRequest`)

Value types (`Coordinate`, `Suggestion`, `RawCandidate`) are frozen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

ActivityCategory = Literal[
    "restaurant",
    "outdoor",
    "sports",
    "entertainment",
    "shopping",
    "coffee",
    "culture",
    "nightlife",
]

ACTIVITY_CATEGORIES: tuple[str, ...] = get_args(ActivityCategory)

ACTIVITY_LABELS: dict[str, str] = {
    "restaurant": "Restaurant",
    "outdoor": "Outdoor Activity",
    "sports": "Sports",
    "entertainment": "Entertainment",
    "shopping": "Shopping",
    "coffee": "Coffee & Drinks",
    "culture": "Arts & Culture",
    "nightlife": "Nightlife",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Coordinate(BaseModel):
    """A geographic point in decimal degrees plus a display address."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: str = ""


class Participant(BaseModel):
    """One person in a session. Ready once both location and activity are set."""

    id: str
    display_name: str
    location: Coordinate | None = None
    activity: ActivityCategory | None = None
    color_tag: str = "#3b82f6"
    joined_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def is_ready(self) -> bool:
        return self.location is not None and self.activity is not None


class RawCandidate(BaseModel):
    """A venue as returned by a candidate source, before ranking."""

    model_config = ConfigDict(frozen=True)

    name: str
    coordinate: Coordinate
    rating: float | None = Field(default=None, ge=0, le=5)
    external_ref: str | None = None
    photo_ref: str | None = None
    price_level: int | None = Field(default=None, ge=0, le=4)
    is_open_now: bool | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, name: str) -> str:
        name = name.strip()
        if not name:
            raise ValueError("candidate name must not be empty")
        return name


class Suggestion(BaseModel):
    """One ranked meeting place."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: ActivityCategory
    location: Coordinate
    rating: float = Field(..., ge=0, le=5)
    distance_to_center: float = Field(..., ge=0)
    average_distance_to_participants: float = Field(..., ge=0)
    external_ref: str | None = None
    photo_ref: str | None = None
    price_level: int | None = None
    is_open_now: bool | None = None


class Session(BaseModel):
    """A meetup negotiation shared by all participants."""

    id: str
    created_at: datetime = Field(default_factory=_utcnow)
    is_active: bool = True
    participants: list[Participant] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)
    # Configuration the current suggestions were generated from.
    suggestions_fingerprint: str | None = None
    suggestions_participant_count: int | None = None


class SuggestionRequest(BaseModel):
    """Stateless suggestion request (API/CLI)."""

    participants: list[Participant] = Field(..., min_length=1)
    max_results: int | None = Field(default=None, ge=1, le=50)
    settings_overrides: dict[str, Any] | None = None


class SuggestionRun(BaseModel):
    """Engine output: ranked suggestions plus how they were produced."""

    generated_at: datetime
    meeting_point: Coordinate
    categories: list[str]
    source_mode: Literal["live", "offline"]
    suggestions: list[Suggestion]
    requested: int
    exhausted: bool = False
    meta: dict[str, Any] = Field(default_factory=dict)
