from __future__ import annotations

import pytest

from meety.config.settings import get_settings
from meety.domain.models import Coordinate, Participant
from meety.ingestion.offline_places import OfflinePlaceGenerator
from meety.ingestion.sourcing import CandidateSourcing
from meety.recommender.engine import SuggestionEngine


def make_participant(pid: str, lat: float | None = None, lng: float | None = None, activity: str | None = None):
    location = Coordinate(lat=lat, lng=lng) if lat is not None and lng is not None else None
    return Participant(id=pid, display_name=pid.upper(), location=location, activity=activity)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def offline_engine(settings):
    # No live source at all, so an API key in the developer's .env never leaks into tests.
    sourcing = CandidateSourcing(fallback=OfflinePlaceGenerator(settings.fallback))
    return SuggestionEngine(settings, sourcing=sourcing)


@pytest.fixture
def coffee_pair():
    return [
        make_participant("a", 40.0, -73.0, "coffee"),
        make_participant("b", 40.02, -73.02, "coffee"),
    ]
