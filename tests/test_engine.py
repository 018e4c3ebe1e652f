import pytest

from meety.domain.errors import InsufficientParticipants
from meety.domain.models import Coordinate, Participant, RawCandidate
from meety.ingestion.offline_places import OfflinePlaceGenerator
from meety.ingestion.sourcing import CandidateSourcing
from meety.recommender.engine import SuggestionEngine, build_category_plan, category_quota

KM_PER_DEG_LAT = 111.195


def _north_of(center_lat, center_lng, km):
    return Coordinate(lat=center_lat + km / KM_PER_DEG_LAT, lng=center_lng)


class StubLiveSource:
    """Live source serving fixed candidates per category."""

    def __init__(self, by_category, *, fail_on=()):
        self.by_category = by_category
        self.fail_on = set(fail_on)
        self.calls = []

    def is_available(self):
        return True

    def search(self, center, category, *, radius_km, max_results, open_now=False):
        self.calls.append((category, max_results))
        if category in self.fail_on:
            raise RuntimeError(f"{category} endpoint down")
        return list(self.by_category.get(category, []))[:max_results]


def _engine(settings, live=None):
    return SuggestionEngine(
        settings, sourcing=CandidateSourcing(fallback=OfflinePlaceGenerator(settings.fallback), live=live)
    )


def test_category_quota_reserves_mandatory_slots(settings):
    s = settings.suggestions
    assert category_quota(5, 1, s) == 2
    assert category_quota(10, 5, s) == 2
    assert category_quota(7, 0, s) == 2


def test_plan_adds_missing_mandatory_categories(settings):
    s = settings.suggestions
    plan = build_category_plan(["outdoor", "culture", "sports", "nightlife", "shopping"], 10, s)
    assert [(q.category, q.max_results, q.preferred) for q in plan] == [
        ("outdoor", 2, True),
        ("culture", 2, True),
        ("sports", 2, True),
        ("nightlife", 2, True),
        ("restaurant", 4, False),
        ("coffee", 2, False),
    ]

    plan = build_category_plan(["restaurant"], 7, s)
    assert [(q.category, q.max_results) for q in plan] == [("restaurant", 2), ("coffee", 2)]


def test_two_coffee_drinkers_offline(offline_engine, coffee_pair):
    run = offline_engine.run(coffee_pair, 5)

    assert run.meeting_point.lat == pytest.approx(40.01)
    assert run.meeting_point.lng == pytest.approx(-73.01)
    assert run.source_mode == "offline"
    assert run.categories == ["coffee", "restaurant"]
    assert 0 < len(run.suggestions) <= 5
    refs = [s.external_ref for s in run.suggestions]
    assert len(set(refs)) == len(refs)
    assert {s.category for s in run.suggestions} <= {"coffee", "restaurant"}
    assert run.meta["plan"][0] == {"category": "coffee", "max_results": 2, "preferred": True}


def test_offline_generation_is_idempotent_with_a_seed(offline_engine, coffee_pair):
    first = offline_engine.generate(coffee_pair, 5)
    second = offline_engine.generate(list(reversed(coffee_pair)), 5)
    assert first == second


def test_live_candidates_are_filtered_deduped_and_ranked(settings, coffee_pair):
    lat, lng = 40.01, -73.01

    def cand(name, km, rating, ref):
        return RawCandidate(name=name, coordinate=_north_of(lat, lng, km), rating=rating, external_ref=ref)

    live = StubLiveSource(
        {
            "coffee": [
                cand("S1", 1.0, 4.0, "s1"),
                cand("S2", 1.3, 4.8, "s2"),
                cand("Far", 2.5, 5.0, "far"),
            ],
            "restaurant": [
                cand("S1 again", 1.0, 4.0, "s1"),
                cand("Grim Grill", 0.1, 2.5, "low"),
                cand("Mystery Diner", 0.2, None, "unrated"),
            ],
        }
    )
    run = _engine(settings, live).run(coffee_pair, 10)

    assert run.source_mode == "live"
    assert [s.id for s in run.suggestions] == ["unrated", "s2", "s1", "far"]
    by_id = {s.id: s for s in run.suggestions}
    assert by_id["s1"].category == "coffee"
    assert by_id["unrated"].rating == settings.suggestions.unrated_rating
    assert by_id["s1"].distance_to_center == pytest.approx(1.0, abs=0.01)
    assert run.exhausted is True
    assert live.calls == [("coffee", 3), ("restaurant", 6)]
    assert run.meta["candidates"] == {"raw": 5, "unique": 4}


def test_live_failure_reruns_whole_plan_offline(settings, coffee_pair):
    live_coffee = RawCandidate(name="Live Cafe", coordinate=Coordinate(lat=40.01, lng=-73.01), rating=4.5)
    live = StubLiveSource({"coffee": [live_coffee]}, fail_on={"restaurant"})

    run = _engine(settings, live).run(coffee_pair, 5)

    assert run.source_mode == "offline"
    assert all(s.external_ref.startswith("offline:") for s in run.suggestions)
    assert "Live Cafe" not in {s.name for s in run.suggestions}
    assert len(run.meta["sources"]["fallbacks"]) == 1
    assert set(run.meta["sources"]["categories"]) == {"coffee", "restaurant"}
    assert all(v["mode"] == "offline" for v in run.meta["sources"]["categories"].values())


def test_unavailable_live_source_means_offline_from_the_start(settings, coffee_pair):
    class Unavailable(StubLiveSource):
        def is_available(self):
            return False

    live = Unavailable({})
    run = _engine(settings, live).run(coffee_pair, 5)
    assert run.source_mode == "offline"
    assert live.calls == []
    assert run.meta["sources"]["fallbacks"] == []


def test_run_requires_a_ready_participant(offline_engine):
    with pytest.raises(InsufficientParticipants):
        offline_engine.run([Participant(id="c", display_name="C")], 5)


def test_with_overrides_returns_tuned_copy(offline_engine):
    assert offline_engine.with_overrides(None) is offline_engine
    tuned = offline_engine.with_overrides({"fallback": {"seed": 7}, "suggestions": {"min_rating": 4.5}})
    assert tuned.settings.fallback.seed == 7
    assert tuned.settings.suggestions.min_rating == 4.5
    assert offline_engine.settings.suggestions.min_rating == 3.0


def test_min_rating_override_filters_offline_venues(offline_engine, coffee_pair):
    tuned = offline_engine.with_overrides({"suggestions": {"min_rating": 4.5}})
    assert all(s.rating >= 4.5 for s in tuned.generate(coffee_pair, 7))


def test_meta_flags_groups_that_are_too_far_apart(offline_engine, coffee_pair):
    assert offline_engine.run(coffee_pair, 3).meta["within_reach"] is True

    far = [
        Participant(id="ny", display_name="NY", location=Coordinate(lat=40.71, lng=-74.0), activity="coffee"),
        Participant(id="ldn", display_name="LDN", location=Coordinate(lat=51.5, lng=-0.12), activity="coffee"),
    ]
    run = offline_engine.run(far, 3)
    assert run.meta["within_reach"] is False
    assert len(run.suggestions) == 3


def test_zero_max_results_is_rejected(offline_engine, coffee_pair):
    with pytest.raises(ValueError):
        offline_engine.run(coffee_pair, 0)
    assert offline_engine.run(coffee_pair).requested == offline_engine.settings.suggestions.max_results_default
