import pytest

from meety.domain.errors import InsufficientParticipants
from meety.domain.models import Coordinate, Participant
from meety.features.activity_rank import ranked_activities
from meety.features.meeting_point import average_distance, compute_meeting_point, within_reach


def _p(pid, lat=None, lng=None, activity=None):
    location = Coordinate(lat=lat, lng=lng) if lat is not None else None
    return Participant(id=pid, display_name=pid, location=location, activity=activity)


def test_single_ready_participant_is_the_meeting_point():
    point = compute_meeting_point([_p("a", 51.5074, -0.1278, "culture"), _p("b")])
    assert (point.lat, point.lng) == (51.5074, -0.1278)
    assert point.address.endswith("(User Location)")


def test_two_ready_participants_meet_at_the_midpoint():
    point = compute_meeting_point([_p("a", 40.0, -73.0, "coffee"), _p("b", 40.02, -73.02, "coffee")])
    assert point.lat == pytest.approx(40.01)
    assert point.lng == pytest.approx(-73.01)
    assert "Median Center Point" in point.address


def test_unready_participants_are_ignored():
    half_ready = Participant(id="c", display_name="c", location=Coordinate(lat=0.0, lng=0.0))
    point = compute_meeting_point([_p("a", 40.0, -73.0, "coffee"), half_ready])
    assert (point.lat, point.lng) == (40.0, -73.0)


def test_meeting_point_requires_a_ready_participant():
    with pytest.raises(InsufficientParticipants):
        compute_meeting_point([_p("a"), _p("b", activity="sports")])
    # Precondition failures are plain ValueErrors to the API layer.
    with pytest.raises(ValueError):
        compute_meeting_point([])


def test_average_distance_and_reach():
    people = [_p("a", 40.0, -73.0, "coffee"), _p("b", 40.02, -73.02, "coffee")]
    center = compute_meeting_point(people)
    avg = average_distance(center, people)
    assert avg > 0
    assert average_distance(center, [_p("x")]) == 0.0
    assert within_reach(center, people, max_distance_km=5)
    assert not within_reach(center, people, max_distance_km=0.5)


def test_ranked_activities_orders_by_votes():
    people = [
        _p("a", 1, 1, "outdoor"),
        _p("b", 1, 1, "coffee"),
        _p("c", 1, 1, "coffee"),
        _p("d", 1, 1, "culture"),
        _p("e", 1, 1, "coffee"),
        _p("f", 1, 1, "culture"),
    ]
    assert ranked_activities(people) == ["coffee", "culture", "outdoor"]
    assert ranked_activities(list(reversed(people))) == ["coffee", "culture", "outdoor"]


def test_ranked_activities_keeps_first_seen_order_for_ties():
    people = [_p("a", 1, 1, "sports"), _p("b", 1, 1, "nightlife"), _p("c", 1, 1, "shopping")]
    assert ranked_activities(people) == ["sports", "nightlife", "shopping"]
    assert ranked_activities(people[::-1]) == ["shopping", "nightlife", "sports"]


def test_ranked_activities_skips_unready():
    assert ranked_activities([_p("a", activity="sports"), _p("b", 1, 1, "coffee")]) == ["coffee"]
