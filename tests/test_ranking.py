from meety.domain.models import Coordinate, Suggestion
from meety.scoring.ranking import dedupe_suggestions, sort_suggestions, suggestion_key


def _s(sid, distance, rating, *, ref=None, name=None, lat=0.0, lng=0.0):
    return Suggestion(
        id=sid,
        name=name or sid,
        category="coffee",
        location=Coordinate(lat=lat, lng=lng),
        rating=rating,
        distance_to_center=distance,
        average_distance_to_participants=distance,
        external_ref=ref,
    )


def test_better_rating_wins_inside_the_tie_window():
    s1 = _s("s1", 1.0, 4.0)
    s2 = _s("s2", 1.3, 4.8)
    assert [s.id for s in sort_suggestions([s1, s2])] == ["s2", "s1"]


def test_distance_wins_outside_the_tie_window():
    near = _s("near", 0.4, 3.5)
    far = _s("far", 1.4, 5.0)
    assert [s.id for s in sort_suggestions([far, near])] == ["near", "far"]


def test_equal_rating_inside_window_keeps_input_order():
    a = _s("a", 1.2, 4.0)
    b = _s("b", 1.0, 4.0)
    assert [s.id for s in sort_suggestions([a, b])] == ["a", "b"]


def test_tie_window_is_configurable():
    s1 = _s("s1", 1.0, 4.0)
    s2 = _s("s2", 1.3, 4.8)
    assert [s.id for s in sort_suggestions([s2, s1], tie_window_km=0.1)] == ["s1", "s2"]


def test_same_external_ref_keeps_first_occurrence():
    first = _s("x1", 1.0, 4.0, ref="place-1")
    dup = _s("x2", 0.1, 5.0, ref="place-1")
    other = _s("x3", 2.0, 4.0, ref="place-2")
    assert [s.id for s in dedupe_suggestions([first, dup, other])] == ["x1", "x3"]


def test_without_ref_identity_is_name_and_rounded_position():
    a = _s("a", 1.0, 4.0, name="Corner Table", lat=40.00001, lng=-73.0)
    b = _s("b", 1.0, 4.0, name=" corner table ", lat=40.00002, lng=-73.0)
    c = _s("c", 1.0, 4.0, name="Corner Table", lat=40.01, lng=-73.0)
    assert suggestion_key(a) == suggestion_key(b)
    assert [s.id for s in dedupe_suggestions([a, b, c])] == ["a", "c"]


def test_dedupe_tracks_keys_across_batches():
    seen: set[str] = set()
    first = dedupe_suggestions([_s("a", 1.0, 4.0, ref="r1")], seen=seen)
    second = dedupe_suggestions([_s("b", 1.0, 4.0, ref="r1"), _s("c", 1.0, 4.0, ref="r2")], seen=seen)
    assert [s.id for s in first] == ["a"]
    assert [s.id for s in second] == ["c"]
    assert seen == {"r1", "r2"}
