from meety.domain.models import Coordinate, Participant
from meety.session.fingerprint import configuration_entries, configuration_fingerprint


def _p(pid, lat=None, lng=None, activity=None):
    location = Coordinate(lat=lat, lng=lng) if lat is not None else None
    return Participant(id=pid, display_name=pid, location=location, activity=activity)


def test_fingerprint_ignores_participant_order():
    a = _p("a", 40.0, -73.0, "coffee")
    b = _p("b", 40.02, -73.02, "sports")
    assert configuration_fingerprint([a, b]) == configuration_fingerprint([b, a])
    assert [e["participant_id"] for e in configuration_entries([b, a])] == ["a", "b"]


def test_fingerprint_ignores_unready_participants():
    a = _p("a", 40.0, -73.0, "coffee")
    assert configuration_fingerprint([a]) == configuration_fingerprint([a, _p("c")])
    assert configuration_fingerprint([a]) == configuration_fingerprint([a, _p("d", 1.0, 1.0)])


def test_any_move_or_activity_change_changes_the_fingerprint():
    base = configuration_fingerprint([_p("a", 40.0, -73.0, "coffee")])
    assert configuration_fingerprint([_p("a", 40.0000001, -73.0, "coffee")]) != base
    assert configuration_fingerprint([_p("a", 40.0, -73.0, "culture")]) != base
    assert configuration_fingerprint([_p("z", 40.0, -73.0, "coffee")]) != base


def test_display_details_do_not_matter():
    a = _p("a", 40.0, -73.0, "coffee")
    renamed = a.model_copy(update={"display_name": "Alice", "color_tag": "#000000"})
    assert configuration_fingerprint([a]) == configuration_fingerprint([renamed])
    assert len(configuration_fingerprint([])) == 64
