import math
import pytest
from surveyme.geo import EARTH_RADIUS_METERS, Position
from surveyme.poi import POI
from surveyme.proximity import ProximityEngine

MINUTE = 60 * 1000
COOLDOWN = 5 * MINUTE
T0 = 1_700_000_000_000

DOCK = Position(43.6532, -79.3832)


def north_of(position: Position, meters: float) -> Position:
    """Position the given number of meters due north along the meridian."""
    return Position(position.lat + math.degrees(meters / EARTH_RADIUS_METERS), position.lon)


def make_poi(name="Dock", position=DOCK, **kwargs):
    return POI(lat=position.lat, lon=position.lon, name=name, **kwargs)


@pytest.fixture
def engine():
    return ProximityEngine(cooldown_millis=COOLDOWN)


def fired(hits):
    return [hit.poi.id for hit in hits]


def test_observer_at_poi_fires(engine):
    """Distance 0 is within a 50m radius."""
    poi = make_poi(notification_radius=50)
    hits = engine.evaluate(DOCK, [poi], T0)
    assert fired(hits) == [poi.id]
    assert hits[0].distance == 0.0

def test_observer_outside_radius_does_not_fire(engine):
    poi = make_poi(notification_radius=50)
    assert engine.evaluate(north_of(DOCK, 51), [poi], T0) == []
    assert fired(engine.evaluate(north_of(DOCK, 49), [poi], T0)) == [poi.id]

def test_firing_records_notification_time(engine):
    poi = make_poi()
    engine.evaluate(DOCK, [poi], T0)
    assert engine.last_notified(poi.id) == T0
    assert poi.last_notified_at_millis == T0

def test_non_firing_poi_has_no_side_effect(engine):
    poi = make_poi()
    engine.evaluate(north_of(DOCK, 500), [poi], T0)
    assert engine.last_notified(poi.id) is None
    assert poi.last_notified_at_millis is None

def test_cooldown(engine):
    """Fires at T, stays silent inside the 5 minute window, fires again at T + 5min."""
    poi = make_poi()
    assert fired(engine.evaluate(DOCK, [poi], T0)) == [poi.id]
    for elapsed in (1, MINUTE, 4 * MINUTE, COOLDOWN - 1):
        assert engine.evaluate(DOCK, [poi], T0 + elapsed) == []
    # Silent evaluations do not move the window
    assert engine.last_notified(poi.id) == T0
    assert fired(engine.evaluate(DOCK, [poi], T0 + COOLDOWN)) == [poi.id]
    assert poi.last_notified_at_millis == T0 + COOLDOWN
    assert engine.evaluate(DOCK, [poi], T0 + COOLDOWN + MINUTE) == []

def test_cooldown_is_per_poi(engine):
    first = make_poi("First")
    second = make_poi("Second")
    engine.evaluate(DOCK, [first], T0)
    assert fired(engine.evaluate(DOCK, [first, second], T0 + MINUTE)) == [second.id]

def test_visited_latch_blocks_until_reset(engine):
    poi = make_poi()
    engine.mark_visited(poi.id)
    assert engine.is_visited(poi.id)
    for elapsed in (0, COOLDOWN, 24 * 60 * MINUTE):
        assert engine.evaluate(DOCK, [poi], T0 + elapsed) == []

    engine.reset()
    assert not engine.is_visited(poi.id)
    assert fired(engine.evaluate(DOCK, [poi], T0)) == [poi.id]

def test_visited_latch_after_firing(engine):
    poi = make_poi()
    engine.evaluate(DOCK, [poi], T0)
    engine.mark_visited(poi.id)
    assert engine.evaluate(DOCK, [poi], T0 + 2 * COOLDOWN) == []

def test_reset_clears_cooldowns(engine):
    poi = make_poi()
    engine.evaluate(DOCK, [poi], T0)
    engine.reset()
    assert engine.last_notified(poi.id) is None
    assert fired(engine.evaluate(DOCK, [poi], T0 + 1)) == [poi.id]

def test_inactive_pois_are_skipped(engine):
    poi = make_poi(is_active=False)
    assert engine.evaluate(DOCK, [poi], T0) == []
    assert engine.last_notified(poi.id) is None

def test_radius_is_per_poi(engine):
    big = make_poi("Big", notification_radius=75)
    small = make_poi("Small", notification_radius=40)
    hits = engine.evaluate(north_of(DOCK, 60), [big, small], T0)
    assert fired(hits) == [big.id]
    assert hits[0].distance == pytest.approx(60, abs=0.01)

def test_engines_do_not_share_state():
    poi = make_poi()
    session_a = ProximityEngine(cooldown_millis=COOLDOWN)
    session_b = ProximityEngine(cooldown_millis=COOLDOWN)
    session_a.mark_visited(poi.id)
    assert session_a.evaluate(DOCK, [poi], T0) == []
    assert fired(session_b.evaluate(DOCK, [poi], T0)) == [poi.id]

def test_nearby_sorted_and_read_only(engine):
    far = make_poi("Far", position=north_of(DOCK, 400))
    near = make_poi("Near", position=north_of(DOCK, 10))
    outside = make_poi("Outside", position=north_of(DOCK, 900))
    engine.mark_visited(near.id)

    hits = engine.nearby(DOCK, [far, outside, near], max_distance=500)

    assert [hit.poi.name for hit in hits] == ["Near", "Far"]
    assert hits[0].distance == pytest.approx(10, abs=0.01)
    assert engine.last_notified(near.id) is None
    assert engine.last_notified(far.id) is None

def test_notification_time_never_moves_back_after_reset(engine):
    poi = make_poi()
    engine.evaluate(DOCK, [poi], 2_000_000)
    engine.reset()

    assert fired(engine.evaluate(DOCK, [poi], 1_000_000)) == [poi.id]
    assert engine.last_notified(poi.id) == 1_000_000
    assert poi.last_notified_at_millis == 2_000_000
