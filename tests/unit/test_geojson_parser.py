import json
import pytest
from surveyme.geojson_parser import import_geojson, parse_bike_share_stations, radius_for_priority, station_priority
from surveyme.poi import PoiCategory, PoiSource


def station(name=None, capacity=None, coordinates=(-79.3832, 43.6532), geometry_type="Point", **extra):
    properties = dict(extra)
    if name is not None:
        properties["name"] = name
    if capacity is not None:
        properties["capacity"] = capacity
    return {
        "type": "Feature",
        "geometry": {"type": geometry_type, "coordinates": list(coordinates)},
        "properties": properties,
    }


def collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


def test_large_station_gets_high_priority():
    """capacity 45 -> priority 2 and a 75m notification radius."""
    pois = parse_bike_share_stations(collection(station(name="Union", capacity="45")))
    assert pois[0].priority == 2
    assert pois[0].notification_radius == 75

def test_small_station_gets_normal_priority():
    """capacity 10 -> priority 0 and a 40m notification radius."""
    pois = parse_bike_share_stations(collection(station(name="Side St", capacity="10")))
    assert pois[0].priority == 0
    assert pois[0].notification_radius == 40

@pytest.mark.parametrize("capacity, expected", [
    ("40", 2), (40, 2), ("39", 1), ("20", 1), (25, 1), ("19", 0), ("lots", 0), (None, 0), ("", 0),
])
def test_station_priority(capacity, expected):
    assert station_priority(capacity) == expected

def test_radius_for_priority():
    assert radius_for_priority(2) == 75
    assert radius_for_priority(1) == 50
    assert radius_for_priority(0) == 40

def test_station_fields():
    feature = station(
        name="Bay St / Queen St",
        capacity="23",
        coordinates=(-79.3807, 43.6525),
        operator="Bike Share Toronto",
        network="PBSC",
        amenity="bicycle_rental",
        bicycle_parking="stands",
        colour="green",
    )
    poi = parse_bike_share_stations(collection(feature))[0]

    assert poi.name == "Bay St / Queen St"
    assert poi.lat == 43.6525
    assert poi.lon == -79.3807
    assert poi.category == PoiCategory.PUBLIC_TRANSPORT
    assert poi.source == PoiSource.BIKESHARE_GEOJSON
    assert poi.description == "Bike Share Toronto - 23 docks (PBSC)"
    assert poi.tags == {
        "capacity": "23",
        "operator": "Bike Share Toronto",
        "network": "PBSC",
        "amenity": "bicycle_rental",
        "bicycle_parking": "stands",
    }

def test_missing_name_and_operator_use_defaults():
    pois = parse_bike_share_stations(collection(station(name="A"), station()))
    assert pois[1].name == "Bike Station #2"
    assert pois[1].description == "Bike Share Toronto"
    assert pois[1].tags == {"operator": "Bike Share Toronto"}

def test_empty_description_falls_back_to_generic_label():
    poi = parse_bike_share_stations(collection(station(name="X", operator="")))[0]
    assert poi.description == "Bike Share Station"

def test_non_point_features_are_skipped():
    line = station(name="Trail", geometry_type="LineString", coordinates=([0, 0], [1, 1]))
    pois = parse_bike_share_stations(collection(line, station(name="Dock")))
    assert [poi.name for poi in pois] == ["Dock"]

def test_broken_features_do_not_abort_the_batch():
    broken_coordinates = station(name="Broken", coordinates=())
    no_properties = {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0, 0]}}
    out_of_range = station(name="Nowhere", coordinates=(10.0, 123.0))
    pois = parse_bike_share_stations(collection(broken_coordinates, no_properties, out_of_range, station(name="Fine")))
    assert [poi.name for poi in pois] == ["Fine"]

def test_import_geojson():
    data = json.dumps(collection(station(name="Dock", capacity=30))).encode("utf-8")
    result = import_geojson(data)
    assert result.status == "success"
    assert result.pois[0].priority == 1
    assert result.pois[0].tags["capacity"] == "30"

@pytest.mark.parametrize("payload", [b"", b"   \n", b"{not json", b"[1, 2, 3]", b'{"type": "FeatureCollection"}'])
def test_import_geojson_malformed_payload_fails_with_no_pois(payload):
    result = import_geojson(payload)
    assert result.failed
    assert result.pois == []

def test_import_geojson_without_points_is_empty():
    result = import_geojson(json.dumps(collection()).encode("utf-8"))
    assert result.empty
