import json
import logging
from typing import Any, Dict, List, Optional

from surveyme.poi import POI, ImportResult, PoiCategory, PoiSource

logger = logging.getLogger(__name__)

DEFAULT_BIKESHARE_OPERATOR = "Bike Share Toronto"
DEFAULT_STATION_DESCRIPTION = "Bike Share Station"

# Properties copied into the POI tags when present
PASSTHROUGH_PROPERTIES = ("amenity", "bicycle_parking")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _capacity_value(capacity: Any) -> Optional[int]:
    if isinstance(capacity, bool):
        return None
    if isinstance(capacity, (int, float)):
        return int(capacity)
    try:
        return int(_text(capacity))
    except ValueError:
        return None


def station_priority(capacity: Any) -> int:
    """
    Priority of a docking station from its dock capacity.
        Args:
            capacity (Any): The capacity property, numeric or a numeric string.
        Returns:
            int: 2 for 40+ docks, 1 for 20+ docks, otherwise 0 (also for non-numeric values).
    """
    value = _capacity_value(capacity)
    if value is None:
        return 0
    if value >= 40:
        return 2
    if value >= 20:
        return 1
    return 0


def radius_for_priority(priority: int) -> int:
    """Notification radius in meters for a station priority."""
    if priority == 2:
        return 75
    if priority == 1:
        return 50
    return 40


def _station_description(operator: str, capacity: str, network: str) -> str:
    description = operator
    if capacity:
        description += f" - {capacity} docks"
    if network:
        description += f" ({network})"
    return description or DEFAULT_STATION_DESCRIPTION


def _station_from_feature(feature: Dict[str, Any], index: int) -> Optional[POI]:
    properties = feature.get("properties")
    geometry = feature.get("geometry")
    if not isinstance(properties, dict) or not isinstance(geometry, dict):
        return None
    if geometry.get("type") != "Point":
        return None

    coordinates = geometry["coordinates"]
    lon = float(coordinates[0])
    lat = float(coordinates[1])

    name = _text(properties.get("name")) or f"Bike Station #{index}"
    capacity = _text(properties.get("capacity"))
    operator = _text(properties.get("operator")) if "operator" in properties else DEFAULT_BIKESHARE_OPERATOR
    network = _text(properties.get("network"))

    priority = station_priority(properties.get("capacity"))

    tags = {}
    if capacity:
        tags["capacity"] = capacity
    if operator:
        tags["operator"] = operator
    if network:
        tags["network"] = network
    for key in PASSTHROUGH_PROPERTIES:
        value = _text(properties.get(key))
        if value:
            tags[key] = value

    return POI(
        lat=lat,
        lon=lon,
        name=name,
        description=_station_description(operator, capacity, network),
        category=PoiCategory.PUBLIC_TRANSPORT,
        notification_radius=radius_for_priority(priority),
        priority=priority,
        source=PoiSource.BIKESHARE_GEOJSON,
        tags=tags,
    )


def parse_bike_share_stations(geojson: Dict[str, Any]) -> List[POI]:
    """
    Convert the Point features of a bike-share feature collection to POIs.
    Features with another geometry are skipped, and so is any feature that fails to convert.
        Args:
            geojson (Dict[str, Any]): A decoded GeoJSON FeatureCollection.
        Returns:
            List[POI]: One POI per usable Point feature.
    """
    features = geojson.get("features") if isinstance(geojson, dict) else None
    if not isinstance(features, list):
        logger.error("GeoJSON payload has no 'features' list")
        return []

    pois = []
    for index, feature in enumerate(features, start=1):
        try:
            if not isinstance(feature, dict):
                continue
            poi = _station_from_feature(feature, index)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"Skipping feature {index}: {str(e)}")
            continue
        if poi is not None:
            pois.append(poi)

    logger.debug(f"Parsed {len(pois)} bike share stations from {len(features)} features")
    return pois


def import_geojson(geojson_data: bytes) -> ImportResult:
    """
    Decode a bike-share GeoJSON file and convert its stations to POIs.
        Args:
            geojson_data (bytes): Raw GeoJSON file content.
        Returns:
            ImportResult: Failed for empty, undecodable or structurally wrong payloads.
    """
    try:
        text = geojson_data.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        logger.error(f"GeoJSON file is not valid UTF-8: {str(e)}")
        return ImportResult.failure(f"File encoding error: {str(e)}")

    if not text:
        logger.error("GeoJSON file is empty")
        return ImportResult.failure("GeoJSON file is empty")

    try:
        geojson = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse GeoJSON file: {str(e)}")
        return ImportResult.failure(f"Invalid JSON: {str(e)}")

    if not isinstance(geojson, dict) or not isinstance(geojson.get("features"), list):
        logger.error("GeoJSON payload has no 'features' list")
        return ImportResult.failure("GeoJSON payload has no 'features' list")

    pois = parse_bike_share_stations(geojson)
    logger.info(f"Imported {len(pois)} bike share stations from GeoJSON")
    return ImportResult(pois=pois)
