import math
from dataclasses import dataclass
from typing import Optional, Tuple

from haversine import haversine, Unit

EARTH_RADIUS_METERS = 6_371_000.0
METERS_PER_DEGREE_LAT = 111_320.0


@dataclass(frozen=True)
class Position:
    """
    A single geographical coordinate.

    Attributes:
        lat (float): Latitude in decimal degrees.
        lon (float): Longitude in decimal degrees.
    """
    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)


@dataclass(frozen=True)
class Fix:
    """
    A position reported by the location source.

    Attributes:
        lat (float): Latitude in decimal degrees.
        lon (float): Longitude in decimal degrees.
        timestamp_millis (Optional[int]): Epoch milliseconds of the fix, if known.
    """
    lat: float
    lon: float
    timestamp_millis: Optional[int] = None

    @property
    def position(self) -> Position:
        return Position(self.lat, self.lon)


def is_valid_coordinate(lat: float, lon: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def distance(point1: Position, point2: Position) -> float:
    """
    Great-circle distance between two positions with the haversine library.
    Args:
        point1 (Position): The first position.
        point2 (Position): The second position.
    Returns:
        float: Distance in meters.
    """
    # central angle times a fixed radius, so results do not depend on the library's earth model
    return haversine(point1.as_tuple(), point2.as_tuple(), unit=Unit.RADIANS) * EARTH_RADIUS_METERS


def bounding_box(center: Position, radius_meters: float) -> dict:
    """
    Calculate a bounding box around a position.

        Args:
            center (Position): Center of the box.
            radius_meters (float): Half-width of the box in meters.
        Returns:
            dict: A dictionary with keys 'south', 'north', 'west', 'east'.
    """
    lat_delta = radius_meters / METERS_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(center.lat))
    if cos_lat < 1e-6:
        lon_delta = 180.0
    else:
        lon_delta = min(radius_meters / (METERS_PER_DEGREE_LAT * cos_lat), 180.0)
    return {
        "south": max(center.lat - lat_delta, -90.0),
        "north": min(center.lat + lat_delta, 90.0),
        "west": max(center.lon - lon_delta, -180.0),
        "east": min(center.lon + lon_delta, 180.0),
    }
