import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional, Union

from surveyme.config import DEFAULT_NOTIFICATION_RADIUS_METERS
from surveyme.geo import Position, distance, is_valid_coordinate


class PoiCategory(Enum):
    """Category of a POI with its display name and default notification radius in meters."""
    SHOP = ("Shop", 30)
    RESTAURANT = ("Restaurant", 30)
    TOURIST_ATTRACTION = ("Tourist Attraction", 100)
    PUBLIC_TRANSPORT = ("Public Transport", 50)
    AMENITY = ("Amenity", 30)
    HISTORIC = ("Historic Site", 75)
    NATURAL = ("Natural Feature", 100)
    INFRASTRUCTURE = ("Infrastructure", 50)
    UNKNOWN = ("Unknown", 50)

    def __init__(self, display_name: str, default_radius: int):
        self.display_name = display_name
        self.default_radius = default_radius

    @classmethod
    def from_string(cls, value: Optional[str]) -> "PoiCategory":
        if value:
            for category in cls:
                if category.name.lower() == value.strip().lower():
                    return category
        return cls.UNKNOWN


class PoiSource(str, Enum):
    """Provenance of a POI, used to scope re-imports and bulk deletes."""
    GPX = "gpx"
    BIKESHARE_GEOJSON = "bikeshare_geojson"
    OVERPASS = "overpass"
    MANUAL = "manual"

    @classmethod
    def coerce(cls, value: Union["PoiSource", str]) -> "PoiSource":
        """
        Resolve a source from an enum member or its string value.
            Raises:
                ValueError: If the value names no known source.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown POI source: {value}. Must be one of {[s.value for s in cls]}")


def _new_poi_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class POI:
    """Represents a Point of Interest (POI) in its canonical form.

    Attributes:
        lat (float): Latitude of the POI in decimal degrees.
        lon (float): Longitude of the POI in decimal degrees.
        name (str): Display name of the POI, never empty.
        id (str): Unique identifier. Random unless the source provides a native id.
        category (PoiCategory): Resolved category, UNKNOWN when nothing matched.
        description (Optional[str]): Text composed from secondary source attributes.
        notification_radius (int): Radius in meters within which the POI may notify.
        priority (int): -1 (low) .. 2 (high).
        visited (bool): Set only by an explicit mark-visited action.
        last_notified_at_millis (Optional[int]): Epoch milliseconds of the last notification.
        created_at (datetime): Source timestamp or import time.
        source (PoiSource): Where the POI was imported from.
        tags (Dict[str, str]): Provenance metadata preserved from the source.
        notes (Optional[str]): Free-text notes.
        is_active (bool): Inactive POIs are kept but never evaluated for proximity.
    """
    lat: float
    lon: float
    name: str
    id: str = field(default_factory=_new_poi_id)
    category: PoiCategory = PoiCategory.UNKNOWN
    description: Optional[str] = None
    notification_radius: int = DEFAULT_NOTIFICATION_RADIUS_METERS
    priority: int = 0
    visited: bool = False
    last_notified_at_millis: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    source: PoiSource = PoiSource.MANUAL
    tags: Dict[str, str] = field(default_factory=dict)
    notes: Optional[str] = None
    is_active: bool = True

    def __post_init__(self):
        if not is_valid_coordinate(self.lat, self.lon):
            raise ValueError(f"Invalid coordinate for POI '{self.name}': {self.lat}, {self.lon}")
        if self.notification_radius <= 0:
            raise ValueError(f"Notification radius must be positive, got {self.notification_radius}")
        if not self.name:
            raise ValueError("POI name must not be empty")
        self.source = PoiSource.coerce(self.source)

    @property
    def position(self) -> Position:
        return Position(self.lat, self.lon)

    def distance_to(self, position: Position) -> float:
        """Distance in meters from this POI to the given position."""
        return distance(self.position, position)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "lat": self.lat,
            "lon": self.lon,
            "category": self.category.name,
            "category_display": self.category.display_name,
            "notification_radius": self.notification_radius,
            "priority": self.priority,
            "visited": self.visited,
            "last_notified_at_millis": self.last_notified_at_millis,
            "created_at": self.created_at.isoformat(),
            "source": self.source.value,
            "tags": dict(self.tags),
            "notes": self.notes,
            "is_active": self.is_active,
        }


@dataclass
class ImportResult:
    """
    Outcome of importing one source payload.

    A failed import carries no POIs and the cause in `error`, so callers can
    tell "nothing found" apart from "could not fetch or read".
    """
    pois: List[POI] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "ImportResult":
        return cls(pois=[], error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def empty(self) -> bool:
        return self.ok and not self.pois

    @property
    def status(self) -> str:
        if self.failed:
            return "failed"
        return "empty" if not self.pois else "success"

    def __len__(self) -> int:
        return len(self.pois)

    def __iter__(self) -> Iterator[POI]:
        return iter(self.pois)
