import gpxpy
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from xml.etree import ElementTree

from surveyme.categories import classify
from surveyme.poi import POI, ImportResult, PoiSource

logger = logging.getLogger(__name__)

# gpxpy strips the default namespace the same way before reading the tree
DEFAULT_NAMESPACE = re.compile(r"""\sxmlns=(['"])[^'"]*\1""")


@dataclass
class GpxWaypoint:
    """
    A waypoint record as read from a GPX file.

    Attributes:
        lat (Optional[float]): Latitude in decimal degrees, None if missing.
        lon (Optional[float]): Longitude in decimal degrees, None if missing.
        name (Optional[str]): Waypoint name.
        description (Optional[str]): Free-text description.
        type (Optional[str]): Free-text type hint used for categorization.
        time (Optional[datetime]): Waypoint timestamp.
        elevation (Optional[float]): Elevation in meters.
    """
    lat: Optional[float]
    lon: Optional[float]
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    time: Optional[datetime] = None
    elevation: Optional[float] = None


def _has_coordinate(value: Optional[str]) -> bool:
    if value is None:
        return False
    try:
        float(value)
    except ValueError:
        return False
    return True


def drop_waypoints_without_coordinates(gpx_text: str) -> str:
    """
    Remove <wpt> elements whose lat or lon is missing or not a number.
    gpxpy rejects the whole document for one such record, so they are taken out beforehand.
        Args:
            gpx_text (str): The GPX document.
        Returns:
            str: The document without those waypoints, or the input unchanged if none were found.
    """
    try:
        root = ElementTree.fromstring(DEFAULT_NAMESPACE.sub("", gpx_text, count=1))
    except ElementTree.ParseError:
        # gpxpy reports the syntax error
        return gpx_text

    dropped = 0
    for index, element in enumerate(root.findall("wpt"), start=1):
        if _has_coordinate(element.get("lat")) and _has_coordinate(element.get("lon")):
            continue
        logger.warning(f"Skipping waypoint {index}: missing or invalid coordinates")
        root.remove(element)
        dropped += 1

    if not dropped:
        return gpx_text
    return ElementTree.tostring(root, encoding="unicode")


class GPXParser:
    """
    A class to parse GPX data and extract waypoints.

    Attributes:
        gpx_data (bytes): The GPX data in bytes format.

    Methods:
        parse() -> List[GpxWaypoint]:
            Parse the GPX data and extract waypoint records.
    """
    def __init__(self, gpx_data: bytes):
        self.gpx_data = gpx_data

    def parse(self) -> List[GpxWaypoint]:
        """
        Parse the GPX data and extract waypoint records.

            Returns:
                List[GpxWaypoint]: The waypoints in document order. Empty if the data can't be read.
        """
        try:
            return self._parse()
        except ValueError as e:
            logger.error(f"Failed to parse GPX data: {str(e)}")
            return []

    def _parse(self) -> List[GpxWaypoint]:
        """
        Parse the GPX data, raising on unreadable input.

            Raises:
                ValueError: If the data is not UTF-8 or not a valid GPX document.
        """
        try:
            gpx_text = self.gpx_data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ValueError(f"File encoding error: The file is not valid UTF-8. {str(e)}")

        gpx_text = drop_waypoints_without_coordinates(gpx_text)
        try:
            gpx = gpxpy.parse(gpx_text)
        except Exception as e:
            raise ValueError(f"Failed to parse GPX data: {str(e)}")

        waypoints = []
        for point in gpx.waypoints:
            waypoints.append(GpxWaypoint(
                lat=point.latitude,
                lon=point.longitude,
                name=point.name,
                description=point.description,
                type=point.type,
                time=point.time,
                elevation=point.elevation,
            ))
        return waypoints


def _waypoint_tags(waypoint: GpxWaypoint) -> Dict[str, str]:
    tags = {}
    if waypoint.type:
        tags["type"] = waypoint.type
    if waypoint.elevation is not None:
        tags["elevation"] = str(waypoint.elevation)
    return tags


def _created_at(waypoint: GpxWaypoint) -> datetime:
    if waypoint.time is None:
        return datetime.now(timezone.utc)
    if waypoint.time.tzinfo is None:
        return waypoint.time.replace(tzinfo=timezone.utc)
    return waypoint.time


def convert_to_pois(waypoints: Sequence[GpxWaypoint], source: PoiSource = PoiSource.GPX) -> List[POI]:
    """
    Convert waypoint records to POIs, one per record.
    Records without both coordinates, or with out-of-range ones, are skipped.
        Args:
            waypoints (Sequence[GpxWaypoint]): The parsed waypoint records.
            source (PoiSource): Provenance tag of the resulting POIs.
        Returns:
            List[POI]: The POIs of all records that could be converted.
    """
    pois = []
    for index, waypoint in enumerate(waypoints, start=1):
        if waypoint.lat is None or waypoint.lon is None:
            logger.warning(f"Skipping waypoint {index}: missing coordinates")
            continue
        name = waypoint.name or f"Waypoint {index}"
        try:
            poi = POI(
                lat=waypoint.lat,
                lon=waypoint.lon,
                name=name,
                description=waypoint.description,
                category=classify(waypoint.type, name),
                created_at=_created_at(waypoint),
                source=source,
                tags=_waypoint_tags(waypoint),
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping waypoint {index}: {str(e)}")
            continue
        pois.append(poi)
    return pois


def import_gpx(gpx_data: bytes, source: PoiSource = PoiSource.GPX) -> ImportResult:
    """
    Parse GPX bytes and convert their waypoints to POIs.
        Args:
            gpx_data (bytes): Raw GPX file content.
            source (PoiSource): Provenance tag of the resulting POIs.
        Returns:
            ImportResult: Failed if the file can't be read, empty if it holds no usable waypoints.
    """
    try:
        waypoints = GPXParser(gpx_data)._parse()
    except ValueError as e:
        logger.error(f"GPX import failed: {str(e)}")
        return ImportResult.failure(str(e))

    pois = convert_to_pois(waypoints, source)
    logger.info(f"Imported {len(pois)} POIs from {len(waypoints)} GPX waypoints")
    return ImportResult(pois=pois)
