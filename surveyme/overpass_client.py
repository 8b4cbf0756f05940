import logging
import requests
from typing import Any, Dict, List, Optional

from surveyme.config import DEFAULT_SEARCH_RADIUS_METERS, OVERPASS_TIMEOUT_SECONDS, OVERPASS_URL
from surveyme.poi import POI, ImportResult, PoiCategory, PoiSource

logger = logging.getLogger(__name__)

DEFAULT_STATION_NAME = "Docking Station"
STATION_DESCRIPTION = "Bicycle Rental Docking Station"


def build_docking_station_query(lat: float, lon: float, radius: int = DEFAULT_SEARCH_RADIUS_METERS) -> str:
    """
    Build the Overpass QL query for bicycle rental docking stations around a point.
    Ways are returned with their center so every element has a single coordinate.
    """
    return (
        "[out:json][timeout:25];\n"
        "(\n"
        f'  node["bicycle_rental"="docking_station"](around:{radius},{lat},{lon});\n'
        f'  way["bicycle_rental"="docking_station"](around:{radius},{lat},{lon});\n'
        ");\n"
        "out center;"
    )


def _element_coordinate(element: Dict[str, Any]) -> Optional[tuple]:
    lat = element.get("lat")
    lon = element.get("lon")
    if lat is not None and lon is not None:
        return float(lat), float(lon)
    center = element.get("center")
    if isinstance(center, dict) and center.get("lat") is not None and center.get("lon") is not None:
        return float(center["lat"]), float(center["lon"])
    return None


def _station_description(tags: Dict[str, str]) -> str:
    description = STATION_DESCRIPTION
    if tags.get("capacity") is not None:
        description += f"\nCapacity: {tags['capacity']}"
    if tags.get("network") is not None:
        description += f"\nNetwork: {tags['network']}"
    return description


def parse_overpass_response(overpass_data: Any, source: PoiSource = PoiSource.OVERPASS) -> List[POI]:
    """
    Convert the elements of an Overpass response to POIs.
    Nodes carry lat/lon directly, ways carry a center when queried with 'out center'.
    Elements with neither, or that fail to convert, are skipped.

        Args:
            overpass_data (Any): The decoded JSON response from the Overpass API.
            source (PoiSource): Provenance tag, also the prefix of the generated ids.
        Returns:
            List[POI]: One POI per element that resolves to a coordinate.
    """
    if not isinstance(overpass_data, dict):
        logger.error(f"Unexpected Overpass payload type: {type(overpass_data).__name__}")
        return []
    elements = overpass_data.get("elements", [])
    if not isinstance(elements, list):
        logger.error("Overpass payload 'elements' is not a list")
        return []

    pois = []
    for element in elements:
        try:
            coordinate = _element_coordinate(element)
            if coordinate is None:
                continue
            lat, lon = coordinate
            tags = element.get("tags") or {}

            poi = POI(
                id=f"{source.value}_{element['type']}_{element['id']}",
                lat=lat,
                lon=lon,
                name=tags.get("name") or DEFAULT_STATION_NAME,
                description=_station_description(tags),
                category=PoiCategory.PUBLIC_TRANSPORT,
                source=source,
                tags=dict(tags),
            )
            pois.append(poi)
        except (KeyError, AttributeError, TypeError, ValueError) as e:
            element_id = element.get("id") if isinstance(element, dict) else None
            logger.warning(f"Error parsing Overpass element {element_id}: {str(e)}")
            continue
    return pois


class OverpassClient:
    """
    A class to fetch bicycle docking stations from the Overpass API.

        Attributes:
            overpass_url (str): The Overpass interpreter endpoint.
            timeout (float): Request timeout in seconds.

        Methods:
            query_docking_stations(lat: float, lon: float, radius: int) -> dict:
                Send the query and return the decoded JSON response.
            fetch_docking_stations(lat: float, lon: float, radius: int) -> ImportResult:
                Query the API and convert the response to POIs without raising.
    """

    def __init__(self, overpass_url: str = OVERPASS_URL, timeout: float = OVERPASS_TIMEOUT_SECONDS):
        self.overpass_url = overpass_url
        self.timeout = timeout

    def query_docking_stations(self, lat: float, lon: float, radius: int = DEFAULT_SEARCH_RADIUS_METERS) -> dict:
        """
        Query the Overpass API for docking stations around a point.
            Args:
                lat (float): Latitude of the search center.
                lon (float): Longitude of the search center.
                radius (int): Search radius in meters.
            Returns:
                dict: The JSON response from the Overpass API.
            Raises:
                TimeoutError: If the request times out.
                ConnectionError: On connection problems or a non-success HTTP status.
                ValueError: If the response body is empty or not a JSON object.
        """
        query = build_docking_station_query(lat, lon, radius)
        logger.debug(f"Fetching docking stations from Overpass API around {lat}, {lon} (radius {radius}m)")

        try:
            response = requests.post(self.overpass_url, data={"data": query}, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise TimeoutError(f"Overpass API request timed out after {self.timeout}s")
        except requests.exceptions.HTTPError as e:
            raise ConnectionError(f"Overpass API HTTP error {e.response.status_code}: {str(e)}")
        except requests.exceptions.RequestException as e:
            raise ConnectionError(f"Overpass API request failed: {str(e)}")

        if not response.content or not response.content.strip():
            raise ValueError("Overpass API response body is empty")

        try:
            payload = response.json()
        except ValueError as e:
            raise ValueError(f"Invalid JSON response from Overpass API: {str(e)}")

        if not isinstance(payload, dict) or not isinstance(payload.get("elements", []), list):
            raise ValueError("Unexpected Overpass API response shape")
        return payload

    def fetch_docking_stations(self, lat: float, lon: float, radius: int = DEFAULT_SEARCH_RADIUS_METERS) -> ImportResult:
        """
        Fetch docking stations around a point as POIs.
        Transport and payload problems are logged and reported as a failed result with no POIs.
            Args:
                lat (float): Latitude of the search center.
                lon (float): Longitude of the search center.
                radius (int): Search radius in meters.
            Returns:
                ImportResult: The stations found, or the failure cause.
        """
        try:
            overpass_data = self.query_docking_stations(lat, lon, radius)
        except (TimeoutError, ConnectionError, ValueError) as e:
            logger.error(f"Error fetching data from Overpass API: {str(e)}")
            return ImportResult.failure(str(e))

        pois = parse_overpass_response(overpass_data)
        logger.info(f"Overpass: Found {len(overpass_data.get('elements', []))} raw elements, converted {len(pois)} to POIs")
        return ImportResult(pois=pois)
