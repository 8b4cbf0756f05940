import itertools
import logging
from rtree import index
from threading import Lock
from typing import Dict, Iterable, List, Optional, Tuple, Union

from surveyme.poi import POI, PoiCategory, PoiSource

logger = logging.getLogger(__name__)


def _sort_key(poi: POI):
    return (-poi.priority, -poi.created_at.timestamp())


class PoiRegistry:
    """
    Thread-safe in-memory store of normalized POIs.

    POIs are keyed by id, so inserting a POI whose id is already stored
    replaces it. Positions are kept in an R-tree for bounding box queries.

    Attributes:
        _pois (Dict[str, POI]): POIs by id.
        _rtree (index.Index): Spatial index over POI positions.
        _rtree_keys (Dict[str, int]): Integer R-tree key of each POI id.
        _lock (Lock): Thread lock for concurrent access protection.
    """
    def __init__(self):
        self._pois: Dict[str, POI] = {}
        self._rtree = index.Index()
        self._rtree_keys: Dict[str, int] = {}
        self._rtree_ids: Dict[int, str] = {}
        self._key_counter = itertools.count()
        self._lock = Lock()

    def _index_insert(self, poi: POI):
        key = next(self._key_counter)
        self._rtree_keys[poi.id] = key
        self._rtree_ids[key] = poi.id
        self._rtree.insert(key, (poi.lon, poi.lat, poi.lon, poi.lat))

    def _index_delete(self, poi: POI):
        key = self._rtree_keys.pop(poi.id)
        del self._rtree_ids[key]
        self._rtree.delete(key, (poi.lon, poi.lat, poi.lon, poi.lat))

    def _put(self, poi: POI):
        existing = self._pois.get(poi.id)
        if existing is not None:
            self._index_delete(existing)
            # Re-imports refresh the data but keep what the user did with the POI
            poi.visited = poi.visited or existing.visited
            if existing.last_notified_at_millis is not None and (
                poi.last_notified_at_millis is None or existing.last_notified_at_millis > poi.last_notified_at_millis
            ):
                poi.last_notified_at_millis = existing.last_notified_at_millis
        self._pois[poi.id] = poi
        self._index_insert(poi)

    def insert(self, poi: POI):
        """Store a POI, replacing any stored POI with the same id."""
        with self._lock:
            self._put(poi)

    def insert_many(self, pois: Iterable[POI]) -> int:
        """
        Store several POIs under a single lock acquisition.
            Returns:
                int: Number of POIs written.
        """
        count = 0
        with self._lock:
            for poi in pois:
                self._put(poi)
                count += 1
        logger.info(f"Stored {count} POIs, registry now holds {len(self._pois)}")
        return count

    def get(self, poi_id: str) -> Optional[POI]:
        with self._lock:
            return self._pois.get(poi_id)

    def query_all(self) -> List[POI]:
        """All POIs, highest priority first, newest first within a priority."""
        with self._lock:
            return sorted(self._pois.values(), key=_sort_key)

    def active_pois(self) -> List[POI]:
        return [poi for poi in self.query_all() if poi.is_active]

    def unvisited_pois(self) -> List[POI]:
        return [poi for poi in self.active_pois() if not poi.visited]

    def pois_by_category(self, category: PoiCategory) -> List[POI]:
        return [poi for poi in self.active_pois() if poi.category == category]

    def pois_in_bounds(self, south: float, west: float, north: float, east: float) -> List[POI]:
        """
        Active POIs inside a bounding box.
            Args:
                south (float): Minimum latitude.
                west (float): Minimum longitude.
                north (float): Maximum latitude.
                east (float): Maximum longitude.
            Returns:
                List[POI]: Matching POIs in registry order.
        """
        with self._lock:
            keys = self._rtree.intersection((west, south, east, north))
            pois = [self._pois[self._rtree_ids[key]] for key in keys]
        return sorted((poi for poi in pois if poi.is_active), key=_sort_key)

    def mark_visited(self, poi_id: str) -> bool:
        """
        Flag a stored POI as visited.
            Returns:
                bool: False if no POI with this id is stored.
        """
        with self._lock:
            poi = self._pois.get(poi_id)
            if poi is None:
                return False
            poi.visited = True
        logger.debug(f"POI marked as visited: {poi_id}")
        return True

    def delete(self, poi_id: str) -> bool:
        with self._lock:
            poi = self._pois.pop(poi_id, None)
            if poi is None:
                return False
            self._index_delete(poi)
            return True

    def delete_all_from_source(self, source: Union[PoiSource, str]) -> int:
        """
        Delete every POI imported from a source.
            Args:
                source (Union[PoiSource, str]): The source, as enum member or its value.
            Returns:
                int: Number of deleted POIs.
            Raises:
                ValueError: If the source is unknown.
        """
        source = PoiSource.coerce(source)
        with self._lock:
            doomed = [poi for poi in self._pois.values() if poi.source == source]
            for poi in doomed:
                del self._pois[poi.id]
                self._index_delete(poi)
        logger.info(f"Deleted {len(doomed)} POIs from source '{source.value}'")
        return len(doomed)

    def clear(self):
        with self._lock:
            self._pois.clear()
            self._rtree_keys.clear()
            self._rtree_ids.clear()
            self._rtree = index.Index()

    def stats(self) -> Tuple[int, int]:
        """
        Counts for the survey overview.
            Returns:
                Tuple[int, int]: (active POIs, visited POIs).
        """
        with self._lock:
            active = sum(1 for poi in self._pois.values() if poi.is_active)
            visited = sum(1 for poi in self._pois.values() if poi.visited)
        return active, visited

    def __len__(self) -> int:
        with self._lock:
            return len(self._pois)
