"""
Proximity evaluation of an observer against a set of POIs.

One engine is created per survey session and owns the per-POI notification
state: when each POI last fired and which POIs are latched as visited. Calls
may come from the location stream and from background imports at the same
time, so all state access goes through one lock.
"""
import logging
from threading import Lock
from typing import Dict, Iterable, List, NamedTuple, Optional, Set

from surveyme.config import DEFAULT_NEARBY_DISTANCE_METERS, NOTIFICATION_COOLDOWN_MILLIS
from surveyme.geo import Position, distance
from surveyme.poi import POI

logger = logging.getLogger(__name__)


class ProximityHit(NamedTuple):
    poi: POI
    distance: float  # meters


class ProximityEngine:
    """
    Decides which POIs should notify for a position update.

    A POI fires when the observer is within its notification radius, it is
    not latched as visited, and it has never fired or its cooldown has passed.

    Attributes:
        cooldown_millis (int): Minimum time between two notifications of the same POI.
    """

    def __init__(self, cooldown_millis: int = NOTIFICATION_COOLDOWN_MILLIS):
        self.cooldown_millis = cooldown_millis
        self._last_notified: Dict[str, int] = {}
        self._visited: Set[str] = set()
        self._lock = Lock()

    def evaluate(self, observer: Position, pois: Iterable[POI], now_millis: int) -> List[ProximityHit]:
        """
        Evaluate a position update against the POIs.
        Every POI that fires gets `now_millis` recorded as its last notification time.
            Args:
                observer (Position): Current position of the observer.
                pois (Iterable[POI]): The POIs to check; inactive ones are ignored.
                now_millis (int): Time of the update in epoch milliseconds.
            Returns:
                List[ProximityHit]: The POIs that should notify now, with their distances.
        """
        hits = []
        with self._lock:
            for poi in pois:
                if not poi.is_active:
                    continue
                poi_distance = distance(observer, poi.position)
                logger.debug(f"Distance to {poi.name}: {poi_distance:.1f}m (radius: {poi.notification_radius}m)")
                if poi_distance > poi.notification_radius:
                    continue

                if poi.id in self._visited:
                    logger.debug(f"Skipping notification for {poi.name} - already visited")
                    continue

                last_notified = self._last_notified.get(poi.id)
                if last_notified is not None and now_millis - last_notified < self.cooldown_millis:
                    remaining = self.cooldown_millis - (now_millis - last_notified)
                    logger.debug(f"Skipping notification for {poi.name} - cooldown period ({remaining}ms remaining)")
                    continue

                self._last_notified[poi.id] = now_millis
                # After reset() an older fix must not move the stored time back
                if poi.last_notified_at_millis is None or now_millis > poi.last_notified_at_millis:
                    poi.last_notified_at_millis = now_millis
                logger.info(f"Proximity detected: {poi.name} at {poi_distance:.1f}m")
                hits.append(ProximityHit(poi, poi_distance))
        return hits

    def nearby(self, observer: Position, pois: Iterable[POI], max_distance: float = DEFAULT_NEARBY_DISTANCE_METERS) -> List[ProximityHit]:
        """
        POIs within a distance of the observer, closest first. Does not touch notification state.
            Args:
                observer (Position): Current position of the observer.
                pois (Iterable[POI]): The POIs to check.
                max_distance (float): Maximum distance in meters.
            Returns:
                List[ProximityHit]: Matching POIs sorted ascending by distance.
        """
        hits = []
        for poi in pois:
            poi_distance = distance(observer, poi.position)
            if poi_distance <= max_distance:
                hits.append(ProximityHit(poi, poi_distance))
        hits.sort(key=lambda hit: hit.distance)
        return hits

    def mark_visited(self, poi_id: str):
        """Latch a POI as visited; it will not fire again until `reset()`."""
        with self._lock:
            self._visited.add(poi_id)
        logger.debug(f"POI marked as visited: {poi_id}")

    def is_visited(self, poi_id: str) -> bool:
        with self._lock:
            return poi_id in self._visited

    def last_notified(self, poi_id: str) -> Optional[int]:
        with self._lock:
            return self._last_notified.get(poi_id)

    def reset(self):
        """Clear all visited latches and notification times, e.g. when a new survey starts."""
        with self._lock:
            self._visited.clear()
            self._last_notified.clear()
        logger.info("Reset visited POIs and notification times")
