from fastapi import FastAPI, UploadFile, File, HTTPException, Query, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging
import time

from surveyme.config import (
    ALLOWED_ORIGINS,
    DEFAULT_NEARBY_DISTANCE_METERS,
    DEFAULT_SEARCH_RADIUS_METERS,
    LOCATION_UPDATE_MIN_DISTANCE_METERS,
    LOCATION_UPDATE_MIN_TIME_MILLIS,
    LOG_LEVEL,
    MAX_FILE_SIZE_BYTES,
    MAX_FILE_SIZE_MB,
)
from surveyme.geo import Fix, Position
from surveyme.geojson_parser import import_geojson
from surveyme.gpx_parser import import_gpx
from surveyme.overpass_client import OverpassClient
from surveyme.poi import ImportResult, PoiCategory, PoiSource
from surveyme.poi_registry import PoiRegistry
from surveyme.proximity import ProximityEngine, ProximityHit

# Set up logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="SurveyMe API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

poi_registry = PoiRegistry()
proximity_engine = ProximityEngine()
overpass_client = OverpassClient()


def hit_to_dict(hit: ProximityHit) -> dict:
    data = hit.poi.to_dict()
    data["distance"] = round(hit.distance, 1)
    return data


def import_response(result: ImportResult, source: PoiSource) -> dict:
    stored = poi_registry.insert_many(result.pois)
    return {
        "imported": stored,
        "source": source.value,
        "status": result.status,
        "error": result.error,
    }


async def read_upload(file: UploadFile, allowed_suffixes: tuple, kind: str) -> bytes:
    """
    Read an uploaded file, enforcing its type and the size limit.
        Raises:
            HTTPException: 400 for a wrong type or empty file, 413 if the file is too large.
    """
    if not file.filename or not file.filename.lower().endswith(allowed_suffixes):
        raise HTTPException(status_code=400, detail=f"Invalid file type. Please upload a {kind} file.")

    # Read up to MAX_FILE_SIZE_BYTES + 1 to detect if file is too large
    data = await file.read(MAX_FILE_SIZE_BYTES + 1)
    if len(data) == 0:
        raise HTTPException(status_code=400, detail=f"The uploaded file is empty. Please upload a valid {kind} file.")
    if len(data) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(status_code=413, detail=f"File too large. Maximum size: {MAX_FILE_SIZE_MB} MB")
    return data


@app.get("/")
async def read_root():
    return {
        "message": "SurveyMe API",
        "status": "running",
        "location_updates": {
            "min_interval_millis": LOCATION_UPDATE_MIN_TIME_MILLIS,
            "min_distance_meters": LOCATION_UPDATE_MIN_DISTANCE_METERS,
        },
    }


@app.post("/gpx/upload")
async def upload_gpx(file: UploadFile = File(...)):
    """
    Endpoint to upload a GPX file and import its waypoints as POIs.
        Args:
            file (UploadFile): The uploaded GPX file.
        Returns:
            dict: containing the number of imported POIs, the source and the import status.
    """
    gpx_data = await read_upload(file, (".gpx",), "GPX")
    try:
        result = import_gpx(gpx_data)
        if result.failed:
            raise HTTPException(status_code=400, detail=f"Failed to parse GPX file: {result.error}")
        if result.empty:
            raise HTTPException(status_code=400, detail="The GPX file does not contain any waypoints.")
        return import_response(result, PoiSource.GPX)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error processing GPX file: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to process GPX file: {str(e)}")


@app.post("/geojson/upload")
async def upload_geojson(file: UploadFile = File(...)):
    """
    Endpoint to upload a bike-share GeoJSON file and import its stations as POIs.
        Args:
            file (UploadFile): The uploaded GeoJSON file.
        Returns:
            dict: containing the number of imported POIs, the source and the import status.
    """
    geojson_data = await read_upload(file, (".geojson", ".json"), "GeoJSON")
    try:
        result = import_geojson(geojson_data)
        if result.failed:
            raise HTTPException(status_code=400, detail=f"Failed to parse GeoJSON file: {result.error}")
        return import_response(result, PoiSource.BIKESHARE_GEOJSON)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error processing GeoJSON file: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to process GeoJSON file: {str(e)}")


@app.post("/overpass/import")
def import_overpass(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius: int = Query(DEFAULT_SEARCH_RADIUS_METERS, gt=0),
):
    """
    Endpoint to fetch docking stations around a point from the Overpass API.
    A failed fetch is answered with 502 so it can't be mistaken for an empty area.
    Declared sync so the blocking HTTP call runs in the threadpool.
    """
    result = overpass_client.fetch_docking_stations(lat, lon, radius)
    body = import_response(result, PoiSource.OVERPASS)
    if result.failed:
        return JSONResponse(status_code=502, content=body)
    return body


@app.get("/pois")
async def list_pois(
    category: Optional[str] = Query(None, description="Category name, e.g. PUBLIC_TRANSPORT"),
    active_only: bool = False,
):
    if category:
        pois = poi_registry.pois_by_category(PoiCategory.from_string(category))
    elif active_only:
        pois = poi_registry.active_pois()
    else:
        pois = poi_registry.query_all()
    return {"pois": [poi.to_dict() for poi in pois]}


@app.get("/pois/nearby")
async def nearby_pois(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    max_distance: float = Query(DEFAULT_NEARBY_DISTANCE_METERS, gt=0),
):
    hits = proximity_engine.nearby(Position(lat, lon), poi_registry.active_pois(), max_distance)
    return {"pois": [hit_to_dict(hit) for hit in hits]}


@app.post("/pois/{poi_id}/visited")
async def mark_poi_visited(poi_id: str):
    if not poi_registry.mark_visited(poi_id):
        raise HTTPException(status_code=404, detail="POI not found")
    proximity_engine.mark_visited(poi_id)
    return {"id": poi_id, "visited": True}


@app.delete("/pois/source/{source}")
async def delete_pois_from_source(source: str):
    try:
        deleted = poi_registry.delete_all_from_source(source)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"deleted": deleted, "source": source}


@app.get("/stats")
async def get_stats():
    total, visited = poi_registry.stats()
    return {"total": total, "visited": visited}


@app.post("/location")
async def update_location(
    lat: float = Body(..., ge=-90, le=90),
    lon: float = Body(..., ge=-180, le=180),
    timestamp_millis: Optional[int] = Body(None),
):
    """
    Endpoint receiving a position fix and returning the POIs that should notify now.
        Args:
            lat (float): Latitude of the fix.
            lon (float): Longitude of the fix.
            timestamp_millis (Optional[int]): Time of the fix, defaults to the server time.
        Returns:
            dict: containing the notifications with POI data and distance in meters.
    """
    fix = Fix(lat=lat, lon=lon, timestamp_millis=timestamp_millis)
    now_millis = fix.timestamp_millis if fix.timestamp_millis is not None else int(time.time() * 1000)
    hits: List[ProximityHit] = proximity_engine.evaluate(fix.position, poi_registry.active_pois(), now_millis)
    return {"notifications": [hit_to_dict(hit) for hit in hits]}


@app.post("/session/reset")
async def reset_session():
    proximity_engine.reset()
    return {"status": "reset"}
