import os

# Overpass transport
OVERPASS_URL = os.getenv("SURVEYME_OVERPASS_URL", "https://overpass-api.de/api/interpreter")
OVERPASS_TIMEOUT_SECONDS = float(os.getenv("SURVEYME_OVERPASS_TIMEOUT", "30"))
DEFAULT_SEARCH_RADIUS_METERS = 1000

# Proximity
NOTIFICATION_COOLDOWN_MILLIS = int(os.getenv("SURVEYME_COOLDOWN_MILLIS", "300000"))  # 5 minutes
DEFAULT_NOTIFICATION_RADIUS_METERS = 50
DEFAULT_NEARBY_DISTANCE_METERS = 500.0

# Position fix cadence advertised to clients on GET /
LOCATION_UPDATE_MIN_TIME_MILLIS = 5000
LOCATION_UPDATE_MIN_DISTANCE_METERS = 10

# Uploads
MAX_FILE_SIZE_MB = float(os.getenv("SURVEYME_MAX_FILE_SIZE_MB", "2"))
MAX_FILE_SIZE_BYTES = int(MAX_FILE_SIZE_MB * 1024 * 1024)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS").split(",") if os.getenv("ALLOWED_ORIGINS") else ["*"]
LOG_LEVEL = os.getenv("SURVEYME_LOG_LEVEL", "INFO")
