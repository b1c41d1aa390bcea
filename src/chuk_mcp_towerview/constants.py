"""
Constants for chuk-mcp-towerview server.

All magic strings, DEM type metadata, and configuration defaults live here.
"""


class ServerConfig:
    NAME = "chuk-mcp-towerview"
    VERSION = "0.1.0"
    DESCRIPTION = "Tower Visibility (Viewshed) Calculation MCP Server"


class StorageProvider:
    MEMORY = "memory"
    S3 = "s3"
    FILESYSTEM = "filesystem"


class SessionProvider:
    MEMORY = "memory"
    REDIS = "redis"


class EnvVar:
    OPENTOPOGRAPHY_API_KEY = "OPENTOPOGRAPHY_API_KEY"
    SELECTION_PATH = "TOWERVIEW_SELECTION_PATH"
    ARTIFACTS_PROVIDER = "CHUK_ARTIFACTS_PROVIDER"
    BUCKET_NAME = "BUCKET_NAME"
    REDIS_URL = "REDIS_URL"
    ARTIFACTS_PATH = "CHUK_ARTIFACTS_PATH"
    AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
    AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
    AWS_ENDPOINT_URL_S3 = "AWS_ENDPOINT_URL_S3"
    MCP_STDIO = "MCP_STDIO"


class DEMType:
    SRTMGL3 = "SRTMGL3"
    SRTMGL1 = "SRTMGL1"
    AW3D30 = "AW3D30"
    COP30 = "COP30"
    COP90 = "COP90"
    NASADEM = "NASADEM"


DEFAULT_DEM_TYPE = DEMType.SRTMGL3

# OpenTopography global DEM catalogue
DEM_TYPES: dict[str, dict] = {
    DEMType.SRTMGL3: {
        "id": DEMType.SRTMGL3,
        "name": "SRTM GL3",
        "resolution_m": 90,
        "coverage": "60N-56S",
        "nodata_value": -32768.0,
    },
    DEMType.SRTMGL1: {
        "id": DEMType.SRTMGL1,
        "name": "SRTM GL1",
        "resolution_m": 30,
        "coverage": "60N-56S",
        "nodata_value": -32768.0,
    },
    DEMType.AW3D30: {
        "id": DEMType.AW3D30,
        "name": "ALOS World 3D 30m",
        "resolution_m": 30,
        "coverage": "global",
        "nodata_value": -9999.0,
    },
    DEMType.COP30: {
        "id": DEMType.COP30,
        "name": "Copernicus GLO-30",
        "resolution_m": 30,
        "coverage": "global",
        "nodata_value": -9999.0,
    },
    DEMType.COP90: {
        "id": DEMType.COP90,
        "name": "Copernicus GLO-90",
        "resolution_m": 90,
        "coverage": "global",
        "nodata_value": -9999.0,
    },
    DEMType.NASADEM: {
        "id": DEMType.NASADEM,
        "name": "NASADEM",
        "resolution_m": 30,
        "coverage": "60N-56S",
        "nodata_value": -32768.0,
    },
}

ALL_DEM_TYPE_IDS = list(DEM_TYPES.keys())

OPENTOPOGRAPHY_URL = "https://portal.opentopography.org/API/globaldem"
OUTPUT_FORMAT_GTIFF = "GTiff"
REQUEST_TIMEOUT_S = 120.0

# Geodesy
EARTH_RADIUS_M = 6_371_000.0

# Visibility defaults
DEFAULT_TOWER_HEIGHT_M = 30.0
DEFAULT_VIEWER_HEIGHT_M = 1.7
DEFAULT_AREA_HALF_SPAN_DEG = 0.5  # about 55 km each way
MAX_AREA_HALF_SPAN_DEG = 2.0
DEFAULT_CHECKPOINT_INTERVAL = 1000
DEFAULT_TIMEOUT_S = 300.0
DEFAULT_DOWNSAMPLE_STRIDE = 4
DEFAULT_MARKER_RADIUS_M = 100.0

# Caller-side retry (the elevation client itself never retries)
DEFAULT_FETCH_ATTEMPTS = 1
RETRY_WAIT_MIN = 1
RETRY_WAIT_MAX = 10

# Job bookkeeping
MAX_TRACKED_JOBS = 32

# Elevation lookup
INTERPOLATION_METHODS = ["nearest", "bilinear"]
DEFAULT_INTERPOLATION = "nearest"


class JobState:
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_JOB_STATES = (JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED)

VISIBILITY_TOOLS = [
    "tower_visibility",
    "tower_job_status",
    "tower_cancel",
    "tower_select_location",
    "tower_last_location",
]
DISCOVERY_TOOLS = ["tower_status", "tower_capabilities", "tower_list_dem_types"]


class ErrorMessages:
    UNKNOWN_DEM_TYPE = "Unknown DEM type '{}'. Available: {}"
    INVALID_LATITUDE = "Latitude must be between -90 and 90, got {}"
    INVALID_LONGITUDE = "Longitude must be between -180 and 180, got {}"
    INVALID_BBOX = "Invalid bounding box: must be [west, south, east, north]"
    INVALID_BBOX_VALUES = "Invalid bounding box values: west ({}) must be < east ({})"
    INVALID_BBOX_LAT = "Invalid bounding box values: south ({}) must be < north ({})"
    INVALID_GRID_SHAPE = "Elevation samples must be a non-empty 2D array, got shape {}"
    INVALID_HALF_SPAN = "area_half_span_deg must be > 0, got {}"
    HALF_SPAN_TOO_LARGE = "area_half_span_deg ({}) exceeds maximum ({})"
    INVALID_HEIGHT = "{} must be >= 0, got {}"
    INVALID_STRIDE = "stride must be >= 1, got {}"
    INVALID_CHECKPOINT = "checkpoint_interval must be >= 1, got {}"
    INVALID_TIMEOUT = "timeout_s must be > 0, got {}"
    INVALID_INTERPOLATION = "Invalid interpolation '{}'. Available: {}"
    LATLNG_PAIR = "lat and lng must be given together"
    NO_LOCATION = "Please select a tower location first (no observer location set)."
    NO_OBSERVER_ELEVATION = "No elevation data at observer location ({:.6f}, {:.6f})"
    NETWORK_ERROR = "Failed to reach elevation provider: {}"
    PROVIDER_ERROR = "Elevation provider returned HTTP {}: {}"
    FORMAT_ERROR = "Elevation payload could not be decoded: {}"
    EMPTY_RASTER = "Elevation payload contains no raster bands"
    TIMEOUT = "Calculation timed out after {:.0f} seconds ({}% complete)"
    CANCELLED = "Calculation {} was cancelled"
    ILLEGAL_TRANSITION = "Job {} cannot move from '{}' to '{}'"
    UNKNOWN_JOB = "Unknown job '{}'"
    NO_ACTIVE_JOB = "No calculation is running"
    NO_ARTIFACT_STORE = (
        "No artifact store available. Configure CHUK_ARTIFACTS_PROVIDER "
        "environment variable (memory, filesystem, or s3)."
    )
    MISSING_API_KEY = (
        "OPENTOPOGRAPHY_API_KEY is not set; the elevation provider will reject the request."
    )


class SuccessMessages:
    STATUS = "Tower visibility MCP Server v{} (DEM: {})"
    DEM_TYPES_LIST = "{} DEM types available"
    VISIBILITY_COMPLETE = (
        "Visibility computed ({} grid): {:.1f}% visible, {} points after stride {}"
    )
    JOB_STATUS = "Job {}: {} ({}%)"
    JOB_CANCEL_REQUESTED = "Cancellation requested for job {}"
    JOB_SUPERSEDED = "Job {} was superseded before it finished"
    LOCATION_SAVED = "Tower location saved ({:.6f}, {:.6f})"
    LOCATION_LOADED = "Last tower location ({:.6f}, {:.6f})"
    NO_SAVED_LOCATION = "No tower location has been selected yet"
