"""
Elevation provider client — OpenTopography global DEM API.

Requests a single-band GeoTIFF covering a square area around a point and
decodes it into an ElevationGrid. The client never retries; callers decide.
All methods are synchronous — callers wrap them in asyncio.to_thread().
"""

import logging
import os

import requests

from ..constants import (
    DEFAULT_DEM_TYPE,
    DEM_TYPES,
    OPENTOPOGRAPHY_URL,
    OUTPUT_FORMAT_GTIFF,
    REQUEST_TIMEOUT_S,
    EnvVar,
    ErrorMessages,
)
from .errors import NetworkError, ProviderError
from .grid import BBox, ElevationGrid, GeoPoint
from .raster_io import decode_elevation_geotiff

logger = logging.getLogger(__name__)


def area_bbox(center: GeoPoint, half_span_deg: float) -> BBox:
    """Square bbox of +/- half_span_deg around center, clamped to WGS84."""
    if half_span_deg <= 0:
        raise ValueError(ErrorMessages.INVALID_HALF_SPAN.format(half_span_deg))
    return (
        max(-180.0, center.longitude - half_span_deg),
        max(-90.0, center.latitude - half_span_deg),
        min(180.0, center.longitude + half_span_deg),
        min(90.0, center.latitude + half_span_deg),
    )


class ElevationClient:
    """Fetch elevation rasters from OpenTopography."""

    def __init__(
        self,
        api_key: str | None = None,
        dem_type: str = DEFAULT_DEM_TYPE,
        base_url: str = OPENTOPOGRAPHY_URL,
        timeout_s: float = REQUEST_TIMEOUT_S,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get(
            EnvVar.OPENTOPOGRAPHY_API_KEY
        )
        self.dem_type = self._check_dem_type(dem_type)
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._session = session or requests.Session()

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def build_params(self, bbox: BBox, dem_type: str | None = None) -> dict[str, str]:
        """Query parameters for a globaldem request covering bbox."""
        west, south, east, north = bbox
        params = {
            "demtype": dem_type or self.dem_type,
            "south": f"{south}",
            "north": f"{north}",
            "west": f"{west}",
            "east": f"{east}",
            "outputFormat": OUTPUT_FORMAT_GTIFF,
        }
        if self.api_key:
            params["API_Key"] = self.api_key
        return params

    def fetch(
        self,
        center: GeoPoint,
        half_span_deg: float,
        dem_type: str | None = None,
    ) -> ElevationGrid:
        """
        Download and decode the elevation raster around center.

        Args:
            center: Observer location the area is centred on
            half_span_deg: Half the side of the square area, in degrees
            dem_type: OpenTopography DEM type (default: client's dem_type)

        Returns:
            ElevationGrid covering the area

        Raises:
            NetworkError: Provider could not be reached
            ProviderError: Provider answered with a non-success status
            FormatError: Payload is not a decodable single-band raster
        """
        dem = self._check_dem_type(dem_type or self.dem_type)
        bbox = area_bbox(center, half_span_deg)
        params = self.build_params(bbox, dem)

        if not self.api_key:
            logger.warning(ErrorMessages.MISSING_API_KEY)

        logger.info(f"Fetching {dem} elevation data for bbox {bbox}")

        try:
            response = self._session.get(self.base_url, params=params, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise NetworkError(ErrorMessages.NETWORK_ERROR.format(e)) from e

        logger.info(f"Elevation provider response status: {response.status_code}")
        if not 200 <= response.status_code < 300:
            logger.error(f"Elevation provider error body: {response.text[:500]}")
            raise ProviderError(response.status_code, response.text)

        data = response.content
        logger.info(f"Received {len(data)} bytes of elevation data")
        return decode_elevation_geotiff(data)

    @staticmethod
    def _check_dem_type(dem_type: str) -> str:
        if dem_type not in DEM_TYPES:
            raise ValueError(
                ErrorMessages.UNKNOWN_DEM_TYPE.format(dem_type, ", ".join(DEM_TYPES.keys()))
            )
        return dem_type
