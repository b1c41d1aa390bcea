"""
Raster I/O operations for elevation and visibility rasters.

All functions are synchronous — callers wrap them in asyncio.to_thread().
Handles GeoTIFF decoding of provider payloads, point sampling, and output
format conversion for visibility masks.
"""

import io
import logging
import math
from typing import Any

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from ..constants import DEFAULT_INTERPOLATION, INTERPOLATION_METHODS, ErrorMessages
from .errors import FormatError
from .grid import BBox, ElevationGrid, GeoPoint, VisibilityMask

logger = logging.getLogger(__name__)

# Type aliases
FloatArray = NDArray[np.floating[Any]]

VISIBLE_RGB = (0, 200, 0)
HIDDEN_RGB = (200, 0, 0)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_elevation_geotiff(data: bytes) -> ElevationGrid:
    """
    Decode a single-band GeoTIFF payload into an ElevationGrid.

    Args:
        data: Raw GeoTIFF bytes as returned by the provider

    Returns:
        ElevationGrid with nodata replaced by NaN

    Raises:
        FormatError: Payload is empty, not a raster, or has no bands
    """
    from rasterio.errors import RasterioError
    from rasterio.io import MemoryFile

    if not data:
        raise FormatError(ErrorMessages.FORMAT_ERROR.format("empty payload"))

    try:
        with MemoryFile(data) as memfile:
            with memfile.open() as src:
                if src.count < 1:
                    raise FormatError(ErrorMessages.EMPTY_RASTER)
                elevation = src.read(1).astype(np.float32)
                bounds = src.bounds
                nodata = src.nodata
    except (RasterioError, ValueError) as e:
        raise FormatError(ErrorMessages.FORMAT_ERROR.format(e)) from e

    # Replace nodata with NaN
    if nodata is not None and not math.isnan(nodata):
        elevation[elevation == nodata] = np.nan

    try:
        grid = ElevationGrid(
            elevation=elevation,
            bbox=(bounds.left, bounds.bottom, bounds.right, bounds.top),
        )
    except ValueError as e:
        raise FormatError(ErrorMessages.FORMAT_ERROR.format(e)) from e

    logger.debug(
        f"Decoded elevation raster {grid.width}x{grid.height}, "
        f"bbox={grid.bbox}, nodata={grid.nodata_pixels}"
    )
    return grid


# ---------------------------------------------------------------------------
# Point sampling
# ---------------------------------------------------------------------------


def elevation_at(
    grid: ElevationGrid,
    point: GeoPoint,
    interpolation: str = DEFAULT_INTERPOLATION,
) -> float:
    """
    Sample elevation at a geographic coordinate.

    Cell (x, y) sits at the coordinate given by linear interpolation over the
    bbox, so "nearest" returns the cell whose footprint contains the point.

    Args:
        grid: Elevation grid
        point: Coordinate to sample
        interpolation: nearest or bilinear

    Returns:
        Elevation in metres, NaN outside the grid or on NoData
    """
    min_lon, min_lat, max_lon, max_lat = grid.bbox
    if not (min_lat <= point.latitude <= max_lat and min_lon <= point.longitude <= max_lon):
        return float("nan")

    row_f = (max_lat - point.latitude) / (max_lat - min_lat) * grid.height
    col_f = (point.longitude - min_lon) / (max_lon - min_lon) * grid.width

    if interpolation == "nearest":
        row = min(int(math.floor(row_f)), grid.height - 1)
        col = min(int(math.floor(col_f)), grid.width - 1)
        val = grid.elevation[row, col]
        return float(val) if not np.isnan(val) else float("nan")

    elif interpolation == "bilinear":
        return _bilinear_sample(grid.elevation, row_f, col_f)

    else:
        raise ValueError(
            ErrorMessages.INVALID_INTERPOLATION.format(
                interpolation, ", ".join(INTERPOLATION_METHODS)
            )
        )


# ---------------------------------------------------------------------------
# Output conversion
# ---------------------------------------------------------------------------


def raster_to_geotiff(
    array: NDArray[Any],
    bbox: BBox,
    dtype: str = "float32",
    nodata: float | None = None,
) -> bytes:
    """
    Convert a 2D NumPy array covering bbox to GeoTIFF bytes (EPSG:4326).

    Args:
        array: 2D raster, row 0 at the northern edge
        bbox: (min_lon, min_lat, max_lon, max_lat)
        dtype: Output data type
        nodata: Nodata value

    Returns:
        GeoTIFF bytes
    """
    from rasterio.io import MemoryFile
    from rasterio.transform import from_bounds

    height, width = array.shape
    transform = from_bounds(*bbox, width, height)

    memfile = MemoryFile()
    with memfile.open(
        driver="GTiff",
        height=height,
        width=width,
        count=1,
        dtype=dtype,
        crs="EPSG:4326",
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(array.astype(dtype)[np.newaxis, :])

    return memfile.read()


def mask_to_geotiff(mask: VisibilityMask) -> bytes:
    """Encode a visibility mask as a uint8 GeoTIFF (1=visible, 0=hidden)."""
    return raster_to_geotiff(mask.visible.astype(np.uint8), mask.bbox, dtype="uint8")


def mask_to_png(mask: VisibilityMask) -> bytes:
    """Render a visibility mask as a green (visible) / red (hidden) PNG."""
    vis_rgb = np.zeros((*mask.shape, 3), dtype=np.uint8)
    vis_rgb[mask.visible] = VISIBLE_RGB
    vis_rgb[~mask.visible] = HIDDEN_RGB

    img = Image.fromarray(vis_rgb)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _bilinear_sample(array: FloatArray, row_f: float, col_f: float) -> float:
    """Bilinear interpolation at fractional pixel coordinates."""
    r0, c0 = int(math.floor(row_f)), int(math.floor(col_f))
    r1, c1 = r0 + 1, c0 + 1
    h, w = array.shape

    if r0 < 0 or c0 < 0 or r1 >= h or c1 >= w:
        return float("nan")

    dr = row_f - r0
    dc = col_f - c0

    v00 = array[r0, c0]
    v01 = array[r0, c1]
    v10 = array[r1, c0]
    v11 = array[r1, c1]

    if any(np.isnan(v) for v in [v00, v01, v10, v11]):
        return float("nan")

    val = v00 * (1 - dr) * (1 - dc) + v01 * (1 - dr) * dc + v10 * dr * (1 - dc) + v11 * dr * dc
    return float(val)
