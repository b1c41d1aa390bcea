"""
Raster and point types shared by the visibility pipeline.

ElevationGrid and VisibilityMask are parallel rasters: row 0 is the northern
edge (max latitude) and column 0 the western edge (min longitude). Both hold
read-only numpy arrays and are never mutated once built.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..constants import ErrorMessages

FloatArray = NDArray[np.floating[Any]]
BoolArray = NDArray[np.bool_]
BBox = tuple[float, float, float, float]  # (min_lon, min_lat, max_lon, max_lat)


@dataclass(frozen=True)
class GeoPoint:
    """Geographic coordinate in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(ErrorMessages.INVALID_LATITUDE.format(self.latitude))
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(ErrorMessages.INVALID_LONGITUDE.format(self.longitude))

    def to_lat_lng(self) -> dict[str, float]:
        return {"lat": self.latitude, "lng": self.longitude}


@dataclass(frozen=True)
class ObserverSpec:
    """Tower location plus the heights used by the line-of-sight test."""

    location: GeoPoint
    tower_height_m: float
    viewer_height_m: float


def _validate_bbox(bbox: Any) -> BBox:
    if len(bbox) != 4:
        raise ValueError(ErrorMessages.INVALID_BBOX)
    west, south, east, north = (float(v) for v in bbox)
    if west >= east:
        raise ValueError(ErrorMessages.INVALID_BBOX_VALUES.format(west, east))
    if south >= north:
        raise ValueError(ErrorMessages.INVALID_BBOX_LAT.format(south, north))
    return (west, south, east, north)


def _frozen(array: Any, dtype: Any) -> NDArray[Any]:
    owned = np.array(array, dtype=dtype, copy=True, order="C")
    if owned.ndim != 2 or owned.shape[0] == 0 or owned.shape[1] == 0:
        raise ValueError(ErrorMessages.INVALID_GRID_SHAPE.format(owned.shape))
    owned.flags.writeable = False
    return owned


def cell_latitudes(bbox: BBox, height: int) -> FloatArray:
    """Latitude of each row: max_lat - (y / height) * (max_lat - min_lat)."""
    _, min_lat, _, max_lat = bbox
    rows = np.arange(height, dtype=np.float64)
    return max_lat - (rows / height) * (max_lat - min_lat)


def cell_longitudes(bbox: BBox, width: int) -> FloatArray:
    """Longitude of each column: min_lon + (x / width) * (max_lon - min_lon)."""
    min_lon, _, max_lon, _ = bbox
    cols = np.arange(width, dtype=np.float64)
    return min_lon + (cols / width) * (max_lon - min_lon)


def cell_coordinate(bbox: BBox, width: int, height: int, x: int, y: int) -> GeoPoint:
    """Geographic coordinate of cell (x, y) by linear interpolation over the bbox."""
    min_lon, min_lat, max_lon, max_lat = bbox
    lat = max_lat - (y / height) * (max_lat - min_lat)
    lon = min_lon + (x / width) * (max_lon - min_lon)
    return GeoPoint(latitude=lat, longitude=lon)


@dataclass(frozen=True, eq=False)
class ElevationGrid:
    """Single-band elevation raster in metres (NaN marks NoData)."""

    elevation: FloatArray
    bbox: BBox
    nodata_pixels: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bbox", _validate_bbox(self.bbox))
        object.__setattr__(self, "elevation", _frozen(self.elevation, np.float32))
        object.__setattr__(self, "nodata_pixels", int(np.isnan(self.elevation).sum()))

    @property
    def width(self) -> int:
        return int(self.elevation.shape[1])

    @property
    def height(self) -> int:
        return int(self.elevation.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    @property
    def samples(self) -> FloatArray:
        """Row-major flat view, length width * height."""
        return self.elevation.ravel()

    @property
    def center_index(self) -> tuple[int, int]:
        """(row, col) of the geometric centre cell."""
        return (self.height // 2, self.width // 2)

    def cell_coordinate(self, x: int, y: int) -> GeoPoint:
        return cell_coordinate(self.bbox, self.width, self.height, x, y)

    def elevation_range(self) -> list[float]:
        valid = self.elevation[~np.isnan(self.elevation)]
        if len(valid) == 0:
            return [0.0, 0.0]
        return [float(np.min(valid)), float(np.max(valid))]


@dataclass(frozen=True, eq=False)
class VisibilityMask:
    """Boolean visibility raster parallel to its source ElevationGrid."""

    visible: BoolArray
    bbox: BBox

    def __post_init__(self) -> None:
        object.__setattr__(self, "bbox", _validate_bbox(self.bbox))
        object.__setattr__(self, "visible", _frozen(self.visible, np.bool_))

    @property
    def width(self) -> int:
        return int(self.visible.shape[1])

    @property
    def height(self) -> int:
        return int(self.visible.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    @property
    def samples(self) -> BoolArray:
        return self.visible.ravel()

    @property
    def visible_count(self) -> int:
        return int(np.count_nonzero(self.visible))

    @property
    def visible_percentage(self) -> float:
        return self.visible_count / self.visible.size * 100.0

    def cell_coordinate(self, x: int, y: int) -> GeoPoint:
        return cell_coordinate(self.bbox, self.width, self.height, x, y)

    def matches(self, grid: ElevationGrid) -> bool:
        """True when this mask has the grid's dimensions and bbox."""
        return self.shape == grid.shape and self.bbox == grid.bbox
