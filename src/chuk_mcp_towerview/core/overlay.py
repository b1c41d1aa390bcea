"""
Overlay downsampling for map rendering.

The full visibility mask is far too dense to draw as individual markers, so
only cells on row/column multiples of ``stride`` are kept. This is a density
reduction, not an unbiased sample: visible cells between sampled rows and
columns are dropped.
"""

from typing import Any

from ..constants import DEFAULT_DOWNSAMPLE_STRIDE, DEFAULT_MARKER_RADIUS_M, ErrorMessages
from .geodesy import distance
from .grid import GeoPoint, ObserverSpec, VisibilityMask


def downsample(mask: VisibilityMask, stride: int = DEFAULT_DOWNSAMPLE_STRIDE) -> list[GeoPoint]:
    """Return coordinates of visible cells sampled every ``stride`` rows and columns.

    Points are emitted in row-major scan order.
    """
    if stride < 1:
        raise ValueError(ErrorMessages.INVALID_STRIDE.format(stride))

    sampled = mask.visible[::stride, ::stride]
    points = []
    for sy, sx in zip(*sampled.nonzero()):
        points.append(mask.cell_coordinate(int(sx) * stride, int(sy) * stride))
    return points


def marker_radius_m(mask: VisibilityMask, stride: int = DEFAULT_DOWNSAMPLE_STRIDE) -> float:
    """Marker radius that roughly covers the gap left by the stride.

    Half the ground spacing between two sampled cells along a row, measured at
    the centre of the mask, never below the default marker radius.
    """
    min_lon, min_lat, max_lon, max_lat = mask.bbox
    mid_lat = (min_lat + max_lat) / 2.0
    cell_deg = (max_lon - min_lon) / mask.width
    span_lon = min(min_lon + stride * cell_deg, 180.0)
    spacing = distance(GeoPoint(mid_lat, min_lon), GeoPoint(mid_lat, span_lon))
    return max(DEFAULT_MARKER_RADIUS_M, spacing / 2.0)


def to_geojson(
    points: list[GeoPoint],
    observer: ObserverSpec | None = None,
    radius_m: float = DEFAULT_MARKER_RADIUS_M,
) -> dict[str, Any]:
    """Build a GeoJSON FeatureCollection for the rendering layer."""
    features: list[dict[str, Any]] = [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [p.longitude, p.latitude]},
            "properties": {"visible": True},
        }
        for p in points
    ]

    if observer is not None:
        features.append(
            {
                "type": "Feature",
                "geometry": {
                    "type": "Point",
                    "coordinates": [observer.location.longitude, observer.location.latitude],
                },
                "properties": {
                    "type": "observer",
                    "tower_height_m": observer.tower_height_m,
                    "viewer_height_m": observer.viewer_height_m,
                },
            }
        )

    return {
        "type": "FeatureCollection",
        "properties": {"marker_radius_m": radius_m},
        "features": features,
    }
