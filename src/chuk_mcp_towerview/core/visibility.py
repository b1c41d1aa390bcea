"""
Visibility engine — per-cell line-of-sight from a tower observer.

Each cell is compared against the observer using only the two end elevations,
the tower and viewer heights, and the geometric drop of the Earth's surface
over the separating distance. Intermediate terrain is not ray-cast.

The scan runs in row-major chunks of ``checkpoint_interval`` cells. After
each chunk the engine reports progress and checks the cancel token and the
deadline, so a worker thread can be stopped cooperatively.
"""

import logging
import math
import time
from collections.abc import Callable

import numpy as np

from ..constants import (
    DEFAULT_CHECKPOINT_INTERVAL,
    DEFAULT_INTERPOLATION,
    DEFAULT_TIMEOUT_S,
    EARTH_RADIUS_M,
    ErrorMessages,
)
from .errors import ComputationTimeoutError, InputError
from .geodesy import haversine_m
from .grid import ElevationGrid, ObserverSpec, VisibilityMask, cell_latitudes, cell_longitudes
from .job import CancelToken, ProgressSink
from .raster_io import elevation_at

logger = logging.getLogger(__name__)


def curvature_drop_m(distance_m: float) -> float:
    """Drop of the Earth's surface below the tangent plane at distance_m."""
    return distance_m * distance_m / (2 * EARTH_RADIUS_M)


def has_line_of_sight(
    observer_elevation_m: float,
    tower_height_m: float,
    target_elevation_m: float,
    viewer_height_m: float,
    distance_m: float,
) -> bool:
    """Return True when the target is above the curved-Earth sight line.

    The comparison is strict: a margin of exactly zero is not visible.
    NaN elevations are never visible.
    """
    height_difference = (observer_elevation_m + tower_height_m) - (
        target_elevation_m + viewer_height_m
    )
    return bool(height_difference - curvature_drop_m(distance_m) > 0)


def observer_elevation(
    grid: ElevationGrid,
    observer: ObserverSpec,
    interpolation: str = DEFAULT_INTERPOLATION,
) -> float:
    """Ground elevation under the observer, raising InputError on NoData."""
    value = elevation_at(grid, observer.location, interpolation)
    if math.isnan(value):
        raise InputError(
            ErrorMessages.NO_OBSERVER_ELEVATION.format(
                observer.location.latitude, observer.location.longitude
            )
        )
    return value


def compute_visibility(
    grid: ElevationGrid,
    observer: ObserverSpec,
    progress: ProgressSink | None = None,
    cancel_token: CancelToken | None = None,
    deadline: float | None = None,
    checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    interpolation: str = DEFAULT_INTERPOLATION,
) -> VisibilityMask:
    """Compute the visibility mask of every grid cell from the observer.

    Args:
        grid: Elevation raster around the observer
        observer: Tower location and heights
        progress: Called with floor(processed / total * 100) at each checkpoint
        cancel_token: Checked at each checkpoint
        deadline: Absolute ``clock()`` value after which the scan fails
            (default: 300 s from now)
        checkpoint_interval: Cells processed between checkpoints
        clock: Monotonic time source, injectable for tests
        interpolation: Lookup used for the observer's ground elevation

    Returns:
        VisibilityMask parallel to grid

    Raises:
        ComputationCancelledError: cancel_token was set
        ComputationTimeoutError: deadline passed before the scan finished
        InputError: no elevation under the observer
    """
    if checkpoint_interval < 1:
        raise ValueError(ErrorMessages.INVALID_CHECKPOINT.format(checkpoint_interval))

    started = clock()
    if deadline is None:
        deadline = started + DEFAULT_TIMEOUT_S
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    ground = observer_elevation(grid, observer, interpolation)
    eye_height = ground + observer.tower_height_m
    obs_lat = observer.location.latitude
    obs_lon = observer.location.longitude

    lats = cell_latitudes(grid.bbox, grid.height)
    lons = cell_longitudes(grid.bbox, grid.width)
    samples = grid.samples
    width = grid.width
    total = samples.size

    logger.info(
        f"Computing visibility for {grid.width}x{grid.height} grid "
        f"(observer elevation {ground:.1f}m, tower {observer.tower_height_m}m, "
        f"viewer {observer.viewer_height_m}m)"
    )

    visible = np.zeros(total, dtype=bool)
    processed = 0

    while processed < total:
        stop = min(processed + checkpoint_interval, total)
        idx = np.arange(processed, stop)
        dist = haversine_m(obs_lat, obs_lon, lats[idx // width], lons[idx % width])

        target_height = samples[processed:stop].astype(np.float64) + observer.viewer_height_m
        sight = (eye_height - target_height) - dist * dist / (2 * EARTH_RADIUS_M)
        # NaN targets compare False, so NoData cells stay hidden
        visible[processed:stop] = sight > 0

        processed = stop
        percent = processed * 100 // total
        if progress is not None:
            progress(percent)
        logger.debug(f"Calculated {processed}/{total} points")

        if processed < total:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            now = clock()
            if now > deadline:
                raise ComputationTimeoutError(ErrorMessages.TIMEOUT.format(now - started, percent))

    mask = VisibilityMask(visible=visible.reshape(grid.shape), bbox=grid.bbox)
    logger.info(f"Visibility calculated: {mask.visible_percentage:.1f}% of cells visible")
    return mask
