"""
Tower View Manager — central orchestrator for visibility calculations.

Owns the job lifecycle: resolves the observer location, fetches the elevation
raster, runs the visibility engine, downsamples the result and stores the
mask in the artifact store. Blocking I/O and the CPU-bound scan run in worker
threads via asyncio.to_thread(). At most one job is active; starting a new
one cancels the previous job.
"""

import asyncio
import logging
import os
import time
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..constants import (
    DEFAULT_AREA_HALF_SPAN_DEG,
    DEFAULT_CHECKPOINT_INTERVAL,
    DEFAULT_DEM_TYPE,
    DEFAULT_DOWNSAMPLE_STRIDE,
    DEFAULT_FETCH_ATTEMPTS,
    DEFAULT_TIMEOUT_S,
    DEFAULT_TOWER_HEIGHT_M,
    DEFAULT_VIEWER_HEIGHT_M,
    DEM_TYPES,
    MAX_AREA_HALF_SPAN_DEG,
    MAX_TRACKED_JOBS,
    RETRY_WAIT_MAX,
    RETRY_WAIT_MIN,
    EnvVar,
    ErrorMessages,
)
from .elevation_client import ElevationClient
from .errors import ComputationCancelledError, InputError, NetworkError
from .grid import ElevationGrid, GeoPoint, ObserverSpec, VisibilityMask
from .job import CalculationJob
from .selection_store import SelectionStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]


@dataclass
class VisibilityResult:
    """Result of a completed visibility calculation."""

    job_id: str
    observer: ObserverSpec
    dem_type: str
    mask: VisibilityMask
    points: list[GeoPoint]
    stride: int
    marker_radius_m: float
    observer_elevation_m: float
    elevation_range: list[float]
    nodata_pixels: int
    elapsed_s: float
    artifact_ref: str | None = None
    preview_ref: str | None = None

    @property
    def shape(self) -> list[int]:
        return [self.mask.height, self.mask.width]

    @property
    def bbox(self) -> list[float]:
        return list(self.mask.bbox)

    @property
    def visible_percentage(self) -> float:
        return self.mask.visible_percentage


class TowerViewManager:
    """Central manager for tower visibility calculations."""

    def __init__(
        self,
        client: ElevationClient | None = None,
        selection_store: SelectionStore | None = None,
        default_dem_type: str = DEFAULT_DEM_TYPE,
        progress_callback: ProgressCallback | None = None,
        fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS,
        checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_dem_type = default_dem_type
        self.client = client or ElevationClient(dem_type=default_dem_type)
        self.selection_store = selection_store or SelectionStore(
            os.environ.get(EnvVar.SELECTION_PATH)
        )
        self.progress_callback = progress_callback
        self.fetch_attempts = fetch_attempts
        self.retry_wait_min = RETRY_WAIT_MIN
        self.retry_wait_max = RETRY_WAIT_MAX
        self.checkpoint_interval = checkpoint_interval
        self._clock = clock

        # Recent jobs in creation order: job_id -> job
        self._jobs: OrderedDict[str, CalculationJob] = OrderedDict()
        self._active: CalculationJob | None = None

    # ------------------------------------------------------------------
    # Jobs and selection (sync, no I/O)
    # ------------------------------------------------------------------

    @property
    def active_job(self) -> CalculationJob | None:
        return self._active

    def get_job(self, job_id: str) -> CalculationJob:
        """Look up a tracked job, raising ValueError if unknown."""
        if job_id not in self._jobs:
            raise ValueError(ErrorMessages.UNKNOWN_JOB.format(job_id))
        return self._jobs[job_id]

    def cancel_job(self, job_id: str | None = None) -> CalculationJob:
        """Request cancellation of a job (default: the active one)."""
        if job_id is None:
            if self._active is None:
                raise ValueError(ErrorMessages.NO_ACTIVE_JOB)
            job = self._active
        else:
            job = self.get_job(job_id)
        job.cancel()
        return job

    def last_selection(self) -> GeoPoint | None:
        return self.selection_store.load()

    def select_location(self, location: GeoPoint) -> GeoPoint:
        """Persist a new tower location, superseding any running job."""
        self.selection_store.save(location)
        if self._active is not None and self._active.is_running:
            self._active.cancel()
        return location

    # ------------------------------------------------------------------
    # Calculation (async)
    # ------------------------------------------------------------------

    async def calculate_visibility(
        self,
        location: GeoPoint | None = None,
        tower_height_m: float = DEFAULT_TOWER_HEIGHT_M,
        viewer_height_m: float = DEFAULT_VIEWER_HEIGHT_M,
        half_span_deg: float = DEFAULT_AREA_HALF_SPAN_DEG,
        stride: int = DEFAULT_DOWNSAMPLE_STRIDE,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        dem_type: str | None = None,
    ) -> VisibilityResult:
        """Fetch terrain around the tower and compute what it can see.

        A location of None falls back to the last saved selection.

        Raises:
            InputError: No location given and none saved
            ComputationCancelledError: Superseded or cancelled before finishing
            ComputationTimeoutError, NetworkError, ProviderError, FormatError
        """
        from . import overlay
        from .visibility import compute_visibility, observer_elevation

        dem = dem_type or self.default_dem_type
        self._validate_request(
            tower_height_m, viewer_height_m, half_span_deg, stride, timeout_s, dem
        )

        if location is None:
            location = self.selection_store.load()
            if location is None:
                raise InputError(ErrorMessages.NO_LOCATION)
        else:
            self.selection_store.save(location)

        observer = ObserverSpec(
            location=location,
            tower_height_m=tower_height_m,
            viewer_height_m=viewer_height_m,
        )

        job = self._new_job()
        job.start(timeout_s)

        def on_progress(percent: int) -> None:
            job.report_progress(percent)
            if self.progress_callback is not None:
                self.progress_callback(job.job_id, percent)

        try:
            grid = await asyncio.to_thread(self._fetch_grid, location, half_span_deg, dem)
            job.cancel_token.raise_if_cancelled()
            # Only the scan counts against timeout_s
            deadline = job.arm_deadline()

            mask = await asyncio.to_thread(
                compute_visibility,
                grid,
                observer,
                progress=on_progress,
                cancel_token=job.cancel_token,
                deadline=deadline,
                checkpoint_interval=self.checkpoint_interval,
                clock=self._clock,
            )

            points = overlay.downsample(mask, stride)
            radius_m = overlay.marker_radius_m(mask, stride)
            ground = observer_elevation(grid, observer)

            artifact_ref, preview_ref = await self._store_outputs(
                mask,
                {
                    "schema_version": "1.0",
                    "type": "tower_visibility",
                    "job_id": job.job_id,
                    "dem_type": dem,
                    "observer": [location.longitude, location.latitude],
                    "tower_height_m": tower_height_m,
                    "viewer_height_m": viewer_height_m,
                    "bbox": list(mask.bbox),
                    "shape": [mask.height, mask.width],
                    "visible_percentage": round(mask.visible_percentage, 1),
                },
            )
            # A cancel that arrived after the last checkpoint still wins
            job.cancel_token.raise_if_cancelled()

        except ComputationCancelledError:
            job.mark_cancelled()
            raise
        except asyncio.CancelledError:
            # Awaiting task was cancelled; stop the worker at its next checkpoint
            job.cancel()
            job.mark_cancelled()
            raise
        except Exception as e:
            if job.cancel_token.cancelled:
                job.mark_cancelled()
                raise ComputationCancelledError(
                    ErrorMessages.CANCELLED.format(job.job_id), job_id=job.job_id
                ) from e
            job.fail(e)
            raise

        job.complete()
        return VisibilityResult(
            job_id=job.job_id,
            observer=observer,
            dem_type=dem,
            mask=mask,
            points=points,
            stride=stride,
            marker_radius_m=radius_m,
            observer_elevation_m=ground,
            elevation_range=grid.elevation_range(),
            nodata_pixels=grid.nodata_pixels,
            elapsed_s=job.elapsed_s,
            artifact_ref=artifact_ref,
            preview_ref=preview_ref,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate_request(
        self,
        tower_height_m: float,
        viewer_height_m: float,
        half_span_deg: float,
        stride: int,
        timeout_s: float,
        dem_type: str,
    ) -> None:
        """Validate calculation parameters, raising ValueError."""
        if tower_height_m < 0:
            raise ValueError(ErrorMessages.INVALID_HEIGHT.format("tower_height_m", tower_height_m))
        if viewer_height_m < 0:
            raise ValueError(
                ErrorMessages.INVALID_HEIGHT.format("viewer_height_m", viewer_height_m)
            )
        if half_span_deg <= 0:
            raise ValueError(ErrorMessages.INVALID_HALF_SPAN.format(half_span_deg))
        if half_span_deg > MAX_AREA_HALF_SPAN_DEG:
            raise ValueError(
                ErrorMessages.HALF_SPAN_TOO_LARGE.format(half_span_deg, MAX_AREA_HALF_SPAN_DEG)
            )
        if stride < 1:
            raise ValueError(ErrorMessages.INVALID_STRIDE.format(stride))
        if timeout_s <= 0:
            raise ValueError(ErrorMessages.INVALID_TIMEOUT.format(timeout_s))
        if dem_type not in DEM_TYPES:
            raise ValueError(
                ErrorMessages.UNKNOWN_DEM_TYPE.format(dem_type, ", ".join(DEM_TYPES.keys()))
            )

    def _new_job(self) -> CalculationJob:
        """Create and track a job, superseding the active one."""
        previous = self._active
        if previous is not None and previous.is_running:
            logger.info(f"Superseding job {previous.job_id}")
            previous.cancel()

        job = CalculationJob(clock=self._clock)
        self._jobs[job.job_id] = job
        while len(self._jobs) > MAX_TRACKED_JOBS:
            self._jobs.popitem(last=False)
        self._active = job
        return job

    def _fetch_grid(self, location: GeoPoint, half_span_deg: float, dem_type: str) -> ElevationGrid:
        """Fetch the elevation raster, retrying NetworkError only when configured."""
        retryer = Retrying(
            stop=stop_after_attempt(max(1, self.fetch_attempts)),
            wait=wait_exponential(multiplier=1, min=self.retry_wait_min, max=self.retry_wait_max),
            retry=retry_if_exception_type(NetworkError),
            reraise=True,
        )
        return retryer(self.client.fetch, location, half_span_deg, dem_type)

    async def _store_outputs(
        self,
        mask: VisibilityMask,
        metadata: dict,
    ) -> tuple[str | None, str | None]:
        """Store the mask GeoTIFF and PNG preview; failures only log a warning."""
        from . import raster_io

        artifact_ref = None
        preview_ref = None
        try:
            geotiff_bytes = await asyncio.to_thread(raster_io.mask_to_geotiff, mask)
            artifact_ref = await self._store_raster(geotiff_bytes, metadata, suffix=".tif")
        except Exception as e:
            logger.warning(f"Failed to store visibility raster: {e}")
            return None, None

        try:
            preview_bytes = await asyncio.to_thread(raster_io.mask_to_png, mask)
            preview_ref = await self._store_raster(
                preview_bytes,
                {"type": "tower_visibility_preview", "job_id": metadata.get("job_id")},
                suffix="_visibility.png",
            )
        except Exception as e:
            logger.warning(f"Failed to generate visibility preview: {e}")

        return artifact_ref, preview_ref

    def _get_store(self) -> Any:
        """Get the artifact store instance."""
        from chuk_mcp_server import get_artifact_store

        store = get_artifact_store()
        if store is None:
            raise RuntimeError(ErrorMessages.NO_ARTIFACT_STORE)
        return store

    async def _store_raster(
        self,
        data: bytes,
        metadata: dict,
        suffix: str = ".tif",
    ) -> str:
        """Store raster data in the artifact store."""
        try:
            store = self._get_store()
            ref = f"towerview/{uuid.uuid4().hex[:12]}{suffix}"
            mime = "image/tiff" if suffix.endswith(".tif") else "image/png"

            await store.store(
                ref,
                data,
                mime_type=mime,
                metadata=metadata,
                summary=f"Tower visibility ({metadata.get('type', 'unknown')})",
            )
            return ref
        except Exception as e:
            logger.error(f"Failed to store raster: {e}")
            raise
