"""
Visibility tools — tower viewshed calculation, job control, location selection.

tower_visibility fetches terrain around the tower and runs the line-of-sight
scan; the remaining tools poll or cancel that job and manage the remembered
tower location.
"""

import logging

from ...constants import (
    DEFAULT_AREA_HALF_SPAN_DEG,
    DEFAULT_DOWNSAMPLE_STRIDE,
    DEFAULT_TIMEOUT_S,
    DEFAULT_TOWER_HEIGHT_M,
    DEFAULT_VIEWER_HEIGHT_M,
    ErrorMessages,
    SuccessMessages,
)
from ...core.errors import ComputationCancelledError
from ...core.grid import GeoPoint
from ...core.overlay import to_geojson
from ...models.responses import (
    CancelledResponse,
    ErrorResponse,
    JobStatusResponse,
    LocationResponse,
    VisibilityResponse,
    VisiblePointInfo,
    format_response,
)

logger = logging.getLogger(__name__)


def _job_status(job, message: str) -> JobStatusResponse:
    info = job.to_dict()
    return JobStatusResponse(
        job_id=info["job_id"],
        state=info["state"],
        progress_percent=info["progress_percent"],
        elapsed_s=info["elapsed_s"],
        error=info["error"],
        message=message,
    )


def register_visibility_tools(mcp, manager):
    """Register visibility tools with the MCP server."""

    @mcp.tool()
    async def tower_visibility(
        lat: float | None = None,
        lng: float | None = None,
        tower_height_m: float = DEFAULT_TOWER_HEIGHT_M,
        viewer_height_m: float = DEFAULT_VIEWER_HEIGHT_M,
        area_half_span_deg: float = DEFAULT_AREA_HALF_SPAN_DEG,
        downsample_stride: int = DEFAULT_DOWNSAMPLE_STRIDE,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        dem_type: str | None = None,
        include_points: bool = True,
        include_geojson: bool = False,
        output_mode: str = "json",
    ) -> str:
        """Compute which terrain cells around a tower are visible from its top.

        Each cell is compared with the tower using only the two end elevations
        and the Earth-curvature drop; intervening terrain is not considered.
        Starting a new calculation cancels one that is still running.

        Args:
            lat: Tower latitude (omit together with lng to reuse the last location)
            lng: Tower longitude
            tower_height_m: Tower height above ground in metres (default 30)
            viewer_height_m: Viewer eye height above ground in metres (default 1.7)
            area_half_span_deg: Half width of the analysed square in degrees (default 0.5)
            downsample_stride: Keep every Nth row and column of visible points (default 4)
            timeout_s: Wall-clock limit for the cell scan in seconds (default 300)
            dem_type: OpenTopography DEM type (default SRTMGL3)
            include_points: Include the sampled visible points in the response
            include_geojson: Include a GeoJSON FeatureCollection in the response
            output_mode: "json" or "text"

        Returns:
            Visibility summary with sampled visible points and artifact references
        """
        try:
            if (lat is None) != (lng is None):
                raise ValueError(ErrorMessages.LATLNG_PAIR)
            location = GeoPoint(latitude=lat, longitude=lng) if lat is not None else None

            result = await manager.calculate_visibility(
                location=location,
                tower_height_m=tower_height_m,
                viewer_height_m=viewer_height_m,
                half_span_deg=area_half_span_deg,
                stride=downsample_stride,
                timeout_s=timeout_s,
                dem_type=dem_type,
            )

            observer = result.observer
            points = None
            if include_points:
                points = [VisiblePointInfo(**p.to_lat_lng()) for p in result.points]
            geojson = None
            if include_geojson:
                geojson = to_geojson(result.points, observer, result.marker_radius_m)

            response = VisibilityResponse(
                job_id=result.job_id,
                dem_type=result.dem_type,
                observer=[observer.location.longitude, observer.location.latitude],
                tower_height_m=observer.tower_height_m,
                viewer_height_m=observer.viewer_height_m,
                observer_elevation_m=result.observer_elevation_m,
                bbox=result.bbox,
                shape=result.shape,
                visible_percentage=round(result.visible_percentage, 2),
                elevation_range=result.elevation_range,
                nodata_pixels=result.nodata_pixels,
                stride=result.stride,
                point_count=len(result.points),
                points=points,
                marker_radius_m=result.marker_radius_m,
                geojson=geojson,
                artifact_ref=result.artifact_ref,
                preview_ref=result.preview_ref,
                elapsed_s=round(result.elapsed_s, 3),
                message=SuccessMessages.VISIBILITY_COMPLETE.format(
                    f"{result.shape[0]}x{result.shape[1]}",
                    result.visible_percentage,
                    len(result.points),
                    result.stride,
                ),
            )
            return format_response(response, output_mode)

        except ComputationCancelledError as e:
            logger.info(f"tower_visibility cancelled: {e}")
            response = CancelledResponse(
                job_id=e.job_id,
                message=SuccessMessages.JOB_SUPERSEDED.format(e.job_id)
                if e.job_id
                else str(e),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_visibility failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def tower_job_status(job_id: str | None = None, output_mode: str = "json") -> str:
        """Get the state and progress of a visibility calculation.

        Args:
            job_id: Job identifier (default: the most recent job)
            output_mode: "json" or "text"

        Returns:
            Job state, progress percent and elapsed time
        """
        try:
            job = manager.get_job(job_id) if job_id else manager.active_job
            if job is None:
                raise ValueError(ErrorMessages.NO_ACTIVE_JOB)

            response = _job_status(
                job, SuccessMessages.JOB_STATUS.format(job.job_id, job.state, job.progress())
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_job_status failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def tower_cancel(job_id: str | None = None, output_mode: str = "json") -> str:
        """Cancel a visibility calculation.

        A running job stops at its next progress checkpoint and returns no
        partial result. Cancelling a finished job has no effect.

        Args:
            job_id: Job identifier (default: the most recent job)
            output_mode: "json" or "text"

        Returns:
            Job status after the cancellation request
        """
        try:
            job = manager.cancel_job(job_id)
            response = _job_status(job, SuccessMessages.JOB_CANCEL_REQUESTED.format(job.job_id))
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_cancel failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def tower_select_location(lat: float, lng: float, output_mode: str = "json") -> str:
        """Remember a tower location for later calculations.

        Selecting a new location cancels a calculation that is still running.

        Args:
            lat: Tower latitude in decimal degrees
            lng: Tower longitude in decimal degrees
            output_mode: "json" or "text"

        Returns:
            The saved location
        """
        try:
            point = manager.select_location(GeoPoint(latitude=lat, longitude=lng))
            response = LocationResponse(
                lat=point.latitude,
                lng=point.longitude,
                saved=True,
                message=SuccessMessages.LOCATION_SAVED.format(point.latitude, point.longitude),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_select_location failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def tower_last_location(output_mode: str = "json") -> str:
        """Get the most recently selected tower location, if any.

        Args:
            output_mode: "json" or "text"

        Returns:
            The saved location, or saved=false when none exists
        """
        try:
            point = manager.last_selection()
            if point is None:
                response = LocationResponse(saved=False, message=SuccessMessages.NO_SAVED_LOCATION)
            else:
                response = LocationResponse(
                    lat=point.latitude,
                    lng=point.longitude,
                    saved=True,
                    message=SuccessMessages.LOCATION_LOADED.format(
                        point.latitude, point.longitude
                    ),
                )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_last_location failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
