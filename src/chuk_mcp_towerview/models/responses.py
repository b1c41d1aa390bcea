"""
Response models for chuk-mcp-towerview tools.

All tool responses are Pydantic models for type safety and consistent API.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def format_response(model: BaseModel, output_mode: str = "json") -> str:
    """Format a response model as JSON or human-readable text.

    Args:
        model: Pydantic response model instance
        output_mode: "json" (default) or "text"

    Returns:
        Formatted string
    """
    if output_mode == "text" and hasattr(model, "to_text"):
        return str(model.to_text())
    return str(model.model_dump_json())


class ErrorResponse(BaseModel):
    """Error response model for tool failures."""

    model_config = ConfigDict(extra="forbid")

    error: str = Field(..., description="Error message describing what went wrong")

    def to_text(self) -> str:
        return f"Error: {self.error}"


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class DEMTypeInfo(BaseModel):
    """Summary information about an OpenTopography DEM type."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="DEM type identifier (e.g., SRTMGL3)")
    name: str = Field(..., description="Human-readable DEM name")
    resolution_m: int = Field(..., description="Native resolution in metres")
    coverage: str = Field(..., description="Coverage description (e.g., global, 60N-56S)")
    nodata_value: float = Field(..., description="NoData sentinel value")

    def to_text(self) -> str:
        return f"{self.id}: {self.name} ({self.resolution_m}m, {self.coverage})"


class DEMTypesResponse(BaseModel):
    """Response model for listing DEM types."""

    model_config = ConfigDict(extra="forbid")

    dem_types: list[DEMTypeInfo] = Field(..., description="Available DEM types")
    default: str = Field(..., description="Default DEM type")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [self.message, f"Default: {self.default}", ""]
        for d in self.dem_types:
            lines.append(f"  {d.to_text()}")
        return "\n".join(lines)


class StatusResponse(BaseModel):
    """Response model for server status queries."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(default="chuk-mcp-towerview", description="Server name")
    version: str = Field(default="0.1.0", description="Server version")
    default_dem_type: str = Field(..., description="Default DEM type")
    api_key_configured: bool = Field(..., description="Whether an OpenTopography key is set")
    storage_provider: str = Field(..., description="Active storage provider (memory/filesystem/s3)")
    artifact_store_available: bool = Field(
        default=False, description="Whether artifact store is available"
    )
    active_job_id: str | None = Field(None, description="Most recent job identifier")
    active_job_state: str | None = Field(None, description="State of the most recent job")

    def to_text(self) -> str:
        store_status = "available" if self.artifact_store_available else "not available"
        key_status = "configured" if self.api_key_configured else "missing"
        lines = [
            f"{self.server} v{self.version}",
            f"Default DEM: {self.default_dem_type}",
            f"API key: {key_status}",
            f"Storage: {self.storage_provider}",
            f"Artifact store: {store_status}",
        ]
        if self.active_job_id:
            lines.append(f"Active job: {self.active_job_id} ({self.active_job_state})")
        return "\n".join(lines)


class CapabilitiesResponse(BaseModel):
    """Response model for server capabilities listing."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(..., description="Server name")
    version: str = Field(..., description="Server version")
    dem_types: list[DEMTypeInfo] = Field(..., description="Available DEM types")
    default_dem_type: str = Field(..., description="Default DEM type")
    tools: list[str] = Field(..., description="Registered tool names")
    defaults: dict[str, float] = Field(..., description="Default calculation parameters")
    llm_guidance: str = Field(..., description="LLM-friendly usage guidance")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"{self.server} v{self.version}",
            f"DEM types: {', '.join(d.id for d in self.dem_types)} (default {self.default_dem_type})",
            f"Tools: {', '.join(self.tools)}",
            "Defaults: " + ", ".join(f"{k}={v}" for k, v in self.defaults.items()),
            "",
            self.llm_guidance,
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


class VisiblePointInfo(BaseModel):
    """A visible sampled cell."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude in decimal degrees")
    lng: float = Field(..., description="Longitude in decimal degrees")


class VisibilityResponse(BaseModel):
    """Response model for a completed tower visibility calculation."""

    model_config = ConfigDict(extra="forbid")

    job_id: str = Field(..., description="Calculation job identifier")
    dem_type: str = Field(..., description="DEM type used")
    observer: list[float] = Field(..., description="Tower location [lon, lat]")
    tower_height_m: float = Field(..., description="Tower height above ground in metres", ge=0)
    viewer_height_m: float = Field(..., description="Viewer height above ground in metres", ge=0)
    observer_elevation_m: float = Field(..., description="Ground elevation at the tower")
    bbox: list[float] = Field(..., description="Grid bounding box [west, south, east, north]")
    shape: list[int] = Field(..., description="Grid shape [height, width]")
    visible_percentage: float = Field(..., description="Percentage of cells visible", ge=0, le=100)
    elevation_range: list[float] = Field(..., description="Min/max elevation in metres")
    nodata_pixels: int = Field(..., description="Cells without elevation data", ge=0)
    stride: int = Field(..., description="Downsample stride used for points", ge=1)
    point_count: int = Field(..., description="Number of visible sampled points", ge=0)
    points: list[VisiblePointInfo] | None = Field(
        None, description="Visible sampled points (omitted when include_points is false)"
    )
    marker_radius_m: float = Field(..., description="Suggested marker radius for rendering")
    geojson: dict[str, Any] | None = Field(None, description="GeoJSON FeatureCollection")
    artifact_ref: str | None = Field(None, description="Visibility GeoTIFF artifact reference")
    preview_ref: str | None = Field(None, description="PNG preview artifact reference")
    elapsed_s: float = Field(..., description="Job wall-clock duration in seconds", ge=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        shape_str = f"{self.shape[0]}x{self.shape[1]}"
        lines = [
            f"Tower visibility: {self.dem_type} (job {self.job_id})",
            f"Observer: ({self.observer[0]:.6f}, {self.observer[1]:.6f})",
            f"Tower: {self.tower_height_m:.1f}m, Viewer: {self.viewer_height_m:.1f}m",
            f"Observer elevation: {self.observer_elevation_m:.1f}m",
            f"Grid: {shape_str}, nodata: {self.nodata_pixels}",
            f"Elevation: {self.elevation_range[0]:.1f}m to {self.elevation_range[1]:.1f}m",
            f"Visible: {self.visible_percentage:.1f}%",
            f"Points: {self.point_count} (stride {self.stride}, radius {self.marker_radius_m:.0f}m)",
            f"Elapsed: {self.elapsed_s:.1f}s",
        ]
        if self.artifact_ref:
            lines.append(f"Artifact: {self.artifact_ref}")
        if self.preview_ref:
            lines.append(f"Preview: {self.preview_ref}")
        return "\n".join(lines)


class CancelledResponse(BaseModel):
    """Response for a calculation that was superseded or cancelled."""

    model_config = ConfigDict(extra="forbid")

    job_id: str | None = Field(None, description="Cancelled job identifier")
    state: str = Field(default="cancelled", description="Final job state")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return self.message


class JobStatusResponse(BaseModel):
    """Response model for job status queries."""

    model_config = ConfigDict(extra="forbid")

    job_id: str = Field(..., description="Calculation job identifier")
    state: str = Field(..., description="idle, running, completed, failed or cancelled")
    progress_percent: int = Field(..., description="Progress percent", ge=0, le=100)
    elapsed_s: float = Field(..., description="Elapsed seconds since start", ge=0)
    error: str | None = Field(None, description="Failure message when state is failed")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"Job {self.job_id}: {self.state}",
            f"Progress: {self.progress_percent}%",
            f"Elapsed: {self.elapsed_s:.1f}s",
        ]
        if self.error:
            lines.append(f"Error: {self.error}")
        return "\n".join(lines)


class LocationResponse(BaseModel):
    """Response model for the saved tower location."""

    model_config = ConfigDict(extra="forbid")

    lat: float | None = Field(None, description="Latitude in decimal degrees")
    lng: float | None = Field(None, description="Longitude in decimal degrees")
    saved: bool = Field(..., description="Whether a location is stored")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return self.message
