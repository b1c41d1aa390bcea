"""
Discovery tools — DEM type listing, server status, capabilities.

These tools require no network I/O and describe the server configuration.
"""

import logging
import os

from ...constants import (
    DEFAULT_AREA_HALF_SPAN_DEG,
    DEFAULT_CHECKPOINT_INTERVAL,
    DEFAULT_DOWNSAMPLE_STRIDE,
    DEFAULT_TIMEOUT_S,
    DEFAULT_TOWER_HEIGHT_M,
    DEFAULT_VIEWER_HEIGHT_M,
    DEM_TYPES,
    DISCOVERY_TOOLS,
    VISIBILITY_TOOLS,
    EnvVar,
    ServerConfig,
    StorageProvider,
    SuccessMessages,
)
from ...models.responses import (
    CapabilitiesResponse,
    DEMTypeInfo,
    DEMTypesResponse,
    ErrorResponse,
    StatusResponse,
    format_response,
)

logger = logging.getLogger(__name__)


def register_discovery_tools(mcp, manager):
    """Register discovery tools with the MCP server."""

    @mcp.tool()
    async def tower_list_dem_types(output_mode: str = "json") -> str:
        """List the elevation datasets the visibility calculation can use.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Available DEM types with resolution and coverage
        """
        try:
            dem_types = [DEMTypeInfo(**d) for d in DEM_TYPES.values()]
            response = DEMTypesResponse(
                dem_types=dem_types,
                default=manager.default_dem_type,
                message=SuccessMessages.DEM_TYPES_LIST.format(len(dem_types)),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_list_dem_types failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def tower_status(output_mode: str = "json") -> str:
        """Get server status including version, provider key, storage and the active job.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Server status information
        """
        try:
            provider = os.environ.get(EnvVar.ARTIFACTS_PROVIDER, StorageProvider.MEMORY)

            store_available = False
            try:
                manager._get_store()
                store_available = True
            except Exception:
                pass

            job = manager.active_job
            response = StatusResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                default_dem_type=manager.default_dem_type,
                api_key_configured=manager.client.has_api_key,
                storage_provider=provider,
                artifact_store_available=store_available,
                active_job_id=job.job_id if job else None,
                active_job_state=job.state if job else None,
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_status failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def tower_capabilities(output_mode: str = "json") -> str:
        """Get full server capabilities: DEM types, tools and default parameters.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Complete server capabilities
        """
        try:
            response = CapabilitiesResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                dem_types=[DEMTypeInfo(**d) for d in DEM_TYPES.values()],
                default_dem_type=manager.default_dem_type,
                tools=DISCOVERY_TOOLS + VISIBILITY_TOOLS,
                defaults={
                    "tower_height_m": DEFAULT_TOWER_HEIGHT_M,
                    "viewer_height_m": DEFAULT_VIEWER_HEIGHT_M,
                    "area_half_span_deg": DEFAULT_AREA_HALF_SPAN_DEG,
                    "checkpoint_interval": DEFAULT_CHECKPOINT_INTERVAL,
                    "timeout_s": DEFAULT_TIMEOUT_S,
                    "downsample_stride": DEFAULT_DOWNSAMPLE_STRIDE,
                },
                llm_guidance=(
                    "Use tower_visibility with lat/lng to compute what a tower can see. "
                    "Omit lat/lng to reuse the last selected location. "
                    "A new tower_visibility call supersedes a running one. "
                    "Use tower_job_status to poll progress and tower_cancel to stop a job. "
                    "Visibility ignores terrain between tower and target; only the two "
                    "end elevations and Earth curvature are compared."
                ),
                message=f"{ServerConfig.NAME} v{ServerConfig.VERSION} capabilities",
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"tower_capabilities failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
