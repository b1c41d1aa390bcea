"""Response models for chuk-mcp-towerview."""

from .responses import (
    CancelledResponse,
    CapabilitiesResponse,
    DEMTypeInfo,
    DEMTypesResponse,
    ErrorResponse,
    JobStatusResponse,
    LocationResponse,
    StatusResponse,
    VisibilityResponse,
    VisiblePointInfo,
    format_response,
)

__all__ = [
    "ErrorResponse",
    "DEMTypeInfo",
    "DEMTypesResponse",
    "StatusResponse",
    "CapabilitiesResponse",
    "VisiblePointInfo",
    "VisibilityResponse",
    "CancelledResponse",
    "JobStatusResponse",
    "LocationResponse",
    "format_response",
]
