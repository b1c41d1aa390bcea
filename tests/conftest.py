"""Shared test fixtures for chuk-mcp-towerview."""

import numpy as np
import pytest
from unittest.mock import AsyncMock, MagicMock

# Sub-kilometre area around (0.005, 0.005): curvature drop stays below 5 cm
SMALL_BBOX = (0.0, 0.0, 0.01, 0.01)


@pytest.fixture
def small_bbox():
    return SMALL_BBOX


@pytest.fixture
def make_grid():
    """Factory building an ElevationGrid from an array and bbox."""
    from chuk_mcp_towerview.core.grid import ElevationGrid

    def _make(elevation, bbox=SMALL_BBOX):
        return ElevationGrid(elevation=np.asarray(elevation, dtype=np.float32), bbox=bbox)

    return _make


@pytest.fixture
def flat_grid(make_grid):
    """4x4 grid at sea level over the small bbox."""
    return make_grid(np.zeros((4, 4)))


@pytest.fixture
def sample_elevation():
    """40x40 elevation array with values 100-500m."""
    rng = np.random.default_rng(42)
    return rng.uniform(100, 500, (40, 40)).astype(np.float32)


@pytest.fixture
def center_observer():
    """Tower at the centre of the small bbox, 100 m tall."""
    from chuk_mcp_towerview.core.grid import GeoPoint, ObserverSpec

    return ObserverSpec(
        location=GeoPoint(latitude=0.005, longitude=0.005),
        tower_height_m=100.0,
        viewer_height_m=1.7,
    )


@pytest.fixture
def make_geotiff():
    """Factory producing single-band GeoTIFF bytes with rasterio's MemoryFile."""
    from rasterio.io import MemoryFile
    from rasterio.transform import from_bounds

    def _make(array, bbox=SMALL_BBOX, nodata=None, dtype="float32"):
        array = np.asarray(array)
        height, width = array.shape
        memfile = MemoryFile()
        with memfile.open(
            driver="GTiff",
            height=height,
            width=width,
            count=1,
            dtype=dtype,
            crs="EPSG:4326",
            transform=from_bounds(*bbox, width, height),
            nodata=nodata,
        ) as dst:
            dst.write(array.astype(dtype)[np.newaxis, :])
        return memfile.read()

    return _make


@pytest.fixture
def mock_artifact_store():
    """Mock artifact store."""
    store = AsyncMock()
    store.store = AsyncMock(return_value=None)
    store.retrieve = AsyncMock(return_value=b"fake-geotiff-bytes")
    return store


@pytest.fixture
def mock_client(flat_grid):
    """Elevation client stand-in returning the flat grid."""
    client = MagicMock()
    client.has_api_key = True
    client.fetch.return_value = flat_grid
    return client


@pytest.fixture
def mock_manager(mock_artifact_store, mock_client):
    """TowerViewManager with mocked client, in-memory selection and mocked store."""
    from chuk_mcp_towerview.core.selection_store import SelectionStore
    from chuk_mcp_towerview.core.tower_manager import TowerViewManager

    manager = TowerViewManager(client=mock_client, selection_store=SelectionStore())
    manager._get_store = MagicMock(return_value=mock_artifact_store)
    return manager


@pytest.fixture
def mock_mcp():
    """Mock ChukMCPServer."""
    mcp = MagicMock()
    mcp.tool = MagicMock(return_value=lambda fn: fn)
    return mcp
