"""Tests for the OpenTopography elevation client (HTTP layer mocked)."""

import os
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests

from chuk_mcp_towerview.constants import OPENTOPOGRAPHY_URL, REQUEST_TIMEOUT_S
from chuk_mcp_towerview.core.elevation_client import ElevationClient, area_bbox
from chuk_mcp_towerview.core.errors import FormatError, NetworkError, ProviderError
from chuk_mcp_towerview.core.grid import GeoPoint


def _response(status=200, content=b"", text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    resp.text = text
    return resp


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return ElevationClient(api_key="test-key", session=session)


class TestAreaBBox:
    def test_square_around_center(self):
        bbox = area_bbox(GeoPoint(50.0, 7.0), 0.5)
        assert bbox == (6.5, 49.5, 7.5, 50.5)

    def test_clamped_to_wgs84(self):
        bbox = area_bbox(GeoPoint(89.9, 179.9), 0.5)
        assert bbox[2] == 180.0
        assert bbox[3] == 90.0

    def test_rejects_non_positive_span(self):
        with pytest.raises(ValueError, match="area_half_span_deg"):
            area_bbox(GeoPoint(0.0, 0.0), 0.0)


class TestConstruction:
    def test_key_from_environment(self):
        with patch.dict(os.environ, {"OPENTOPOGRAPHY_API_KEY": "env-key"}, clear=True):
            assert ElevationClient().api_key == "env-key"

    def test_missing_key(self):
        with patch.dict(os.environ, {}, clear=True):
            assert not ElevationClient().has_api_key

    def test_unknown_dem_type(self):
        with pytest.raises(ValueError, match="Unknown DEM type"):
            ElevationClient(api_key="k", dem_type="BOGUS")


class TestBuildParams:
    def test_params(self, client):
        params = client.build_params((6.5, 49.5, 7.5, 50.5))
        assert params == {
            "demtype": "SRTMGL3",
            "south": "49.5",
            "north": "50.5",
            "west": "6.5",
            "east": "7.5",
            "outputFormat": "GTiff",
            "API_Key": "test-key",
        }

    def test_no_key_param_without_key(self, session):
        with patch.dict(os.environ, {}, clear=True):
            params = ElevationClient(session=session).build_params((0, 0, 1, 1))
        assert "API_Key" not in params


class TestFetch:
    def test_success(self, client, session, make_geotiff):
        payload = make_geotiff(np.full((4, 4), 250.0), bbox=(6.5, 49.5, 7.5, 50.5))
        session.get.return_value = _response(200, content=payload)

        grid = client.fetch(GeoPoint(50.0, 7.0), 0.5)

        assert grid.shape == (4, 4)
        assert grid.bbox == pytest.approx((6.5, 49.5, 7.5, 50.5))
        session.get.assert_called_once()
        args, kwargs = session.get.call_args
        assert args[0] == OPENTOPOGRAPHY_URL
        assert kwargs["timeout"] == REQUEST_TIMEOUT_S
        assert kwargs["params"]["south"] == "49.5"

    def test_dem_type_override(self, client, session, make_geotiff):
        session.get.return_value = _response(200, content=make_geotiff(np.zeros((2, 2))))
        client.fetch(GeoPoint(0.005, 0.005), 0.005, dem_type="COP30")
        assert session.get.call_args.kwargs["params"]["demtype"] == "COP30"

    def test_transport_failure(self, client, session):
        session.get.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(NetworkError, match="connection refused"):
            client.fetch(GeoPoint(0.0, 0.0), 0.1)

    def test_timeout_is_network_error(self, client, session):
        session.get.side_effect = requests.Timeout("read timed out")
        with pytest.raises(NetworkError):
            client.fetch(GeoPoint(0.0, 0.0), 0.1)

    def test_provider_error(self, client, session):
        session.get.return_value = _response(401, text="Invalid API key")
        with pytest.raises(ProviderError) as exc_info:
            client.fetch(GeoPoint(0.0, 0.0), 0.1)
        assert exc_info.value.status == 401
        assert exc_info.value.body == "Invalid API key"
        assert "HTTP 401" in str(exc_info.value)

    def test_server_error(self, client, session):
        session.get.return_value = _response(503, text="maintenance")
        with pytest.raises(ProviderError) as exc_info:
            client.fetch(GeoPoint(0.0, 0.0), 0.1)
        assert exc_info.value.status == 503

    def test_undecodable_payload(self, client, session):
        session.get.return_value = _response(200, content=b"not a tiff")
        with pytest.raises(FormatError):
            client.fetch(GeoPoint(0.0, 0.0), 0.1)

    def test_no_retry(self, client, session):
        session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(NetworkError):
            client.fetch(GeoPoint(0.0, 0.0), 0.1)
        assert session.get.call_count == 1

    def test_missing_key_logs_warning(self, session, make_geotiff, caplog):
        session.get.return_value = _response(200, content=make_geotiff(np.zeros((2, 2))))
        with patch.dict(os.environ, {}, clear=True):
            client = ElevationClient(session=session)
            client.fetch(GeoPoint(0.005, 0.005), 0.005)
        assert "OPENTOPOGRAPHY_API_KEY" in caplog.text
