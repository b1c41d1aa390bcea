"""
Tests for TowerViewManager.

Covers the calculation pipeline with a mocked elevation client, selection
fallback, job supersession, best-effort artifact storage, timeout, and the
opt-in fetch retry.
"""

import asyncio
import itertools
import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

from chuk_mcp_towerview.constants import MAX_TRACKED_JOBS, JobState
from chuk_mcp_towerview.core.errors import (
    ComputationCancelledError,
    ComputationTimeoutError,
    InputError,
    NetworkError,
    ProviderError,
)
from chuk_mcp_towerview.core.grid import GeoPoint
from chuk_mcp_towerview.core.selection_store import SelectionStore
from chuk_mcp_towerview.core.tower_manager import TowerViewManager, VisibilityResult

CENTER = GeoPoint(latitude=0.005, longitude=0.005)
OTHER = GeoPoint(latitude=0.004, longitude=0.006)


# ===================================================================
# Successful calculation
# ===================================================================


class TestCalculateVisibility:
    async def test_returns_result(self, mock_manager):
        result = await mock_manager.calculate_visibility(location=CENTER, tower_height_m=100.0)

        assert isinstance(result, VisibilityResult)
        assert result.shape == [4, 4]
        assert result.visible_percentage == 100.0
        assert result.stride == 4
        assert len(result.points) == 1
        assert result.observer.location == CENTER
        assert result.observer_elevation_m == 0.0
        assert result.dem_type == "SRTMGL3"
        assert result.nodata_pixels == 0

    async def test_fetch_arguments(self, mock_manager, mock_client):
        await mock_manager.calculate_visibility(
            location=CENTER, half_span_deg=0.25, dem_type="COP30"
        )
        mock_client.fetch.assert_called_once_with(CENTER, 0.25, "COP30")

    async def test_job_completed(self, mock_manager):
        result = await mock_manager.calculate_visibility(location=CENTER)
        job = mock_manager.get_job(result.job_id)
        assert job.state == JobState.COMPLETED
        assert job.progress() == 100
        assert mock_manager.active_job is job

    async def test_saves_selection(self, mock_manager):
        await mock_manager.calculate_visibility(location=CENTER)
        assert mock_manager.last_selection() == CENTER

    async def test_progress_callback(self, mock_manager):
        calls = []
        mock_manager.progress_callback = lambda job_id, pct: calls.append((job_id, pct))
        result = await mock_manager.calculate_visibility(location=CENTER)
        assert calls == [(result.job_id, 100)]

    async def test_stores_geotiff_and_preview(self, mock_manager, mock_artifact_store):
        result = await mock_manager.calculate_visibility(location=CENTER)

        assert result.artifact_ref.startswith("towerview/")
        assert result.artifact_ref.endswith(".tif")
        assert result.preview_ref.endswith("_visibility.png")
        assert mock_artifact_store.store.call_count == 2
        _, kwargs = mock_artifact_store.store.call_args_list[0]
        assert kwargs["mime_type"] == "image/tiff"
        assert kwargs["metadata"]["job_id"] == result.job_id

    async def test_missing_store_is_best_effort(self, mock_manager, caplog):
        mock_manager._get_store = MagicMock(side_effect=RuntimeError("No artifact store"))
        result = await mock_manager.calculate_visibility(location=CENTER)

        assert result.artifact_ref is None
        assert result.preview_ref is None
        assert mock_manager.get_job(result.job_id).state == JobState.COMPLETED
        assert "Failed to store visibility raster" in caplog.text


# ===================================================================
# Selection fallback
# ===================================================================


class TestLocationFallback:
    async def test_uses_saved_selection(self, mock_manager, mock_client):
        mock_manager.select_location(CENTER)
        result = await mock_manager.calculate_visibility()
        assert result.observer.location == CENTER
        assert mock_client.fetch.call_args.args[0] == CENTER

    async def test_no_selection_raises_input_error(self, mock_manager, mock_client):
        with pytest.raises(InputError, match="select a tower location"):
            await mock_manager.calculate_visibility()
        mock_client.fetch.assert_not_called()
        assert mock_manager.active_job is None


# ===================================================================
# Validation
# ===================================================================


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"tower_height_m": -1.0}, "tower_height_m"),
            ({"viewer_height_m": -0.1}, "viewer_height_m"),
            ({"half_span_deg": 0.0}, "area_half_span_deg"),
            ({"half_span_deg": 5.0}, "exceeds maximum"),
            ({"stride": 0}, "stride"),
            ({"timeout_s": 0.0}, "timeout_s"),
            ({"dem_type": "BOGUS"}, "Unknown DEM type"),
        ],
    )
    async def test_rejects_invalid(self, mock_manager, kwargs, match):
        with pytest.raises(ValueError, match=match):
            await mock_manager.calculate_visibility(location=CENTER, **kwargs)
        assert mock_manager.active_job is None


# ===================================================================
# Failures
# ===================================================================


class TestFailures:
    async def test_provider_error_fails_job(self, mock_manager, mock_client):
        err = ProviderError(500, "internal error")
        mock_client.fetch.side_effect = err

        with pytest.raises(ProviderError):
            await mock_manager.calculate_visibility(location=CENTER)

        job = mock_manager.active_job
        assert job.state == JobState.FAILED
        assert job.error is err

    async def test_nodata_observer_fails_job(self, mock_manager, mock_client, make_grid):
        elevation = np.zeros((4, 4))
        elevation[2, 2] = np.nan
        mock_client.fetch.return_value = make_grid(elevation)

        with pytest.raises(InputError):
            await mock_manager.calculate_visibility(location=CENTER)
        assert mock_manager.active_job.state == JobState.FAILED

    async def test_timeout_fails_job(self, mock_client, mock_artifact_store, make_grid):
        mock_client.fetch.return_value = make_grid(np.zeros((10, 10)))
        manager = TowerViewManager(
            client=mock_client,
            selection_store=SelectionStore(),
            checkpoint_interval=10,
            clock=itertools.count().__next__,
        )
        manager._get_store = MagicMock(return_value=mock_artifact_store)

        with pytest.raises(ComputationTimeoutError):
            await manager.calculate_visibility(location=CENTER, timeout_s=5)

        job = manager.active_job
        assert job.state == JobState.FAILED
        assert isinstance(job.error, TimeoutError)
        mock_artifact_store.store.assert_not_called()

    async def test_fetch_time_not_counted_against_timeout(
        self, mock_client, mock_artifact_store, make_grid
    ):
        now = [0.0]

        def slow_fetch(location, half_span, dem):
            now[0] += 250.0
            return make_grid(np.zeros((10, 10)))

        def tick(job_id, percent):
            now[0] += 10.0

        mock_client.fetch.side_effect = slow_fetch
        manager = TowerViewManager(
            client=mock_client,
            selection_store=SelectionStore(),
            progress_callback=tick,
            checkpoint_interval=10,
            clock=lambda: now[0],
        )
        manager._get_store = MagicMock(return_value=mock_artifact_store)

        result = await manager.calculate_visibility(location=CENTER, timeout_s=300)

        job = manager.get_job(result.job_id)
        assert job.state == JobState.COMPLETED
        assert job.deadline == 550.0
        assert job.elapsed_s == 350.0


# ===================================================================
# Retry
# ===================================================================


class TestFetchRetry:
    def _fast(self, manager, attempts):
        manager.fetch_attempts = attempts
        manager.retry_wait_min = 0
        manager.retry_wait_max = 0
        return manager

    async def test_no_retry_by_default(self, mock_manager, mock_client):
        mock_client.fetch.side_effect = NetworkError("down")
        with pytest.raises(NetworkError):
            await mock_manager.calculate_visibility(location=CENTER)
        assert mock_client.fetch.call_count == 1

    async def test_retries_network_error_when_enabled(self, mock_manager, mock_client, flat_grid):
        self._fast(mock_manager, 3)
        mock_client.fetch.side_effect = [NetworkError("blip"), flat_grid]

        result = await mock_manager.calculate_visibility(location=CENTER)

        assert mock_client.fetch.call_count == 2
        assert result.visible_percentage == 100.0

    async def test_gives_up_after_attempts(self, mock_manager, mock_client):
        self._fast(mock_manager, 2)
        mock_client.fetch.side_effect = NetworkError("down")
        with pytest.raises(NetworkError):
            await mock_manager.calculate_visibility(location=CENTER)
        assert mock_client.fetch.call_count == 2

    async def test_provider_error_not_retried(self, mock_manager, mock_client):
        self._fast(mock_manager, 3)
        mock_client.fetch.side_effect = ProviderError(400, "bad bbox")
        with pytest.raises(ProviderError):
            await mock_manager.calculate_visibility(location=CENTER)
        assert mock_client.fetch.call_count == 1


# ===================================================================
# Jobs, supersession and cancellation
# ===================================================================


class TestJobs:
    def test_get_unknown_job(self, mock_manager):
        with pytest.raises(ValueError, match="Unknown job"):
            mock_manager.get_job("missing")

    def test_cancel_without_active_job(self, mock_manager):
        with pytest.raises(ValueError, match="No calculation"):
            mock_manager.cancel_job()

    def test_new_job_supersedes_running(self, mock_manager):
        first = mock_manager._new_job()
        first.start()
        second = mock_manager._new_job()

        assert first.cancel_token.cancelled
        assert mock_manager.active_job is second
        assert not second.cancel_token.cancelled

    def test_tracked_jobs_bounded(self, mock_manager):
        for _ in range(MAX_TRACKED_JOBS + 5):
            mock_manager._new_job()
        assert len(mock_manager._jobs) == MAX_TRACKED_JOBS

    async def test_cancel_completed_job_is_noop(self, mock_manager):
        result = await mock_manager.calculate_visibility(location=CENTER)
        job = mock_manager.cancel_job(result.job_id)
        assert job.state == JobState.COMPLETED

    async def test_select_location_during_fetch_cancels(self, mock_manager, mock_client, flat_grid):
        def fetch(location, half_span, dem):
            mock_manager.select_location(OTHER)
            return flat_grid

        mock_client.fetch.side_effect = fetch

        with pytest.raises(ComputationCancelledError) as exc_info:
            await mock_manager.calculate_visibility(location=CENTER)

        job = mock_manager.active_job
        assert exc_info.value.job_id == job.job_id
        assert job.state == JobState.CANCELLED
        assert job.error is None
        assert mock_manager.last_selection() == OTHER

    async def test_new_calculation_supersedes_in_flight(
        self, mock_manager, mock_client, flat_grid
    ):
        release = threading.Event()

        def fetch(location, half_span, dem):
            if location == CENTER:
                release.wait(timeout=5)
            return flat_grid

        mock_client.fetch.side_effect = fetch

        first = asyncio.create_task(mock_manager.calculate_visibility(location=CENTER))
        await asyncio.sleep(0)
        first_job = mock_manager.active_job
        assert first_job.is_running

        try:
            second = await mock_manager.calculate_visibility(location=OTHER)
        finally:
            release.set()

        with pytest.raises(ComputationCancelledError):
            await first

        assert first_job.state == JobState.CANCELLED
        assert mock_manager.get_job(second.job_id).state == JobState.COMPLETED
        assert mock_manager.active_job.job_id == second.job_id

    async def test_task_cancel_during_fetch_cancels_job(self, mock_manager, mock_client, flat_grid):
        release = threading.Event()

        def fetch(location, half_span, dem):
            release.wait(timeout=5)
            return flat_grid

        mock_client.fetch.side_effect = fetch

        task = asyncio.create_task(mock_manager.calculate_visibility(location=CENTER))
        await asyncio.sleep(0)
        job = mock_manager.active_job
        assert job.is_running

        task.cancel()
        try:
            with pytest.raises(asyncio.CancelledError):
                await task
        finally:
            release.set()

        assert job.state == JobState.CANCELLED
        assert job.cancel_token.cancelled
        assert job.error is None

    async def test_superseded_job_failure_ends_cancelled(
        self, mock_manager, mock_client, flat_grid
    ):
        release = threading.Event()

        def fetch(location, half_span, dem):
            if location == CENTER:
                release.wait(timeout=5)
                raise NetworkError("connection reset")
            return flat_grid

        mock_client.fetch.side_effect = fetch

        first = asyncio.create_task(mock_manager.calculate_visibility(location=CENTER))
        await asyncio.sleep(0)
        first_job = mock_manager.active_job

        try:
            await mock_manager.calculate_visibility(location=OTHER)
        finally:
            release.set()

        with pytest.raises(ComputationCancelledError) as exc_info:
            await first

        assert exc_info.value.job_id == first_job.job_id
        assert isinstance(exc_info.value.__cause__, NetworkError)
        assert first_job.state == JobState.CANCELLED
        assert first_job.error is None
