"""
Calculation job lifecycle and cooperative cancellation.

A CalculationJob moves idle -> running -> {completed | failed | cancelled}.
Terminal states are final; a new calculation is a new job. The engine runs in
a worker thread, so the cancel flag and progress counter are thread-safe.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from typing import Any

from ..constants import DEFAULT_TIMEOUT_S, TERMINAL_JOB_STATES, ErrorMessages, JobState
from .errors import ComputationCancelledError

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int], None]


class CancelToken:
    """Shared flag checked by the engine at every progress checkpoint."""

    def __init__(self, job_id: str = "") -> None:
        self.job_id = job_id
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ComputationCancelledError(
                ErrorMessages.CANCELLED.format(self.job_id), job_id=self.job_id or None
            )


class CalculationJob:
    """State, progress and deadline of one visibility calculation."""

    def __init__(
        self,
        job_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.job_id = job_id or uuid.uuid4().hex[:12]
        self.cancel_token = CancelToken(self.job_id)
        self._clock = clock
        self._lock = threading.Lock()
        self._state = JobState.IDLE
        self._progress = 0
        self.start_time: float | None = None
        self.end_time: float | None = None
        self.timeout_s = DEFAULT_TIMEOUT_S
        self.deadline: float | None = None
        self.error: BaseException | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == JobState.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_JOB_STATES

    def progress(self) -> int:
        """Current progress percent (0-100)."""
        return self._progress

    @property
    def elapsed_s(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else self._clock()
        return end - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "state": self._state,
            "progress_percent": self._progress,
            "elapsed_s": round(self.elapsed_s, 3),
            "error": str(self.error) if self.error is not None else None,
        }

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        """Move idle -> running. The deadline is armed separately when compute begins."""
        with self._lock:
            self._require(JobState.IDLE, JobState.RUNNING)
            self.start_time = self._clock()
            self.timeout_s = timeout_s
            self._state = JobState.RUNNING
        logger.info(f"Job {self.job_id} started (timeout {timeout_s:.0f}s)")

    def arm_deadline(self) -> float:
        """Set the deadline to timeout_s from now and return it."""
        with self._lock:
            self._require(JobState.RUNNING, JobState.RUNNING)
            self.deadline = self._clock() + self.timeout_s
        return self.deadline

    def report_progress(self, percent: int) -> None:
        """Record progress; values never decrease and are clamped to [0, 100]."""
        percent = max(0, min(100, int(percent)))
        with self._lock:
            if self._state != JobState.RUNNING:
                return
            if percent > self._progress:
                self._progress = percent

    def complete(self) -> None:
        with self._lock:
            self._require(JobState.RUNNING, JobState.COMPLETED)
            self._finish(JobState.COMPLETED)
        logger.info(f"Job {self.job_id} completed in {self.elapsed_s:.1f}s")

    def fail(self, error: BaseException) -> None:
        with self._lock:
            self._require(JobState.RUNNING, JobState.FAILED)
            self.error = error
            self._finish(JobState.FAILED)
        logger.info(f"Job {self.job_id} failed: {error}")

    def cancel(self) -> None:
        """Request cancellation.

        Best-effort: a running job stops at the engine's next checkpoint and
        is then marked cancelled by its owner. An idle job is cancelled at
        once; a terminal job is left untouched.
        """
        with self._lock:
            if self._state in TERMINAL_JOB_STATES:
                return
            self.cancel_token.cancel()
            if self._state == JobState.IDLE:
                self._finish(JobState.CANCELLED)
        logger.info(f"Job {self.job_id} cancellation requested")

    def mark_cancelled(self) -> None:
        with self._lock:
            self._require(JobState.RUNNING, JobState.CANCELLED)
            self._finish(JobState.CANCELLED)
        logger.info(f"Job {self.job_id} cancelled")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, expected: str, target: str) -> None:
        if self._state != expected:
            raise RuntimeError(
                ErrorMessages.ILLEGAL_TRANSITION.format(self.job_id, self._state, target)
            )

    def _finish(self, state: str) -> None:
        self._state = state
        self._progress = 100
        self.end_time = self._clock()
