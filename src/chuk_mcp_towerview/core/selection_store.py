"""
Persisted tower selection — the last location the user picked.

A single entry stored as ``{"lat": ..., "lng": ...}``. Without a path the
entry lives in memory for the lifetime of the process.
"""

import logging
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .grid import GeoPoint

logger = logging.getLogger(__name__)


class StoredSelection(BaseModel):
    """On-disk shape of the saved selection."""

    model_config = ConfigDict(extra="ignore")

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class SelectionStore:
    """Load and overwrite the last selected tower location."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else None
        self._memory: GeoPoint | None = None
        self._lock = threading.Lock()

    def load(self) -> GeoPoint | None:
        """Return the saved location, or None when nothing usable is stored."""
        with self._lock:
            if self.path is None:
                return self._memory
            if not self.path.exists():
                return None
            try:
                stored = StoredSelection.model_validate_json(self.path.read_text())
            except (OSError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable selection file {self.path}: {e}")
                return None
            return GeoPoint(latitude=stored.lat, longitude=stored.lng)

    def save(self, point: GeoPoint) -> None:
        """Overwrite the saved location."""
        with self._lock:
            if self.path is None:
                self._memory = point
                return
            stored = StoredSelection(lat=point.latitude, lng=point.longitude)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(stored.model_dump_json())
        logger.debug(f"Saved tower selection ({point.latitude}, {point.longitude})")
