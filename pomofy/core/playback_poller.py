"""
Thread-safe playback snapshot refreshed by a background poll.

The snapshot is for display only; the interval engine never reads it.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from ..api.spotify import SpotifyClient
from ..errors import PomofyError
from .models import PlaybackSnapshot
from .ticker import PeriodicTask

logger = logging.getLogger("pomofy.poller")


class PlaybackPoller:
    """Poll ``/me/player`` every ``interval`` seconds while authenticated."""

    def __init__(
        self,
        client: SpotifyClient,
        interval: float = 5.0,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._interval = max(1.0, float(interval))
        self._clock = clock
        self._lock = threading.Lock()
        self._data: PlaybackSnapshot | None = None
        self._last_refresh: float = 0.0
        self._last_error: Optional[str] = None
        self._last_error_at: float = 0.0
        self._task = PeriodicTask("pomofy-playback-poller", self._interval, self.poll)

    def start(self) -> None:
        self._task.start()

    def stop(self) -> None:
        self._task.stop()

    def poll(self) -> bool:
        """Refresh the snapshot once.

        Returns:
            bool: True if the snapshot was refreshed
        """
        if not self._client.has_credentials():
            with self._lock:
                self._data = None
            return False

        try:
            payload = self._client.get_current_playback()
        except PomofyError as exc:
            logger.warning("Playback poll failed: %s", exc)
            with self._lock:
                self._last_error = str(exc)
                self._last_error_at = self._clock()
            return False

        now = self._clock()
        snapshot = PlaybackSnapshot.from_payload(payload, fetched_at=now) if payload else None
        with self._lock:
            self._data = snapshot
            self._last_refresh = now
            self._last_error = None
            self._last_error_at = 0.0
        return True

    def invalidate(self) -> None:
        """Drop the cached snapshot (after a playback command)."""
        with self._lock:
            self._last_refresh = 0.0

    def snapshot(self) -> tuple[Dict[str, Any] | None, Dict[str, Any]]:
        """Return the cached snapshot as a dict with metadata."""
        now = self._clock()
        with self._lock:
            data = self._data.to_dict() if self._data is not None else None
            age = (now - self._last_refresh) if self._last_refresh else None
            meta = {
                "fresh": age is not None and age < self._interval * 2,
                "age": age,
                "last_refresh": self._last_refresh or None,
                "last_error": self._last_error,
                "last_error_at": self._last_error_at or None,
                "interval": self._interval,
                "has_data": data is not None,
            }
        return data, meta
