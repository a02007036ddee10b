"""
Health file writer for the exporter daemon.

Writes a JSON health file at a configurable path with three fields:
- last_poll_ts: ISO timestamp of the most recent poll attempt.
- device_count: Number of devices known from discovery.
- sample_count: Number of samples produced by the most recent poll.

The file is rewritten on every state change, providing a simple liveness
signal that Docker HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-16: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes exporter health status to a JSON file.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_poll_ts: str | None = None
        self._device_count: int = 0
        self._sample_count: int = 0

    def record_poll(self, *, device_count: int, sample_count: int) -> None:
        """Record a poll attempt with its device and sample counts."""
        self._last_poll_ts = datetime.now(tz=UTC).isoformat()
        self._device_count = device_count
        self._sample_count = sample_count
        self._write()

    def _write(self) -> None:
        data = {
            "last_poll_ts": self._last_poll_ts,
            "device_count": self._device_count,
            "sample_count": self._sample_count,
        }
        self.path.write_text(json.dumps(data))
