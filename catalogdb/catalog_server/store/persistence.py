"""
Snapshot persistence for the catalog store.

The whole catalog is written to one JSON file:

    {
      "entities": [{"entity": {...}, "locationKey": "file:/x.yaml"}, ...],
      "locations": [{"id": "...", "type": "file", "target": "/x.yaml"}, ...]
    }

The file is rewritten wholesale on every flush. There is no incremental
format and no write-ahead log.

Invariants:
    - Writes are atomic (temp file in the same directory + os.replace)
    - A missing snapshot is not an error
    - At most one flush timer is pending per scheduler

How to change safely:
    - Only add keys to the snapshot object, never rename existing ones
    - Test reload against snapshots written by older versions
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..entity import EntityEnvelope, Location
from ..errors import SnapshotError

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


@dataclass
class SnapshotState:
    """Decoded contents of a snapshot file."""

    entities: list[EntityEnvelope] = field(default_factory=list)
    locations: list[Location] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entities": [envelope.to_dict() for envelope in self.entities],
            "locations": [location.to_dict() for location in self.locations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SnapshotState:
        """Decode a snapshot object.

        Raises:
            ValueError: If the object does not have the snapshot layout
            ValidationError: If an envelope or location is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Snapshot root must be an object")
        entities = data.get("entities", [])
        locations = data.get("locations", [])
        if not isinstance(entities, list) or not isinstance(locations, list):
            raise ValueError("Snapshot 'entities' and 'locations' must be lists")
        return cls(
            entities=[EntityEnvelope.model_validate(item) for item in entities],
            locations=[Location.model_validate(item) for item in locations],
        )


def read_snapshot(path: Path) -> SnapshotState | None:
    """Read a snapshot file.

    Args:
        path: Snapshot file path

    Returns:
        Decoded state, or None if the file does not exist

    Raises:
        SnapshotError: If the file exists but cannot be read or decoded
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotError(f"Cannot read snapshot: {e}", path=str(path)) from e

    try:
        return SnapshotState.from_dict(json.loads(text))
    except (ValueError, ValidationError) as e:
        raise SnapshotError(f"Corrupt snapshot: {e}", path=str(path)) from e


def write_snapshot(path: Path, state: SnapshotState) -> None:
    """Atomically replace the snapshot file.

    Creates parent directories as needed.

    Raises:
        SnapshotError: If the file cannot be written
    """
    tmp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        json_string = json.dumps(state.to_dict(), indent=2, ensure_ascii=False)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            tmp_path = Path(tmp_file.name)
            tmp_file.write(json_string)
        os.replace(tmp_path, path)
        logger.debug("Snapshot written", extra={"path": str(path), "bytes": len(json_string)})
    except (OSError, TypeError, ValueError) as e:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        raise SnapshotError(f"Cannot write snapshot: {e}", path=str(path)) from e


def _daemon_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


class FlushScheduler:
    """Single cancellable deferred callback.

    Every ``arm()`` cancels the pending timer (if any) and starts a new
    one, so a burst of calls within the delay collapses into one callback.

    Attributes:
        delay: Seconds between the last arm() and the callback
        callback: Function run when the timer fires

    Example:
        >>> scheduler = FlushScheduler(1.0, store.flush)
        >>> scheduler.arm()
        >>> scheduler.arm()  # replaces the first timer
        >>> scheduler.cancel()
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        timer_factory: TimerFactory | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            delay: Debounce delay in seconds
            callback: Function to run when the delay elapses
            timer_factory: Builds a timer object with start()/cancel();
                defaults to a daemon threading.Timer
        """
        self.delay = delay
        self.callback = callback
        self._timer_factory = timer_factory or _daemon_timer
        self._timer: Any = None
        # Bumped on every arm/cancel so a timer that fires late is ignored
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        """Whether a callback is scheduled."""
        return self._timer is not None

    def arm(self) -> None:
        """(Re)start the timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._timer = self._timer_factory(self.delay, lambda: self._fire(generation))
            self._timer.start()

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        self.callback()

