"""Structured telemetry for dictionary builds and rhyme searches.

A :class:`StructuredTelemetry` instance collects phase timings, counters,
annotations and progress messages for one *run* (a build or a search) and
fans every event out to registered listeners. :class:`TelemetryLogger` is the
stock listener that forwards events to the project logger; the build pipeline
also uses a listener to relay progress strings to its caller.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from copy import deepcopy
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .observability import get_logger

TelemetryListener = Callable[[str, Dict[str, Any]], None]


class StructuredTelemetry:
    """Thread-safe collector for timings, counters and progress events."""

    def __init__(
        self,
        time_fn: Optional[Callable[[], float]] = None,
        *,
        max_events: int = 256,
        listeners: Optional[Iterable[TelemetryListener]] = None,
    ) -> None:
        self._time_fn = time_fn or time.perf_counter
        self._max_events = max(1, int(max_events))
        self._lock = threading.RLock()
        self._run_id = 0
        self._listeners: List[TelemetryListener] = list(listeners or [])
        self._reset_state()

    def _reset_state(self) -> None:
        self._timings: Dict[str, Dict[str, float]] = {}
        self._counters: Dict[str, float] = {}
        self._events: List[Dict[str, Any]] = []
        self._metadata: Dict[str, Any] = {}
        self._run_name: Optional[str] = None

    def _append_event_locked(self, event: Dict[str, Any]) -> None:
        self._events.append(event)
        if len(self._events) > self._max_events:
            self._events = self._events[-self._max_events :]

    def _listeners_snapshot(self) -> Tuple[TelemetryListener, ...]:
        with self._lock:
            return tuple(self._listeners)

    def _notify(self, event_type: str, payload: Dict[str, Any]) -> None:
        for listener in self._listeners_snapshot():
            listener(event_type, dict(payload))

    def now(self) -> float:
        return float(self._time_fn())

    def start_run(self, name: str) -> int:
        """Discard collected state and start a new named run."""

        with self._lock:
            self._run_id += 1
            self._reset_state()
            self._run_name = name
            self._metadata["run_name"] = name
            self._metadata["start_time"] = self.now()
            run_id = self._run_id

        self._notify("run_started", {"run_id": run_id, "name": name})
        return run_id

    def record_timing(
        self,
        name: str,
        duration: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        duration = max(0.0, float(duration))
        details = dict(metadata) if metadata else {}
        with self._lock:
            bucket = self._timings.setdefault(
                name, {"count": 0, "total": 0.0, "min": duration, "max": duration}
            )
            bucket["count"] += 1
            bucket["total"] += duration
            bucket["min"] = min(bucket["min"], duration)
            bucket["max"] = max(bucket["max"], duration)

            event: Dict[str, Any] = {"type": "timing", "name": name, "duration": duration}
            if details:
                event["metadata"] = details
            self._append_event_locked(event)

        self._notify("timing", {"name": name, "duration": duration, "metadata": details})

    @contextmanager
    def timer(
        self,
        name: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Time the body of the ``with`` block as phase ``name``.

        The yielded dict may be filled in by the caller; its contents are
        attached to the timing event when the block exits.
        """

        payload: Dict[str, Any] = dict(metadata) if metadata else {}
        start = self.now()
        self._notify("timer_started", {"name": name, "metadata": dict(payload)})
        try:
            yield payload
        finally:
            self.record_timing(name, self.now() - start, payload)

    def increment(self, name: str, amount: float = 1.0) -> None:
        value = float(amount)
        with self._lock:
            self._counters[name] = self._counters.get(name, 0.0) + value
            current = self._counters[name]

        self._notify("counter", {"name": name, "delta": value, "value": current})

    def annotate(self, key: str, value: Any) -> None:
        with self._lock:
            self._metadata[key] = value

        self._notify("metadata", {"key": key, "value": value})

    def progress(self, message: str) -> None:
        """Record a human-readable progress line for the current run."""

        with self._lock:
            self._append_event_locked({"type": "progress", "message": message})

        self._notify("progress", {"name": message, "message": message})

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep copy of everything collected for the current run."""

        with self._lock:
            return deepcopy(
                {
                    "run_id": self._run_id,
                    "name": self._run_name,
                    "timings": self._timings,
                    "counters": self._counters,
                    "events": self._events,
                    "metadata": self._metadata,
                }
            )

    def add_listener(self, listener: TelemetryListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: TelemetryListener) -> None:
        with self._lock:
            self._listeners = [entry for entry in self._listeners if entry is not listener]


class TelemetryLogger:
    """Listener that emits telemetry activity to the project logger."""

    def __init__(
        self,
        *,
        logger: Optional[logging.LoggerAdapter] = None,
        level: int = logging.INFO,
        level_map: Optional[Dict[str, int]] = None,
    ) -> None:
        self._logger = logger or get_logger(__name__).bind(component="telemetry")
        self._default_level = level
        self._level_map = dict(level_map or {})

    def __call__(self, event_type: str, payload: Dict[str, Any]) -> None:
        level = self._level_map.get(event_type, self._default_level)
        if not self._logger.isEnabledFor(level):
            return

        context = {"telemetry.event": event_type}
        context.update({str(key): value for key, value in payload.items()})

        name = payload.get("name") or payload.get("key") or payload.get("run_id") or "event"
        self._logger.log(level, f"Telemetry {event_type}: {name}", context=context)


__all__ = ["StructuredTelemetry", "TelemetryLogger", "TelemetryListener"]
