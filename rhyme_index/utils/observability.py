"""Logging, metrics and tracing helpers shared by the index and its services.

Metrics are backed by ``prometheus_client`` and spans by ``opentelemetry``.
The handles returned here hide registry bookkeeping so that modules can
declare their metrics at construction time without worrying about duplicate
registration when several instances (or test runs) create the same metric.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Optional

from opentelemetry import trace as otel_trace
from prometheus_client import REGISTRY
from prometheus_client import Counter as PromCounter
from prometheus_client import Histogram as PromHistogram

_TRACER_NAME = "rhyme_index"


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Adapter that renders bound and per-call context inline with messages."""

    def bind(self, **context: Any) -> "StructuredLoggerAdapter":
        merged = dict(self.extra)
        merged.update(context)
        return StructuredLoggerAdapter(self.logger, merged)

    def process(self, msg: str, kwargs: Dict[str, Any]):
        event_context: Dict[str, Any] = dict(self.extra)
        provided = kwargs.pop("context", None)
        if isinstance(provided, dict):
            event_context.update(provided)
        if event_context:
            try:
                payload = json.dumps(event_context, sort_keys=True, default=str)
            except TypeError:
                payload = json.dumps({str(k): str(v) for k, v in event_context.items()})
            msg = f"{msg} | {payload}"
        return msg, kwargs


def get_logger(name: str, **context: Any) -> StructuredLoggerAdapter:
    """Return a project logger with optional bound context."""

    return StructuredLoggerAdapter(logging.getLogger(name), context)


class _MetricWrapper:
    """Base wrapper providing ``labels`` passthrough for metrics."""

    def __init__(self, impl: Any = None) -> None:
        self._impl = impl

    def labels(self, **labels: Any):
        if self._impl is None:
            return self.__class__(None)
        return self.__class__(self._impl.labels(**labels))


class CounterHandle(_MetricWrapper):
    """Thin wrapper around a Prometheus counter."""

    def inc(self, amount: float = 1.0) -> None:
        if self._impl is None:
            return
        self._impl.inc(amount)


class HistogramHandle(_MetricWrapper):
    """Thin wrapper around a Prometheus histogram."""

    def observe(self, value: float) -> None:
        if self._impl is None:
            return
        self._impl.observe(value)

    @contextmanager
    def time(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(time.perf_counter() - start)


def _registered(name: str) -> Any:
    # prometheus_client keeps the collector under the base name and its suffixed
    # variants (``_total`` for counters), so either spelling finds it.
    collectors = getattr(REGISTRY, "_names_to_collectors", {})
    return collectors.get(name)


def create_counter(
    name: str,
    documentation: str,
    label_names: Optional[Iterable[str]] = None,
) -> CounterHandle:
    """Create (or reuse) a Prometheus counter."""

    try:
        impl = PromCounter(name, documentation, labelnames=tuple(label_names or ()))
    except ValueError:
        impl = _registered(name)
    return CounterHandle(impl)


def create_histogram(
    name: str,
    documentation: str,
    label_names: Optional[Iterable[str]] = None,
) -> HistogramHandle:
    """Create (or reuse) a Prometheus histogram."""

    try:
        impl = PromHistogram(name, documentation, labelnames=tuple(label_names or ()))
    except ValueError:
        impl = _registered(name)
    return HistogramHandle(impl)


@contextmanager
def start_span(name: str, attributes: Optional[Dict[str, Any]] = None):
    """Start an OpenTelemetry span named ``name`` with optional attributes."""

    tracer = otel_trace.get_tracer(_TRACER_NAME)
    with tracer.start_as_current_span(name) as span:
        if attributes:
            add_span_attributes(span, attributes)
        yield span


def add_span_attributes(span: Any, attributes: Dict[str, Any]) -> None:
    """Attach primitive ``attributes`` to ``span``."""

    if span is None:
        return
    for key, value in attributes.items():
        if not isinstance(key, str) or value is None:
            continue
        if not isinstance(value, (str, bool, int, float)):
            value = str(value)
        span.set_attribute(key, value)


def record_exception(span: Any, error: BaseException) -> None:
    """Log an exception on an active span."""

    if span is None:
        return
    span.record_exception(error)
    span.set_attribute("error", True)


__all__ = [
    "StructuredLoggerAdapter",
    "get_logger",
    "CounterHandle",
    "HistogramHandle",
    "create_counter",
    "create_histogram",
    "start_span",
    "add_span_attributes",
    "record_exception",
]
