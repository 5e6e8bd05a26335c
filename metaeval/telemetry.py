"""Telemetry sinks for evaluation scores.

Emission is best-effort: a failing sink must never fail an evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from metaeval.engine.types import TelemetrySinkProtocol

logger = structlog.get_logger()


class NullTelemetrySink:
    """Drops every metric."""

    def track_metric(self, name: str, value: float, **tags: Any) -> None:
        return None


class StructlogTelemetrySink:
    """Writes metrics to the structured log stream."""

    def track_metric(self, name: str, value: float, **tags: Any) -> None:
        logger.info("metric", metric_name=name, value=value, **tags)


@dataclass
class RecordedMetric:
    name: str
    value: float
    tags: dict[str, Any] = field(default_factory=dict)


class InMemoryTelemetrySink:
    """Keeps metrics in a list. Useful for tests and local inspection."""

    def __init__(self) -> None:
        self.metrics: list[RecordedMetric] = []

    def track_metric(self, name: str, value: float, **tags: Any) -> None:
        self.metrics.append(RecordedMetric(name=name, value=value, tags=dict(tags)))

    def values(self, name: str) -> list[float]:
        return [m.value for m in self.metrics if m.name == name]


def emit_metric(
    sink: TelemetrySinkProtocol | None,
    name: str,
    value: float,
    **tags: Any,
) -> None:
    """Emit a metric, logging and swallowing any sink failure."""
    if sink is None:
        return
    try:
        sink.track_metric(name, value, **tags)
    except Exception as e:
        logger.warning("telemetry_emit_failed", metric_name=name, error=str(e))
