"""
Duration metrics for channel observability.

One measured span == one METRIC_TIMER JSONL event, emitted through
observability.logger. Nothing is aggregated in-process.

Spans are plain values held by their owner (e.g. the ConnectionManager
holds the span for the transport currently opening). Dropping a span
without finishing it emits nothing, so there is no registry to leak.

Durations use the monotonic clock; the event's ts_ms is wall-clock for
correlation with other log lines.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from observability.logger import log_event


METRIC_EVENT_TYPE = "METRIC_TIMER"


@dataclass(frozen=True)
class Span:
    """A started measurement. Finish it with finish_span()."""

    name: str
    started_ns: int


def start_span(name: str) -> Span:
    return Span(name=name, started_ns=time.monotonic_ns())


def elapsed_ms(span: Span) -> int:
    return (time.monotonic_ns() - span.started_ns) // 1_000_000


def finish_span(
    span: Span,
    *,
    channel_id: str | None = None,
    status: str | None = None,
    details: dict[str, Any] | None = None,
) -> int:
    """
    Emit the metric event for a span and return its duration in ms.

    Finishing the same span twice emits twice; owners clear their
    reference after finishing.
    """
    duration_ms = elapsed_ms(span)
    log_event({
        "ts_ms": time.time_ns() // 1_000_000,
        "event_type": METRIC_EVENT_TYPE,
        "metric": span.name,
        "value_ms": duration_ms,
        "channel_id": channel_id,
        "status": status,
        "details": details or {},
    })
    return duration_ms


@contextmanager
def timed(
    name: str,
    *,
    channel_id: str | None = None,
    status: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """
    Measure a block. The metric is emitted even if the block raises.

        with timed("channel_shutdown", channel_id=manager.channel_id):
            await manager.shutdown()
    """
    span = start_span(name)
    try:
        yield span
    finally:
        finish_span(span, channel_id=channel_id, status=status, details=details)
