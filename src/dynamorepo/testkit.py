from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from .log import TraceContext
from .mocks import ANY, FakeCloudWatchClient, FakeDynamoDBClient, client_error


@dataclass(frozen=True)
class LogRecord:
    level: str
    table: str
    message: str
    trace_context: TraceContext | None = None


@dataclass
class RecordingLogger:
    records: list[LogRecord] = field(default_factory=list)

    def info(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        self.records.append(LogRecord("info", table, message, trace_context))

    def warning(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        self.records.append(LogRecord("warning", table, message, trace_context))

    def error(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        self.records.append(LogRecord("error", table, message, trace_context))

    def at(self, level: str) -> list[LogRecord]:
        return [r for r in self.records if r.level == level]


@dataclass(frozen=True)
class PublishedMetric:
    table: str
    metric_name: str
    value: float
    trace_context: TraceContext | None = None


@dataclass
class RecordingMetrics:
    published: list[PublishedMetric] = field(default_factory=list)
    error: Exception | None = None

    def publish(
        self,
        table: str,
        metric_name: str,
        value: float,
        *,
        trace_context: TraceContext | None = None,
    ) -> None:
        self.published.append(PublishedMetric(table, metric_name, value, trace_context))
        if self.error is not None:
            raise self.error


def no_sleep(_: float) -> None:
    return None


def fixed_clock(start: datetime, *, step: timedelta = timedelta(0)) -> Callable[[], datetime]:
    current = [start]

    def now() -> datetime:
        value = current[0]
        current[0] = value + step
        return value

    return now


def item_response(item: dict[str, Any] | None) -> dict[str, Any]:
    if item is None:
        return {}
    return {"Item": item}


__all__ = [
    "ANY",
    "FakeCloudWatchClient",
    "FakeDynamoDBClient",
    "LogRecord",
    "PublishedMetric",
    "RecordingLogger",
    "RecordingMetrics",
    "client_error",
    "fixed_clock",
    "item_response",
    "no_sleep",
]
