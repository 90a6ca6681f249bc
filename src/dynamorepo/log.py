from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

type TraceContext = Mapping[str, Any]

TABLE_NAME_FIELD = "table_name"
TRACE_CONTEXT_FIELD = "trace_context"


class RepositoryLogger(Protocol):
    def info(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None: ...

    def warning(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None: ...

    def error(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None: ...


class NullRepositoryLogger:
    def info(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        return None

    def warning(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        return None

    def error(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        return None


class LoggingRepositoryLogger:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("dynamorepo")

    def info(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        self._log(logging.INFO, table, message, trace_context)

    def warning(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        self._log(logging.WARNING, table, message, trace_context)

    def error(self, table: str, message: str, *, trace_context: TraceContext | None = None) -> None:
        self._log(logging.ERROR, table, message, trace_context)

    def _log(self, level: int, table: str, message: str, trace_context: TraceContext | None) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra: dict[str, Any] = {TABLE_NAME_FIELD: table}
        if trace_context is not None:
            extra[TRACE_CONTEXT_FIELD] = dict(trace_context)
        self._logger.log(level, "[%s] %s", table, message, extra=extra)
