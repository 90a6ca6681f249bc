from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .codec import key_attributes
from .errors import BatchRetryExceededError, CrossTableBatchError, InvalidSliceTypeError, ValidationError
from .key import Key
from .log import NullRepositoryLogger, RepositoryLogger, TraceContext
from .validation import validate_key

MaxBatchWriteSize = 25
MaxBatchGetSize = 100


def _backoff_seconds(attempt: int) -> float:
    seconds = 0.05 * (2.0 ** (attempt - 1))
    if seconds > 1.0:
        return 1.0
    return seconds


def _chunked[T](items: Sequence[T], size: int) -> Sequence[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


def require_sequence(value: Any) -> Sequence[Any]:
    if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
        raise InvalidSliceTypeError()
    return value


def check_batch_keys(keys: Sequence[Key], *, operation: str) -> Key:
    if not keys:
        raise ValidationError(f"{operation}: keys are required")

    for key in keys:
        validate_key(key)

    tables = tuple(sorted({key.table_name for key in keys}))
    if len(tables) > 1:
        raise CrossTableBatchError(operation=operation, tables=tables)

    first = keys[0]
    schema = _key_schema(first)
    for key in keys[1:]:
        if _key_schema(key) != schema:
            raise ValidationError(f"{operation}: all keys must use the same key attributes")
    return first


def _key_schema(key: Key) -> tuple[str | None, str | None]:
    return key.hash_key_name, key.range_key_name if key.has_range else None


def batch_write(
    client: Any,
    table_name: str,
    requests: Sequence[Mapping[str, Any]],
    *,
    operation: str,
    logger: RepositoryLogger | None = None,
    trace_context: TraceContext | None = None,
    max_retries: int = 5,
    sleep: Callable[[float], None] | None = time.sleep,
) -> int:
    if max_retries < 0:
        raise ValidationError("max_retries must be >= 0")

    log = logger or NullRepositoryLogger()
    processed = 0

    for chunk in _chunked(requests, MaxBatchWriteSize):
        pending = list(chunk)
        attempts = 0

        while pending:
            try:
                resp = client.batch_write_item(RequestItems={table_name: pending})
            except Exception as err:
                log.error(
                    table_name,
                    f"{operation} failed after {processed} processed items: {err}",
                    trace_context=trace_context,
                )
                raise

            unprocessed = resp.get("UnprocessedItems", {}).get(table_name, []) or []
            processed += len(pending) - len(unprocessed)
            pending = list(unprocessed)
            if pending:
                if attempts >= max_retries:
                    log.error(
                        table_name,
                        f"{operation} gave up with {len(pending)} unprocessed items",
                        trace_context=trace_context,
                    )
                    raise BatchRetryExceededError(
                        operation=operation,
                        unprocessed_count=len(pending),
                        processed_count=processed,
                    )
                attempts += 1
                if sleep is not None:
                    sleep(_backoff_seconds(attempts))

    return processed


def put_requests(items: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [{"PutRequest": {"Item": dict(item)}} for item in items]


def delete_requests(keys: Sequence[Key]) -> list[dict[str, Any]]:
    return [{"DeleteRequest": {"Key": key_attributes(key)}} for key in keys]


def batch_get(
    client: Any,
    table_name: str,
    keys: Sequence[Key],
    *,
    operation: str = "batch_get",
    logger: RepositoryLogger | None = None,
    trace_context: TraceContext | None = None,
    max_retries: int = 5,
    sleep: Callable[[float], None] | None = time.sleep,
) -> list[Mapping[str, Any]]:
    if max_retries < 0:
        raise ValidationError("max_retries must be >= 0")

    log = logger or NullRepositoryLogger()
    out: list[Mapping[str, Any]] = []

    for chunk in _chunked(keys, MaxBatchGetSize):
        pending_keys: list[Any] = [key_attributes(key) for key in chunk]
        attempts = 0

        while pending_keys:
            try:
                resp = client.batch_get_item(RequestItems={table_name: {"Keys": pending_keys}})
            except Exception as err:
                log.error(
                    table_name,
                    f"{operation} failed after {len(out)} items: {err}",
                    trace_context=trace_context,
                )
                raise

            out.extend(resp.get("Responses", {}).get(table_name, []))

            pending_keys = resp.get("UnprocessedKeys", {}).get(table_name, {}).get("Keys") or []
            if pending_keys:
                if attempts >= max_retries:
                    log.error(
                        table_name,
                        f"{operation} gave up with {len(pending_keys)} unprocessed keys",
                        trace_context=trace_context,
                    )
                    raise BatchRetryExceededError(
                        operation=operation,
                        unprocessed_count=len(pending_keys),
                        processed_count=len(out),
                    )
                attempts += 1
                if sleep is not None:
                    sleep(_backoff_seconds(attempts))

    return out
