from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import CONDITIONAL_CHECK_FAILED, is_conditional_check_failed
from .batch import batch_get, batch_write, check_batch_keys, delete_requests, put_requests, require_sequence
from .codec import ItemCodec, key_attributes
from .errors import ModelRequiredError, ValidationError
from .expression import ExpressionBuilder
from .index import NO_ITEM_FOUND, GlobalIndex
from .iterator import ScanIterator
from .key import Key, Query
from .log import LoggingRepositoryLogger, RepositoryLogger, TraceContext
from .metrics import (
    MetricNameDeleteItemsCount,
    MetricNameSavedItemsCount,
    MetricNameUpdatedItemsCount,
    MetricsPublisher,
    NullMetricsPublisher,
)
from .model import VERSION_ATTRIBUTE, Model, utc_now
from .query import build_query_request, decode_cursor, query_all
from .update_expression import UpdateKind, Updates, actions_for, compile_update
from .validation import validate_key, validate_table_name

_OPTIMISTIC_LOCK_CONDITION = f"attribute_not_exists('{VERSION_ATTRIBUTE}') OR '{VERSION_ATTRIBUTE}' = ?"


class Repository[T]:
    """Typed access to DynamoDB items of one shape.

    Not-found reads return ``None`` (or an empty list), conditional writes report
    a failed condition as ``False`` (or ``None``), and every other store error
    is logged and re-raised unchanged. Keys are validated before any request is
    sent.
    """

    def __init__(
        self,
        codec: ItemCodec[T],
        *,
        client: Any | None = None,
        logger: RepositoryLogger | None = None,
        metrics: MetricsPublisher | None = None,
        max_batch_retries: int = 5,
        sleep: Callable[[float], None] | None = time.sleep,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        if max_batch_retries < 0:
            raise ValidationError("max_batch_retries must be >= 0")
        if client is None:
            from .runtime import create_dynamodb_client

            client = create_dynamodb_client()

        self._codec = codec
        self._client: Any = client
        self._logger: RepositoryLogger = logger if logger is not None else LoggingRepositoryLogger()
        self._metrics: MetricsPublisher = metrics if metrics is not None else NullMetricsPublisher()
        self._max_batch_retries = max_batch_retries
        self._sleep = sleep
        self._now = now

    @property
    def client(self) -> Any:
        return self._client

    @property
    def codec(self) -> ItemCodec[T]:
        return self._codec

    @contextmanager
    def _logged(self, table: str, trace_context: TraceContext | None) -> Iterator[None]:
        try:
            yield
        except Exception as err:
            self._logger.error(table, str(err), trace_context=trace_context)
            raise

    def _publish(self, table: str, metric_name: str, value: float, trace_context: TraceContext | None) -> None:
        try:
            self._metrics.publish(table, metric_name, value, trace_context=trace_context)
        except Exception as err:
            self._logger.error(table, f"publish {metric_name} failed: {err}", trace_context=trace_context)

    def _conditional_failed(self, table: str, err: ClientError, trace_context: TraceContext | None) -> bool:
        if is_conditional_check_failed(err):
            self._logger.info(table, CONDITIONAL_CHECK_FAILED, trace_context=trace_context)
            return True
        self._logger.error(table, str(err), trace_context=trace_context)
        return False

    def index(self, name: str) -> GlobalIndex[T]:
        return GlobalIndex(name, self._codec, client=self._client, logger=self._logger)

    def get_item(self, key: Key, *, trace_context: TraceContext | None = None) -> T | None:
        if key.index_name:
            return self.index(key.index_name).get_item(key, trace_context=trace_context)

        with self._logged(key.table_name, trace_context):
            validate_key(key)
            resp = self._client.get_item(TableName=key.table_name, Key=key_attributes(key))

        item = resp.get("Item")
        if not item:
            self._logger.info(key.table_name, NO_ITEM_FOUND, trace_context=trace_context)
            return None
        return self._codec.decode(item)

    def save_item(self, key: Key, item: T, *, trace_context: TraceContext | None = None) -> None:
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            self._client.put_item(TableName=key.table_name, Item=self._codec.encode(item))

        self._publish(key.table_name, MetricNameSavedItemsCount, 1, trace_context)

    def update(
        self,
        kind: UpdateKind | str,
        key: Key,
        values: Mapping[str, Any],
        *,
        trace_context: TraceContext | None = None,
    ) -> None:
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            actions = actions_for(kind, values)
        self.update_with_expressions(key, actions, trace_context=trace_context)

    def update_with_expressions(
        self,
        key: Key,
        updates: Updates,
        *,
        trace_context: TraceContext | None = None,
    ) -> None:
        with self._logged(key.table_name, trace_context):
            req = compile_update(key, updates)
            self._client.update_item(**req)

        self._publish(key.table_name, MetricNameUpdatedItemsCount, 1, trace_context)

    def update_with_expressions_and_return_value(
        self,
        key: Key,
        updates: Updates,
        *,
        trace_context: TraceContext | None = None,
    ) -> T | None:
        with self._logged(key.table_name, trace_context):
            req = compile_update(key, updates, return_values="ALL_NEW")
            resp = self._client.update_item(**req)

        self._publish(key.table_name, MetricNameUpdatedItemsCount, 1, trace_context)
        attrs = resp.get("Attributes")
        if not attrs:
            return None
        return self._codec.decode(attrs)

    def conditional_update_with_expressions_and_return_value(
        self,
        key: Key,
        updates: Updates,
        expression: str,
        *args: Any,
        trace_context: TraceContext | None = None,
    ) -> T | None:
        with self._logged(key.table_name, trace_context):
            req = compile_update(
                key,
                updates,
                condition=expression,
                condition_args=args,
                return_values="ALL_NEW",
            )

        try:
            resp = self._client.update_item(**req)
        except ClientError as err:
            if self._conditional_failed(key.table_name, err, trace_context):
                return None
            raise
        except Exception as err:
            self._logger.error(key.table_name, str(err), trace_context=trace_context)
            raise

        self._publish(key.table_name, MetricNameUpdatedItemsCount, 1, trace_context)
        attrs = resp.get("Attributes")
        if not attrs:
            return None
        return self._codec.decode(attrs)

    def delete_item(self, key: Key, *, trace_context: TraceContext | None = None) -> None:
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            self._client.delete_item(TableName=key.table_name, Key=key_attributes(key))

        self._publish(key.table_name, MetricNameDeleteItemsCount, 1, trace_context)

    def save_items(self, key: Key, items: Sequence[T], *, trace_context: TraceContext | None = None) -> int:
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            require_sequence(items)
            encoded = [self._codec.encode(item) for item in items]

        if not encoded:
            return 0

        count = batch_write(
            self._client,
            key.table_name,
            put_requests(encoded),
            operation="save_items",
            logger=self._logger,
            trace_context=trace_context,
            max_retries=self._max_batch_retries,
            sleep=self._sleep,
        )
        self._publish(key.table_name, MetricNameSavedItemsCount, count, trace_context)
        return count

    def delete_items(self, keys: Sequence[Key], *, trace_context: TraceContext | None = None) -> int:
        table = _first_table(keys)
        with self._logged(table, trace_context):
            require_sequence(keys)
            if not keys:
                return 0
            check_batch_keys(keys, operation="delete_items")

        count = batch_write(
            self._client,
            table,
            delete_requests(keys),
            operation="delete_items",
            logger=self._logger,
            trace_context=trace_context,
            max_retries=self._max_batch_retries,
            sleep=self._sleep,
        )
        self._publish(table, MetricNameDeleteItemsCount, count, trace_context)
        return count

    def get_items(self, key: Key, *, trace_context: TraceContext | None = None) -> list[T]:
        return self._query(key, use_range=False, trace_context=trace_context)

    def query(self, query: Query, *, trace_context: TraceContext | None = None) -> list[T]:
        return self._query(query, use_range=True, trace_context=trace_context)

    def _query(self, key: Key, *, use_range: bool, trace_context: TraceContext | None) -> list[T]:
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            req = build_query_request(key, use_range=use_range)
            items = query_all(self._client, req)

        if not items:
            self._logger.info(key.table_name, NO_ITEM_FOUND, trace_context=trace_context)
            return []
        return [self._codec.decode(item) for item in items]

    def batch_get_items(self, keys: Sequence[Key], *, trace_context: TraceContext | None = None) -> list[T]:
        table = _first_table(keys)
        with self._logged(table, trace_context):
            require_sequence(keys)
            if not keys:
                return []
            check_batch_keys(keys, operation="batch_get_items")

        items = batch_get(
            self._client,
            table,
            keys,
            operation="batch_get_items",
            logger=self._logger,
            trace_context=trace_context,
            max_retries=self._max_batch_retries,
            sleep=self._sleep,
        )
        if not items:
            self._logger.info(table, NO_ITEM_FOUND, trace_context=trace_context)
            return []
        return [self._codec.decode(item) for item in items]

    def optimistic_lock_save(self, key: Key, item: T, *, trace_context: TraceContext | None = None) -> bool:
        """Write ``item`` only if the stored version still equals the item's version.

        The item's version is increased and its timestamps are set before the
        write; those changes stay on the item even when the write is rejected.
        """
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            if not isinstance(item, Model):
                raise ModelRequiredError(type(item).__name__)

        current_version = item.get_version()
        item.increase_version()
        item.init_created_at(self._now)
        item.init_updated_at(self._now)

        if not self._put_if(key, item, _OPTIMISTIC_LOCK_CONDITION, (current_version,), trace_context):
            return False
        self._publish(key.table_name, MetricNameSavedItemsCount, 1, trace_context)
        return True

    def conditional_update(
        self,
        key: Key,
        item: T,
        expression: str,
        *args: Any,
        trace_context: TraceContext | None = None,
    ) -> bool:
        with self._logged(key.table_name, trace_context):
            validate_key(key)

        if not self._put_if(key, item, expression, args, trace_context):
            return False
        self._publish(key.table_name, MetricNameUpdatedItemsCount, 1, trace_context)
        return True

    def _put_if(
        self,
        key: Key,
        item: T,
        expression: str,
        args: Sequence[Any],
        trace_context: TraceContext | None,
    ) -> bool:
        with self._logged(key.table_name, trace_context):
            builder = ExpressionBuilder()
            req: dict[str, Any] = {
                "TableName": key.table_name,
                "Item": self._codec.encode(item),
                "ConditionExpression": builder.compile(expression, args),
            }
            builder.apply(req)

        try:
            self._client.put_item(**req)
        except ClientError as err:
            if self._conditional_failed(key.table_name, err, trace_context):
                return False
            raise
        except Exception as err:
            self._logger.error(key.table_name, str(err), trace_context=trace_context)
            raise
        return True

    def scan_iterator(
        self,
        key: Key,
        search_limit: int | None = None,
        cursor: str | None = None,
        *,
        trace_context: TraceContext | None = None,
    ) -> ScanIterator[T]:
        """Return an iterator over every item of the key's table (or index).

        ``cursor`` is a token previously read from :attr:`ScanIterator.cursor`.
        """
        with self._logged(key.table_name, trace_context):
            validate_table_name(key)
            start_key = None
            if cursor:
                try:
                    decoded = decode_cursor(cursor)
                except ValueError as err:
                    raise ValidationError("invalid cursor") from err
                if decoded.table is not None and decoded.table != key.table_name:
                    raise ValidationError("cursor table does not match scan")
                if decoded.index != key.index_name:
                    raise ValidationError("cursor index does not match scan")
                start_key = decoded.last_key

            return ScanIterator(
                self._client,
                self._codec,
                table_name=key.table_name,
                search_limit=search_limit,
                index_name=key.index_name,
                start_key=start_key,
                logger=self._logger,
                trace_context=trace_context,
            )


def _first_table(keys: Any) -> str:
    if isinstance(keys, Sequence) and keys and isinstance(keys[0], Key):
        return keys[0].table_name
    return ""
