from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .codec import ItemCodec, decode_all
from .errors import ValidationError
from .key import Key, Query
from .log import NullRepositoryLogger, RepositoryLogger, TraceContext
from .query import build_query_request, query_all
from .validation import validate_key

NO_ITEM_FOUND = "no item found"


class GlobalIndex[T]:
    def __init__(
        self,
        name: str,
        codec: ItemCodec[T],
        *,
        client: Any,
        logger: RepositoryLogger | None = None,
    ) -> None:
        if not name:
            raise ValidationError("index name is required")
        self._name = name
        self._codec = codec
        self._client = client
        self._logger: RepositoryLogger = logger or NullRepositoryLogger()

    @property
    def name(self) -> str:
        return self._name

    @contextmanager
    def _logged(self, table: str, trace_context: TraceContext | None) -> Iterator[None]:
        try:
            yield
        except Exception as err:
            self._logger.error(table, str(err), trace_context=trace_context)
            raise

    def get_item(self, key: Key, *, trace_context: TraceContext | None = None) -> T | None:
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            req = build_query_request(key, index_name=self._name)
            req["Limit"] = 1
            resp = self._client.query(**req)

        items = resp.get("Items") or []
        if not items:
            self._logger.info(key.table_name, NO_ITEM_FOUND, trace_context=trace_context)
            return None
        return self._codec.decode(items[0])

    def get_items(self, key: Key, *, trace_context: TraceContext | None = None) -> list[T]:
        return self._query(key, use_range=False, trace_context=trace_context)

    def get_items_with_range(self, key: Key, *, trace_context: TraceContext | None = None) -> list[T]:
        if not key.has_range:
            with self._logged(key.table_name, trace_context):
                raise ValidationError("range key name and value are required")
        return self._query(key, use_range=True, trace_context=trace_context)

    def query(self, query: Query, *, trace_context: TraceContext | None = None) -> list[T]:
        return self._query(query, use_range=True, trace_context=trace_context)

    def _query(self, key: Key, *, use_range: bool, trace_context: TraceContext | None) -> list[T]:
        with self._logged(key.table_name, trace_context):
            validate_key(key)
            req = build_query_request(key, index_name=self._name, use_range=use_range)
            items = query_all(self._client, req)

        if not items:
            self._logger.info(key.table_name, NO_ITEM_FOUND, trace_context=trace_context)
            return []
        return decode_all(self._codec, items)
