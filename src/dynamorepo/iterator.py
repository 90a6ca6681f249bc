from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Literal

from .codec import ItemCodec
from .errors import IteratorFailedError, ValidationError
from .log import NullRepositoryLogger, RepositoryLogger, TraceContext
from .query import encode_cursor

type IteratorState = Literal["active", "exhausted", "failed"]


class ScanIterator[T](Iterator[T]):
    def __init__(
        self,
        client: Any,
        codec: ItemCodec[T],
        *,
        table_name: str,
        search_limit: int | None = None,
        index_name: str | None = None,
        start_key: Mapping[str, Any] | None = None,
        logger: RepositoryLogger | None = None,
        trace_context: TraceContext | None = None,
    ) -> None:
        if not table_name:
            raise ValidationError("table_name is required")
        if search_limit is not None and search_limit <= 0:
            raise ValidationError("search_limit must be > 0")

        self._client = client
        self._codec = codec
        self._table_name = table_name
        self._search_limit = search_limit
        self._index_name = index_name
        self._logger: RepositoryLogger = logger or NullRepositoryLogger()
        self._trace_context = trace_context

        self._page: list[Mapping[str, Any]] = []
        self._pos = 0
        self._last_key: dict[str, Any] | None = dict(start_key) if start_key else None
        self._started = False
        self._exhausted = False
        self._error: BaseException | None = None
        self.pages_fetched = 0

    @property
    def state(self) -> IteratorState:
        if self._error is not None:
            return "failed"
        if self._exhausted:
            return "exhausted"
        return "active"

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def cursor(self) -> str | None:
        # Resumes after the last fetched page; rows still buffered are not covered.
        if not self._last_key:
            return None
        return encode_cursor(self._last_key, table=self._table_name, index=self._index_name)

    def __iter__(self) -> ScanIterator[T]:
        return self

    def __next__(self) -> T:
        item = self.next_item()
        if item is None:
            raise StopIteration
        return item

    def next_item(self) -> T | None:
        if self._error is not None:
            raise IteratorFailedError(self._error)

        while True:
            if self._pos < len(self._page):
                raw = self._page[self._pos]
                self._pos += 1
                try:
                    return self._codec.decode(raw)
                except Exception as err:
                    self._fail(err)
                    raise

            if self._exhausted:
                return None

            if self._started and not self._last_key:
                self._exhausted = True
                return None

            self._fetch_page()

    def _fetch_page(self) -> None:
        req: dict[str, Any] = {"TableName": self._table_name}
        if self._search_limit is not None:
            req["Limit"] = self._search_limit
        if self._index_name is not None:
            req["IndexName"] = self._index_name
        if self._last_key:
            req["ExclusiveStartKey"] = self._last_key

        try:
            resp = self._client.scan(**req)
        except Exception as err:
            self._fail(err)
            raise

        self._started = True
        self.pages_fetched += 1
        self._page = list(resp.get("Items", []))
        self._pos = 0
        self._last_key = resp.get("LastEvaluatedKey") or None

    def _fail(self, err: BaseException) -> None:
        self._error = err
        self._logger.error(self._table_name, str(err), trace_context=self._trace_context)
