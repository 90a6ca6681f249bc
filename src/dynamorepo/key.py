from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Any, Self


class Operator(StrEnum):
    EQUAL = "EQ"
    NOT_EQUAL = "NE"
    LESS = "LT"
    LESS_OR_EQUAL = "LE"
    GREATER = "GT"
    GREATER_OR_EQUAL = "GE"
    BEGINS_WITH = "BEGINS_WITH"
    BETWEEN = "BETWEEN"


@dataclass(frozen=True)
class Key:
    table_name: str = ""
    hash_key_name: str | None = None
    hash_key: Any = None
    range_key_name: str | None = None
    range_key: Any = None
    index_name: str | None = None

    def with_table_name(self, table_name: str) -> Self:
        return replace(self, table_name=table_name)

    def with_hash_key_name(self, hash_key_name: str) -> Self:
        return replace(self, hash_key_name=hash_key_name)

    def with_hash_key(self, hash_key: Any) -> Self:
        return replace(self, hash_key=hash_key)

    def with_range_key_name(self, range_key_name: str) -> Self:
        return replace(self, range_key_name=range_key_name)

    def with_range_key(self, range_key: Any) -> Self:
        return replace(self, range_key=range_key)

    def with_index_name(self, index_name: str) -> Self:
        return replace(self, index_name=index_name)

    @property
    def has_range(self) -> bool:
        return self.range_key_name is not None and self.range_key is not None


@dataclass(frozen=True)
class Query(Key):
    range_op: Operator = Operator.EQUAL
    limit: int | None = None
    descending: bool = False

    def with_range_op(self, range_op: Operator | str) -> Query:
        return replace(self, range_op=Operator(range_op))

    def with_limit(self, limit: int) -> Query:
        return replace(self, limit=limit)

    def with_descending(self, descending: bool = True) -> Query:
        return replace(self, descending=descending)
