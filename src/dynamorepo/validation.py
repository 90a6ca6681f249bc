from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import (
    InvalidHashKeyNameError,
    InvalidHashKeyValueError,
    InvalidTableNameError,
    ValidationError,
)
from .key import Key

MaxFieldNameLength = 255
MaxNestedDepth = 32

_LIST_INDEX = re.compile(r"\[([0-9]+)\]")


def validate_key(key: Key) -> None:
    validate_table_name(key)
    if key.hash_key_name is None:
        raise InvalidHashKeyNameError()
    if key.hash_key is None:
        raise InvalidHashKeyValueError()


def validate_table_name(key: Key) -> None:
    if not key.table_name:
        raise InvalidTableNameError()


@dataclass(frozen=True)
class PathSegment:
    name: str
    indexes: tuple[int, ...] = ()


def parse_field_path(path: str) -> tuple[PathSegment, ...]:
    if not path:
        raise ValidationError("field path cannot be empty")
    if len(path) > MaxFieldNameLength:
        raise ValidationError("field path exceeds maximum length")

    parts = path.split(".")
    if len(parts) > MaxNestedDepth:
        raise ValidationError("nested field depth exceeds maximum")

    return tuple(_parse_segment(part, path) for part in parts)


def _parse_segment(part: str, path: str) -> PathSegment:
    open_bracket = part.find("[")
    if open_bracket < 0:
        if not part or "]" in part:
            raise ValidationError(f"invalid field path: {path}")
        return PathSegment(name=part)

    name = part[:open_bracket]
    rest = part[open_bracket:]
    if not name:
        raise ValidationError(f"invalid field path: {path}")

    indexes: list[int] = []
    pos = 0
    while pos < len(rest):
        match = _LIST_INDEX.match(rest, pos)
        if match is None:
            raise ValidationError(f"invalid list index in field path: {path}")
        indexes.append(int(match.group(1)))
        pos = match.end()

    return PathSegment(name=name, indexes=tuple(indexes))
