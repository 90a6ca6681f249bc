from __future__ import annotations

import base64
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError
from .expression import ExpressionBuilder
from .key import Key, Operator, Query

_COMPARISONS = {
    Operator.EQUAL: "=",
    Operator.LESS: "<",
    Operator.LESS_OR_EQUAL: "<=",
    Operator.GREATER: ">",
    Operator.GREATER_OR_EQUAL: ">=",
}


def key_condition(builder: ExpressionBuilder, key: Key, *, use_range: bool = True) -> str:
    op = key.range_op if isinstance(key, Query) else Operator.EQUAL
    expr = f"{builder.name_ref(str(key.hash_key_name))} = {builder.value_ref(key.hash_key)}"
    if not use_range or not key.has_range:
        return expr

    name = builder.name_ref(str(key.range_key_name))
    value = key.range_key

    if op in _COMPARISONS:
        return f"{expr} AND {name} {_COMPARISONS[op]} {builder.value_ref(value)}"
    if op is Operator.BEGINS_WITH:
        return f"{expr} AND begins_with({name}, {builder.value_ref(value)})"
    if op is Operator.BETWEEN:
        if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
            raise ValidationError("BETWEEN requires a (low, high) range key value")
        if len(value) != 2:
            raise ValidationError("BETWEEN requires two values")
        low = builder.value_ref(value[0])
        high = builder.value_ref(value[1])
        return f"{expr} AND {name} BETWEEN {low} AND {high}"
    raise ValidationError(f"unsupported range key operator for key conditions: {op}")


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, Any]
    table: str | None = None
    index: str | None = None


_SCALAR_KINDS = {"S", "N", "BOOL", "NULL", "SS", "NS"}


def _encode_av(av: Any) -> Any:
    if not isinstance(av, dict) or len(av) != 1:
        raise ValueError("attribute value must be a single-key map")
    ((kind, value),) = av.items()
    if kind in _SCALAR_KINDS:
        return {kind: value}
    if kind == "B":
        return {"B": base64.b64encode(bytes(value)).decode("ascii")}
    if kind == "BS":
        return {"BS": [base64.b64encode(bytes(v)).decode("ascii") for v in value]}
    if kind == "L":
        return {"L": [_encode_av(v) for v in value]}
    if kind == "M":
        return {"M": {str(k): _encode_av(v) for k, v in sorted(value.items())}}
    raise ValueError(f"unsupported attribute value type: {kind}")


def _string_list(kind: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{kind} value must be a list of strings")
    return value


def _decode_av(enc: Any) -> Any:
    if not isinstance(enc, dict) or len(enc) != 1:
        raise ValueError("attribute value must be a single-key map")
    ((kind, value),) = enc.items()
    if kind in ("S", "N"):
        if not isinstance(value, str):
            raise ValueError(f"{kind} value must be a string")
        return {kind: value}
    if kind == "BOOL":
        if not isinstance(value, bool):
            raise ValueError("BOOL value must be a boolean")
        return {kind: value}
    if kind == "NULL":
        if value is not True:
            raise ValueError("NULL value must be true")
        return {kind: True}
    if kind in ("SS", "NS"):
        return {kind: _string_list(kind, value)}
    if kind == "B":
        if not isinstance(value, str):
            raise ValueError("B value must be a base64 string")
        return {"B": base64.b64decode(value)}
    if kind == "BS":
        return {"BS": [base64.b64decode(v) for v in _string_list(kind, value)]}
    if kind == "L":
        if not isinstance(value, list):
            raise ValueError("L value must be a list")
        return {"L": [_decode_av(v) for v in value]}
    if kind == "M":
        if not isinstance(value, dict):
            raise ValueError("M value must be a map")
        return {"M": {str(k): _decode_av(v) for k, v in value.items()}}
    raise ValueError(f"unsupported attribute value type: {kind}")


def encode_cursor(last_key: Mapping[str, Any] | None, *, table: str | None = None, index: str | None = None) -> str:
    if not last_key:
        return ""
    if not isinstance(last_key, Mapping):
        raise ValueError("last_key must be a map")

    payload: dict[str, Any] = {"lastKey": {str(k): _encode_av(v) for k, v in sorted(last_key.items())}}
    if table is not None:
        payload["table"] = table
    if index is not None:
        payload["index"] = index

    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> Cursor:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValueError("cursor lastKey is invalid")

    table = parsed.get("table")
    index = parsed.get("index")
    return Cursor(
        last_key={str(k): _decode_av(v) for k, v in last_key_raw.items()},
        table=table if isinstance(table, str) else None,
        index=index if isinstance(index, str) else None,
    )


def build_query_request(key: Key, *, index_name: str | None = None, use_range: bool = True) -> dict[str, Any]:
    builder = ExpressionBuilder()
    req: dict[str, Any] = {
        "TableName": key.table_name,
        "KeyConditionExpression": key_condition(builder, key, use_range=use_range),
    }

    index = index_name or key.index_name
    if index:
        req["IndexName"] = index

    if isinstance(key, Query):
        if key.limit is not None:
            if key.limit <= 0:
                raise ValidationError("limit must be > 0")
            req["Limit"] = key.limit
        req["ScanIndexForward"] = not key.descending

    return builder.apply(req)


def query_all(client: Any, req: Mapping[str, Any]) -> list[dict[str, Any]]:
    limit = req.get("Limit")
    out: list[dict[str, Any]] = []
    start_key: Any = None

    while True:
        page_req = dict(req)
        if start_key:
            page_req["ExclusiveStartKey"] = start_key
        if limit is not None:
            page_req["Limit"] = limit - len(out)

        resp = client.query(**page_req)
        out.extend(resp.get("Items", []))

        start_key = resp.get("LastEvaluatedKey")
        if not start_key:
            break
        if limit is not None and len(out) >= limit:
            break

    if limit is not None:
        return out[:limit]
    return out
