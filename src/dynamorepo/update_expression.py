from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any, ClassVar

from .codec import key_attributes
from .errors import ConflictingUpdateError, InvalidSliceTypeError, ValidationError
from .expression import ExpressionBuilder
from .key import Key
from .validation import validate_key


class UpdateKind(StrEnum):
    SET = "Set"
    SET_IF_NOT_EXISTS = "SetIfNotExists"
    SET_SET = "SetSet"
    SET_EXPR = "SetExpr"
    ADD = "Add"


@dataclass(frozen=True)
class Set:
    kind: ClassVar[UpdateKind] = UpdateKind.SET
    path: str
    value: Any


@dataclass(frozen=True)
class SetIfNotExists:
    kind: ClassVar[UpdateKind] = UpdateKind.SET_IF_NOT_EXISTS
    path: str
    value: Any


@dataclass(frozen=True)
class SetSet:
    kind: ClassVar[UpdateKind] = UpdateKind.SET_SET
    path: str
    values: Any


@dataclass(frozen=True)
class SetExpr:
    kind: ClassVar[UpdateKind] = UpdateKind.SET_EXPR
    expression: str
    args: tuple[Any, ...]

    @property
    def path(self) -> str:
        return self.expression


@dataclass(frozen=True)
class Add:
    kind: ClassVar[UpdateKind] = UpdateKind.ADD
    path: str
    value: Any


type UpdateAction = Set | SetIfNotExists | SetSet | SetExpr | Add
type UpdateExpressions = Mapping[str, Mapping[str, Any]]
type Updates = UpdateExpressions | Sequence[UpdateAction]


def as_argument_list(value: Any) -> tuple[Any, ...]:
    if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Sequence):
        raise InvalidSliceTypeError()
    if len(value) == 0:
        raise InvalidSliceTypeError("SetExpr requires at least one argument")
    return tuple(value)


def actions_for(kind: UpdateKind | str, values: Mapping[str, Any]) -> list[UpdateAction]:
    try:
        kind = UpdateKind(kind)
    except ValueError as err:
        raise ValidationError(f"unsupported update expression: {kind}") from err

    out: list[UpdateAction] = []
    for path, value in values.items():
        if kind is UpdateKind.SET:
            out.append(Set(path, value))
        elif kind is UpdateKind.SET_IF_NOT_EXISTS:
            out.append(SetIfNotExists(path, value))
        elif kind is UpdateKind.SET_SET:
            out.append(SetSet(path, value))
        elif kind is UpdateKind.SET_EXPR:
            out.append(SetExpr(path, as_argument_list(value)))
        else:
            out.append(Add(path, value))
    return out


def normalize_updates(updates: Updates) -> list[UpdateAction]:
    if isinstance(updates, Mapping):
        actions: list[UpdateAction] = []
        for kind, values in updates.items():
            actions.extend(actions_for(kind, values))
    else:
        actions = list(updates)

    seen: dict[str, UpdateKind] = {}
    for action in actions:
        previous = seen.get(action.path)
        if previous is not None:
            raise ConflictingUpdateError(path=action.path, kinds=(str(previous), str(action.kind)))
        seen[action.path] = action.kind
    return actions


def _normalize_set(value: Any) -> set[Any]:
    if isinstance(value, (set, frozenset)):
        return set(value)
    if isinstance(value, (list, tuple)):
        return set(value)
    raise ValidationError("SetSet and Add require a set value")


def compile_update(
    key: Key,
    updates: Updates,
    *,
    condition: str | None = None,
    condition_args: Sequence[Any] = (),
    return_values: str | None = None,
) -> dict[str, Any]:
    validate_key(key)
    actions = normalize_updates(updates)
    if not actions:
        raise ValidationError("no updates provided")

    builder = ExpressionBuilder()
    set_parts: list[str] = []
    remove_parts: list[str] = []
    add_parts: list[str] = []

    for action in actions:
        if isinstance(action, Set):
            ref = builder.path_ref(action.path)
            if action.value is None:
                remove_parts.append(ref)
            else:
                set_parts.append(f"{ref} = {builder.value_ref(action.value)}")
            continue

        if isinstance(action, SetIfNotExists):
            ref = builder.path_ref(action.path)
            set_parts.append(f"{ref} = if_not_exists({ref}, {builder.value_ref(action.value)})")
            continue

        if isinstance(action, SetSet):
            ref = builder.path_ref(action.path)
            values = _normalize_set(action.values) if action.values is not None else set()
            if not values:
                remove_parts.append(ref)
            else:
                set_parts.append(f"{ref} = {builder.value_ref(values)}")
            continue

        if isinstance(action, SetExpr):
            set_parts.append(builder.compile(action.expression, action.args))
            continue

        if isinstance(action, Add):
            ref = builder.path_ref(action.path)
            value = action.value
            if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, set, frozenset, list, tuple)):
                raise ValidationError("ADD requires a numeric or set value")
            if not isinstance(value, (int, float, Decimal)):
                value = _normalize_set(value)
                if not value:
                    raise ValidationError("ADD requires a non-empty set")
            add_parts.append(f"{ref} {builder.value_ref(value)}")
            continue

        raise ValidationError(f"unsupported update action: {type(action).__name__}")

    expr_parts: list[str] = []
    if set_parts:
        expr_parts.append("SET " + ", ".join(set_parts))
    if remove_parts:
        expr_parts.append("REMOVE " + ", ".join(remove_parts))
    if add_parts:
        expr_parts.append("ADD " + ", ".join(add_parts))

    req: dict[str, Any] = {
        "TableName": key.table_name,
        "Key": key_attributes(key),
        "UpdateExpression": " ".join(expr_parts),
    }
    if condition is not None:
        req["ConditionExpression"] = builder.compile(condition, condition_args)
    if return_values is not None:
        req["ReturnValues"] = return_values

    return builder.apply(req)
