from __future__ import annotations

import json
import types
from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from decimal import Decimal
from typing import Any, Protocol, Union, cast, get_args, get_origin, get_type_hints, overload

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .errors import ValidationError
from .key import Key

type AttributeMap = dict[str, Any]

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


class AttributeConverter(Protocol):
    def to_dynamodb(self, value: Any) -> Any: ...

    def from_dynamodb(self, value: Any) -> Any: ...


class ItemCodec[T](Protocol):
    def encode(self, item: T) -> AttributeMap: ...

    def decode(self, attrs: Mapping[str, Any]) -> T: ...


def _prepare(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(k): _prepare(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return {_prepare(v) for v in value}
    if isinstance(value, (list, tuple)):
        return [_prepare(v) for v in value]
    return value


def serialize(value: Any) -> Any:
    return _serializer.serialize(_prepare(value))


def deserialize(av: Mapping[str, Any]) -> Any:
    return _deserializer.deserialize(cast(Any, av))


def key_attributes(key: Key) -> AttributeMap:
    if key.hash_key_name is None:
        raise ValidationError("hash key name is required")
    out: AttributeMap = {key.hash_key_name: serialize(key.hash_key)}
    if key.has_range:
        out[cast(str, key.range_key_name)] = serialize(key.range_key)
    return out


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if value is False:
        return True
    if isinstance(value, (int, float, Decimal)) and value == 0:
        return True
    if isinstance(value, (str, bytes, bytearray)) and len(value) == 0:
        return True
    if isinstance(value, (list, dict, set, frozenset, tuple)) and len(value) == 0:
        return True
    return False


def _unwrap_optional(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _coerce_value(value: Any, annotation: Any) -> Any:
    if value is None:
        return None

    annotation = _unwrap_optional(annotation)

    if annotation is int and isinstance(value, Decimal):
        return int(value)
    if annotation is float and isinstance(value, Decimal):
        return float(value)

    origin = get_origin(annotation)
    if origin in (set, frozenset) and isinstance(value, set):
        (elem_type,) = get_args(annotation) or (Any,)
        return origin(_coerce_value(v, elem_type) for v in value)
    if origin is list and isinstance(value, list):
        (elem_type,) = get_args(annotation) or (Any,)
        return [_coerce_value(v, elem_type) for v in value]

    return value


@dataclass(frozen=True)
class AttributeDefinition:
    python_name: str
    attribute_name: str
    omitempty: bool
    set: bool
    json: bool
    converter: AttributeConverter | None = None


@overload
def repo_field(
    *,
    name: str | None = None,
    omitempty: bool = False,
    set_: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
) -> Any: ...


@overload
def repo_field(
    *,
    name: str | None = None,
    omitempty: bool = False,
    set_: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any,
) -> Any: ...


@overload
def repo_field(
    *,
    name: str | None = None,
    omitempty: bool = False,
    set_: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default_factory: Any,
) -> Any: ...


def repo_field(
    *,
    name: str | None = None,
    omitempty: bool = False,
    set_: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("repo_field: cannot set both default and default_factory")

    opts: dict[str, Any] = {
        "omitempty": omitempty,
        "set": set_,
        "json": json,
        "converter": converter,
        "ignore": ignore,
    }
    if name is not None:
        opts["name"] = name

    return field(default=default, default_factory=default_factory, metadata={"dynamorepo": opts})


class CodecDefinitionError(ValueError):
    pass


class DataclassCodec[T]:
    def __init__(self, model_type: type[T]) -> None:
        if not is_dataclass(model_type):
            raise CodecDefinitionError("model_type must be a dataclass")

        self._model_type = model_type
        try:
            self._annotations: dict[str, Any] = get_type_hints(model_type)
        except (NameError, TypeError):
            self._annotations = {}

        attributes: dict[str, AttributeDefinition] = {}
        seen_names: set[str] = set()
        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get("dynamorepo", {}))
            if bool(opts.get("ignore", False)):
                continue

            attribute_name = cast(str, opts.get("name", dc_field.name))
            if attribute_name in seen_names:
                raise CodecDefinitionError(f"duplicate attribute name: {attribute_name}")
            seen_names.add(attribute_name)

            attributes[dc_field.name] = AttributeDefinition(
                python_name=dc_field.name,
                attribute_name=attribute_name,
                omitempty=bool(opts.get("omitempty", False)),
                set=bool(opts.get("set", False)),
                json=bool(opts.get("json", False)),
                converter=cast(AttributeConverter | None, opts.get("converter")),
            )

        self._attributes = attributes

    @property
    def model_type(self) -> type[T]:
        return self._model_type

    @property
    def attributes(self) -> Mapping[str, AttributeDefinition]:
        return self._attributes

    def attribute_name(self, python_name: str) -> str:
        attr_def = self._attributes.get(python_name)
        if attr_def is None:
            raise ValidationError(f"unknown field: {python_name}")
        return attr_def.attribute_name

    def encode(self, item: T) -> AttributeMap:
        if not isinstance(item, self._model_type):
            raise ValidationError(f"item must be a {self._model_type.__name__} instance")

        out: AttributeMap = {}
        for field_name, attr_def in self._attributes.items():
            value = getattr(item, field_name)
            if attr_def.omitempty and _is_empty(value):
                continue
            out[attr_def.attribute_name] = self._serialize_attr_value(attr_def, value)
        return out

    def decode(self, attrs: Mapping[str, Any]) -> T:
        kwargs: dict[str, Any] = {}
        for field_name, attr_def in self._attributes.items():
            if attr_def.attribute_name not in attrs:
                continue

            raw = deserialize(attrs[attr_def.attribute_name])
            if attr_def.json and isinstance(raw, str):
                raw = json.loads(raw)
            if attr_def.converter is not None and raw is not None:
                raw = attr_def.converter.from_dynamodb(raw)

            kwargs[field_name] = _coerce_value(raw, self._annotations.get(field_name, Any))

        try:
            return self._model_type(**kwargs)
        except TypeError as err:
            raise ValidationError(str(err)) from err

    def _serialize_attr_value(self, attr_def: AttributeDefinition, value: Any) -> Any:
        if attr_def.converter is not None and value is not None:
            value = attr_def.converter.to_dynamodb(value)

        if attr_def.set and isinstance(value, (set, frozenset)) and len(value) == 0:
            return serialize(None)

        if attr_def.json and value is not None:
            value = json.dumps(value, separators=(",", ":"), sort_keys=True)

        if attr_def.set and isinstance(value, (list, tuple)):
            value = set(value)

        return serialize(value)


def decode_all[T](codec: ItemCodec[T], items: Sequence[Mapping[str, Any]]) -> list[T]:
    return [codec.decode(item) for item in items]
