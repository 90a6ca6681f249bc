from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .codec import serialize
from .errors import ValidationError
from .validation import parse_field_path

MaxExpressionLength = 4096


class ExpressionBuilder:
    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        self._name_refs: dict[str, str] = {}
        self._values: dict[str, Any] = {}

    @property
    def attribute_names(self) -> dict[str, str]:
        return dict(self._names)

    @property
    def attribute_values(self) -> dict[str, Any]:
        return dict(self._values)

    def name_ref(self, name: str) -> str:
        if not name:
            raise ValidationError("attribute name cannot be empty")
        ref = self._name_refs.get(name)
        if ref is None:
            ref = f"#n{len(self._name_refs)}"
            self._name_refs[name] = ref
            self._names[ref] = name
        return ref

    def path_ref(self, path: str) -> str:
        parts: list[str] = []
        for segment in parse_field_path(path):
            part = self.name_ref(segment.name)
            for index in segment.indexes:
                part += f"[{index}]"
            parts.append(part)
        return ".".join(parts)

    def value_ref(self, value: Any) -> str:
        ref = f":v{len(self._values)}"
        self._values[ref] = serialize(value)
        return ref

    def compile(self, template: str, args: Sequence[Any] = ()) -> str:
        if not template or not template.strip():
            raise ValidationError("expression cannot be empty")
        if len(template) > MaxExpressionLength:
            raise ValidationError("expression exceeds maximum length")

        out: list[str] = []
        remaining = list(args)
        pos = 0
        while pos < len(template):
            ch = template[pos]
            if ch == "?":
                if not remaining:
                    raise ValidationError(f"not enough arguments for expression: {template}")
                out.append(self.value_ref(remaining.pop(0)))
                pos += 1
                continue
            if ch == "$":
                if not remaining:
                    raise ValidationError(f"not enough arguments for expression: {template}")
                path = remaining.pop(0)
                if not isinstance(path, str):
                    raise ValidationError("$ placeholder requires a string attribute path")
                out.append(self.path_ref(path))
                pos += 1
                continue
            if ch == "'":
                end = template.find("'", pos + 1)
                if end < 0:
                    raise ValidationError(f"unterminated quoted name in expression: {template}")
                out.append(self.name_ref(template[pos + 1 : end]))
                pos = end + 1
                continue
            out.append(ch)
            pos += 1

        if remaining:
            raise ValidationError(f"too many arguments for expression: {template}")
        return "".join(out)

    def apply(self, req: dict[str, Any]) -> dict[str, Any]:
        if self._names:
            req["ExpressionAttributeNames"] = self.attribute_names
        if self._values:
            req["ExpressionAttributeValues"] = self.attribute_values
        return req
