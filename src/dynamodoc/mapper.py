from __future__ import annotations

import json
from collections.abc import Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .errors import ValidationError

if TYPE_CHECKING:
    from .model import AttributeDefinition

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()

_ELEMENT_TYPES = {"SS": "S", "NS": "N", "BS": "B"}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _to_wire(value: Any) -> Any:
    # TypeSerializer rejects float; route it through its string form so 0.1 stays 0.1
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(k): _to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_wire(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_to_wire(v) for v in value}
    return value


def _from_wire(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, Binary):
        return bytes(value.value)
    if isinstance(value, dict):
        return {k: _from_wire(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_wire(v) for v in value]
    if isinstance(value, set):
        return {_from_wire(v) for v in value}
    return value


def _check_type(type_code: str, value: Any) -> bool:
    if type_code == "S":
        return isinstance(value, str)
    if type_code == "N":
        return _is_number(value)
    if type_code == "B":
        return isinstance(value, (bytes, bytearray))
    if type_code == "BOOL":
        return isinstance(value, bool)
    if type_code == "SS":
        return isinstance(value, (set, frozenset)) and all(isinstance(v, str) for v in value)
    if type_code == "NS":
        return isinstance(value, (set, frozenset)) and all(_is_number(v) for v in value)
    if type_code == "BS":
        return isinstance(value, (set, frozenset)) and all(isinstance(v, (bytes, bytearray)) for v in value)
    if type_code == "L":
        return isinstance(value, (list, tuple))
    if type_code == "M":
        return isinstance(value, Mapping)
    return False


class AttributeMapper:
    """Codec between one field's application value and its native attribute value.

    The type code declared on the field decides which Python values are
    accepted; everything else is rejected before a request is built.
    """

    def __init__(self, definition: AttributeDefinition) -> None:
        self.definition = definition

    @property
    def field_name(self) -> str:
        return self.definition.python_name

    @property
    def type(self) -> str:
        return "S" if self.definition.json else self.definition.type

    def to_db(self, value: Any) -> dict[str, Any]:
        attr = self.definition
        if value is None:
            raise ValidationError(f"{attr.python_name}: value is required")

        if attr.converter is not None:
            value = attr.converter.to_dynamodb(value)
        if attr.json:
            value = json.dumps(_from_wire(value), separators=(",", ":"), sort_keys=True)

        type_code = self.type
        if not _check_type(type_code, value):
            raise ValidationError(
                f"{attr.python_name}: expected {type_code} value, got {type(value).__name__}"
            )
        if type_code in {"SS", "NS", "BS"} and not value:
            raise ValidationError(f"{attr.python_name}: sets must not be empty")
        if type_code == "B":
            return {"B": bytes(value)}

        try:
            return _serializer.serialize(_to_wire(value))
        except (TypeError, ValueError) as err:
            raise ValidationError(f"{attr.python_name}: {err}") from err

    def element_to_db(self, value: Any) -> dict[str, Any]:
        """Encode one member of a set or list field (CONTAINS operands).

        Non-collection fields encode the value as a whole, so CONTAINS on a
        string field is a substring test.
        """
        type_code = self.type
        if type_code not in _ELEMENT_TYPES and type_code != "L":
            return self.to_db(value)

        name = self.definition.python_name
        if value is None:
            raise ValidationError(f"{name}: value is required")
        if type_code == "L":
            element = _to_wire(value)
        else:
            element_type = _ELEMENT_TYPES[type_code]
            if not _check_type(element_type, value):
                raise ValidationError(f"{name}: expected {element_type} element, got {type(value).__name__}")
            if element_type == "B":
                return {"B": bytes(value)}
            element = _to_wire(value)

        try:
            return _serializer.serialize(element)
        except (TypeError, ValueError) as err:
            raise ValidationError(f"{name}: {err}") from err

    def from_db(self, av: Mapping[str, Any]) -> Any:
        attr = self.definition
        raw = _from_wire(_deserializer.deserialize(dict(av)))
        if attr.json and isinstance(raw, str):
            raw = json.loads(raw)
        if attr.converter is not None and raw is not None:
            raw = attr.converter.from_dynamodb(raw)
        return raw

    def __repr__(self) -> str:
        return f"AttributeMapper({self.field_name!r}, {self.type!r})"
