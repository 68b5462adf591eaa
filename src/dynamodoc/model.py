from __future__ import annotations

import types
from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from decimal import Decimal
from functools import cached_property
from typing import Any, Protocol, Union, cast, get_args, get_origin, get_type_hints

from .errors import UnknownFieldError, ValidationError
from .mapper import AttributeMapper

ATTRIBUTE_TYPES = frozenset({"S", "N", "B", "BOOL", "SS", "NS", "BS", "L", "M"})
KEY_ATTRIBUTE_TYPES = frozenset({"S", "N", "B"})
KEY_TYPES = frozenset({"HASH", "RANGE"})


class SchemaDefinitionError(ValueError):
    pass


class AttributeConverter(Protocol):
    def to_dynamodb(self, value: Any) -> Any: ...

    def from_dynamodb(self, value: Any) -> Any: ...


@dataclass(frozen=True)
class AttributeDefinition:
    python_name: str
    attribute_name: str
    type: str
    key_type: str | None = None
    json: bool = False
    converter: AttributeConverter | None = None


def schema_field(
    *,
    name: str | None = None,
    type: str | None = None,
    roles: Sequence[str] | None = None,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("schema_field: cannot set both default and default_factory")

    opts: dict[str, Any] = {
        "json": json,
        "converter": converter,
        "ignore": ignore,
    }
    if name is not None:
        opts["name"] = name
    if type is not None:
        opts["type"] = type
    if roles is not None:
        opts["roles"] = list(roles)

    return field(default=default, default_factory=default_factory, metadata={"dynamodoc": opts})


def _unwrap_optional(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is not Union and origin is not types.UnionType:
        return annotation
    args = get_args(annotation)
    non_none = [a for a in args if a is not type(None)]  # noqa: E721
    if len(args) == 2 and len(non_none) == 1:
        return non_none[0]
    return annotation


def _infer_type(annotation: Any) -> str | None:
    annotation = _unwrap_optional(annotation)
    origin = get_origin(annotation) or annotation

    if annotation is bool:
        return "BOOL"
    if annotation is str:
        return "S"
    if annotation in {int, float, Decimal}:
        return "N"
    if annotation in {bytes, bytearray}:
        return "B"
    if origin in {set, frozenset}:
        (elem,) = get_args(annotation) or (Any,)
        if elem is str:
            return "SS"
        if elem in {int, float, Decimal}:
            return "NS"
        if elem in {bytes, bytearray}:
            return "BS"
        return None
    if origin in {list, tuple}:
        return "L"
    if origin in {dict, Mapping}:
        return "M"
    return None


@dataclass(frozen=True)
class Schema:
    """Field registry for one table: key layout, native types and per-field mappers."""

    attributes: Mapping[str, AttributeDefinition]
    hash_key: AttributeDefinition
    range_key: AttributeDefinition | None = None
    table_name: str | None = None

    def __post_init__(self) -> None:
        for name, attr in self.attributes.items():
            if attr.type not in ATTRIBUTE_TYPES:
                raise SchemaDefinitionError(f"unsupported attribute type for {name}: {attr.type}")
        for key in (self.hash_key, self.range_key):
            if key is None:
                continue
            if key.json or key.type not in KEY_ATTRIBUTE_TYPES:
                raise SchemaDefinitionError(f"key attribute must be S/N/B: {key.python_name}")

    @classmethod
    def define(
        cls,
        *,
        keys: Mapping[str, str],
        attributes: Mapping[str, str | AttributeDefinition],
        table_name: str | None = None,
    ) -> Schema:
        resolved: dict[str, AttributeDefinition] = {}
        for name, declared in attributes.items():
            if isinstance(declared, AttributeDefinition):
                resolved[name] = declared
            else:
                resolved[name] = AttributeDefinition(python_name=name, attribute_name=name, type=declared)

        hash_fields: list[str] = []
        range_fields: list[str] = []
        for name, key_type in keys.items():
            if key_type not in KEY_TYPES:
                raise SchemaDefinitionError(f"unsupported key type for {name}: {key_type}")
            if name not in resolved:
                raise SchemaDefinitionError(f"key field is not a declared attribute: {name}")
            (hash_fields if key_type == "HASH" else range_fields).append(name)
            attr = resolved[name]
            resolved[name] = AttributeDefinition(
                python_name=attr.python_name,
                attribute_name=attr.attribute_name,
                type=attr.type,
                key_type=key_type,
                json=attr.json,
                converter=attr.converter,
            )

        return cls._build(resolved, hash_fields, range_fields, table_name)

    @classmethod
    def from_dataclass(cls, model_type: type[Any], *, table_name: str | None = None) -> Schema:
        if not is_dataclass(model_type):
            raise SchemaDefinitionError("model_type must be a dataclass")

        try:
            hints = get_type_hints(model_type, include_extras=True)
        except Exception:
            hints = getattr(model_type, "__annotations__", {})

        resolved: dict[str, AttributeDefinition] = {}
        hash_fields: list[str] = []
        range_fields: list[str] = []

        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get("dynamodoc", {}))
            if opts.get("ignore", False):
                continue

            roles = tuple(cast(list[str], opts.get("roles", [])))
            key_type: str | None = None
            if "pk" in roles:
                hash_fields.append(dc_field.name)
                key_type = "HASH"
            if "sk" in roles:
                range_fields.append(dc_field.name)
                key_type = "RANGE"

            converter = cast(AttributeConverter | None, opts.get("converter"))
            type_code = cast(str | None, opts.get("type"))
            is_json = bool(opts.get("json", False))
            if type_code is None:
                if is_json:
                    type_code = "S"
                elif converter is not None:
                    raise SchemaDefinitionError(f"fields with a converter must declare type: {dc_field.name}")
                else:
                    type_code = _infer_type(hints.get(dc_field.name, Any))
            if type_code is None:
                raise SchemaDefinitionError(f"cannot infer attribute type for field: {dc_field.name}")

            resolved[dc_field.name] = AttributeDefinition(
                python_name=dc_field.name,
                attribute_name=cast(str, opts.get("name", dc_field.name)),
                type=type_code,
                key_type=key_type,
                json=is_json,
                converter=converter,
            )

        return cls._build(resolved, hash_fields, range_fields, table_name)

    @classmethod
    def _build(
        cls,
        attributes: dict[str, AttributeDefinition],
        hash_fields: list[str],
        range_fields: list[str],
        table_name: str | None,
    ) -> Schema:
        if len(hash_fields) != 1:
            raise SchemaDefinitionError(f"schema must define exactly one hash key (found {len(hash_fields)})")
        if len(range_fields) > 1:
            raise SchemaDefinitionError(f"schema must define at most one range key (found {len(range_fields)})")
        if set(hash_fields) & set(range_fields):
            raise SchemaDefinitionError(f"field cannot be both hash and range key: {hash_fields[0]}")

        seen: dict[str, str] = {}
        for name, attr in attributes.items():
            other = seen.setdefault(attr.attribute_name, name)
            if other != name:
                raise SchemaDefinitionError(f"duplicate attribute name {attr.attribute_name!r}: {other}, {name}")

        return cls(
            attributes=attributes,
            hash_key=attributes[hash_fields[0]],
            range_key=attributes[range_fields[0]] if range_fields else None,
            table_name=table_name,
        )

    @cached_property
    def mappers(self) -> dict[str, AttributeMapper]:
        return {name: AttributeMapper(attr) for name, attr in self.attributes.items()}

    @property
    def keys(self) -> dict[str, str]:
        out = {self.hash_key.python_name: "HASH"}
        if self.range_key is not None:
            out[self.range_key.python_name] = "RANGE"
        return out

    def mapper_for(self, field_name: str) -> AttributeMapper:
        try:
            return self.mappers[field_name]
        except KeyError:
            raise UnknownFieldError(field_name) from None

    def map_to_db(self, record: Any) -> dict[str, Any]:
        if is_dataclass(record) and not isinstance(record, type):
            values = {f.name: getattr(record, f.name) for f in fields(record) if f.name in self.attributes}
        elif isinstance(record, Mapping):
            values = dict(record)
        else:
            raise ValidationError(f"record must be a mapping or dataclass instance, got {type(record).__name__}")

        out: dict[str, Any] = {}
        for field_name, value in values.items():
            mapper = self.mapper_for(str(field_name))
            # the store cannot hold empty sets; an empty set means "absent"
            if value is None or (isinstance(value, (set, frozenset)) and not value):
                continue
            out[mapper.definition.attribute_name] = mapper.to_db(value)
        return out

    def map_from_db(self, item: Mapping[str, Any] | None) -> dict[str, Any] | None:
        if item is None:
            return None

        out: dict[str, Any] = {}
        for field_name, mapper in self.mappers.items():
            attribute_name = mapper.definition.attribute_name
            if attribute_name not in item:
                continue
            out[field_name] = mapper.from_db(item[attribute_name])
        return out

    def key_schema(self) -> list[dict[str, str]]:
        out = [{"AttributeName": self.hash_key.attribute_name, "KeyType": "HASH"}]
        if self.range_key is not None:
            out.append({"AttributeName": self.range_key.attribute_name, "KeyType": "RANGE"})
        return out

    def attribute_definitions(self) -> list[dict[str, str]]:
        out = [{"AttributeName": self.hash_key.attribute_name, "AttributeType": self.hash_key.type}]
        if self.range_key is not None:
            out.append({"AttributeName": self.range_key.attribute_name, "AttributeType": self.range_key.type})
        return out
