from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

import yaml

from .errors import ValidationError
from .model import AttributeDefinition, Schema

SCHEMA_DOCUMENT_VERSION = "1"


def parse_schema_document(raw: str) -> dict[str, Any]:
    """Parse a YAML (or JSON) schema document and check its envelope.

    Example::

        schema_version: "1"
        tables:
          - name: scores
            keys: {player: HASH, game: RANGE}
            attributes:
              - {field: player, type: S}
              - {field: game, type: S}
              - {field: nickname, attribute: nick, type: S}
    """
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as err:
        raise ValidationError("invalid schema YAML/JSON") from err

    if not isinstance(parsed, dict):
        raise ValidationError("schema document must be a map/object")

    _assert_json_compatible(parsed, path="document")

    version = parsed.get("schema_version")
    if version != SCHEMA_DOCUMENT_VERSION:
        raise ValidationError(f"unsupported schema_version: {version!r}")

    tables = parsed.get("tables")
    if not isinstance(tables, list) or len(tables) == 0:
        raise ValidationError("schema document must include tables[]")

    return parsed


def get_table_document(doc: Mapping[str, Any], name: str) -> dict[str, Any]:
    tables = doc.get("tables")
    if not isinstance(tables, list):
        raise ValidationError("schema document missing tables[]")
    for table in tables:
        if isinstance(table, dict) and table.get("name") == name:
            return cast(dict[str, Any], table)
    raise ValidationError(f"table not found in schema document: {name}")


def schema_from_document(table_doc: Mapping[str, Any]) -> Schema:
    name = table_doc.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError("table entry missing name")

    keys = table_doc.get("keys")
    if not isinstance(keys, dict) or not keys:
        raise ValidationError(f"table {name}: missing keys")

    entries = table_doc.get("attributes")
    if not isinstance(entries, list) or not entries:
        raise ValidationError(f"table {name}: missing attributes[]")

    attributes: dict[str, AttributeDefinition] = {}
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError(f"table {name}: attributes[{idx}] must be a map")
        field_name = entry.get("field")
        type_code = entry.get("type")
        if not isinstance(field_name, str) or not field_name:
            raise ValidationError(f"table {name}: attributes[{idx}] missing field")
        if not isinstance(type_code, str) or not type_code:
            raise ValidationError(f"table {name}: {field_name} missing type")
        attributes[field_name] = AttributeDefinition(
            python_name=field_name,
            attribute_name=str(entry.get("attribute") or field_name),
            type=type_code,
            json=bool(entry.get("json", False)),
        )

    return Schema.define(keys=keys, attributes=attributes, table_name=name)


def schema_to_document(schema: Schema) -> dict[str, Any]:
    """Render a schema as a table entry (converters are not representable)."""
    attributes: list[dict[str, Any]] = []
    for field_name, attr in schema.attributes.items():
        entry: dict[str, Any] = {"field": field_name, "type": attr.type}
        if attr.attribute_name != field_name:
            entry["attribute"] = attr.attribute_name
        if attr.json:
            entry["json"] = True
        attributes.append(entry)

    out: dict[str, Any] = {"keys": schema.keys, "attributes": attributes}
    if schema.table_name:
        out = {"name": schema.table_name, **out}
    return out


def load_schema(raw: str, name: str) -> Schema:
    return schema_from_document(get_table_document(parse_schema_document(raw), name))


def dump_schema_document(*schemas: Schema) -> str:
    doc = {
        "schema_version": SCHEMA_DOCUMENT_VERSION,
        "tables": [schema_to_document(s) for s in schemas],
    }
    return yaml.safe_dump(doc, sort_keys=False)


def _assert_json_compatible(value: Any, *, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int, float)):
        if isinstance(value, float) and not (value == value and value not in (float("inf"), float("-inf"))):
            raise ValidationError(f"schema document contains non-finite float at {path}")
        return

    if isinstance(value, list):
        for idx, elem in enumerate(value):
            _assert_json_compatible(elem, path=f"{path}[{idx}]")
        return

    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise ValidationError(f"schema document contains non-string key at {path}: {k!r}")
            _assert_json_compatible(v, path=f"{path}.{k}")
        return

    raise ValidationError(f"schema document contains non-JSON value at {path}: {type(value).__name__}")
