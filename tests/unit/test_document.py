from __future__ import annotations

import pytest

from dynamodoc import (
    Schema,
    SchemaDefinitionError,
    ValidationError,
    dump_schema_document,
    get_table_document,
    load_schema,
    parse_schema_document,
    schema_from_document,
    schema_to_document,
)
from dynamodoc.model import AttributeDefinition

DOCUMENT = """
schema_version: "1"
tables:
  - name: "scores"
    keys: { player: HASH, game: RANGE }
    attributes:
      - { field: player, type: S }
      - { field: game, type: S }
      - { field: points, type: N }
      - { field: nickname, attribute: nick, type: S }
      - { field: extra, type: M, json: true }
  - name: "players"
    keys: { id: HASH }
    attributes:
      - { field: id, type: S }
"""


def test_load_schema_builds_the_named_table() -> None:
    schema = load_schema(DOCUMENT, "scores")

    assert schema.table_name == "scores"
    assert schema.keys == {"player": "HASH", "game": "RANGE"}
    assert schema.attributes["nickname"].attribute_name == "nick"
    assert schema.attributes["extra"].json is True
    assert schema.map_to_db({"player": "ann", "game": "go", "nickname": "A"}) == {
        "player": {"S": "ann"},
        "game": {"S": "go"},
        "nick": {"S": "A"},
    }

    players = load_schema(DOCUMENT, "players")
    assert players.range_key is None


def test_json_documents_are_accepted() -> None:
    raw = '{"schema_version": "1", "tables": [{"name": "t", "keys": {"id": "HASH"}, "attributes": [{"field": "id", "type": "N"}]}]}'
    assert load_schema(raw, "t").hash_key.type == "N"


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("tables: [", "invalid schema YAML/JSON"),
        ("- a\n- b\n", "must be a map/object"),
        ('schema_version: "2"\ntables: [{}]\n', "unsupported schema_version"),
        ('schema_version: "1"\ntables: []\n', "must include tables"),
        ('schema_version: "1"\ntables: [{when: 2024-01-01}]\n', "non-JSON value"),
        ('schema_version: "1"\n1: x\ntables: [{}]\n', "non-string key"),
        ('schema_version: "1"\nx: .nan\ntables: [{}]\n', "non-finite float"),
    ],
)
def test_parse_schema_document_rejects_bad_envelopes(raw: str, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        parse_schema_document(raw)


def test_get_table_document_missing_table() -> None:
    doc = parse_schema_document(DOCUMENT)
    assert get_table_document(doc, "players")["keys"] == {"id": "HASH"}
    with pytest.raises(ValidationError, match="table not found"):
        get_table_document(doc, "nope")
    with pytest.raises(ValidationError, match="missing tables"):
        get_table_document({}, "nope")


@pytest.mark.parametrize(
    ("table_doc", "message"),
    [
        ({"keys": {"id": "HASH"}}, "missing name"),
        ({"name": "t", "attributes": [{"field": "id", "type": "S"}]}, "missing keys"),
        ({"name": "t", "keys": {"id": "HASH"}}, "missing attributes"),
        ({"name": "t", "keys": {"id": "HASH"}, "attributes": ["id"]}, "must be a map"),
        ({"name": "t", "keys": {"id": "HASH"}, "attributes": [{"type": "S"}]}, "missing field"),
        ({"name": "t", "keys": {"id": "HASH"}, "attributes": [{"field": "id"}]}, "id missing type"),
    ],
)
def test_schema_from_document_validation(table_doc: dict, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        schema_from_document(table_doc)


def test_schema_from_document_reports_layout_errors() -> None:
    with pytest.raises(SchemaDefinitionError, match="exactly one hash key"):
        schema_from_document({"name": "t", "keys": {"id": "RANGE"}, "attributes": [{"field": "id", "type": "S"}]})


def test_schema_to_document_and_dump() -> None:
    schema = Schema.define(
        keys={"pk": "HASH"},
        attributes={
            "pk": "S",
            "nick": AttributeDefinition(python_name="nick", attribute_name="n", type="S"),
            "blob": AttributeDefinition(python_name="blob", attribute_name="blob", type="M", json=True),
        },
        table_name="things",
    )

    assert schema_to_document(schema) == {
        "name": "things",
        "keys": {"pk": "HASH"},
        "attributes": [
            {"field": "pk", "type": "S"},
            {"field": "nick", "attribute": "n", "type": "S"},
            {"field": "blob", "type": "M", "json": True},
        ],
    }

    reloaded = load_schema(dump_schema_document(schema), "things")
    assert reloaded == schema
