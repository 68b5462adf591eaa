from __future__ import annotations

import pytest

from dynamodoc import Schema, Table
from dynamodoc.aws_errors import error_code, is_not_found
from dynamodoc.mocks import ANY, FakeDynamoDBClient
from dynamodoc.testkit import client_error, expect_active_table, no_sleep, table_description


def test_fake_dynamodb_client_records_and_matches_put_item() -> None:
    client = FakeDynamoDBClient()
    expect_active_table(client, "notes")
    client.expect("put_item", {"TableName": "notes", "Item": ANY})

    schema = Schema.define(keys={"pk": "HASH"}, attributes={"pk": "S", "value": "N"}, table_name="notes")
    table = Table(schema, client=client, sleep=no_sleep)

    table.put_item({"pk": "A", "value": 1})

    client.assert_no_pending()
    assert [c[0] for c in client.calls] == ["describe_table", "put_item"]


def test_fake_dynamodb_client_asserts_pending_calls() -> None:
    client = FakeDynamoDBClient()
    client.expect("query")
    with pytest.raises(AssertionError, match="pending expected calls"):
        client.assert_no_pending()


def test_fake_dynamodb_client_rejects_unexpected_calls() -> None:
    client = FakeDynamoDBClient()
    with pytest.raises(AssertionError, match="unexpected call: query"):
        client.query()


def test_fake_dynamodb_client_rejects_wrong_method_order() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan")
    with pytest.raises(AssertionError, match="expected scan, got query"):
        client.query()


@pytest.mark.parametrize(
    ("expected", "req", "match"),
    [
        ({"a": 1}, {"a": 2}, "expected 1"),
        ({"a": 1}, {}, "missing key"),
        ({"a": {"b": 1}}, {"a": "nope"}, "expected dict"),
        ({"a": [1]}, {"a": "nope"}, "expected list"),
        ({"a": [1, 2]}, {"a": [1]}, "expected 2 items"),
        ({"a": [1]}, {"a": [2]}, "expected 1"),
    ],
)
def test_fake_dynamodb_client_strict_matching(expected: dict, req: dict, match: str) -> None:
    client = FakeDynamoDBClient()
    client.expect("query", expected)
    with pytest.raises(AssertionError, match=match):
        client.query(**req)


def test_fake_dynamodb_client_can_inject_errors() -> None:
    client = FakeDynamoDBClient()
    err = RuntimeError("boom")
    client.expect("query", error=err)
    with pytest.raises(RuntimeError, match="boom"):
        client.query()


def test_fake_dynamodb_client_dispatch_helpers() -> None:
    client = FakeDynamoDBClient()
    methods = [
        "get_item",
        "update_item",
        "delete_item",
        "batch_get_item",
        "scan",
        "create_table",
        "update_table",
        "delete_table",
    ]
    for method in methods:
        client.expect(method, response={"ok": True})

    for method in methods:
        assert getattr(client, method)() == {"ok": True}
    assert client.count("scan") == 1
    client.assert_no_pending()


def test_no_sleep_is_noop() -> None:
    no_sleep(0.0)
    no_sleep(1.0)


def test_client_error_builds_botocore_errors() -> None:
    err = client_error("ResourceNotFoundException")
    assert error_code(err) == "ResourceNotFoundException"
    assert is_not_found(err)
    assert err.operation_name == "DescribeTable"
    assert error_code(RuntimeError("x")) == ""


def test_table_description_defaults_to_active() -> None:
    assert table_description("t") == {"TableName": "t", "TableStatus": "ACTIVE"}
    assert table_description("t", "CREATING", ItemCount=0)["ItemCount"] == 0


def test_fake_dynamodb_client_only_scripts_known_operations() -> None:
    client = FakeDynamoDBClient()
    with pytest.raises(ValueError, match="unsupported operation: transact_write_items"):
        client.expect("transact_write_items")
    with pytest.raises(AttributeError):
        client.transact_write_items()

    assert client.expect("scan").expect("query") is client
    assert [c.operation for c in client.pending] == ["scan", "query"]
