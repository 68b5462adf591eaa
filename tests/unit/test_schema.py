from __future__ import annotations

import pytest

from dynamodoc import Schema, ValidationError, build_create_table_request, build_update_table_request
from dynamodoc.model import AttributeDefinition
from dynamodoc.schema import default_throughput


@pytest.fixture()
def schema() -> Schema:
    return Schema.define(
        keys={"pk": "HASH", "sk": "RANGE"},
        attributes={
            "pk": AttributeDefinition(python_name="pk", attribute_name="PK", type="S"),
            "sk": AttributeDefinition(python_name="sk", attribute_name="SK", type="N"),
            "note": "S",
        },
        table_name="tbl",
    )


def test_build_create_table_request_declares_only_key_attributes(schema: Schema) -> None:
    req = build_create_table_request(schema)

    assert req["TableName"] == "tbl"
    assert req["BillingMode"] == "PROVISIONED"
    assert req["KeySchema"] == [
        {"AttributeName": "PK", "KeyType": "HASH"},
        {"AttributeName": "SK", "KeyType": "RANGE"},
    ]
    assert req["AttributeDefinitions"] == [
        {"AttributeName": "PK", "AttributeType": "S"},
        {"AttributeName": "SK", "AttributeType": "N"},
    ]
    assert req["ProvisionedThroughput"] == {"ReadCapacityUnits": 10, "WriteCapacityUnits": 5}


def test_build_create_table_request_pay_per_request_and_passthrough(schema: Schema) -> None:
    req = build_create_table_request(
        schema,
        table_name="other",
        billing_mode="PAY_PER_REQUEST",
        StreamSpecification={"StreamEnabled": True, "StreamViewType": "NEW_IMAGE"},
    )

    assert req["TableName"] == "other"
    assert req["BillingMode"] == "PAY_PER_REQUEST"
    assert "ProvisionedThroughput" not in req
    assert req["StreamSpecification"]["StreamEnabled"] is True


def test_build_create_table_request_validation(schema: Schema) -> None:
    with pytest.raises(ValidationError, match="unsupported billing_mode"):
        build_create_table_request(schema, billing_mode="ON_DEMAND")
    with pytest.raises(ValidationError, match="not allowed"):
        build_create_table_request(
            schema,
            billing_mode="PAY_PER_REQUEST",
            provisioned_throughput={"ReadCapacityUnits": 1, "WriteCapacityUnits": 1},
        )

    unnamed = Schema.define(keys={"id": "HASH"}, attributes={"id": "S"})
    with pytest.raises(ValueError, match="table_name is required"):
        build_create_table_request(unnamed)


def test_build_update_table_request() -> None:
    assert build_update_table_request("tbl") == {
        "TableName": "tbl",
        "ProvisionedThroughput": {"ReadCapacityUnits": 10, "WriteCapacityUnits": 5},
    }
    assert build_update_table_request(
        "tbl", provisioned_throughput={"ReadCapacityUnits": 2, "WriteCapacityUnits": 1}
    )["ProvisionedThroughput"] == {"ReadCapacityUnits": 2, "WriteCapacityUnits": 1}
    assert build_update_table_request("tbl", BillingMode="PAY_PER_REQUEST") == {
        "TableName": "tbl",
        "BillingMode": "PAY_PER_REQUEST",
    }
    with pytest.raises(ValueError, match="table_name is required"):
        build_update_table_request("")


def test_default_throughput_rejects_non_positive_units() -> None:
    assert default_throughput(1, 2) == {"ReadCapacityUnits": 1, "WriteCapacityUnits": 2}
    with pytest.raises(ValidationError, match="capacity units"):
        default_throughput(0, 5)
