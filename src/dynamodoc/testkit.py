from __future__ import annotations

from typing import Any

from botocore.exceptions import ClientError

from .mocks import ANY, FakeDynamoDBClient


def no_sleep(_: float) -> None:
    return None


def client_error(code: str, message: str = "", *, operation: str = "DescribeTable") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


def table_description(table_name: str, status: str = "ACTIVE", **extra: Any) -> dict[str, Any]:
    return {"TableName": table_name, "TableStatus": status, **extra}


def expect_active_table(client: FakeDynamoDBClient, table_name: str) -> None:
    """Script the single describe call a table makes before its first operation."""
    client.expect(
        "describe_table",
        {"TableName": table_name},
        response={"Table": table_description(table_name)},
    )


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "client_error",
    "expect_active_table",
    "no_sleep",
    "table_description",
]
