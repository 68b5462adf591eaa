from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .errors import ValidationError
from .model import Schema

BillingMode = str  # "PROVISIONED" | "PAY_PER_REQUEST"

DEFAULT_READ_CAPACITY_UNITS = 10
DEFAULT_WRITE_CAPACITY_UNITS = 5


def default_throughput(
    read_capacity_units: int = DEFAULT_READ_CAPACITY_UNITS,
    write_capacity_units: int = DEFAULT_WRITE_CAPACITY_UNITS,
) -> dict[str, int]:
    if read_capacity_units <= 0 or write_capacity_units <= 0:
        raise ValidationError("capacity units must be > 0")
    return {"ReadCapacityUnits": read_capacity_units, "WriteCapacityUnits": write_capacity_units}


def _resolve_table_name(schema: Schema, table_name: str | None) -> str:
    resolved = table_name or schema.table_name
    if not resolved:
        raise ValueError("table_name is required (or set Schema.table_name)")
    return resolved


def build_create_table_request(
    schema: Schema,
    *,
    table_name: str | None = None,
    billing_mode: BillingMode = "PROVISIONED",
    provisioned_throughput: Mapping[str, int] | None = None,
    **params: Any,
) -> dict[str, Any]:
    """Build a ``CreateTable`` request from the schema's key fields.

    Only key attributes are declared; extra ``params`` (indexes, stream
    settings, tags) are passed through as given.
    """
    billing_mode = (billing_mode or "PROVISIONED").strip() or "PROVISIONED"
    if billing_mode not in {"PAY_PER_REQUEST", "PROVISIONED"}:
        raise ValidationError(f"unsupported billing_mode: {billing_mode}")

    req: dict[str, Any] = dict(params)
    req["TableName"] = _resolve_table_name(schema, table_name)
    req["KeySchema"] = schema.key_schema()
    req["AttributeDefinitions"] = schema.attribute_definitions()
    req["BillingMode"] = billing_mode

    if billing_mode == "PROVISIONED":
        req["ProvisionedThroughput"] = dict(provisioned_throughput or default_throughput())
    elif provisioned_throughput is not None:
        raise ValidationError("provisioned_throughput is not allowed when billing_mode=PAY_PER_REQUEST")

    return req


def build_update_table_request(
    table_name: str,
    *,
    provisioned_throughput: Mapping[str, int] | None = None,
    **params: Any,
) -> dict[str, Any]:
    if not table_name:
        raise ValueError("table_name is required")

    req: dict[str, Any] = dict(params)
    req["TableName"] = table_name
    if req.get("BillingMode") != "PAY_PER_REQUEST":
        req["ProvisionedThroughput"] = dict(provisioned_throughput or default_throughput())
    return req
