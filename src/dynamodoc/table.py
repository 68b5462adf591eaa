from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .conditions import translate_conditions, translate_updates
from .errors import ValidationError
from .model import Schema
from .query import CursorMode, QueryCursor
from .readiness import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    ReadinessCallback,
    TableDescription,
    TableReadiness,
)
from .runtime import get_dynamodb_client
from .schema import (
    DEFAULT_READ_CAPACITY_UNITS,
    DEFAULT_WRITE_CAPACITY_UNITS,
    BillingMode,
    build_create_table_request,
    build_update_table_request,
    default_throughput,
)

logger = logging.getLogger(__name__)


class Table:
    """Document-style access to one table.

    Every data operation first passes the table's readiness gate, so the
    table is described (and created when missing) exactly once per handle.
    """

    def __init__(
        self,
        schema: Schema,
        *,
        client: Any | None = None,
        table_name: str | None = None,
        consistent_read: bool = False,
        read_capacity_units: int = DEFAULT_READ_CAPACITY_UNITS,
        write_capacity_units: int = DEFAULT_WRITE_CAPACITY_UNITS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        ensure_ready_on_init: bool = False,
    ) -> None:
        if table_name is None:
            table_name = schema.table_name
        if not table_name:
            raise ValueError("table_name is required (or set Schema.table_name)")

        self._schema = schema
        self._table_name = table_name
        self._client: Any = client or get_dynamodb_client()
        self.consistent_read = consistent_read
        self._throughput = default_throughput(read_capacity_units, write_capacity_units)
        self._readiness = TableReadiness(
            table_name,
            describe=lambda: self.describe_table().get("Table") or {},
            create=lambda: self.create_table().get("TableDescription") or {},
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )

        if ensure_ready_on_init:
            self._readiness.ensure_ready(block=False)

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def client(self) -> Any:
        return self._client

    @property
    def readiness(self) -> TableReadiness:
        return self._readiness

    def ensure_ready(
        self,
        callback: ReadinessCallback | None = None,
        *,
        block: bool = True,
        poll_interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ) -> TableDescription | None:
        return self._readiness.ensure_ready(
            callback,
            block=block,
            poll_interval_seconds=poll_interval_seconds,
            timeout_seconds=timeout_seconds,
        )

    def reset_readiness(self) -> None:
        self._readiness.reset()

    def get_item(self, key: Mapping[str, Any], **params: Any) -> dict[str, Any] | None:
        req = self._request(params, Key=self._to_key(key))
        if self.consistent_read:
            req["ConsistentRead"] = True

        self.ensure_ready()
        logger.debug("get_item %s", self._table_name)
        resp = self._client.get_item(**req)
        return self._schema.map_from_db(resp.get("Item"))

    def batch_get_items(
        self,
        keys: Sequence[Mapping[str, Any]],
        *,
        consistent_read: bool | None = None,
        **params: Any,
    ) -> list[dict[str, Any]]:
        if keys is None:
            raise ValidationError("keys are required")
        if not keys:
            return []

        table_req: dict[str, Any] = {"Keys": [self._to_key(key) for key in keys]}
        if self.consistent_read or consistent_read:
            table_req["ConsistentRead"] = True
        req: dict[str, Any] = dict(params)
        req["RequestItems"] = {self._table_name: table_req}

        self.ensure_ready()
        logger.debug("batch_get_item %s (%d keys)", self._table_name, len(keys))
        resp = self._client.batch_get_item(**req)

        out: list[dict[str, Any]] = []
        for item in resp.get("Responses", {}).get(self._table_name) or []:
            mapped = self._schema.map_from_db(item)
            if mapped is not None:
                out.append(mapped)
        return out

    def put_item(
        self,
        item: Any,
        *,
        expected: Mapping[str, Any] | None = None,
        **params: Any,
    ) -> dict[str, Any] | None:
        if not item:
            raise ValidationError("item is required")

        req = self._request(params, Item=self._to_item(item))
        self._apply_expected(req, expected)

        self.ensure_ready()
        logger.debug("put_item %s", self._table_name)
        resp = self._client.put_item(**req)
        return self._schema.map_from_db(resp.get("Attributes"))

    def update_item(
        self,
        key: Mapping[str, Any],
        updates: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
        **params: Any,
    ) -> dict[str, Any] | None:
        if not updates:
            raise ValidationError("updates is required")

        req = self._request(
            params,
            Key=self._to_key(key),
            AttributeUpdates=translate_updates(
                updates, self._schema.mappers, key_fields=tuple(self._schema.keys)
            ),
        )
        self._apply_expected(req, expected)

        self.ensure_ready()
        logger.debug("update_item %s", self._table_name)
        resp = self._client.update_item(**req)
        return self._schema.map_from_db(resp.get("Attributes"))

    def delete_item(
        self,
        key: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
        **params: Any,
    ) -> dict[str, Any] | None:
        req = self._request(params, Key=self._to_key(key))
        self._apply_expected(req, expected)

        self.ensure_ready()
        logger.debug("delete_item %s", self._table_name)
        resp = self._client.delete_item(**req)
        return self._schema.map_from_db(resp.get("Attributes"))

    def query(self, key_conditions: Mapping[str, Any], **params: Any) -> QueryCursor:
        if not key_conditions:
            raise ValidationError("key is required")

        req = self._request(params, KeyConditions=translate_conditions(key_conditions, self._schema.mappers))
        if self.consistent_read:
            req["ConsistentRead"] = True
        return QueryCursor(CursorMode.QUERY, self, req)

    def scan(self, filter: Mapping[str, Any] | None = None, **params: Any) -> QueryCursor:
        req = self._request(params)
        if filter:
            req["ScanFilter"] = translate_conditions(filter, self._schema.mappers)
        return QueryCursor(CursorMode.SCAN, self, req)

    def describe_table(self, **params: Any) -> dict[str, Any]:
        return dict(self._client.describe_table(**self._request(params)))

    def create_table(
        self,
        *,
        billing_mode: BillingMode = "PROVISIONED",
        provisioned_throughput: Mapping[str, int] | None = None,
        **params: Any,
    ) -> dict[str, Any]:
        req = build_create_table_request(
            self._schema,
            table_name=self._table_name,
            billing_mode=billing_mode,
            provisioned_throughput=(
                provisioned_throughput or (self._throughput if billing_mode == "PROVISIONED" else None)
            ),
            **params,
        )
        logger.info("creating table %s", self._table_name)
        return dict(self._client.create_table(**req))

    def update_table(
        self,
        *,
        provisioned_throughput: Mapping[str, int] | None = None,
        **params: Any,
    ) -> dict[str, Any]:
        req = build_update_table_request(
            self._table_name,
            provisioned_throughput=provisioned_throughput or self._throughput,
            **params,
        )
        return dict(self._client.update_table(**req))

    def delete_table(self, **params: Any) -> dict[str, Any]:
        logger.info("deleting table %s", self._table_name)
        return dict(self._client.delete_table(**self._request(params)))

    def _request(self, params: Mapping[str, Any], **fields: Any) -> dict[str, Any]:
        req: dict[str, Any] = dict(params)
        req["TableName"] = self._table_name
        req.update(fields)
        return req

    def _apply_expected(self, req: dict[str, Any], expected: Mapping[str, Any] | None) -> None:
        if expected is None:
            return
        if "Expected" in req:
            raise ValidationError("pass either expected or Expected, not both")
        req["Expected"] = translate_conditions(expected, self._schema.mappers)

    def _to_item(self, item: Any) -> dict[str, Any]:
        out = self._schema.map_to_db(item)
        self._require_keys(out)
        return out

    def _to_key(self, key: Mapping[str, Any]) -> dict[str, Any]:
        if not key:
            raise ValidationError("key is required")

        out = self._schema.map_to_db(key)
        self._require_keys(out)
        key_attributes = {k["AttributeName"] for k in self._schema.key_schema()}
        extra = sorted(set(out) - key_attributes)
        if extra:
            raise ValidationError(f"key contains non-key attributes: {extra}")
        return out

    def _require_keys(self, mapped: Mapping[str, Any]) -> None:
        for key_def in (self._schema.hash_key, self._schema.range_key):
            if key_def is not None and key_def.attribute_name not in mapped:
                raise ValidationError(f"missing key field: {key_def.python_name}")
