from __future__ import annotations

import base64
import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .errors import NoMoreDataError, NotSupportedError, ValidationError

if TYPE_CHECKING:
    from .table import Table

logger = logging.getLogger(__name__)


class CursorMode(Enum):
    QUERY = "query"
    SCAN = "scan"


@dataclass(frozen=True)
class Page:
    items: list[dict[str, Any]]
    has_more: bool
    count: int
    continuation_key: dict[str, Any] | None = None
    response: Mapping[str, Any] | None = field(default=None, repr=False, compare=False)


_STRING_KINDS = frozenset({"S", "N"})
_STRING_SET_KINDS = frozenset({"SS", "NS"})


def _single_entry(value: Any) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError("attribute value must be a single-key map")
    ((kind, inner),) = value.items()
    return str(kind), inner


def _convert_av(av: Any, *, encode: bool) -> dict[str, Any]:
    """Translate one attribute value between its native and JSON-safe forms.

    Only binary payloads differ: they travel as base64 text inside tokens.
    """
    kind, value = _single_entry(av)
    binary_type: type | tuple[type, ...] = (bytes, bytearray) if encode else str

    def binary(raw: Any) -> Any:
        if not isinstance(raw, binary_type):
            raise ValueError(f"{kind} value must be {'bytes' if encode else 'a base64 string'}")
        return base64.b64encode(bytes(raw)).decode("ascii") if encode else base64.b64decode(raw)

    if kind in _STRING_KINDS:
        if not isinstance(value, str):
            raise ValueError(f"{kind} value must be a string")
        return {kind: value}
    if kind in _STRING_SET_KINDS:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError(f"{kind} value must be a list of strings")
        return {kind: list(value)}
    if kind == "B":
        return {"B": binary(value)}
    if kind == "BS":
        if not isinstance(value, list):
            raise ValueError("BS value must be a list")
        return {"BS": [binary(v) for v in value]}
    if kind == "BOOL":
        if not isinstance(value, bool):
            raise ValueError("BOOL value must be a boolean")
        return {"BOOL": value}
    if kind == "NULL":
        if value is not True:
            raise ValueError("NULL value must be true")
        return {"NULL": True}
    if kind == "L":
        if not isinstance(value, list):
            raise ValueError("L value must be a list")
        return {"L": [_convert_av(v, encode=encode) for v in value]}
    if kind == "M":
        if not isinstance(value, dict):
            raise ValueError("M value must be a map")
        return {"M": {str(k): _convert_av(value[k], encode=encode) for k in sorted(value)}}

    raise ValueError(f"unsupported attribute value type: {kind}")


def encode_cursor(last_key: Any) -> str:
    """Render a continuation key as an opaque, URL-safe token ("" for no key)."""
    if not last_key:
        return ""
    if not isinstance(last_key, dict):
        raise ValueError("last_key must be a map")

    payload = {"lastKey": {str(k): _convert_av(last_key[k], encode=True) for k in sorted(last_key)}}
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> dict[str, Any]:
    raw = str(token or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("cursor must decode to an object")

    last_key = parsed.get("lastKey")
    if not isinstance(last_key, dict) or not last_key:
        raise ValueError("cursor lastKey is invalid")
    return {str(k): _convert_av(last_key[k], encode=False) for k in sorted(last_key)}


class QueryCursor:
    """Pages through the results of one query or scan.

    Shaping options (projection, limit, count-only) are accumulated on top of
    the base request the table built. :meth:`execute` reads the first page,
    :meth:`fetch_next` continues from the continuation key of the last one.
    """

    def __init__(self, mode: CursorMode | str, table: Table, params: Mapping[str, Any]) -> None:
        self._mode = CursorMode(mode)
        self._table = table
        self._base_params: Mapping[str, Any] = MappingProxyType(dict(params))
        self._options: dict[str, Any] = {}
        self._count_only = False
        self._continuation_key: dict[str, Any] | None = None
        self._has_more = True

    @property
    def mode(self) -> CursorMode:
        return self._mode

    @property
    def params(self) -> Mapping[str, Any]:
        return self._base_params

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def continuation_key(self) -> dict[str, Any] | None:
        return self._continuation_key

    @property
    def token(self) -> str | None:
        if not self._continuation_key:
            return None
        return encode_cursor(self._continuation_key)

    def with_projection(self, *fields: str) -> QueryCursor:
        if self._count_only:
            raise ValidationError("projection cannot be combined with a count-only request")

        if not fields:
            self._options.pop("AttributesToGet", None)
            self._options["Select"] = "ALL_ATTRIBUTES"
            return self

        schema = self._table.schema
        self._options["AttributesToGet"] = [schema.mapper_for(f).definition.attribute_name for f in fields]
        self._options["Select"] = "SPECIFIC_ATTRIBUTES"
        return self

    def with_limit(self, limit: int) -> QueryCursor:
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            raise ValidationError("limit must be > 0")
        self._options["Limit"] = limit
        return self

    def with_consumed_capacity(self, enabled: bool | str = True) -> QueryCursor:
        if isinstance(enabled, str):
            self._options["ReturnConsumedCapacity"] = enabled
        else:
            self._options["ReturnConsumedCapacity"] = "TOTAL" if enabled else "NONE"
        return self

    def as_count_only(self) -> QueryCursor:
        self._count_only = True
        self._options.pop("AttributesToGet", None)
        self._options["Select"] = "COUNT"
        return self

    def resume(self, token: str) -> QueryCursor:
        """Continue from a :attr:`token` produced by another cursor.

        Only :meth:`fetch_next` reads from the restored position;
        :meth:`execute` always starts again at the first page.
        """
        try:
            self._continuation_key = decode_cursor(token)
        except (ValueError, UnicodeDecodeError) as err:
            raise ValidationError("invalid cursor") from err
        self._has_more = True
        return self

    def execute(self) -> Page:
        return self._fetch(None)

    def fetch_next(self) -> Page:
        if not self._has_more:
            raise NoMoreDataError(
                "there is no more data to retrieve, last execution did not yield a continuation key"
            )
        return self._fetch(self._continuation_key)

    def stream(self) -> Iterator[dict[str, Any]]:
        """Yield every item of the query, fetching pages as needed."""
        if self._mode is CursorMode.SCAN:
            raise NotSupportedError("streaming scan results is not supported; page with fetch_next()")
        return self._iter_items()

    def _iter_items(self) -> Iterator[dict[str, Any]]:
        page = self.execute()
        yield from page.items
        while page.has_more:
            page = self.fetch_next()
            yield from page.items

    def _fetch(self, start_key: Mapping[str, Any] | None) -> Page:
        req: dict[str, Any] = dict(self._base_params)
        req.update(self._options)
        if start_key:
            req["ExclusiveStartKey"] = dict(start_key)

        self._table.ensure_ready()
        logger.debug("%s %s (start_key=%s)", self._mode.value, req.get("TableName"), bool(start_key))
        execute = getattr(self._table.client, self._mode.value)
        resp = execute(**req)

        items = [self._table.schema.map_from_db(item) for item in resp.get("Items") or []]
        last = resp.get("LastEvaluatedKey")
        self._continuation_key = dict(last) if last else None
        self._has_more = self._continuation_key is not None

        return Page(
            items=[item for item in items if item is not None],
            has_more=self._has_more,
            count=int(resp.get("Count", len(items))),
            continuation_key=self._continuation_key,
            response=resp,
        )
