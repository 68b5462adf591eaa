from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .conditions import (
    ComparisonOperator,
    UpdateAction,
    translate_conditions,
    translate_updates,
)
from .document import (
    dump_schema_document,
    get_table_document,
    load_schema,
    parse_schema_document,
    schema_from_document,
    schema_to_document,
)
from .errors import (
    DynamodocError,
    NoMoreDataError,
    NotSupportedError,
    ReadinessTimeoutError,
    TranslationError,
    UnknownFieldError,
    ValidationError,
)
from .mapper import AttributeMapper
from .model import (
    AttributeConverter,
    AttributeDefinition,
    Schema,
    SchemaDefinitionError,
    schema_field,
)
from .query import CursorMode, Page, QueryCursor, decode_cursor, encode_cursor
from .readiness import ReadinessState, TableReadiness

if TYPE_CHECKING:
    from .runtime import AwsCallMetric, create_boto3_config, get_dynamodb_client, instrument_boto3_client
    from .schema import build_create_table_request, build_update_table_request
    from .table import Table


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "Table":
        from .table import Table

        return Table
    if name in {"build_create_table_request", "build_update_table_request"}:
        from . import schema

        return getattr(schema, name)
    if name in {"AwsCallMetric", "create_boto3_config", "get_dynamodb_client", "instrument_boto3_client"}:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AttributeConverter",
    "AttributeDefinition",
    "AttributeMapper",
    "AwsCallMetric",
    "build_create_table_request",
    "build_update_table_request",
    "ComparisonOperator",
    "create_boto3_config",
    "CursorMode",
    "decode_cursor",
    "DynamodocError",
    "dump_schema_document",
    "encode_cursor",
    "get_dynamodb_client",
    "get_table_document",
    "instrument_boto3_client",
    "load_schema",
    "NoMoreDataError",
    "NotSupportedError",
    "Page",
    "parse_schema_document",
    "QueryCursor",
    "ReadinessState",
    "ReadinessTimeoutError",
    "Schema",
    "SchemaDefinitionError",
    "schema_field",
    "schema_from_document",
    "schema_to_document",
    "Table",
    "TableReadiness",
    "TranslationError",
    "translate_conditions",
    "translate_updates",
    "UnknownFieldError",
    "UpdateAction",
    "ValidationError",
    "__repo_version__",
    "__version__",
]
