from __future__ import annotations

import functools
import logging
import os
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .aws_errors import error_code

logger = logging.getLogger(__name__)

ENDPOINT_ENV = "DYNAMODB_ENDPOINT"


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool
    error_code: str = ""


def resolve_region(environ: Mapping[str, str] = os.environ) -> str | None:
    return environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or None


def resolve_endpoint_url(environ: Mapping[str, str] = os.environ) -> str | None:
    """DynamoDB Local (or any other endpoint override) from ``DYNAMODB_ENDPOINT``."""
    return (environ.get(ENDPOINT_ENV) or "").strip() or None


def create_boto3_config(
    *,
    connect_timeout: float = 2.0,
    read_timeout: float = 10.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "standard"},
    )


class _MeteredClient:
    """Proxy that reports one :class:`AwsCallMetric` per client operation."""

    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call
        self._operations: dict[str, Callable[..., Any]] = {}

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        metered = self._operations.get(name)
        if metered is None:
            metered = self._operations[name] = self._meter(name, attr)
        return metered

    def _meter(self, operation: str, call: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(call)
        def metered(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            code = ""
            try:
                return call(*args, **kwargs)
            except Exception as err:
                code = error_code(err) or type(err).__name__
                raise
            finally:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=operation,
                        seconds=time.monotonic() - start,
                        ok=not code,
                        error_code=code,
                    )
                )

        return metered


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _MeteredClient(client, service, on_call)


_clients: dict[tuple[str | None, str | None], Any] = {}
_clients_lock = threading.Lock()


def get_dynamodb_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    """Return a DynamoDB client, reusing one per (region, endpoint).

    Region and endpoint fall back to ``AWS_REGION``/``AWS_DEFAULT_REGION`` and
    ``DYNAMODB_ENDPOINT`` so the same code can target DynamoDB Local.
    """
    region = region or resolve_region()
    endpoint_url = endpoint_url or resolve_endpoint_url()
    key = (region, endpoint_url)

    with _clients_lock:
        existing = _clients.get(key)
        if existing is not None:
            return existing

        sess = session or boto3.session.Session(region_name=region)
        client = cast(Any, sess).client(
            "dynamodb",
            region_name=region,
            endpoint_url=endpoint_url,
            config=config or create_boto3_config(),
        )
        logger.debug("created dynamodb client (region=%s, endpoint=%s)", region, endpoint_url)
        if metrics is not None:
            client = instrument_boto3_client(client, service="dynamodb", on_call=metrics)

        _clients[key] = client
        return client


def _reset_clients_for_tests() -> None:
    with _clients_lock:
        _clients.clear()
