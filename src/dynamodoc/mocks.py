from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any


class _Wildcard:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _Wildcard()

OPERATIONS = frozenset(
    {
        "get_item",
        "put_item",
        "update_item",
        "delete_item",
        "batch_get_item",
        "query",
        "scan",
        "describe_table",
        "create_table",
        "update_table",
        "delete_table",
    }
)

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def _match(expected: Any, actual: Any, path: str) -> None:
    """Subset match: every key in ``expected`` must be present; sequences match exactly."""
    if expected is ANY:
        return

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            raise AssertionError(f"{path}: expected dict, got {type(actual).__name__}")
        for key, want in expected.items():
            if key not in actual:
                raise AssertionError(f"{path}: missing key {key!r}")
            _match(want, actual[key], f"{path}.{key}")
        return

    if isinstance(expected, Sequence) and not isinstance(expected, (str, bytes)):
        if not isinstance(actual, Sequence) or isinstance(actual, (str, bytes)):
            raise AssertionError(f"{path}: expected list, got {type(actual).__name__}")
        if len(expected) != len(actual):
            raise AssertionError(f"{path}: expected {len(expected)} items, got {len(actual)}")
        for idx, (want, got) in enumerate(zip(expected, actual, strict=True)):
            _match(want, got, f"{path}[{idx}]")
        return

    if expected != actual:
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ScriptedCall:
    operation: str
    check: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """Scripted stand-in for a boto3 DynamoDB client.

    Operations must arrive in the order they were scripted with :meth:`expect`.
    A mapping check is a subset match against the request; a callable check
    receives the request and asserts on it. Safe to share between threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._script: deque[ScriptedCall] = deque()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        operation: str,
        check: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> FakeDynamoDBClient:
        if operation not in OPERATIONS:
            raise ValueError(f"unsupported operation: {operation}")
        with self._lock:
            self._script.append(ScriptedCall(operation, check, response, error))
        return self

    @property
    def pending(self) -> list[ScriptedCall]:
        with self._lock:
            return list(self._script)

    def assert_no_pending(self) -> None:
        pending = self.pending
        if pending:
            raise AssertionError(f"pending expected calls: {[c.operation for c in pending]!r}")

    def count(self, operation: str) -> int:
        with self._lock:
            return sum(1 for name, _ in self.calls if name == operation)

    def __getattr__(self, name: str) -> Callable[..., Mapping[str, Any]]:
        if name not in OPERATIONS:
            raise AttributeError(name)

        def call(**request: Any) -> Mapping[str, Any]:
            return self._answer(name, request)

        call.__name__ = name
        return call

    def _answer(self, operation: str, request: dict[str, Any]) -> Mapping[str, Any]:
        with self._lock:
            self.calls.append((operation, dict(request)))
            if not self._script:
                raise AssertionError(f"unexpected call: {operation}")
            scripted = self._script.popleft()

        if scripted.operation != operation:
            raise AssertionError(f"expected {scripted.operation}, got {operation}")

        if callable(scripted.check):
            scripted.check(request)
        elif scripted.check is not None:
            _match(scripted.check, request, operation)

        if scripted.error is not None:
            raise scripted.error
        return dict(scripted.response or {})
