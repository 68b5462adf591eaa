from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Mapping
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any

from .aws_errors import is_not_found
from .errors import ReadinessTimeoutError, ValidationError

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "ACTIVE"
DEFAULT_POLL_INTERVAL_SECONDS = 3.0

type TableDescription = dict[str, Any]
type ReadinessCallback = Callable[[BaseException | None, TableDescription | None], None]


class ReadinessState(Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    READY = "ready"
    FAILED = "failed"


def raise_on_error(error: BaseException | None, description: TableDescription | None) -> None:
    if error is not None:
        raise error


def _table_status(table_name: str, description: Mapping[str, Any] | None) -> str:
    status = (description or {}).get("TableStatus")
    if not isinstance(status, str) or not status:
        raise ValidationError(f"table description did not report a status: {table_name}")
    return status


class TableReadiness:
    """Single-flight gate that makes sure a table exists and is ACTIVE.

    The first caller runs describe -> create (when missing) -> poll until
    ACTIVE. Callers arriving while that sequence runs are queued and receive
    the same outcome, in arrival order. The outcome (description or error)
    is cached until :meth:`reset` is called.
    """

    def __init__(
        self,
        table_name: str,
        *,
        describe: Callable[[], Mapping[str, Any]],
        create: Callable[[], Mapping[str, Any]],
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval_seconds < 0:
            raise ValueError("poll_interval_seconds must be >= 0")

        self.table_name = table_name
        self._describe = describe
        self._create = create
        self._poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep

        self._lock = threading.Lock()
        self._state = ReadinessState.UNKNOWN
        self._error: BaseException | None = None
        self._description: TableDescription | None = None
        self._waiters: deque[ReadinessCallback] = deque()
        self._result: Future[TableDescription] = Future()
        # thread delivering the settled outcome to queued waiters, if any
        self._drainer: int | None = None

    @property
    def state(self) -> ReadinessState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def description(self) -> TableDescription | None:
        return self._description

    def ensure_ready(
        self,
        callback: ReadinessCallback | None = None,
        *,
        block: bool = True,
        poll_interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ) -> TableDescription | None:
        """Return the ACTIVE table description, running the check at most once.

        With ``block=False`` the call never waits; the outcome is delivered
        through ``callback`` (errors are re-raised when no callback is given).
        ``timeout_seconds`` bounds how long this caller waits, not the
        sequence itself.
        """
        if not block and callback is None:
            callback = raise_on_error

        with self._lock:
            state = self._state
            if state is ReadinessState.CHECKING and self._drainer == threading.get_ident():
                # re-entered from a waiter callback: the outcome is already settled
                state = ReadinessState.FAILED if self._error is not None else ReadinessState.READY
            elif state is ReadinessState.UNKNOWN:
                self._state = ReadinessState.CHECKING
            if state in {ReadinessState.UNKNOWN, ReadinessState.CHECKING} and callback is not None:
                self._waiters.append(callback)
            result = self._result

        if state in {ReadinessState.READY, ReadinessState.FAILED}:
            if callback is not None:
                callback(self._error, self._description)
            if not block:
                return None
            if self._error is not None:
                raise self._error
            return self._description

        if state is ReadinessState.UNKNOWN:
            interval = self._poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
            if block and timeout_seconds is None:
                self._run(interval)
            else:
                threading.Thread(
                    target=self._run,
                    args=(interval,),
                    name=f"dynamodoc-readiness-{self.table_name}",
                    daemon=True,
                ).start()

        if not block:
            return None

        try:
            return result.result(timeout=timeout_seconds)
        except FutureTimeoutError:
            raise ReadinessTimeoutError(table_name=self.table_name, timeout_seconds=float(timeout_seconds or 0))

    def reset(self) -> None:
        with self._lock:
            if self._state is ReadinessState.CHECKING:
                raise ValidationError(f"cannot reset readiness while a check is in flight: {self.table_name}")
            self._state = ReadinessState.UNKNOWN
            self._error = None
            self._description = None
            self._result = Future()

    def _run(self, poll_interval_seconds: float) -> None:
        try:
            description = self._check(poll_interval_seconds)
        except BaseException as err:
            # interrupts still settle the check so waiters are released and reset() works
            logger.warning("table %s is not usable: %r", self.table_name, err)
            self._finish(err, None)
            if not isinstance(err, Exception):
                raise
        else:
            logger.info("table %s is active", self.table_name)
            self._finish(None, description)

    def _check(self, poll_interval_seconds: float) -> TableDescription:
        logger.debug("describing table %s", self.table_name)
        try:
            description = dict(self._describe())
        except Exception as err:
            if not is_not_found(err):
                raise
            logger.info("table %s does not exist, creating it", self.table_name)
            description = dict(self._create())

        status = _table_status(self.table_name, description)
        while status != ACTIVE_STATUS:
            logger.debug(
                "table %s is %s, polling again in %.1fs", self.table_name, status, poll_interval_seconds
            )
            self._sleep(poll_interval_seconds)
            description = dict(self._describe())
            status = _table_status(self.table_name, description)
        return description

    def _finish(self, error: BaseException | None, description: TableDescription | None) -> None:
        """Deliver the outcome to every queued waiter, then publish it.

        The state stays CHECKING until the queue is empty, so callers that
        arrive from other threads during delivery join the back of the queue.
        """
        with self._lock:
            self._error = error
            self._description = description
            self._drainer = threading.get_ident()

        while True:
            with self._lock:
                if not self._waiters:
                    self._state = ReadinessState.FAILED if error is not None else ReadinessState.READY
                    self._drainer = None
                    result = self._result
                    break
                waiter = self._waiters.popleft()

            # a failing waiter must not keep the remaining waiters from their outcome
            try:
                waiter(error, description)
            except Exception:
                logger.exception("readiness callback for table %s raised", self.table_name)

        if error is not None:
            result.set_exception(error)
        else:
            result.set_result(description or {})
