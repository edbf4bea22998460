"""Call recording and response/error injection.

Every operation handler runs the same preamble before its default logic:

    error = recorder.check_error("CreateSubnet")     # dequeue injected error
    recorder.record("CreateSubnet", request)         # always logged
    if error is not None:
        raise error
    canned = recorder.give_recorded_output("CreateSubnet", request)
    if canned is not None:
        return canned.resolve()                      # response, or its error

Tests program the recorder up front and assert on the call log afterwards:

    engine.recorder.queue_error("CreateSubnet", ClientError(...))
    engine.recorder.queue_response("DescribeSubnets", DescribeSubnetsResponse())
    ...
    engine.recorder.assert_call_order(["CreateSubnet", "DescribeSubnets"])
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .models import EC2Model, get_call_models

logger = logging.getLogger(__name__)

RequestPredicate = Callable[[Any], bool]


@dataclass(frozen=True)
class RecordedCall:
    """One logged call.

    Attributes:
        name: API call name (e.g., "CreateSubnet").
        request: Deep copy of the request as received.
        timestamp: When the call was dispatched.
    """

    name: str
    request: Any
    timestamp: datetime


@dataclass(frozen=True)
class CannedOutput:
    """A programmed (response, error) pair for one call.

    Attributes:
        response: Response returned in place of default logic.
        error: If set, raised instead of returning the response.
        when: Optional predicate on the request; the entry only fires for
            requests it accepts.
    """

    response: EC2Model | None
    error: BaseException | None = None
    when: RequestPredicate | None = None

    def accepts(self, request: Any) -> bool:
        return self.when is None or bool(self.when(request))

    def resolve(self) -> EC2Model | None:
        """Return the response, or raise the paired error."""
        if self.error is not None:
            raise self.error
        return self.response


class Recorder:
    """Call log and per-call override queues.

    Thread-safe: the log and both queues are guarded by one lock. Queues are
    FIFO per call name and each entry fires once.
    """

    def __init__(self) -> None:
        """Initialize an empty log and override table."""
        self._lock = threading.Lock()
        self._calls: list[RecordedCall] = []
        self._errors: dict[str, deque[BaseException]] = {}
        self._responses: dict[str, deque[CannedOutput]] = {}

    # -------------------------------------------------------------------------
    # Programming overrides
    # -------------------------------------------------------------------------

    def queue_error(self, call_name: str, error: BaseException) -> None:
        """Queue an error to be raised by the next call of ``call_name``.

        Args:
            call_name: API call name.
            error: Exception instance raised verbatim.

        Raises:
            KeyError: If the call is not supported.
            TypeError: If error is not an exception instance.
        """
        get_call_models(call_name)
        if not isinstance(error, BaseException):
            raise TypeError(f"error must be an exception instance, got {type(error).__name__}")
        with self._lock:
            self._errors.setdefault(call_name, deque()).append(error)

    def queue_response(
        self,
        call_name: str,
        response: EC2Model | None,
        *,
        error: BaseException | None = None,
        when: RequestPredicate | None = None,
    ) -> None:
        """Queue a canned (response, error) pair for ``call_name``.

        Args:
            call_name: API call name.
            response: Response of the call's response type, or None when
                only an error is meant to come back.
            error: Optional error raised instead of returning the response.
            when: Optional predicate; the entry only fires for matching requests.
                It receives the request model, or the raw payload dict when
                the request does not fit the schema.

        Raises:
            KeyError: If the call is not supported.
            TypeError: If the response is not the call's response type.
        """
        _, response_type = get_call_models(call_name)
        if response is not None and not isinstance(response, response_type):
            raise TypeError(
                f"{call_name} responses must be {response_type.__name__}, "
                f"got {type(response).__name__}"
            )
        if response is None and error is None:
            raise TypeError("queue_response needs a response, an error, or both")
        with self._lock:
            self._responses.setdefault(call_name, deque()).append(
                CannedOutput(response=response, error=error, when=when)
            )

    # -------------------------------------------------------------------------
    # Consulted by operation handlers
    # -------------------------------------------------------------------------

    def check_error(self, call_name: str) -> BaseException | None:
        """Dequeue the next injected error for a call, if any."""
        with self._lock:
            queue = self._errors.get(call_name)
            if not queue:
                return None
            error = queue.popleft()

        logger.info(
            "Returning injected error",
            extra={"call": call_name, "error_type": type(error).__name__},
        )
        return error

    def record(self, call_name: str, request: Any = None) -> None:
        """Append a call to the log."""
        entry = RecordedCall(
            name=call_name,
            request=copy.deepcopy(request),
            timestamp=datetime.now(UTC),
        )
        with self._lock:
            self._calls.append(entry)

    def give_recorded_output(self, call_name: str, request: Any = None) -> CannedOutput | None:
        """Dequeue the first canned output for a call that accepts the request."""
        with self._lock:
            queue = self._responses.get(call_name)
            if not queue:
                return None
            for index, entry in enumerate(queue):
                if entry.accepts(request):
                    del queue[index]
                    break
            else:
                return None

        logger.info(
            "Returning canned response",
            extra={"call": call_name, "has_error": entry.error is not None},
        )
        return entry

    # -------------------------------------------------------------------------
    # Assertions
    # -------------------------------------------------------------------------

    def get_call_log(self) -> list[str]:
        """Call names in dispatch order."""
        with self._lock:
            return [c.name for c in self._calls]

    def get_calls(self) -> list[RecordedCall]:
        with self._lock:
            return list(self._calls)

    def get_requests(self, call_name: str) -> list[Any]:
        """Requests received by ``call_name``, in order."""
        with self._lock:
            return [c.request for c in self._calls if c.name == call_name]

    def call_count(self, call_name: str) -> int:
        with self._lock:
            return sum(1 for c in self._calls if c.name == call_name)

    def pending(self, call_name: str) -> int:
        """Number of unconsumed errors and responses queued for a call."""
        with self._lock:
            return len(self._errors.get(call_name, ())) + len(self._responses.get(call_name, ()))

    def assert_called(self, call_name: str, times: int | None = None) -> None:
        """Assert a call happened (exactly ``times`` times, if given).

        Raises:
            AssertionError: If the call count does not match.
        """
        count = self.call_count(call_name)
        if times is None and count == 0:
            raise AssertionError(f"Expected {call_name} to be called, but it was not")
        if times is not None and count != times:
            raise AssertionError(f"Expected {call_name} to be called {times} times, got {count}")

    def assert_not_called(self, call_name: str) -> None:
        self.assert_called(call_name, times=0)

    def assert_call_order(self, expected: Sequence[str]) -> None:
        """Assert the call log equals ``expected`` exactly.

        Raises:
            AssertionError: With both sequences if they differ.
        """
        actual = self.get_call_log()
        if actual != list(expected):
            raise AssertionError(
                f"Call log mismatch:\n  expected: {list(expected)}\n  actual:   {actual}"
            )

    def reset(self) -> None:
        """Clear the call log and every queued override."""
        with self._lock:
            self._calls.clear()
            self._errors.clear()
            self._responses.clear()
