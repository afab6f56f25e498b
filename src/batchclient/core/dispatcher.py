"""
Batched concurrent dispatcher.

Runs single requests to completion on one transport handle, and runs large
request sets as a sequence of bounded batches. Inside a batch every request
gets its own handle and header accumulator, all driven together by one
multiplexer; results are put back into input order whatever order the
operations finish in.
"""

import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Mapping, Optional, Union

import structlog

from batchclient.config import ClientConfig, get_config
from batchclient.core.batch import Batch, RequestCollection, partition, result_order_key
from batchclient.core.headers import HeaderAccumulator
from batchclient.core.message import Request, Response, Stream
from batchclient.core.options import (
    clamp_timeouts,
    merge_options,
    normalize_options,
    request_options,
)
from batchclient.exceptions import DeadlineExceeded, TransportFailure
from batchclient.transport.interface import (
    Multiplexer,
    Option,
    OptionKey,
    Transport,
    TransportHandle,
)

logger = structlog.get_logger(__name__)

Result = Union[Response, TransportFailure]

# Floor for timeouts derived from a nearly elapsed deadline
MIN_DEADLINE_TIMEOUT = 0.001


@dataclass
class Operation:
    """
    One request bound to its transport handle and header accumulator.

    Attributes:
        key: Original key of the request, used to restore order
        request: The request being executed
        handle: Transport handle owned by this operation
        accumulator: Header accumulator bound to ``handle``
    """

    key: Hashable
    request: Request
    handle: TransportHandle
    accumulator: HeaderAccumulator

    @property
    def failed(self) -> bool:
        return bool(self.handle.error)

    def failure(self) -> TransportFailure:
        return TransportFailure(self.handle.error, self.request, self.handle.status_code)

    def build_response(self) -> Response:
        """Assemble the response from the handle and the collected headers."""
        response = Response.create(self.handle.status_code, self.handle.reason_phrase)
        for name, value in self.accumulator.snapshot().items():
            response = response.with_added_header(name, value)
        return response.with_body(Stream(self.handle.content))


class Dispatcher:
    """
    Executes requests over a transport.

    Usage:
        ```python
        dispatcher = Dispatcher(HttpxTransport())
        response = dispatcher.execute(request)
        responses = dispatcher.dispatch([r1, r2, r3], batch_size=2)
        ```
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[ClientConfig] = None,
        extra_options: Optional[Mapping[OptionKey, Any]] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            transport: Transport engine that creates handles and multiplexers
            config: Client configuration. Uses global config if not provided.
            extra_options: Global option overrides (see core.options for precedence)
        """
        self.transport = transport
        self.config = config or get_config()
        self._extra_options: Dict[Option, Any] = {}
        self.extra_options = extra_options if extra_options is not None else self.config.extra_options

    @property
    def extra_options(self) -> Dict[Option, Any]:
        return dict(self._extra_options)

    @extra_options.setter
    def extra_options(self, extra_options: Optional[Mapping[OptionKey, Any]]) -> None:
        self._extra_options = normalize_options(extra_options)

    def effective_options(self, request: Request) -> Dict[Option, Any]:
        """Compute the merged transport options for one request."""
        return merge_options(self._extra_options, request_options(request, self.config))

    def execute(self, request: Request) -> Response:
        """
        Run exactly one request to completion, blocking until it finishes.

        Args:
            request: Request to send

        Returns:
            The assembled response

        Raises:
            TransportFailure: If the transport reports a terminal error
        """
        with self.transport.create_handle() as handle:
            operation = self._prepare(handle, None, request)
            logger.debug("request_sending", method=request.method, uri=request.uri)

            if not handle.perform():
                logger.warning(
                    "request_failed",
                    method=request.method,
                    uri=request.uri,
                    status=handle.status_code,
                    error=handle.error,
                )
                raise operation.failure()

            response = operation.build_response()

        logger.debug("request_sent", uri=request.uri, status=response.status_code)
        return response

    def dispatch(
        self,
        requests: RequestCollection,
        batch_size: Optional[int] = None,
        return_exceptions: bool = False,
        deadline: Optional[float] = None,
    ) -> List[Result]:
        """
        Send many requests concurrently in sequential, bounded batches.

        Args:
            requests: Ordered mapping of key to request, or a sequence
            batch_size: Requests per batch (config.batch_size if not provided)
            return_exceptions: Put a TransportFailure at a failed request's
                position instead of aborting on the first failure
            deadline: Seconds allowed for the whole dispatch
                (config.dispatch_deadline if not provided)

        Returns:
            Results ordered by ascending request key

        Raises:
            TransportFailure: First per-operation failure of a batch, unless
                return_exceptions is set; results of that batch's other
                operations are discarded
            FatalMultiplexError: If a batch's execution context fails
            DeadlineExceeded: If the deadline elapses before all batches finish
        """
        batch_size = self.config.batch_size if batch_size is None else batch_size
        deadline = self.config.dispatch_deadline if deadline is None else deadline
        if deadline is not None and deadline <= 0:
            raise ValueError(f"deadline must be positive, got {deadline!r}")

        batches = partition(requests, batch_size)
        expires_at = None if deadline is None else time.monotonic() + deadline

        logger.info(
            "requests_dispatching",
            count=sum(batch.size for batch in batches),
            batches=len(batches),
            batch_size=batch_size,
        )

        results: Dict[Hashable, Result] = {}
        for number, batch in enumerate(batches):
            try:
                if expires_at is not None and time.monotonic() >= expires_at:
                    raise DeadlineExceeded(deadline, batch.keys)
                results.update(self._run_batch(batch, return_exceptions, deadline, expires_at))
            except DeadlineExceeded as e:
                e.pending.extend(key for later in batches[number + 1:] for key in later.keys)
                raise

        ordered = [results[key] for key in sorted(results, key=result_order_key)]
        logger.info("requests_dispatched", count=len(ordered))
        return ordered

    def _run_batch(
        self,
        batch: Batch,
        return_exceptions: bool = False,
        deadline: Optional[float] = None,
        expires_at: Optional[float] = None,
    ) -> Dict[Hashable, Result]:
        """
        Run one batch on a fresh multiplexer.

        Every handle and the multiplexer are released on every exit path.

        Returns:
            Results keyed by the requests' original keys
        """
        logger.debug("batch_dispatching", batch=batch.index, size=batch.size)
        results: Dict[Hashable, Result] = {}

        with ExitStack() as stack:
            multi = stack.enter_context(self.transport.create_multiplexer())

            operations: List[Operation] = []
            for key, request in batch:
                handle = stack.enter_context(self.transport.create_handle())
                operations.append(self._prepare(handle, key, request, expires_at))
                multi.add_handle(handle)
                stack.callback(multi.remove_handle, handle)

            self._drive(multi, batch, deadline, expires_at)

            for operation in operations:
                if not operation.failed:
                    results[operation.key] = operation.build_response()
                    continue

                failure = operation.failure()
                logger.warning(
                    "operation_failed",
                    batch=batch.index,
                    key=operation.key,
                    uri=operation.request.uri,
                    status=failure.status_code,
                    error=failure.message,
                )
                if not return_exceptions:
                    raise failure
                results[operation.key] = failure

        logger.debug("batch_completed", batch=batch.index, size=batch.size)
        return results

    def _prepare(
        self,
        handle: TransportHandle,
        key: Optional[Hashable],
        request: Request,
        expires_at: Optional[float] = None,
    ) -> Operation:
        """Configure a handle for a request and bind a fresh header accumulator."""
        options = self.effective_options(request)
        if expires_at is not None:
            remaining = max(expires_at - time.monotonic(), MIN_DEADLINE_TIMEOUT)
            clamp_timeouts(options, remaining)
        handle.setopt_array(options)

        # Request headers and body are set after the merge, and only when present
        header_lines = request.headers.lines()
        if header_lines:
            handle.setopt(Option.HEADERS, header_lines)

        body = request.body.getvalue()
        if body:
            handle.setopt(Option.BODY, body)

        accumulator = HeaderAccumulator(handle.handle_id)
        handle.setopt(Option.HEADER_FUNCTION, accumulator.on_header_line)

        return Operation(key=key, request=request, handle=handle, accumulator=accumulator)

    def _drive(
        self,
        multi: Multiplexer,
        batch: Batch,
        deadline: Optional[float] = None,
        expires_at: Optional[float] = None,
    ) -> None:
        """Advance the multiplexer until no handle is active."""
        while True:
            active = multi.perform()
            if not active:
                return

            wait = self.config.select_timeout
            if expires_at is not None:
                remaining = expires_at - time.monotonic()
                if remaining <= 0:
                    logger.warning(
                        "dispatch_deadline_exceeded",
                        batch=batch.index,
                        deadline=deadline,
                        active=active,
                    )
                    raise DeadlineExceeded(deadline, batch.keys)
                wait = min(wait, remaining)

            multi.select(wait)
