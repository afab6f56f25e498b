"""
httpx adapter for the transport interface.

Single operations run on a blocking httpx.Client. Batches run on a private
asyncio event loop owned by HttpxMultiplexer, where every handle drives its
own httpx.AsyncClient as one task.
"""

import asyncio
import sys
import threading
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Tuple, Union

import httpx
import structlog

from batchclient.exceptions import FatalMultiplexError
from batchclient.transport.interface import (
    Multiplexer,
    Option,
    OptionKey,
    Transport,
    TransportHandle,
)

logger = structlog.get_logger(__name__)

CRLF = b"\r\n"

# Errors attributed to a single operation rather than to the loop
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class HeaderCallbackAborted(Exception):
    """Raised when a header callback does not consume the full line."""
    pass


def parse_header_lines(lines: Iterable[str]) -> List[Tuple[str, str]]:
    """Turn ``Name: value`` lines into header pairs, keeping repeats."""
    pairs = []
    for line in lines:
        name, sep, value = line.partition(":")
        if sep and name.strip():
            pairs.append((name.strip(), value.strip()))
    return pairs


class HttpxHandle(TransportHandle):
    """
    Transport handle backed by httpx.

    The handle owns its client for the duration of one operation: a blocking
    ``httpx.Client`` in ``perform()`` or an ``httpx.AsyncClient`` in
    ``perform_async()``. Responses are read in streaming mode so header
    lines reach the header callback before the body is read.
    """

    def __init__(
        self,
        httpx_transport: Optional[Any] = None,
        output: Optional[BinaryIO] = None,
    ):
        """
        Initialize the handle.

        Args:
            httpx_transport: Optional httpx transport for the clients this
                handle creates (must support sync and async use)
            output: Where bodies go when return_content is off (stdout by default)
        """
        self._httpx_transport = httpx_transport
        self._output = output
        self._options: Dict[Option, Any] = {}
        self._closed = False
        self._header_block = bytearray()
        self._reset()

    def setopt(self, option: OptionKey, value: Any) -> None:
        if self._closed:
            raise RuntimeError("Cannot configure a closed handle")
        self._options[Option(option)] = value

    def getopt(self, option: OptionKey, default: Any = None) -> Any:
        return self._options.get(Option(option), default)

    @property
    def options(self) -> Dict[Option, Any]:
        return dict(self._options)

    def perform(self) -> bool:
        self._reset()
        try:
            with httpx.Client(**self._client_kwargs()) as client:
                response = client.send(
                    self._build_request(client),
                    stream=True,
                    follow_redirects=self._follow_redirects,
                )
                try:
                    self._deliver_headers(response)
                    body = response.read()
                finally:
                    response.close()
        except TRANSPORT_ERRORS + (HeaderCallbackAborted,) as e:
            self._fail(e)
            return False

        self._finish(body)
        return True

    async def perform_async(self) -> bool:
        """Run the operation as a coroutine on the caller's event loop."""
        self._reset()
        try:
            async with httpx.AsyncClient(**self._client_kwargs()) as client:
                response = await client.send(
                    self._build_request(client),
                    stream=True,
                    follow_redirects=self._follow_redirects,
                )
                try:
                    self._deliver_headers(response)
                    body = await response.aread()
                finally:
                    await response.aclose()
        except TRANSPORT_ERRORS + (HeaderCallbackAborted,) as e:
            self._fail(e)
            return False

        self._finish(body)
        return True

    def close(self) -> None:
        self._closed = True
        self._options.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    # Internals

    def _reset(self) -> None:
        self.status_code = 0
        self.reason_phrase = ""
        self.content = b""
        self.error = ""
        self._header_block = bytearray()

    @property
    def _follow_redirects(self) -> bool:
        return bool(self.getopt(Option.FOLLOW_REDIRECTS, False))

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "verify": self.getopt(Option.VERIFY, True),
            "timeout": self._timeout(),
        }
        max_redirects = self.getopt(Option.MAX_REDIRECTS)
        if max_redirects is not None:
            kwargs["max_redirects"] = int(max_redirects)
        if self._httpx_transport is not None:
            kwargs["transport"] = self._httpx_transport
        return kwargs

    def _timeout(self) -> httpx.Timeout:
        timeout = self.getopt(Option.TIMEOUT)
        connect = self.getopt(Option.CONNECT_TIMEOUT)
        if connect is None:
            return httpx.Timeout(timeout)
        return httpx.Timeout(timeout, connect=connect)

    def _build_request(self, client: Union[httpx.Client, httpx.AsyncClient]) -> httpx.Request:
        body = self.getopt(Option.BODY)
        return client.build_request(
            self.getopt(Option.METHOD) or "GET",
            self.getopt(Option.URL) or "",
            headers=parse_header_lines(self.getopt(Option.HEADERS) or []),
            content=body if body else None,
        )

    def _deliver_headers(self, response: httpx.Response) -> None:
        """Feed the status line, header lines and blank line to the callback."""
        self.status_code = response.status_code
        self.reason_phrase = response.reason_phrase

        status_line = f"{response.http_version} {response.status_code} {response.reason_phrase}"
        lines = [status_line.encode("latin-1", errors="replace") + CRLF]
        lines.extend(name + b": " + value + CRLF for name, value in response.headers.raw)
        lines.append(CRLF)

        callback = self.getopt(Option.HEADER_FUNCTION)
        include = bool(self.getopt(Option.INCLUDE_HEADERS, False))
        for line in lines:
            if include:
                self._header_block.extend(line)
            if callback is None:
                continue
            consumed = callback(self.handle_id, line)
            if consumed != len(line):
                raise HeaderCallbackAborted(
                    f"Header callback consumed {consumed} of {len(line)} bytes"
                )

    def _finish(self, body: bytes) -> None:
        payload = bytes(self._header_block) + body
        if self.getopt(Option.RETURN_CONTENT, True):
            self.content = payload
            return

        output = self._output or sys.stdout.buffer
        output.write(payload)
        output.flush()
        self.content = b""

    def _fail(self, error: Exception) -> None:
        self.error = str(error) or error.__class__.__name__
        logger.debug(
            "transport_operation_failed",
            url=str(self.getopt(Option.URL)),
            error=self.error,
            error_type=error.__class__.__name__,
        )


class HttpxMultiplexer(Multiplexer):
    """
    Multiplexed execution context over a private asyncio event loop.

    Each registered handle becomes one task on the loop. ``perform()`` runs
    the loop for a single step and ``select()`` runs it until the first
    pending task finishes or the timeout elapses, so all handles progress
    together on the calling thread.
    """

    def __init__(self):
        self._loop = asyncio.new_event_loop()
        self._tasks: Dict[int, "asyncio.Task[bool]"] = {}
        self._lock = threading.RLock()

    def add_handle(self, handle: TransportHandle) -> None:
        if not isinstance(handle, HttpxHandle):
            raise TypeError(f"HttpxMultiplexer cannot drive {type(handle).__name__}")

        with self._lock:
            self._ensure_open()
            if handle.handle_id in self._tasks:
                raise ValueError("Handle is already registered")
            self._tasks[handle.handle_id] = self._loop.create_task(handle.perform_async())

    def remove_handle(self, handle: TransportHandle) -> None:
        with self._lock:
            task = self._tasks.pop(handle.handle_id, None)
            if task is None or self._loop.is_closed() or task.done():
                return
            task.cancel()
            self._run(_drain([task]))

    def perform(self) -> int:
        with self._lock:
            self._ensure_open()
            self._run(asyncio.sleep(0))

            for task in self._tasks.values():
                if task.done() and not task.cancelled() and task.exception() is not None:
                    error = task.exception()
                    logger.error("multiplexer_task_crashed", error=repr(error))
                    raise FatalMultiplexError(f"Transport task failed: {error!r}") from error

            return sum(1 for task in self._tasks.values() if not task.done())

    def select(self, timeout: float) -> int:
        with self._lock:
            self._ensure_open()
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                return 0

            done, _ = self._run(asyncio.wait(
                pending,
                timeout=max(timeout, 0),
                return_when=asyncio.FIRST_COMPLETED,
            ))
            return len(done)

    def close(self) -> None:
        with self._lock:
            if self._loop.is_closed():
                return
            try:
                pending = [task for task in self._tasks.values() if not task.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    self._loop.run_until_complete(_drain(pending))
                self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            except RuntimeError as e:
                logger.warning("multiplexer_close_incomplete", error=str(e))
            finally:
                self._tasks.clear()
                self._loop.close()

    @property
    def closed(self) -> bool:
        return self._loop.is_closed()

    def _ensure_open(self) -> None:
        if self._loop.is_closed():
            raise FatalMultiplexError("Multiplexer is closed")

    def _run(self, awaitable):
        try:
            return self._loop.run_until_complete(awaitable)
        except RuntimeError as e:
            # Raised before the coroutine was scheduled (e.g. a loop is already running)
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            logger.error("multiplexer_fatal", error=str(e))
            raise FatalMultiplexError(str(e)) from e


async def _drain(tasks: List["asyncio.Task[bool]"]) -> None:
    await asyncio.gather(*tasks, return_exceptions=True)


class HttpxTransport(Transport):
    """Transport engine built on httpx."""

    def __init__(
        self,
        httpx_transport: Optional[Any] = None,
        output: Optional[BinaryIO] = None,
    ):
        """
        Initialize the transport.

        Args:
            httpx_transport: Optional httpx transport shared by every handle
                (e.g. ``httpx.MockTransport`` in tests)
            output: Sink for bodies of operations that do not return content
        """
        self.httpx_transport = httpx_transport
        self.output = output

    def create_handle(self) -> HttpxHandle:
        return HttpxHandle(httpx_transport=self.httpx_transport, output=self.output)

    def create_multiplexer(self) -> HttpxMultiplexer:
        return HttpxMultiplexer()
