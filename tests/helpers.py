"""
Shared test helpers: a scriptable fake transport and test data generators.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from batchclient.exceptions import FatalMultiplexError
from batchclient.transport.interface import (
    Multiplexer,
    Option,
    OptionKey,
    Transport,
    TransportHandle,
)


# ============================================================================
# Test Data Generators
# ============================================================================

def make_url(name: str) -> str:
    """Generate a test URL for a named resource."""
    return f"https://api.test/{name}"


# ============================================================================
# Fake Transport
# ============================================================================

@dataclass
class FakeReply:
    """Scripted outcome of one fake transport operation."""

    status: int = 200
    reason: str = "OK"
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    error: str = ""


class FakeHandle(TransportHandle):
    """Handle that completes from the transport's script instead of the network."""

    def __init__(self, transport: "FakeTransport"):
        self.transport = transport
        self.options: Dict[Option, Any] = {}
        self.closed = False
        self.completed = False

    def setopt(self, option: OptionKey, value: Any) -> None:
        if self.closed:
            raise RuntimeError("Cannot configure a closed handle")
        self.options[Option(option)] = value

    def perform(self) -> bool:
        self.transport.performed.append(self.options.get(Option.URL))
        self.complete()
        return not self.error

    def complete(self) -> None:
        """Finish the operation: feed header lines, then attach the body."""
        url = self.options.get(Option.URL)
        reply = self.transport.replies.get(url, FakeReply(headers=[("X-Url", url)]))
        self.completed = True
        self.transport.completed.append(url)

        if reply.error:
            self.status_code = reply.status
            self.error = reply.error
            return

        self.status_code = reply.status
        self.reason_phrase = reply.reason
        callback = self.options.get(Option.HEADER_FUNCTION)
        lines = [f"HTTP/1.1 {reply.status} {reply.reason}\r\n".encode("latin-1")]
        lines.extend(f"{name}: {value}\r\n".encode("latin-1") for name, value in reply.headers)
        lines.append(b"\r\n")
        for line in lines:
            if callback is not None:
                assert callback(self.handle_id, line) == len(line)
        self.content = reply.body

    def close(self) -> None:
        self.closed = True


class FakeMultiplexer(Multiplexer):
    """
    Multiplexer that completes one handle per perform step, newest first.

    With ``stall`` set nothing ever completes; with ``fatal`` set the first
    perform step fails the whole context.
    """

    def __init__(self, transport: "FakeTransport"):
        self.transport = transport
        self.handles: List[FakeHandle] = []
        self.removed: List[FakeHandle] = []
        self.select_timeouts: List[float] = []
        self.closed = False

    def add_handle(self, handle: TransportHandle) -> None:
        self.handles.append(handle)

    def remove_handle(self, handle: TransportHandle) -> None:
        self.removed.append(handle)

    def perform(self) -> int:
        if self.transport.fatal:
            raise FatalMultiplexError("event loop broke")

        pending = [h for h in self.handles if not h.completed]
        if pending and not self.transport.stall:
            pending[-1].complete()
            pending.pop()
        return len(pending)

    def select(self, timeout: float) -> int:
        self.select_timeouts.append(timeout)
        if self.transport.stall:
            time.sleep(timeout)
        return 0

    def close(self) -> None:
        self.closed = True


class FakeTransport(Transport):
    """
    Scriptable transport for dispatcher tests.

    Unscripted URLs answer 200 with an ``X-Url`` header echoing the URL.
    """

    def __init__(self, stall: bool = False, fatal: bool = False):
        self.replies: Dict[str, FakeReply] = {}
        self.handles: List[FakeHandle] = []
        self.multiplexers: List[FakeMultiplexer] = []
        self.performed: List[str] = []
        self.completed: List[str] = []
        self.stall = stall
        self.fatal = fatal

    def reply(self, url: str, **kwargs) -> None:
        """Script the outcome for a URL."""
        self.replies[url] = FakeReply(**kwargs)

    def create_handle(self) -> FakeHandle:
        handle = FakeHandle(self)
        self.handles.append(handle)
        return handle

    def create_multiplexer(self) -> FakeMultiplexer:
        multi = FakeMultiplexer(self)
        self.multiplexers.append(multi)
        return multi


def url_of(handle: FakeHandle) -> Optional[str]:
    return handle.options.get(Option.URL)
