"""
Exception hierarchy for the batch client.

Every error raised by the dispatcher derives from DispatchError so callers
can catch the whole family with one clause.
"""

from typing import TYPE_CHECKING, Any, List, Optional

if TYPE_CHECKING:
    from batchclient.core.message import Request


class DispatchError(Exception):
    """Base class for all dispatcher errors."""
    pass


class TransportFailure(DispatchError):
    """
    Raised when the transport reports a terminal error for one operation.

    Covers connectivity, TLS, timeout and protocol-level failures. A failure
    inside a batch aborts the whole batch unless the caller asked for
    per-key results.

    Attributes:
        message: Error text reported by the transport
        request: The request whose operation failed
        status_code: Status code produced before the failure (0 if none)
    """

    def __init__(
        self,
        message: str,
        request: "Request",
        status_code: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.request = request
        self.status_code = status_code or 0

    def __repr__(self) -> str:
        return (
            f"TransportFailure({self.message!r}, "
            f"request={self.request.method} {self.request.uri}, "
            f"status_code={self.status_code})"
        )


class FatalMultiplexError(DispatchError):
    """Raised when the shared execution context itself cannot proceed."""
    pass


class DeadlineExceeded(DispatchError):
    """
    Raised when a dispatch deadline elapses with operations still in flight.

    Attributes:
        deadline: The deadline that elapsed, in seconds
        pending: Keys of the requests left without a result
    """

    def __init__(self, deadline: float, pending: Optional[List[Any]] = None):
        self.deadline = deadline
        self.pending = list(pending or [])
        super().__init__(
            f"Dispatch deadline of {deadline:g}s exceeded "
            f"with {len(self.pending)} operation(s) pending"
        )
