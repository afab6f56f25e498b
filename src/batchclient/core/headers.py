"""
Header accumulation for in-flight operations.

The transport delivers response headers one raw line at a time. Each
operation owns one HeaderAccumulator bound to its transport handle, so
operations sharing a multiplexed loop never see each other's headers.
"""

from typing import Union

import structlog

from batchclient.core.message import Headers

logger = structlog.get_logger(__name__)

STATUS_LINE_PREFIX = "HTTP/"


class HeaderAccumulator:
    """
    Collects raw header lines for exactly one transport handle.

    Append-only while the operation runs; ``snapshot()`` returns the finished
    multimap once it completes.
    """

    def __init__(self, handle_id: int):
        """
        Initialize the accumulator.

        Args:
            handle_id: Identity of the transport handle that owns this accumulator
        """
        self.handle_id = handle_id
        self._headers = Headers()
        self._lines = 0

    def on_header_line(self, handle_id: int, raw_line: Union[bytes, str]) -> int:
        """
        Absorb one raw header line delivered by the transport.

        Blank lines and status lines are skipped. Other lines are split on the
        first colon and the trimmed value is appended under the trimmed name,
        so repeated names keep every value in arrival order. Lines without a
        colon are ignored.

        Args:
            handle_id: Identity of the handle delivering the line
            raw_line: The line as received, including its line terminator

        Returns:
            Number of bytes consumed (always the full line)

        Raises:
            ValueError: If the line comes from a different handle
        """
        if handle_id != self.handle_id:
            raise ValueError(
                f"Header line from handle {handle_id} delivered to "
                f"accumulator of handle {self.handle_id}"
            )

        if isinstance(raw_line, bytes):
            consumed = len(raw_line)
            line = raw_line.decode("latin-1")
        else:
            consumed = len(raw_line.encode("latin-1", errors="replace"))
            line = raw_line

        trimmed = line.strip()
        if not trimmed or trimmed.startswith(STATUS_LINE_PREFIX):
            return consumed

        name, sep, value = trimmed.partition(":")
        if sep:
            self._headers.add(name.strip(), value.strip())
            self._lines += 1
        else:
            logger.debug("header_line_ignored", handle_id=handle_id, line=trimmed[:80])

        return consumed

    def snapshot(self) -> Headers:
        """Return a copy of the headers collected so far."""
        return self._headers.copy()

    def __len__(self) -> int:
        """Number of header values collected."""
        return self._lines
