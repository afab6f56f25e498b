"""
Abstract interface for the HTTP transport engine.

Defines the contract every transport adapter must implement: per-operation
handles configured through option keys, and a multiplexer that advances many
handles together on one loop.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Mapping, Union


class Option(str, Enum):
    """Option keys understood by transport handles."""
    URL = "url"                            # Target URI
    METHOD = "method"                      # Request method
    HEADERS = "headers"                    # List of "Name: value" lines
    BODY = "body"                          # Request body bytes
    RETURN_CONTENT = "return_content"      # Keep the body instead of writing it out
    FOLLOW_REDIRECTS = "follow_redirects"  # Follow 3xx responses
    INCLUDE_HEADERS = "include_headers"    # Prepend status line and headers to the body
    HEADER_FUNCTION = "header_function"    # Callable(handle_id, raw_line) -> bytes consumed
    TIMEOUT = "timeout"                    # Seconds for the whole operation
    CONNECT_TIMEOUT = "connect_timeout"    # Seconds for the connect phase
    VERIFY = "verify"                      # Verify TLS certificates
    MAX_REDIRECTS = "max_redirects"        # Redirect cap


OptionKey = Union[Option, str]


class TransportHandle(ABC):
    """
    One transport operation.

    A handle is configured with options, run either on its own with
    ``perform()`` or inside a Multiplexer, then inspected and closed. It is
    owned exclusively by the operation that created it.

    Attributes:
        status_code: Status code of the final response (0 if none)
        reason_phrase: Reason phrase of the final response
        content: Response body (empty when the body was not returned)
        error: Error text if the operation failed, empty otherwise
    """

    status_code: int = 0
    reason_phrase: str = ""
    content: bytes = b""
    error: str = ""

    @property
    def handle_id(self) -> int:
        """Identity of this handle, used to key per-operation state."""
        return id(self)

    @abstractmethod
    def setopt(self, option: OptionKey, value: Any) -> None:
        """
        Set one option.

        Args:
            option: Option key
            value: Option value

        Raises:
            ValueError: If the option key is unknown
        """
        pass

    def setopt_array(self, options: Mapping[OptionKey, Any]) -> None:
        """Set every option in a mapping."""
        for option, value in options.items():
            self.setopt(option, value)

    @abstractmethod
    def perform(self) -> bool:
        """
        Run the operation to completion, blocking the calling thread.

        Returns:
            True on success, False if a transport error was recorded in ``error``
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the handle and everything it owns."""
        pass

    def __enter__(self) -> "TransportHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Multiplexer(ABC):
    """
    Shared execution context that advances many handles concurrently.

    Handles are registered with ``add_handle``; the owner alternates
    ``perform()`` and ``select()`` until no handle is active. Adding and
    removing handles is serialized against the perform and select steps.
    """

    @abstractmethod
    def add_handle(self, handle: TransportHandle) -> None:
        """Register a configured handle."""
        pass

    @abstractmethod
    def remove_handle(self, handle: TransportHandle) -> None:
        """Deregister a handle, abandoning it if still in flight."""
        pass

    @abstractmethod
    def perform(self) -> int:
        """
        Advance all registered handles without blocking.

        Returns:
            Number of handles still active

        Raises:
            FatalMultiplexError: If the execution context cannot proceed
        """
        pass

    @abstractmethod
    def select(self, timeout: float) -> int:
        """
        Block until at least one handle has activity or the timeout elapses.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            Number of handles that completed during the wait

        Raises:
            FatalMultiplexError: If the execution context cannot proceed
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the execution context."""
        pass

    def __enter__(self) -> "Multiplexer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Transport(ABC):
    """Factory for handles and multiplexers of one transport engine."""

    @abstractmethod
    def create_handle(self) -> TransportHandle:
        pass

    @abstractmethod
    def create_multiplexer(self) -> Multiplexer:
        pass


__all__ = [
    "Multiplexer",
    "Option",
    "OptionKey",
    "Transport",
    "TransportHandle",
]
