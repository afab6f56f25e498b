"""
HTTP client facade.

Entry points for sending one request, sending many requests in concurrent
batches, and building a request from raw parts.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import structlog

from batchclient.config import ClientConfig, get_config
from batchclient.core.batch import RequestCollection
from batchclient.core.dispatcher import Dispatcher, Result
from batchclient.core.message import Request, Response, Stream
from batchclient.transport.httpx_adapter import HttpxTransport
from batchclient.transport.interface import Option, OptionKey, Transport

logger = structlog.get_logger(__name__)


class HttpClient:
    """
    HTTP client that sends single requests or batches of concurrent requests.

    Usage:
        ```python
        client = HttpClient()
        r1 = Request("GET", "https://example.com/a")
        r2 = Request("GET", "https://example.com/b")
        responses = client.send_requests([r1, r2])  # same order as the input
        ```

    Global extra options (``set_extra_options``) are applied to every request
    and take precedence over the options derived from the request itself.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration. Uses global config if not provided.
            transport: Transport engine (httpx adapter if not provided)
        """
        self.config = config or get_config()
        self.transport = transport or HttpxTransport()
        self._dispatcher = Dispatcher(self.transport, self.config)

    @property
    def extra_options(self) -> Dict[Option, Any]:
        return self._dispatcher.extra_options

    def set_extra_options(self, extra_options: Mapping[OptionKey, Any]) -> None:
        """
        Replace the global extra options.

        On a key collision these values override the request-derived
        defaults, including method, URL and redirect behaviour.

        Raises:
            ValueError: If a key is not a known transport option
        """
        self._dispatcher.extra_options = extra_options
        logger.debug("extra_options_set", options=sorted(o.value for o in self.extra_options))

    def request(
        self,
        method: str,
        url: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        """
        Build a request from raw parts and send it.

        Args:
            method: Request method
            url: Target URL
            options: Optional ``body`` (bytes or str) and ``headers``
                (mapping of name to a value or list of values)

        Returns:
            The response
        """
        return self.send_request(self.build_request(method, url, options))

    def build_request(
        self,
        method: str,
        url: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Request:
        """Build the request that ``request()`` would send."""
        options = options or {}
        request = Request(method, url)

        if options.get("body") is not None:
            request = request.with_body(Stream(options["body"]))

        headers: Mapping[str, Union[str, Sequence[str]]] = options.get("headers") or {}
        for name, value in headers.items():
            request = request.with_header(name, value)

        return request

    def send_request(self, request: Request) -> Response:
        """
        Send one request, blocking until it completes.

        Raises:
            TransportFailure: If the transport reports a terminal error
        """
        return self._dispatcher.execute(request)

    def send_requests(
        self,
        requests: RequestCollection,
        batch_size: Optional[int] = None,
        return_exceptions: bool = False,
        deadline: Optional[float] = None,
    ) -> List[Result]:
        """
        Send many requests concurrently, in batches.

        Args:
            requests: Ordered mapping of key to request, or a sequence
            batch_size: How many requests run concurrently per batch
                (config.batch_size, 10 by default)
            return_exceptions: Return a TransportFailure in place of each
                failed request instead of failing the whole batch
            deadline: Seconds allowed for the whole call

        Returns:
            Responses in ascending key order (input order for sequences)

        Raises:
            TransportFailure: On the first failure within a batch, unless
                return_exceptions is set
            FatalMultiplexError: If the execution context fails
            DeadlineExceeded: If the deadline elapses
        """
        return self._dispatcher.dispatch(
            requests,
            batch_size=batch_size,
            return_exceptions=return_exceptions,
            deadline=deadline,
        )
