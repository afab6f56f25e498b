"""
Batch HTTP Client

An HTTP client that sends single requests and large request sets executed
concurrently in bounded batches, returning responses in input order.
"""

__version__ = "0.1.0"

from batchclient.client import HttpClient
from batchclient.config import ClientConfig
from batchclient.core.message import Headers, Request, Response, Stream
from batchclient.exceptions import (
    DeadlineExceeded,
    DispatchError,
    FatalMultiplexError,
    TransportFailure,
)

__all__ = [
    "HttpClient",
    "ClientConfig",
    "Headers",
    "Request",
    "Response",
    "Stream",
    "DeadlineExceeded",
    "DispatchError",
    "FatalMultiplexError",
    "TransportFailure",
]
