"""
Transport Layer.

Abstracted access to the HTTP transport engine: per-operation handles and a
multiplexer that drives many handles on one loop. Ships an httpx adapter.
"""

from batchclient.transport.interface import (
    Multiplexer,
    Option,
    Transport,
    TransportHandle,
)
from batchclient.transport.httpx_adapter import (
    HttpxHandle,
    HttpxMultiplexer,
    HttpxTransport,
)

__all__ = [
    "Multiplexer",
    "Option",
    "Transport",
    "TransportHandle",
    "HttpxHandle",
    "HttpxMultiplexer",
    "HttpxTransport",
]
